"""
Config file discovery and loading for vault_task_sync.

A run may pick up YAML config from three places.  The highest precedence
file wins per top-level section:

    1. The file named by ``VAULT_TASK_SYNC_CONFIG``
    2. ``.vault_task_sync/config.yml`` (or ``.yaml``) in the working directory
    3. ``~/.config/vault_task_sync/config.yml`` (or ``.yaml``)

YAML files may pull in other files with ``!include`` (for example a shared
list of tag-to-list mappings) and reference environment variables as
``${VAR}`` or ``${VAR:-default}``.

Usage:
    from vault_task_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()   # {} when nothing is configured
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "VAULT_TASK_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".vault_task_sync"
GLOBAL_CONFIG_DIR = Path(".config") / "vault_task_sync"
CONFIG_NAMES = ("config.yml", "config.yaml")

# ${NAME} or ${NAME:-fallback}; an unterminated "${" never matches.
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    the reference has none.
    """

    def expand(match: re.Match) -> str:
        current = os.environ.get(match.group("name"))
        if current:
            return current
        return match.group("fallback") or ""

    return _ENV_REF.sub(expand, value)


def _interpolate_recursive(node: Any) -> Any:
    match node:
        case str():
            return interpolate_env_vars(node)
        case dict():
            return {key: _interpolate_recursive(val) for key, val in node.items()}
        case list():
            return [_interpolate_recursive(item) for item in node]
        case _:
            return node


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` that understands ``!include <path>``.

    Include paths are relative to the including file.  Every loader carries
    the chain of files that led to it so that a file including one of its
    own ancestors is reported instead of recursing forever.  The tag is
    registered on this subclass only; ``yaml.safe_load`` stays untouched.
    """

    def __init__(self, stream, include_chain: tuple[Path, ...] = ()) -> None:
        super().__init__(stream)
        self.include_chain = include_chain

    def include(self, node: yaml.ScalarNode) -> Any:
        including_file = self.include_chain[-1]
        target = Path(self.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = including_file.parent / target
        target = target.resolve()

        if target in self.include_chain:
            chain = " -> ".join(str(p) for p in (*self.include_chain, target))
            raise ValueError(f"Circular include detected: {chain}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {including_file})"
            )
        return _load_yaml_with_includes(target, _chain=self.include_chain)


ConfigLoader.add_constructor("!include", ConfigLoader.include)


def _load_yaml_with_includes(
    path: Path, *, _chain: tuple[Path, ...] = ()
) -> Any:
    """Parse one YAML file, following ``!include`` tags."""
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = ConfigLoader(fh, include_chain=(*_chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidate_paths() -> list[Path]:
    candidates: list[Path] = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    for base in (Path.cwd() / PROJECT_CONFIG_DIR, Path.home() / GLOBAL_CONFIG_DIR):
        candidates.extend(base / name for name in CONFIG_NAMES)
    return candidates


def discover_config_files() -> list[Path]:
    """Return the config files that exist, highest precedence first."""
    return [path for path in _candidate_paths() if path.is_file()]


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one raw dict.

    Files are applied lowest precedence first and each replaces whole
    top-level sections, so a project ``sync:`` block hides the global one
    entirely while a global ``backup:`` block still applies.  Environment
    references are expanded after the merge.

    Raises:
        yaml.YAMLError: If a config file is not valid YAML.
        ValueError: On circular ``!include`` chains.
        FileNotFoundError: If an ``!include`` target is missing.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        data = _load_yaml_with_includes(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: expected a mapping at the top level, got %s",
                path,
                type(data).__name__,
            )
            continue
        logger.debug("Config sections %s from %s", sorted(data), path)
        merged.update(data)

    if not merged:
        logger.debug("No config file settings; using built-in defaults")
    return _interpolate_recursive(merged)


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# vault-task-sync configuration
#
# Values may reference environment variables: ${VAULT_HOME:-~/Notes}
# Sync toggles can also be set via environment variables:
#   VAULT_SYNC_VAULT_PATH, VAULT_SYNC_DRY_RUN,
#   VAULT_SYNC_COMPLETION_WRITEBACK, VAULT_SYNC_INTERVAL_MINUTES,
#   VAULT_SYNC_DATA_DIR
#
# sync:
#   vault_path: ~/Notes
#   sync_interval_minutes: 5
#   task_files_pattern: "**/*.md"
#   excluded_folders: [.obsidian, .git, .trash, Templates]
#   default_list: Reminders
#   list_mappings: !include list-mappings.yml
#   enable_completion_writeback: false
#   dry_run: false
#
# backup:
#   max_per_file: 50
#   max_age_days: 7
#
# destination:
#   type: json
#   path: ~/.config/vault_task_sync/tasks.json
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Path of the config file in effect, or where a new one would go."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / CONFIG_NAMES[0]


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if none exists.

    Args:
        target: Where to write the starter file.  Defaults to
            ``.vault_task_sync/config.yml`` under the working directory.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path
