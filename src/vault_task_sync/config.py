"""Runtime configuration for the sync engine.

Reads sync settings from CLI args, environment variables, .env files, and
YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    VAULT_SYNC_VAULT_PATH: Vault root directory
    VAULT_SYNC_DRY_RUN: Report actions without applying them (true/false)
    VAULT_SYNC_COMPLETION_WRITEBACK: Write completion state back (true/false)
    VAULT_SYNC_INTERVAL_MINUTES: Minutes between scheduled runs
    VAULT_SYNC_DATA_DIR: Directory for state, logs, backups and task store
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from .config_loader import load_hierarchical_config
from .config_schema import SyncSettings, UnifiedConfig, build_config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.strip().lower() in _TRUE_VALUES


def load_settings(
    overrides: dict[str, Any] | None = None,
    yaml_settings: SyncSettings | None = None,
) -> SyncSettings:
    """Resolve ``SyncSettings`` with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI override > env var / .env > yaml_settings > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        overrides: CLI values keyed by ``SyncSettings`` field name.  ``None``
            values are ignored.
        yaml_settings: The ``sync`` section from the YAML config.

    Returns:
        Resolved settings (not validated against the filesystem; see
        ``validate_vault_path``).

    Raises:
        ConfigurationError: If an env var holds an unusable value.
    """
    base = yaml_settings or SyncSettings()
    update: dict[str, Any] = {}

    env_vault = os.getenv("VAULT_SYNC_VAULT_PATH")
    if env_vault:
        update["vault_path"] = env_vault

    env_data_dir = os.getenv("VAULT_SYNC_DATA_DIR")
    if env_data_dir:
        update["data_dir"] = env_data_dir

    env_dry_run = _get_bool_env("VAULT_SYNC_DRY_RUN")
    if env_dry_run is not None:
        update["dry_run"] = env_dry_run

    env_writeback = _get_bool_env("VAULT_SYNC_COMPLETION_WRITEBACK")
    if env_writeback is not None:
        update["enable_completion_writeback"] = env_writeback

    interval_raw = os.getenv("VAULT_SYNC_INTERVAL_MINUTES")
    if interval_raw is not None:
        try:
            interval = int(interval_raw)
        except ValueError:
            raise ConfigurationError(
                f"Invalid VAULT_SYNC_INTERVAL_MINUTES '{interval_raw}': must be a whole number of minutes"
            ) from None
        if interval < 0:
            raise ConfigurationError(
                f"Invalid VAULT_SYNC_INTERVAL_MINUTES '{interval_raw}': must not be negative"
            )
        update["sync_interval_minutes"] = interval

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in SyncSettings.model_fields:
            logger.debug("Ignoring unknown override '%s'", key)
            continue
        update[key] = value

    if not update:
        return base
    return SyncSettings(**{**base.model_dump(), **update})


def load_unified_config(
    overrides: dict[str, Any] | None = None,
) -> UnifiedConfig:
    """Load YAML config and apply env/CLI precedence to the sync section."""
    unified = build_config(load_hierarchical_config())
    settings = load_settings(overrides, unified.sync)
    return unified.model_copy(update={"sync": settings})


def validate_vault_path(settings: SyncSettings) -> Path:
    """Check that the configured vault root is a usable vault.

    Returns:
        The resolved vault root.

    Raises:
        ConfigurationError: If the path is empty, missing, not a directory,
            or lacks the vault marker directory.
    """
    raw = settings.vault_path.strip()
    if not raw:
        raise ConfigurationError(
            "Vault path is not configured. Set VAULT_SYNC_VAULT_PATH, "
            "pass --vault, or add 'vault_path' to the sync section of config.yml."
        )

    root = Path(raw).expanduser()
    if not root.exists():
        raise ConfigurationError(f"Vault path does not exist: {root}")
    if not root.is_dir():
        raise ConfigurationError(f"Vault path is not a directory: {root}")

    marker = settings.vault_marker.strip()
    if marker and not (root / marker).is_dir():
        raise ConfigurationError(
            f"{root} is not a vault: missing '{marker}' directory"
        )
    return root.resolve()
