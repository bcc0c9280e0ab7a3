"""Unified configuration schema for vault_task_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for sync behaviour, backups, the audit log, the destination
store and logging.

The builder is version-tolerant: unknown keys are ignored and a field that
fails validation is dropped (with a warning) so its default applies.  A
config file written by an older or newer release therefore always loads.

Usage:
    from vault_task_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ListMapping(BaseModel):
    """Route tasks whose first tag is ``tag`` to destination list ``list``."""

    tag: str = Field(description="Tag, with or without leading '#'")
    list: str = Field(description="Destination list name")

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """What to sync, where to route it and which safety toggles apply."""

    vault_path: str = Field(default="", description="Vault root directory")
    sync_interval_minutes: int = Field(
        default=5,
        ge=0,
        description="Minutes between scheduled runs (0 disables the timer)",
    )
    sync_on_launch: bool = Field(
        default=False, description="Run once when the server starts"
    )
    task_files_pattern: str = Field(
        default="**/*.md", description="Glob filter on vault-relative paths"
    )
    excluded_folders: list[str] = Field(
        default_factory=lambda: [".obsidian", ".git", ".trash"],
        description="Folder names or vault-relative folder paths to skip",
    )
    vault_marker: str = Field(
        default=".obsidian",
        description="Directory whose presence marks a valid vault root",
    )
    list_mappings: list[ListMapping] = Field(
        default_factory=list, description="Explicit tag to list routes"
    )
    default_list: str = Field(
        default="Reminders", description="List for untagged tasks"
    )
    auto_list_from_tag: bool = Field(
        default=True,
        description="Use the capitalized tag as list name when unmapped",
    )
    conflict_resolution: Literal["source-wins"] = Field(
        default="source-wins",
        description="The vault always wins for task content",
    )
    enable_completion_writeback: bool = Field(
        default=False,
        description="Write destination completion state back to the vault",
    )
    dry_run: bool = Field(
        default=False, description="Report actions without applying them"
    )
    sync_completed_tasks: bool = Field(
        default=True,
        description="Create destination tasks for already-completed vault tasks",
    )
    inbox_file_path: str = Field(
        default="Inbox.md", description="Vault-relative file for appended tasks"
    )
    data_dir: str = Field(
        default="~/.config/vault_task_sync",
        description="Directory for state, logs, backups and the task store",
    )
    history_capacity: int = Field(
        default=200, ge=1, description="Sync log entries kept"
    )

    model_config = {"frozen": True}

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    def list_for_tag(self, tag: str | None) -> str:
        """Return the destination list for a task whose first tag is *tag*."""
        name = (tag or "").lstrip("#").split("/", 1)[0].strip()
        if not name:
            return self.default_list
        lowered = name.lower()
        for mapping in self.list_mappings:
            if mapping.tag.lstrip("#").lower() == lowered:
                return mapping.list
        if self.auto_list_from_tag:
            return name[0].upper() + name[1:]
        return self.default_list


class BackupConfig(BaseModel):
    """Retention for pre-write vault file backups."""

    max_per_file: int = Field(
        default=50, ge=1, description="Copies kept per vault file"
    )
    max_age_days: int = Field(
        default=7, ge=0, description="Copies older than this are pruned"
    )

    model_config = {"frozen": True}


class AuditConfig(BaseModel):
    """Audit log rotation threshold."""

    max_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Size at which audit.log is archived and restarted",
    )

    model_config = {"frozen": True}


class DestinationConfig(BaseModel):
    """Which destination store to sync into."""

    type: Literal["json"] = Field(
        default="json", description="Destination store implementation"
    )
    path: str | None = Field(
        default=None,
        description="Store file (defaults to <data_dir>/tasks.json)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    sync: SyncSettings = Field(default_factory=SyncSettings)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    destination: DestinationConfig = Field(default_factory=DestinationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def _drop_path(data: Any, loc: tuple) -> bool:
    """Delete the value at *loc* inside nested dicts/lists."""
    if not loc:
        return False
    target = data
    for key in loc[:-1]:
        if isinstance(target, dict) and key in target:
            target = target[key]
        elif isinstance(target, list) and isinstance(key, int) and key < len(target):
            target = target[key]
        else:
            return False
    last = loc[-1]
    if isinstance(target, dict) and last in target:
        del target[last]
        return True
    if isinstance(target, list) and isinstance(last, int) and last < len(target):
        del target[last]
        return True
    return False


def build_config(raw_data: dict | None) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.
    Invalid values are discarded field by field and logged.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    data = copy.deepcopy(raw_data)
    # Drop one invalid field per pass; nested errors may only surface
    # after their parent validates.
    for _ in range(50):
        try:
            return UnifiedConfig(**data)
        except ValidationError as exc:
            dropped = False
            for error in exc.errors():
                loc = tuple(error["loc"])
                if _drop_path(data, loc) or _drop_path(data, loc[:-1]):
                    logger.warning(
                        "Ignoring invalid config value at %s: %s",
                        ".".join(str(part) for part in loc),
                        error["msg"],
                    )
                    dropped = True
                    break
            if not dropped:
                logger.warning(
                    "Config could not be repaired (%s); using defaults",
                    exc.error_count(),
                )
                return UnifiedConfig()
    return UnifiedConfig()
