"""Sync state persistence layer.

Manages ``sync_state.json``, the only durable link between vault tasks and
destination tasks.  Each entry is keyed by the content-derived source ID
and records the destination ID plus the content hash and completion state
of the task as last synchronized.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Versioned** -- the file carries the ID scheme version; a file written
  under any other version is discarded on load, since its keys cannot be
  compared with IDs generated now.
* **Dict-based state** -- state is a plain ``dict`` rather than a Pydantic
  model so the orchestrator can mutate it freely during a run and persist
  once at the end.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from .identity import ID_SCHEME_VERSION

logger = logging.getLogger(__name__)

STATE_FILENAME = "sync_state.json"


class SyncStateStore:
    """Load, save, and query the source-ID to destination-ID mapping.

    Args:
        state_dir: Directory holding ``sync_state.json``.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        # Why the last load() discarded the file, or None if it did not.
        self.reset_reason: str | None = None

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def empty() -> dict:
        """Return a fresh state at the current scheme version."""
        return {
            "version": ID_SCHEME_VERSION,
            "last_sync": None,
            "entries": {},
        }

    def load(self) -> dict:
        """Load sync state from disk.

        Returns:
            The state dict.  A missing or unreadable file, or one written
            under a different ID scheme version, yields an empty state and
            sets ``reset_reason``.
        """
        self.reset_reason = None
        path = self.path
        if not path.exists():
            return self.empty()
        try:
            with open(path, encoding="utf-8") as fh:
                state = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Sync state %s is unreadable (%s); starting from empty state",
                path,
                exc,
            )
            self.reset_reason = f"unreadable state file ({exc})"
            return self.empty()

        if not isinstance(state, dict):
            logger.warning(
                "Sync state %s has non-dict root; starting from empty state",
                path,
            )
            self.reset_reason = "state file root is not an object"
            return self.empty()

        version = state.get("version")
        if version != ID_SCHEME_VERSION:
            discarded = len(state.get("entries") or {})
            logger.info(
                "Sync state version %s does not match current version %s; "
                "clearing %d mappings (destination tasks will be re-created)",
                version,
                ID_SCHEME_VERSION,
                discarded,
            )
            self.reset_reason = (
                f"version {version} -> {ID_SCHEME_VERSION}, "
                f"{discarded} mappings discarded"
            )
            return self.empty()

        state.setdefault("last_sync", None)
        if not isinstance(state.get("entries"), dict):
            state["entries"] = {}
        return state

    def save(self, state: dict) -> None:
        """Persist sync state to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.

        The ``last_sync`` field is set to the current UTC ISO 8601 timestamp
        before writing.

        Args:
            state: The state dict to persist.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["version"] = ID_SCHEME_VERSION
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Entry helpers
    # ------------------------------------------------------------------

    @staticmethod
    def get_entry(state: dict, source_id: str) -> dict | None:
        """Return the entry for *source_id*, or ``None`` if absent."""
        return state.get("entries", {}).get(source_id)

    @staticmethod
    def set_entry(
        state: dict,
        source_id: str,
        destination_id: str | None,
        content_hash: str,
        completed: bool | None = None,
    ) -> dict:
        """Upsert the mapping for *source_id*.  Mutates *state* in place.

        Each entry carries the ID scheme version it was keyed under and
        the vault completion state at last sync, which tells a completion
        ticked in the vault apart from one ticked on the destination.
        """
        entry = {
            "version": ID_SCHEME_VERSION,
            "source_id": source_id,
            "destination_id": destination_id,
            "content_hash": content_hash,
            "completed": completed,
            "last_synced": datetime.now(timezone.utc).isoformat(),
        }
        state.setdefault("entries", {})[source_id] = entry
        return entry

    @staticmethod
    def remove_entry(state: dict, source_id: str) -> None:
        """Remove *source_id* from ``state["entries"]``.

        No-op if not present.
        """
        state.get("entries", {}).pop(source_id, None)

    @staticmethod
    def entries(state: dict) -> dict[str, dict]:
        return state.get("entries", {})
