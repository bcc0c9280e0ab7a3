"""Tests for MCP sync tool definitions and handlers.

Covers:
- Tool definitions have schemas, descriptions and annotations
- task_sync runs the engine, honours dry_run and reports structured output
- task_sync rejects bad arguments and reports a busy engine
- task_sync_status / task_sync_history reflect previous runs
- task_lists returns destination lists or an access error

A real SyncEngine runs against a temporary vault and the in-memory
FakeDestination from conftest.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FIXED_TODAY, write_note
from vault_task_sync.mcp.tools import ALL_SPECS, SYNC_TOOLS, ToolRegistry
from vault_task_sync.sync.engine import SyncEngine
from vault_task_sync.sync.history import HISTORY_FILENAME, SyncHistory
from vault_task_sync.sync.state import SyncStateStore


@pytest.fixture
def engine(source, destination, settings, data_dir: Path) -> SyncEngine:
    return SyncEngine(
        source=source,
        destination=destination,
        settings=settings,
        state_store=SyncStateStore(data_dir),
        history=SyncHistory(data_dir / HISTORY_FILENAME),
        today=lambda: FIXED_TODAY,
    )


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry(ALL_SPECS)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


class TestSyncToolDefinitions:
    def test_tool_names(self):
        assert [t.name for t in SYNC_TOOLS] == [
            "task_sync",
            "task_sync_status",
            "task_sync_history",
            "task_lists",
        ]

    def test_schemas(self):
        by_name = {t.name: t for t in SYNC_TOOLS}
        assert "dry_run" in by_name["task_sync"].inputSchema["properties"]
        assert "limit" in by_name["task_sync_history"].inputSchema["properties"]
        for tool in SYNC_TOOLS:
            assert tool.inputSchema["required"] == []

    def test_descriptions_and_annotations(self):
        for tool in SYNC_TOOLS:
            assert tool.description
            assert tool.annotations is not None
        read_only = {t.name for t in SYNC_TOOLS if t.annotations.readOnlyHint}
        assert read_only == {"task_sync_status", "task_sync_history", "task_lists"}


# ---------------------------------------------------------------------------
# task_sync
# ---------------------------------------------------------------------------


class TestTaskSync:
    async def test_runs_engine(self, registry, engine, vault, destination):
        write_note(vault, "Inbox.md", "- [ ] Buy milk #errand\n")

        result = await registry.call_tool("task_sync", {}, engine)

        assert result.isError is False
        assert "Sync report" in result.content[0].text
        assert result.structuredContent["counts"]["created"] == 1
        assert len(destination.tasks) == 1

    async def test_dry_run(self, registry, engine, vault, destination):
        write_note(vault, "Inbox.md", "- [ ] Buy milk\n")

        result = await registry.call_tool(
            "task_sync", {"dry_run": True}, engine
        )

        assert "DRY RUN" in result.content[0].text
        assert result.structuredContent["dry_run"] is True
        assert destination.tasks == {}

    async def test_non_boolean_dry_run(self, registry, engine):
        result = await registry.call_tool(
            "task_sync", {"dry_run": "yes"}, engine
        )
        assert result.isError is True
        assert "validation_error" in result.content[0].text

    async def test_failed_run_is_error(self, registry, engine, destination):
        destination.grant_access = False

        result = await registry.call_tool("task_sync", {}, engine)

        assert result.isError is True
        assert result.structuredContent["error"]

    async def test_busy_engine(self, registry, engine):
        assert engine._guard.try_acquire()
        try:
            result = await registry.call_tool("task_sync", {}, engine)
        finally:
            engine._guard.release()

        assert result.isError is True
        assert "sync_in_progress" in result.content[0].text


# ---------------------------------------------------------------------------
# task_sync_status / task_sync_history
# ---------------------------------------------------------------------------


class TestStatusAndHistory:
    async def test_status_before_sync(self, registry, engine, vault):
        result = await registry.call_tool("task_sync_status", {}, engine)

        data = result.structuredContent
        assert data["vault_path"] == str(vault)
        assert data["last_sync"] is None
        assert data["tracked_tasks"] == 0
        assert data["running"] is False
        assert data["last_result"] is None
        assert "Last sync:    never" in result.content[0].text

    async def test_status_after_sync(self, registry, engine, vault):
        write_note(vault, "Inbox.md", "- [ ] Buy milk\n- [ ] Call mom\n")
        await registry.call_tool("task_sync", {}, engine)

        result = await registry.call_tool("task_sync_status", {}, engine)

        data = result.structuredContent
        assert data["tracked_tasks"] == 2
        assert data["last_sync"] is not None
        assert data["last_result"] == "2 created"

    async def test_status_reports_running(self, registry, engine):
        engine._guard.try_acquire()
        try:
            result = await registry.call_tool("task_sync_status", {}, engine)
        finally:
            engine._guard.release()
        assert result.structuredContent["running"] is True

    async def test_history_newest_first(self, registry, engine, vault):
        write_note(vault, "Inbox.md", "- [ ] Buy milk\n")
        await registry.call_tool("task_sync", {}, engine)
        write_note(vault, "Inbox.md", "- [ ] Buy milk\n- [ ] Call mom\n")
        await registry.call_tool("task_sync", {}, engine)

        result = await registry.call_tool(
            "task_sync_history", {"limit": 5}, engine
        )

        runs = result.structuredContent["runs"]
        assert [r["counts"]["created"] for r in runs] == [1, 1]
        assert len(result.content[0].text.splitlines()) == 2

        limited = await registry.call_tool(
            "task_sync_history", {"limit": 1}, engine
        )
        assert len(limited.structuredContent["runs"]) == 1

    @pytest.mark.parametrize("limit", [0, -1, "5", True])
    async def test_history_bad_limit(self, registry, engine, limit):
        result = await registry.call_tool(
            "task_sync_history", {"limit": limit}, engine
        )
        assert result.isError is True
        assert "limit must be a positive integer" in result.content[0].text

    async def test_history_disabled(self, registry, engine):
        engine.history = None
        result = await registry.call_tool("task_sync_history", {}, engine)
        assert result.structuredContent == {"runs": []}


# ---------------------------------------------------------------------------
# task_lists
# ---------------------------------------------------------------------------


class TestTaskLists:
    async def test_lists(self, registry, engine, destination):
        destination.lists = ["Reminders", "Errand"]
        result = await registry.call_tool("task_lists", {}, engine)
        assert result.structuredContent == {"lists": ["Reminders", "Errand"]}
        assert "  Errand" in result.content[0].text

    async def test_access_denied(self, registry, engine, destination):
        destination.grant_access = False
        result = await registry.call_tool("task_lists", {}, engine)
        assert result.isError is True
        assert "access_denied" in result.content[0].text
