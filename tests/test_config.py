"""Tests for vault_task_sync.config: settings precedence and vault checks.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests load_settings(),
load_unified_config() and validate_vault_path().
"""

from pathlib import Path

import pytest

from vault_task_sync.config import (
    load_settings,
    load_unified_config,
    validate_vault_path,
)
from vault_task_sync.config_loader import CONFIG_ENV_VAR, PROJECT_CONFIG_DIR
from vault_task_sync.config_schema import SyncSettings
from vault_task_sync.errors import ConfigurationError

_ENV_VARS = (
    "VAULT_SYNC_VAULT_PATH",
    "VAULT_SYNC_DATA_DIR",
    "VAULT_SYNC_DRY_RUN",
    "VAULT_SYNC_COMPLETION_WRITEBACK",
    "VAULT_SYNC_INTERVAL_MINUTES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS + (CONFIG_ENV_VAR,):
        monkeypatch.delenv(name, raising=False)


# -------------------------------------------------------------------------
# load_settings()
# -------------------------------------------------------------------------


class TestLoadSettings:
    """Precedence: CLI override > env var > YAML > default."""

    def test_defaults(self):
        assert load_settings() == SyncSettings()

    def test_yaml_used_when_nothing_else(self):
        yaml_settings = SyncSettings(vault_path="/yaml/vault")
        assert load_settings(None, yaml_settings).vault_path == "/yaml/vault"

    def test_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("VAULT_SYNC_VAULT_PATH", "/env/vault")
        settings = load_settings(None, SyncSettings(vault_path="/yaml/vault"))
        assert settings.vault_path == "/env/vault"

    def test_cli_beats_env(self, monkeypatch):
        monkeypatch.setenv("VAULT_SYNC_VAULT_PATH", "/env/vault")
        settings = load_settings({"vault_path": "/cli/vault"})
        assert settings.vault_path == "/cli/vault"

    def test_none_override_ignored(self, monkeypatch):
        monkeypatch.setenv("VAULT_SYNC_DRY_RUN", "true")
        settings = load_settings({"dry_run": None, "vault_path": None})
        assert settings.dry_run is True

    def test_unknown_override_ignored(self):
        assert load_settings({"colour": "blue"}) == SyncSettings()

    @pytest.mark.parametrize(
        "raw,expected",
        [("true", True), ("1", True), ("yes", True), ("ON", True), ("false", False), ("0", False)],
    )
    def test_boolean_env(self, monkeypatch, raw, expected):
        monkeypatch.setenv("VAULT_SYNC_COMPLETION_WRITEBACK", raw)
        assert load_settings().enable_completion_writeback is expected

    def test_interval_and_data_dir_env(self, monkeypatch):
        monkeypatch.setenv("VAULT_SYNC_INTERVAL_MINUTES", "15")
        monkeypatch.setenv("VAULT_SYNC_DATA_DIR", "/data")
        settings = load_settings()
        assert settings.sync_interval_minutes == 15
        assert settings.data_dir == "/data"

    def test_invalid_interval(self, monkeypatch):
        monkeypatch.setenv("VAULT_SYNC_INTERVAL_MINUTES", "soon")
        with pytest.raises(ConfigurationError, match="whole number"):
            load_settings()

    def test_negative_interval(self, monkeypatch):
        monkeypatch.setenv("VAULT_SYNC_INTERVAL_MINUTES", "-5")
        with pytest.raises(ConfigurationError, match="negative"):
            load_settings()


# -------------------------------------------------------------------------
# load_unified_config()
# -------------------------------------------------------------------------


class TestLoadUnifiedConfig:
    def test_yaml_and_env_combined(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        config_file = tmp_path / PROJECT_CONFIG_DIR / "config.yml"
        config_file.parent.mkdir()
        config_file.write_text(
            "sync:\n  vault_path: /yaml/vault\n  default_list: Inbox\n"
            "backup:\n  max_per_file: 3\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("VAULT_SYNC_DRY_RUN", "yes")

        config = load_unified_config({"data_dir": "/cli/data"})
        assert config.sync.vault_path == "/yaml/vault"
        assert config.sync.default_list == "Inbox"
        assert config.sync.dry_run is True
        assert config.sync.data_dir == "/cli/data"
        assert config.backup.max_per_file == 3


# -------------------------------------------------------------------------
# validate_vault_path()
# -------------------------------------------------------------------------


class TestValidateVaultPath:
    def test_valid_vault(self, vault: Path):
        settings = SyncSettings(vault_path=str(vault))
        assert validate_vault_path(settings) == vault.resolve()

    def test_empty_path(self):
        with pytest.raises(ConfigurationError, match="not configured"):
            validate_vault_path(SyncSettings(vault_path="  "))

    def test_missing_path(self, tmp_path: Path):
        settings = SyncSettings(vault_path=str(tmp_path / "nope"))
        with pytest.raises(ConfigurationError, match="does not exist"):
            validate_vault_path(settings)

    def test_file_instead_of_directory(self, tmp_path: Path):
        path = tmp_path / "file.md"
        path.write_text("x", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not a directory"):
            validate_vault_path(SyncSettings(vault_path=str(path)))

    def test_missing_marker(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="missing '.obsidian'"):
            validate_vault_path(SyncSettings(vault_path=str(tmp_path)))

    def test_marker_check_disabled(self, tmp_path: Path):
        settings = SyncSettings(vault_path=str(tmp_path), vault_marker="")
        assert validate_vault_path(settings) == tmp_path.resolve()

    def test_user_expansion(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "Notes" / ".obsidian").mkdir(parents=True)
        settings = SyncSettings(vault_path="~/Notes")
        assert validate_vault_path(settings) == (tmp_path / "Notes").resolve()
