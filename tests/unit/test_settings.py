"""
tests/unit/test_settings.py — Unit tests for config/settings.py.

These tests validate the Pydantic Settings schema with no git, node or
network dependencies. They run in under 1 second.

Run: pytest tests/unit/test_settings.py -v
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

# conftest.py adds project root to sys.path
from config.settings import Settings, load_settings

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_notification_defaults(self):
        s = Settings()
        assert s.HEALTH_CHECK_TELEGRAM_GROUP == "discussion"
        assert s.HEALTH_CHECK_ALERT_ONLY is True
        assert s.HEALTH_CHECK_NOTION_DB_ID is None

    def test_dashboard_defaults(self):
        s = Settings()
        assert s.DASHBOARD_HOST == "127.0.0.1"
        assert s.DASHBOARD_PORT == 3000

    def test_no_command_timeout_by_default(self):
        assert Settings().COMMAND_TIMEOUT_SECONDS is None

    def test_history_path_derived_from_log_path(self):
        s = Settings(HEALTH_CHECK_LOG_FILE="/var/log/bot/health.log")
        assert s.history_path == Path("/var/log/bot/health.jsonl")

    def test_history_path_override(self):
        s = Settings(HEALTH_CHECK_HISTORY_FILE="/data/history.jsonl")
        assert s.history_path == Path("/data/history.jsonl")

    def test_script_paths_resolve_under_root(self):
        s = Settings(BOT_ROOT="/srv/bot")
        assert s.notify_script_path == Path("/srv/bot/skills/telegram-notification/scripts/notify-group.js")
        assert s.persist_script_path.is_relative_to(Path("/srv/bot"))

    def test_settings_ignore_process_environment(self, monkeypatch):
        monkeypatch.setenv("DASHBOARD_PORT", "8080")
        assert Settings().DASHBOARD_PORT == 3000


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------


class TestListFields:
    def test_comma_separated_string_is_split(self):
        s = Settings(REQUIRED_ENV_VARS=" A, B ,,C")
        assert s.REQUIRED_ENV_VARS == ["A", "B", "C"]

    def test_empty_string_is_empty_list(self):
        assert Settings(CONFIG_KEY_FILES="").CONFIG_KEY_FILES == []

    def test_real_list_passes_through(self):
        assert Settings(SYNTAX_GLOBS=["*.py"]).SYNTAX_GLOBS == ["*.py"]


class TestValidation:
    def test_port_out_of_range_rejected(self):
        with pytest.raises(ValidationError, match="DASHBOARD_PORT"):
            Settings(DASHBOARD_PORT=70000)

    def test_negative_sample_limit_rejected(self):
        with pytest.raises(ValidationError, match="SYNTAX_SAMPLE_LIMIT"):
            Settings(SYNTAX_SAMPLE_LIMIT=-1)

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValidationError, match="COMMAND_TIMEOUT_SECONDS"):
            Settings(COMMAND_TIMEOUT_SECONDS=0)

    def test_blank_timeout_is_unset(self):
        assert Settings(COMMAND_TIMEOUT_SECONDS="").COMMAND_TIMEOUT_SECONDS is None

    def test_blank_notion_db_is_unset(self):
        assert Settings(HEALTH_CHECK_NOTION_DB_ID="   ").HEALTH_CHECK_NOTION_DB_ID is None

    def test_log_level_is_normalized(self):
        assert Settings(LOG_LEVEL=" debug ").LOG_LEVEL == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError, match="LOG_LEVEL"):
            Settings(LOG_LEVEL="chatty")

    def test_alert_only_parses_string(self):
        assert Settings(HEALTH_CHECK_ALERT_ONLY="false").HEALTH_CHECK_ALERT_ONLY is False

    @pytest.mark.parametrize("raw", ["false", "FALSE", " 0 ", "no", "off"])
    def test_alert_only_disabled_values(self, raw):
        assert Settings(HEALTH_CHECK_ALERT_ONLY=raw).HEALTH_CHECK_ALERT_ONLY is False

    @pytest.mark.parametrize("raw", ["true", "yes please", "", "1"])
    def test_alert_only_anything_else_is_enabled(self, raw):
        assert Settings(HEALTH_CHECK_ALERT_ONLY=raw).HEALTH_CHECK_ALERT_ONLY is True


# ---------------------------------------------------------------------------
# load_settings
# ---------------------------------------------------------------------------


class TestLoadSettings:
    def test_reads_env_file_and_ignores_unknown_keys(self, tmp_path, monkeypatch):
        for key in ("HEALTH_CHECK_ALERT_ONLY", "DASHBOARD_PORT", "HEALTH_CHECK_TELEGRAM_GROUP"):
            monkeypatch.delenv(key, raising=False)
        env = tmp_path / ".env"
        env.write_text(
            "# bot settings\n"
            "NOTION_API_KEY=secret_abc\n"
            "HEALTH_CHECK_ALERT_ONLY=false   # always notify\n"
            "HEALTH_CHECK_TELEGRAM_GROUP=ops\n"
            "DASHBOARD_PORT=8080\n",
            encoding="utf-8",
        )
        s = load_settings(str(env))
        assert s.HEALTH_CHECK_ALERT_ONLY is False
        assert s.HEALTH_CHECK_TELEGRAM_GROUP == "ops"
        assert s.DASHBOARD_PORT == 8080
        assert not hasattr(s, "NOTION_API_KEY")

    def test_environment_wins_over_env_file(self, tmp_path, monkeypatch):
        env = tmp_path / ".env"
        env.write_text("DASHBOARD_PORT=8080\n", encoding="utf-8")
        monkeypatch.setenv("DASHBOARD_PORT", "9090")
        assert load_settings(str(env)).DASHBOARD_PORT == 9090

    def test_missing_env_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HEALTH_CHECK_TELEGRAM_GROUP", raising=False)
        s = load_settings(str(tmp_path / "absent.env"))
        assert s.HEALTH_CHECK_TELEGRAM_GROUP == "discussion"

    def test_invalid_value_raises(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DASHBOARD_PORT", raising=False)
        env = tmp_path / ".env"
        env.write_text("DASHBOARD_PORT=0\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_settings(str(env))
