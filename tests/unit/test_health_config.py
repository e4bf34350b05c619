"""Unit tests for scripts.health.config_check."""

from __future__ import annotations

from scripts.health import FAIL, PASS, WARNING
from scripts.health import config_check as health_config


def _messages(outcome) -> list[str]:
    return [d.message for d in outcome.details]


def test_all_required_vars_set_passes(tmp_path, workspace_cfg):
    (tmp_path / ".env").write_text("API_KEY=abc\nBOT_TOKEN=123\n", encoding="utf-8")
    outcome = health_config.run(workspace_cfg())
    assert outcome.status == PASS
    assert outcome.message == "Config check: 2 required vars checked across 1 env files"
    assert outcome.error is None


def test_missing_env_file_fails_with_fix(tmp_path, workspace_cfg):
    outcome = health_config.run(workspace_cfg())
    assert outcome.status == FAIL
    assert outcome.fix == [f"Create .env file at: {tmp_path / '.env'}"]
    assert ".env file not found" in outcome.error


def test_empty_value_fails(tmp_path, workspace_cfg):
    (tmp_path / ".env").write_text("API_KEY=\nBOT_TOKEN=123\n", encoding="utf-8")
    outcome = health_config.run(workspace_cfg())
    assert outcome.status == FAIL
    assert "Empty values: API_KEY" in _messages(outcome)
    assert "Set a value for API_KEY in .env" in outcome.fix


def test_missing_required_var_fails(tmp_path, workspace_cfg):
    (tmp_path / ".env").write_text("API_KEY=abc\n", encoding="utf-8")
    outcome = health_config.run(workspace_cfg())
    assert outcome.status == FAIL
    assert "Missing: BOT_TOKEN" in _messages(outcome)
    assert outcome.error == "Missing required variable: BOT_TOKEN"


def test_missing_optional_var_warns(tmp_path, workspace_cfg):
    (tmp_path / ".env").write_text("API_KEY=abc\nBOT_TOKEN=123\n", encoding="utf-8")
    outcome = health_config.run(workspace_cfg(OPTIONAL_ENV_VARS="GENERAL_GROUP_ID"))
    assert outcome.status == WARNING
    assert "Optional not set: GENERAL_GROUP_ID" in _messages(outcome)


def test_placeholder_value_warns(tmp_path, workspace_cfg):
    (tmp_path / ".env").write_text("API_KEY=your_api_key\nBOT_TOKEN=123\n", encoding="utf-8")
    outcome = health_config.run(workspace_cfg())
    assert outcome.status == WARNING
    assert "Found placeholder value: your_api_key" in _messages(outcome)


def test_skill_env_issue_degrades_to_warning(tmp_path, workspace_cfg):
    (tmp_path / ".env").write_text("API_KEY=abc\nBOT_TOKEN=123\n", encoding="utf-8")
    skill = tmp_path / "skills" / "notifier"
    skill.mkdir(parents=True)
    (skill / ".env").write_text("API_KEY=abc\n", encoding="utf-8")

    outcome = health_config.run(workspace_cfg())
    assert outcome.status == WARNING
    assert "notifier/.env: Config check: 1/2 required vars set" in _messages(outcome)
    assert "1 skills have config issues" in _messages(outcome)
    assert outcome.message.endswith("across 2 env files")


def test_missing_key_file_warns_with_fix(tmp_path, workspace_cfg):
    (tmp_path / ".env").write_text("API_KEY=abc\nBOT_TOKEN=123\n", encoding="utf-8")
    outcome = health_config.run(workspace_cfg(CONFIG_KEY_FILES="package.json"))
    assert outcome.status == WARNING
    assert "package.json missing" in _messages(outcome)
    assert outcome.fix == [f"Restore or create {tmp_path / 'package.json'}"]


def test_parse_env_lines_first_occurrence_wins():
    values = health_config.parse_env_lines("# comment\nA=1\nA=2\nB = spaced\nC value\n")
    assert values == {"A": "1", "B": "spaced", "C": ""}
