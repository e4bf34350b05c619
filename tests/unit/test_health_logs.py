"""Unit tests for scripts.health.logs error-pattern analysis."""

from __future__ import annotations

from pathlib import Path

from scripts.health import FAIL, PASS, WARNING
from scripts.health import logs as health_logs

CLEAN = "12:00:00 [info] heartbeat ok"
ERROR_LINE = "12:00:01 [bot] Error: request failed"


def _write_log(cfg, lines: list[str], date: str = "2026-03-01"):
    path = Path(cfg.BOT_LOG_DIR) / f"{cfg.BOT_LOG_PREFIX}-{date}.log"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_no_log_file_warns(workspace_cfg):
    outcome = health_logs.run(workspace_cfg())
    assert outcome.status == WARNING
    assert outcome.message == "No log files found"


def test_clean_log_passes(workspace_cfg):
    cfg = workspace_cfg()
    _write_log(cfg, [CLEAN] * 50)
    outcome = health_logs.run(cfg)
    assert outcome.status == PASS
    assert outcome.message == "Log analysis: 0 errors found, 0% recent error rate"


def test_many_old_errors_fail_on_total(workspace_cfg):
    cfg = workspace_cfg()
    _write_log(cfg, [ERROR_LINE] * 60 + [CLEAN] * 100)
    outcome = health_logs.run(cfg)
    assert outcome.status == FAIL
    assert outcome.message == "Log analysis: 60 errors found, 0% recent error rate"


def test_recent_error_count_is_reported_as_percent(workspace_cfg):
    cfg = workspace_cfg()
    _write_log(cfg, [CLEAN] * 200 + [ERROR_LINE] * 25)
    outcome = health_logs.run(cfg)
    # 25 matching lines in the last 100 lines is reported as "25%"
    assert outcome.status == FAIL
    assert outcome.message == "Log analysis: 25 errors found, 25% recent error rate"
    assert "High error rate: 25% in recent logs" in [d.message for d in outcome.details]


def test_moderate_recent_errors_warn(workspace_cfg):
    cfg = workspace_cfg()
    _write_log(cfg, [CLEAN] * 50 + [ERROR_LINE] * 7)
    outcome = health_logs.run(cfg)
    assert outcome.status == WARNING


def test_category_threshold_and_fix(workspace_cfg):
    cfg = workspace_cfg()
    _write_log(cfg, ["Cannot find module 'dotenv'"] * 4 + [CLEAN] * 200)
    outcome = health_logs.run(cfg)
    details = {d.message: d.status for d in outcome.details}
    assert details["Module Not Found: 4 occurrence(s)"] == WARNING
    assert "Run npm install in affected skill directories" in outcome.fix


def test_duplicate_skills_path_is_reported(workspace_cfg):
    cfg = workspace_cfg()
    _write_log(cfg, ["loading /srv/bot/skills/skills/notion/index.js"])
    outcome = health_logs.run(cfg)
    assert 'Path issue: Duplicate "skills" in path' in [d.message for d in outcome.details]
    assert 'Fix duplicate "skills" directory in skill paths' in outcome.fix


def test_latest_log_file_uses_date_in_name(tmp_path):
    for name in ("clawdbot-2025-12-31.log", "clawdbot-2026-01-02.log", "other-2027-01-01.log"):
        (tmp_path / name).write_text("", encoding="utf-8")
    assert health_logs.latest_log_file(tmp_path, "clawdbot").name == "clawdbot-2026-01-02.log"


def test_first_matching_category_wins():
    assert health_logs.categorize("Error: Cannot find module 'x'") == "General Error"
    assert health_logs.categorize("Cannot find module 'x'") == "Module Not Found"
    assert health_logs.categorize("EACCES: permission denied") == "Permission Error"
    assert health_logs.categorize("all good") is None
