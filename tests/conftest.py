"""
tests/conftest.py — Shared fixtures and path setup for all tests.

Adds the project root to sys.path so unit tests can import:
    from config.settings import Settings
    from scripts.health import CheckResult, summarize
    from scripts.health_check import run_health_check, format_report
"""
import pathlib
import sys

import pytest

# Make project root importable without installing as a package
PROJECT_ROOT = pathlib.Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import Settings  # noqa: E402


@pytest.fixture
def workspace_cfg(tmp_path):
    """Settings rooted at an empty tmp workspace with logs kept under tmp_path."""

    def _make(**overrides):
        base = dict(
            BOT_ROOT=str(tmp_path),
            HEALTH_CHECK_LOG_FILE=str(tmp_path / "logs" / "health-check.log"),
            BOT_LOG_DIR=str(tmp_path / "botlogs"),
            REQUIRED_ENV_VARS="API_KEY,BOT_TOKEN",
            OPTIONAL_ENV_VARS="",
            CONFIG_KEY_FILES="",
            CRITICAL_FILES="",
        )
        base.update(overrides)
        return Settings(**base)

    return _make
