"""
config/settings.py — Canonical configuration contract for the health checker.

Uses pydantic-settings to load, validate, and type-check all environment
variables. Every check, the notifier, the trend analyzer and the dashboard
receive one Settings instance; nothing reads os.environ on its own.

Two usage modes:
  Production / CLI:
      cfg = load_settings()                # reads <cwd>/.env + os.environ
      cfg = load_settings("/srv/bot/.env") # override env file path

  Tests (isolated — no env file, no os.environ bleed):
      cfg = Settings(BOT_ROOT=str(tmp_path), REQUIRED_ENV_VARS="A,B")
      # All values come exclusively from kwargs → clean, reproducible.
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

_LIST_FIELDS = (
    "REQUIRED_ENV_VARS",
    "OPTIONAL_ENV_VARS",
    "CONFIG_KEY_FILES",
    "CRITICAL_FILES",
    "SYNTAX_GLOBS",
    "CRITICAL_PACKAGES",
)


class Settings(BaseSettings):
    # Only init kwargs are a settings source. load_settings() supplies the
    # env file and os.environ explicitly, so Settings() alone never reads
    # the process environment.
    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)

    # -------------------------------------------------------------------------
    # Workspace
    # -------------------------------------------------------------------------
    BOT_ROOT: str = "."

    # -------------------------------------------------------------------------
    # Persisted history
    # -------------------------------------------------------------------------
    HEALTH_CHECK_LOG_FILE: str = "/tmp/clawdbot/health-check.log"
    HEALTH_CHECK_HISTORY_FILE: Optional[str] = None
    HEALTH_CHECK_DISPLAY_TZ: str = "Asia/Shanghai"

    # -------------------------------------------------------------------------
    # Notification
    # -------------------------------------------------------------------------
    HEALTH_CHECK_TELEGRAM_GROUP: str = "discussion"
    HEALTH_CHECK_NOTION_DB_ID: Optional[str] = None
    HEALTH_CHECK_ALERT_ONLY: bool = True
    NODE_BIN: str = "node"
    NOTIFY_SCRIPT: str = "skills/telegram-notification/scripts/notify-group.js"
    PERSIST_SCRIPT: str = "skills/notion-persistence-universal/scripts/save-content.js"
    COMMAND_TIMEOUT_SECONDS: Optional[int] = None

    # -------------------------------------------------------------------------
    # Config check
    # -------------------------------------------------------------------------
    REQUIRED_ENV_VARS: list[str] = [
        "NOTION_API_KEY",
        "NOTION_DISCUSSION_DATABASE_ID",
        "NOTION_DAILY_REPORT_DATABASE_ID",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_DISCUSSION_GROUP_ID",
        "TELEGRAM_DAILY_REPORT_GROUP_ID",
    ]
    OPTIONAL_ENV_VARS: list[str] = [
        "TELEGRAM_GENERAL_GROUP_ID",
        "NOTION_MEETING_DATABASE_ID",
    ]
    CONFIG_KEY_FILES: list[str] = [
        "package.json",
        "skills/notion-persistence-universal/SKILL.md",
        "skills/telegram-notification/SKILL.md",
    ]

    # -------------------------------------------------------------------------
    # Syntax check
    # -------------------------------------------------------------------------
    CRITICAL_FILES: list[str] = [
        "scripts/notion-heartbeat.js",
        "skills/notion-persistence-universal/scripts/save-content.js",
        "skills/telegram-notification/scripts/notify-group.js",
        "skills/event-coordinator/scripts/coordinate.js",
    ]
    SYNTAX_GLOBS: list[str] = ["skills/*/scripts/*.js", "skills/*/scripts/*.py"]
    SYNTAX_SAMPLE_LIMIT: int = 20

    # -------------------------------------------------------------------------
    # Dependency check
    # -------------------------------------------------------------------------
    CRITICAL_PACKAGES: list[str] = ["dotenv", "@notionhq/client", "node-telegram-bot-api"]

    # -------------------------------------------------------------------------
    # Log analysis check
    # -------------------------------------------------------------------------
    BOT_LOG_DIR: str = "/tmp/clawdbot"
    BOT_LOG_PREFIX: str = "clawdbot"

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------
    DASHBOARD_HOST: str = "127.0.0.1"
    DASHBOARD_PORT: int = 3000

    LOG_LEVEL: str = "WARNING"

    # -------------------------------------------------------------------------
    # Convenience properties
    # -------------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return Path(self.BOT_ROOT).expanduser()

    @property
    def log_path(self) -> Path:
        return Path(self.HEALTH_CHECK_LOG_FILE).expanduser()

    @property
    def history_path(self) -> Path:
        """Structured JSONL history; defaults to the text log with a .jsonl suffix."""
        if self.HEALTH_CHECK_HISTORY_FILE:
            return Path(self.HEALTH_CHECK_HISTORY_FILE).expanduser()
        return self.log_path.with_suffix(".jsonl")

    @property
    def notify_script_path(self) -> Path:
        return self.root / self.NOTIFY_SCRIPT

    @property
    def persist_script_path(self) -> Path:
        return self.root / self.PERSIST_SCRIPT

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def split_comma_list(cls, v: object) -> object:
        """Accept "A, B,C" from .env files as well as real lists."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("BOT_ROOT", "HEALTH_CHECK_LOG_FILE", "BOT_LOG_PREFIX", "LOG_LEVEL", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v

    @field_validator("HEALTH_CHECK_NOTION_DB_ID", "HEALTH_CHECK_HISTORY_FILE", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("HEALTH_CHECK_ALERT_ONLY", mode="before")
    @classmethod
    def alert_only_unless_disabled(cls, v: object) -> object:
        """Only an explicit false/0/no/off turns alert-only mode off."""
        if isinstance(v, str):
            return v.strip().lower() not in {"false", "0", "no", "off"}
        return v

    @field_validator("COMMAND_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def blank_timeout_is_unset(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be a logging level name, got '{v}'")
        return level

    @model_validator(mode="after")
    def validate_ranges(self) -> Settings:
        if not 1 <= self.DASHBOARD_PORT <= 65535:
            raise ValueError(f"DASHBOARD_PORT must be in 1..65535, got {self.DASHBOARD_PORT}")
        if self.SYNTAX_SAMPLE_LIMIT < 0:
            raise ValueError("SYNTAX_SAMPLE_LIMIT must be >= 0")
        if self.COMMAND_TIMEOUT_SECONDS is not None and self.COMMAND_TIMEOUT_SECONDS < 1:
            raise ValueError("COMMAND_TIMEOUT_SECONDS must be >= 1 when set")
        if not self.BOT_LOG_PREFIX:
            raise ValueError("BOT_LOG_PREFIX must be a non-empty string")
        return self


def load_settings(env_file: str = ".env") -> Settings:
    """Load and validate settings from an env file + os.environ.

    Manually parses the env file and merges with os.environ (os.environ wins),
    then passes only known Settings fields as explicit kwargs. Unknown keys in
    the env file (the bot's own secrets, for instance) are ignored.

    Raises:
        ValidationError: if any value fails type or range validation.
    """
    file_vals: dict[str, str] = {}
    try:
        with open(env_file, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                k, _, v = line.partition("=")
                k = k.strip()
                # Strip inline comments: "true   # alert only" → "true"
                v = re.sub(r"\s+#.*$", "", v.strip())
                if k:
                    file_vals[k] = v
    except FileNotFoundError:
        pass
    merged = {**file_vals, **os.environ}
    known = {k: v for k, v in merged.items() if k in Settings.model_fields}
    return Settings(**known)
