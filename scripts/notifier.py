"""
scripts/notifier.py — Forward a health report to notification channels.

A channel is anything implementing NotificationSink. The built-in sinks
hand the report to sibling skill scripts (`node <script> ...`): exit code 0
means delivered, stderr is kept as the error detail. Each sink is tried on
its own; one failing never stops the next, and send() never raises.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from scripts.health import ERROR, FAIL, STATUS_GLYPHS, WARNING, CheckResult, Summary

if TYPE_CHECKING:
    from config.settings import Settings

log = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 3000
MAX_ISSUE_CHARS = 100
TRUNCATION_SUFFIX = "...\n\n(Full report in logs)"


@dataclass(frozen=True)
class HealthReport:
    summary: Summary
    results: tuple[CheckResult, ...]
    text: str


@dataclass(frozen=True)
class DeliveryResult:
    channel: str
    success: bool
    output: str | None = None
    error: str | None = None


class NotificationSink(Protocol):
    channel: str

    def deliver(self, report: HealthReport) -> DeliveryResult: ...


class ScriptSink(ABC):
    """Deliver by running a sibling node script with flag arguments."""

    channel = "script"

    def __init__(self, node_bin: str, script: Path, timeout_seconds: int | None = None):
        self.node_bin = node_bin
        self.script = script
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    def arguments(self, report: HealthReport) -> list[str]: ...

    def deliver(self, report: HealthReport) -> DeliveryResult:
        try:
            result = subprocess.run(
                [self.node_bin, str(self.script), *self.arguments(report)],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            return DeliveryResult(
                self.channel, False, error=f"timed out ({self.timeout_seconds}s)"
            )
        except OSError as exc:
            return DeliveryResult(self.channel, False, error=str(exc))

        if result.returncode == 0:
            return DeliveryResult(self.channel, True, output=result.stdout)
        return DeliveryResult(
            self.channel,
            False,
            error=result.stderr.strip() or f"exit code {result.returncode}",
        )


class TelegramSink(ScriptSink):
    channel = "telegram"

    def __init__(self, node_bin: str, script: Path, group: str, timeout_seconds: int | None = None):
        super().__init__(node_bin, script, timeout_seconds)
        self.group = group

    def arguments(self, report: HealthReport) -> list[str]:
        return [
            "--target", self.group,
            "--title", chat_title(report.summary),
            "--summary", build_chat_message(report),
        ]


class NotionSink(ScriptSink):
    channel = "notion"

    def arguments(self, report: HealthReport) -> list[str]:
        return ["--type", "health_check", "--content", build_persisted_content(report)]


def chat_title(summary: Summary) -> str:
    glyph = STATUS_GLYPHS.get(summary.overall_status, STATUS_GLYPHS["unknown"])
    return f"{glyph} Health Check: {summary.overall_status.upper()}"


def build_chat_message(report: HealthReport) -> str:
    summary = report.summary
    counts = (
        f"Passed: {summary.passed}/{summary.total} | "
        f"Warnings: {summary.warnings} | Failed: {summary.failed}"
    )
    message = f"*{chat_title(summary)}*\n\n{counts}\n\n"

    failed = [r for r in report.results if r.status in (FAIL, ERROR)]
    if failed:
        message += "*Issues Found:*\n"
        for check in failed:
            message += f"• {check.name}\n"
            if check.message:
                message += f"  {check.message[:MAX_ISSUE_CHARS]}...\n"
        message += "\n"

    warned = [r for r in report.results if r.status == WARNING]
    if warned:
        message += "*Warnings:*\n"
        for check in warned:
            message += f"• {check.name}: {check.message or ''}\n"

    if len(message) > MAX_MESSAGE_CHARS:
        message = message[:MAX_MESSAGE_CHARS] + TRUNCATION_SUFFIX
    return message


def build_persisted_content(report: HealthReport) -> str:
    summary = report.summary
    return (
        "## Summary\n\n"
        f"- Status: {summary.overall_status}\n"
        f"- Passed: {summary.passed}\n"
        f"- Warnings: {summary.warnings}\n"
        f"- Failed: {summary.failed}\n"
        f"- Errors: {summary.errors}\n\n"
        "## Full Report\n\n"
        f"{report.text}"
    )


def default_sinks(cfg: Settings) -> list[NotificationSink]:
    sinks: list[NotificationSink] = [
        TelegramSink(
            cfg.NODE_BIN,
            cfg.notify_script_path,
            cfg.HEALTH_CHECK_TELEGRAM_GROUP,
            cfg.COMMAND_TIMEOUT_SECONDS,
        )
    ]
    if cfg.HEALTH_CHECK_NOTION_DB_ID:
        sinks.append(NotionSink(cfg.NODE_BIN, cfg.persist_script_path, cfg.COMMAND_TIMEOUT_SECONDS))
    else:
        log.info("No Notion DB configured, skipping persistence channel")
    return sinks


def send(
    cfg: Settings,
    report: HealthReport,
    sinks: Sequence[NotificationSink] | None = None,
) -> list[DeliveryResult]:
    """Deliver `report` to every sink; collect one DeliveryResult per sink."""
    results: list[DeliveryResult] = []
    for sink in default_sinks(cfg) if sinks is None else sinks:
        channel = getattr(sink, "channel", type(sink).__name__)
        try:
            outcome = sink.deliver(report)
        except Exception as exc:  # noqa: BLE001
            log.exception("%s sink raised", channel)
            outcome = DeliveryResult(channel, False, error=str(exc))
        if outcome.success:
            log.info("%s notification delivered", channel)
        else:
            log.error("%s notification failed: %s", channel, outcome.error)
        results.append(outcome)
    return results
