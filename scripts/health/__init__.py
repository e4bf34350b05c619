"""
scripts/health — Composable health check modules for the bot workspace.

Each module exposes a run(cfg) function that returns a CheckOutcome.
health_check.py runs them in order, times them, and turns each outcome
into a named CheckResult.

Usage:
    from scripts.health import CheckOutcome, CheckResult
    from scripts.health.config_check import run as config_check
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

Status = Literal["pass", "warning", "fail", "error", "unknown"]
DetailStatus = Literal["pass", "warning", "fail", "error", "info"]

PASS = "pass"
WARNING = "warning"
FAIL = "fail"
ERROR = "error"
UNKNOWN = "unknown"
INFO = "info"

STATUS_GLYPHS: dict[str, str] = {
    PASS: "✅",
    WARNING: "⚠️",
    FAIL: "❌",
    ERROR: "💥",
    UNKNOWN: "❓",
}


@dataclass(frozen=True)
class Detail:
    status: DetailStatus
    message: str


@dataclass
class CheckOutcome:
    """What a check module returns. The runner adds name and duration."""

    status: Status
    message: str | None = None
    details: list[Detail] = field(default_factory=list)
    error: str | None = None
    fix: list[str] = field(default_factory=list)

    def add(self, status: DetailStatus, message: str) -> None:
        self.details.append(Detail(status, message))

    def escalate(self, status: Status) -> None:
        """Raise status to `status` unless it is already worse."""
        if _SEVERITY[status] > _SEVERITY[self.status]:
            self.status = status


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: Status
    duration_ms: int
    message: str | None = None
    details: tuple[Detail, ...] = ()
    error: str | None = None
    fix: tuple[str, ...] = ()

    @property
    def glyph(self) -> str:
        return STATUS_GLYPHS.get(self.status, STATUS_GLYPHS[UNKNOWN])

    def __str__(self) -> str:
        line = f"{self.glyph} {self.name} [{self.duration_ms}ms]"
        if self.message:
            line += f"\n   {self.message}"
        return line


@dataclass(frozen=True)
class Summary:
    total: int
    passed: int
    warnings: int
    failed: int
    errors: int
    overall_status: Status
    timestamp: datetime


def summarize(results: Sequence[CheckResult], timestamp: datetime | None = None) -> Summary:
    """Reduce per-check statuses to counts and one overall status.

    Errors count as failures for the overall verdict. `unknown` results are
    included in the total but in none of the buckets.
    """
    passed = sum(1 for r in results if r.status == PASS)
    warnings = sum(1 for r in results if r.status == WARNING)
    failed = sum(1 for r in results if r.status == FAIL)
    errors = sum(1 for r in results if r.status == ERROR)

    if errors > 0 or failed > 0:
        overall: Status = FAIL
    elif warnings > 0:
        overall = WARNING
    else:
        overall = PASS

    return Summary(
        total=len(results),
        passed=passed,
        warnings=warnings,
        failed=failed,
        errors=errors,
        overall_status=overall,
        timestamp=timestamp or datetime.now(tz=UTC),
    )


_SEVERITY: dict[str, int] = {UNKNOWN: 0, PASS: 1, WARNING: 2, FAIL: 3, ERROR: 4}
