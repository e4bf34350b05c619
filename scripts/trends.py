"""
scripts/trends.py — Health history parsing and trend analysis.

History comes from two places, merged by run timestamp:
  - the structured history file (one versioned TrendEntry per line), which
    every run writes alongside the text log
  - the text log itself, parsed back with regexes keyed to the report
    layout in scripts/health_check.py; the only record of runs made before
    the history file existed

Both produce the same TrendEntry model, so analysis and the dashboard do not
care which one a run came from.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from scripts import health_log
from scripts.health import STATUS_GLYPHS, CheckResult, Summary

if TYPE_CHECKING:
    from config.settings import Settings

log = logging.getLogger(__name__)

SUPPORTED_RECORD_VERSION = 1

_GLYPH_TO_STATUS = {glyph: status for status, glyph in STATUS_GLYPHS.items()}
_GLYPH_ALT = "|".join(re.escape(g) for g in STATUS_GLYPHS.values())

_TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}T[\d:.]+(?:Z|[+-]\d{2}:?\d{2})?)\s*\n")
_OVERALL_RE = re.compile(rf"Overall Status:\s*({_GLYPH_ALT})\s*(\w+)")
_SUMMARY_SECTION_RE = re.compile(r"^## Summary\n(.*?)(?=^## |\Z)", re.MULTILINE | re.DOTALL)
_COUNT_RE = re.compile(r"(Total Checks|Passed|Warnings|Failed|Errors):\s*(\d+)")
_DETAILS_SECTION_RE = re.compile(r"^## Details\n(.*)\Z", re.MULTILINE | re.DOTALL)
_CHECK_LINE_RE = re.compile(rf"^({_GLYPH_ALT})\s+(.+?)\s+\[(\d+)ms\]\s*$", re.MULTILINE)

_COUNT_FIELDS = {
    "Total Checks": "total",
    "Passed": "passed",
    "Warnings": "warnings",
    "Failed": "failed",
    "Errors": "errors",
}

DECLINE_POINTS = 10.0
FREQUENT_FAILURE_MIN_RUNS = 3
UNRELIABLE_BELOW = 80.0
RECENT_DAYS = 3


class CheckSample(BaseModel):
    name: str
    status: str
    duration_ms: int = Field(ge=0)


class TrendEntry(BaseModel):
    """One historical run, as persisted in the history file."""

    record_version: int = SUPPORTED_RECORD_VERSION
    timestamp: datetime
    overall_status: str = "unknown"
    total: int = 0
    passed: int = 0
    warnings: int = 0
    failed: int = 0
    errors: int = 0
    checks: list[CheckSample] = Field(default_factory=list)

    @field_validator("record_version")
    @classmethod
    def validate_record_version(cls, value: int) -> int:
        if value != SUPPORTED_RECORD_VERSION:
            raise ValueError(
                f"unsupported record_version={value}; expected {SUPPORTED_RECORD_VERSION}"
            )
        return value

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    @property
    def id(self) -> int:
        return int(self.timestamp.timestamp() * 1000)

    @classmethod
    def from_run(cls, results: Sequence[CheckResult], summary: Summary) -> TrendEntry:
        return cls(
            timestamp=summary.timestamp,
            overall_status=summary.overall_status,
            total=summary.total,
            passed=summary.passed,
            warnings=summary.warnings,
            failed=summary.failed,
            errors=summary.errors,
            checks=[
                CheckSample(name=r.name, status=r.status, duration_ms=r.duration_ms)
                for r in results
            ],
        )


class CheckStat(BaseModel):
    total: int = 0
    pass_: int = Field(0, alias="pass")
    warning: int = 0
    fail: int = 0
    error: int = 0
    unknown: int = 0
    pass_rate: float = 0.0

    model_config = ConfigDict(populate_by_name=True)


class DailyStat(BaseModel):
    date: str
    checks: int = 0
    passed: int = 0
    failed: int = 0


class TrendIssue(BaseModel):
    severity: str
    check: str
    message: str
    pass_rate: float | None = None


class TrendAnalysis(BaseModel):
    total_checks: int = 0
    pass_rate: float = 0.0
    avg_duration_ms: int = 0
    check_stats: dict[str, CheckStat] = Field(default_factory=dict)
    daily_stats: list[DailyStat] = Field(default_factory=list)
    issues: list[TrendIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    @property
    def has_high_severity(self) -> bool:
        return any(issue.severity == "high" for issue in self.issues)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def parse_timestamp(value: str) -> datetime | None:
    """Parse ISO timestamps with either '+00:00' or trailing 'Z' UTC designator."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_health_log(content: str) -> list[TrendEntry]:
    """Rebuild TrendEntry objects from text log content, oldest first.

    Blocks without a timestamp marker or a Summary section are skipped.
    """
    entries: list[TrendEntry] = []
    for chunk in health_log.ENTRY_SPLIT_RE.split(content):
        if not chunk.strip():
            continue
        ts_match = _TIMESTAMP_RE.match(chunk)
        if not ts_match:
            continue
        timestamp = parse_timestamp(ts_match.group(1))
        if timestamp is None:
            continue

        summary_match = _SUMMARY_SECTION_RE.search(chunk)
        if not summary_match:
            continue
        counts = {
            _COUNT_FIELDS[label]: int(value)
            for label, value in _COUNT_RE.findall(summary_match.group(1))
        }

        overall = "unknown"
        overall_match = _OVERALL_RE.search(chunk)
        if overall_match:
            overall = _GLYPH_TO_STATUS.get(overall_match.group(1), "unknown")

        checks: list[CheckSample] = []
        details_match = _DETAILS_SECTION_RE.search(chunk)
        if details_match:
            for glyph, name, duration in _CHECK_LINE_RE.findall(details_match.group(1)):
                checks.append(
                    CheckSample(
                        name=name.strip(),
                        status=_GLYPH_TO_STATUS.get(glyph, "unknown"),
                        duration_ms=int(duration),
                    )
                )

        entries.append(TrendEntry(timestamp=timestamp, overall_status=overall, checks=checks, **counts))
    return sorted(entries, key=lambda e: e.timestamp)


def entries_from_records(records: Iterable[dict]) -> list[TrendEntry]:
    entries: list[TrendEntry] = []
    for record in records:
        try:
            entries.append(TrendEntry.model_validate(record))
        except ValidationError as exc:
            log.warning("skipping invalid history record: %s", exc.errors()[0].get("msg", exc))
    return sorted(entries, key=lambda e: e.timestamp)


def load_entries(cfg: Settings) -> list[TrendEntry]:
    """History entries from the text log and the history file, oldest first.

    A run present in both (same millisecond UTC timestamp) is taken from the
    history file.
    """
    try:
        content = cfg.log_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        content = ""
    merged: dict[str, TrendEntry] = {}
    for entry in parse_health_log(content):
        merged[health_log.iso_timestamp(entry.timestamp)] = entry
    for entry in entries_from_records(health_log.read_records(cfg.history_path)):
        merged[health_log.iso_timestamp(entry.timestamp)] = entry
    return sorted(merged.values(), key=lambda e: e.timestamp)


def within_days(entries: Iterable[TrendEntry], days: int, now: datetime | None = None) -> list[TrendEntry]:
    cutoff = (now or datetime.now(tz=UTC)) - timedelta(days=days)
    return [e for e in entries if e.timestamp >= cutoff]


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def daily_buckets(entries: Iterable[TrendEntry]) -> list[DailyStat]:
    days: dict[str, DailyStat] = {}
    for entry in entries:
        key = entry.timestamp.astimezone(UTC).date().isoformat()
        day = days.setdefault(key, DailyStat(date=key))
        day.checks += 1
        if entry.overall_status == "pass":
            day.passed += 1
        else:
            day.failed += 1
    return [days[key] for key in sorted(days)]


def analyze(entries: Sequence[TrendEntry]) -> TrendAnalysis:
    if not entries:
        return TrendAnalysis()

    total_runs = len(entries)
    pass_runs = sum(1 for e in entries if e.overall_status == "pass")

    samples = [c for e in entries for c in e.checks]
    avg_duration = round(sum(c.duration_ms for c in samples) / len(samples)) if samples else 0

    check_stats: dict[str, CheckStat] = defaultdict(CheckStat)
    for sample in samples:
        stat = check_stats[sample.name]
        stat.total += 1
        if sample.status == "pass":
            stat.pass_ += 1
        elif sample.status in ("warning", "fail", "error"):
            setattr(stat, sample.status, getattr(stat, sample.status) + 1)
        else:
            stat.unknown += 1
    for stat in check_stats.values():
        stat.pass_rate = _rate(stat.pass_, stat.total)

    daily = daily_buckets(entries)
    analysis = TrendAnalysis(
        total_checks=total_runs,
        pass_rate=_rate(pass_runs, total_runs),
        avg_duration_ms=avg_duration,
        check_stats=dict(check_stats),
        daily_stats=daily,
    )

    for name, stat in analysis.check_stats.items():
        failures = stat.fail + stat.error
        if failures > stat.pass_ and stat.total >= FREQUENT_FAILURE_MIN_RUNS:
            analysis.issues.append(
                TrendIssue(
                    severity="high",
                    check=name,
                    message=f"Frequently failing: {failures}/{stat.total} checks failed",
                    pass_rate=stat.pass_rate,
                )
            )
            analysis.recommendations.append(
                f"Review and fix {name} - only {stat.pass_rate}% pass rate"
            )
        elif stat.pass_rate < UNRELIABLE_BELOW:
            analysis.issues.append(
                TrendIssue(
                    severity="medium",
                    check=name,
                    message=f"Unreliable: {stat.pass_rate}% pass rate",
                    pass_rate=stat.pass_rate,
                )
            )

    if len(daily) >= RECENT_DAYS:
        recent, earlier = daily[-RECENT_DAYS:], daily[:-RECENT_DAYS]
        if earlier:
            recent_rate = _rate(sum(d.passed for d in recent), sum(d.checks for d in recent))
            earlier_rate = _rate(sum(d.passed for d in earlier), sum(d.checks for d in earlier))
            if recent_rate <= earlier_rate - DECLINE_POINTS:
                analysis.issues.append(
                    TrendIssue(
                        severity="high",
                        check="Overall",
                        message=(
                            f"Declining health: Pass rate dropped from "
                            f"{earlier_rate}% to {recent_rate}%"
                        ),
                    )
                )
                analysis.recommendations.append(
                    "Investigate recent configuration changes or system issues"
                )
            elif recent_rate >= earlier_rate + DECLINE_POINTS:
                analysis.recommendations.append("Health improving! Keep up the good work.")

    return analysis


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _stat_glyph(pass_rate: float) -> str:
    if pass_rate >= 90:
        return STATUS_GLYPHS["pass"]
    if pass_rate >= 70:
        return STATUS_GLYPHS["warning"]
    return STATUS_GLYPHS["fail"]


def format_text(analysis: TrendAnalysis, days: int, generated: datetime | None = None) -> str:
    generated = generated or datetime.now(tz=UTC)
    lines = [
        "📈 Health Check Trend Analysis",
        "",
        f"Analysis Period: Last {days} days",
        f"Generated: {health_log.iso_timestamp(generated)}",
        "",
        "## Overview",
        f"Total Checks: {analysis.total_checks}",
        f"Pass Rate: {analysis.pass_rate}%",
        f"Avg Duration: {analysis.avg_duration_ms}ms",
        "",
        "## Check Statistics",
        "",
    ]
    for name, stat in analysis.check_stats.items():
        lines.append(f"{_stat_glyph(stat.pass_rate)} {name}")
        lines.append(
            f"   Total: {stat.total} | Pass: {stat.pass_} | Warning: {stat.warning} | "
            f"Fail: {stat.fail} | Error: {stat.error}"
        )
        lines.append(f"   Pass Rate: {stat.pass_rate}%")
        lines.append("")

    if analysis.issues:
        lines += ["## Issues Detected", ""]
        for issue in analysis.issues:
            marker = "🔴" if issue.severity == "high" else "🟡"
            lines.append(f"{marker} {issue.check}: {issue.message}")
        lines.append("")

    if analysis.recommendations:
        lines += ["## Recommendations", ""]
        lines += [f"• {rec}" for rec in analysis.recommendations]
        lines.append("")

    if analysis.daily_stats:
        lines += ["## Daily Trend", ""]
        for day in analysis.daily_stats:
            rate = round(day.passed / day.checks * 100) if day.checks else 0
            filled = rate // 5
            bar = "█" * filled + "░" * (20 - filled)
            lines.append(f"{day.date}: {bar} {rate}% ({day.passed}/{day.checks})")

    return "\n".join(lines)


def format_json(analysis: TrendAnalysis) -> str:
    return orjson.dumps(
        analysis.model_dump(mode="json", by_alias=True),
        option=orjson.OPT_INDENT_2,
    ).decode()


def format_markdown(analysis: TrendAnalysis, days: int, generated: datetime | None = None) -> str:
    generated = generated or datetime.now(tz=UTC)
    md = "# 📈 Health Check Trend Analysis\n\n"
    md += f"**Analysis Period:** Last {days} days  \n"
    md += f"**Generated:** {health_log.iso_timestamp(generated)}\n\n"

    md += "## Overview\n\n"
    md += "| Metric | Value |\n|--------|-------|\n"
    md += f"| Total Checks | {analysis.total_checks} |\n"
    md += f"| Pass Rate | {analysis.pass_rate}% |\n"
    md += f"| Avg Duration | {analysis.avg_duration_ms}ms |\n\n"

    md += "## Check Statistics\n\n"
    md += "| Check | Total | Pass | Warning | Fail | Error | Pass Rate |\n"
    md += "|-------|-------|------|---------|------|-------|-----------|\n"
    for name, stat in analysis.check_stats.items():
        md += (
            f"| {name} | {stat.total} | {stat.pass_} | {stat.warning} | "
            f"{stat.fail} | {stat.error} | {stat.pass_rate}% |\n"
        )
    md += "\n"

    if analysis.issues:
        md += "## Issues Detected\n\n"
        for issue in analysis.issues:
            marker = "🔴" if issue.severity == "high" else "🟡"
            md += f"### {marker} {issue.check}\n{issue.message}\n\n"

    if analysis.recommendations:
        md += "## Recommendations\n\n"
        md += "".join(f"- {rec}\n" for rec in analysis.recommendations)
        md += "\n"

    return md


# ---------------------------------------------------------------------------
# Dashboard aggregates
# ---------------------------------------------------------------------------

DASHBOARD_DAYS = 30
_RUN_STATUSES = ("pass", "warning", "fail", "error")


def get_stats(entries: Sequence[TrendEntry]) -> dict[str, int | float]:
    """Run counts by overall status plus the overall pass rate."""
    stats: dict[str, int | float] = {"total": len(entries)}
    for status in _RUN_STATUSES:
        stats[status] = sum(1 for e in entries if e.overall_status == status)
    stats["pass_rate"] = _rate(int(stats["pass"]), len(entries))
    return stats


def get_trend_data(entries: Iterable[TrendEntry], days: int = DASHBOARD_DAYS) -> list[dict[str, int | str]]:
    """Per-day run counts by overall status (UTC dates), last `days` days with data."""
    buckets: dict[str, dict[str, int | str]] = {}
    for entry in entries:
        key = entry.timestamp.astimezone(UTC).date().isoformat()
        day = buckets.setdefault(key, {"date": key, "total": 0, **dict.fromkeys(_RUN_STATUSES, 0)})
        day["total"] = int(day["total"]) + 1
        if entry.overall_status in _RUN_STATUSES:
            day[entry.overall_status] = int(day[entry.overall_status]) + 1
    return [buckets[key] for key in sorted(buckets)][-days:]
