#!/usr/bin/env python3
"""
scripts/health_check.py — Bot workspace self-health-check.

Runs the composable checks in scripts/health/ in order, prints each result
as it completes, reduces them to one overall status, appends the report to
the health log and, when asked, forwards it to the notification channels.

Checks:
  Quick (default):  Config Check, Syntax Check, Dependencies Check
  Full (--full):    + Logs Analysis, Git Status

Usage:
    python3 scripts/health_check.py               # quick check, .env in cwd
    python3 scripts/health_check.py --full --notify
    python3 scripts/health_check.py --dry-run     # do not write the log
    health-check --full -v                        # installed entry point

Importable (used by tests):
    from scripts.health_check import run_health_check, format_report
    results, summary = run_health_check(cfg, full=True)

Exit code is 0 only when the overall status is pass.
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
import time
from collections.abc import Callable, Sequence
from datetime import UTC, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Add project root to path so health modules and config are importable
_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

from config.settings import Settings, load_settings  # noqa: E402
from scripts import health_log, notifier  # noqa: E402
from scripts.health import (  # noqa: E402
    ERROR,
    PASS,
    STATUS_GLYPHS,
    UNKNOWN,
    CheckOutcome,
    CheckResult,
    Summary,
    summarize,
)
from scripts.health import config_check as health_config  # noqa: E402
from scripts.health import dependencies as health_dependencies  # noqa: E402
from scripts.health import logs as health_logs  # noqa: E402
from scripts.health import syntax as health_syntax  # noqa: E402
from scripts.health import vcs as health_vcs  # noqa: E402
from scripts.trends import TrendEntry  # noqa: E402

log = logging.getLogger(__name__)

CheckFn = Callable[[Settings], CheckOutcome]

QUICK_CHECKS: list[tuple[str, CheckFn]] = [
    ("Config Check", health_config.run),
    ("Syntax Check", health_syntax.run),
    ("Dependencies Check", health_dependencies.run),
]
FULL_CHECKS: list[tuple[str, CheckFn]] = [
    *QUICK_CHECKS,
    ("Logs Analysis", health_logs.run),
    ("Git Status", health_vcs.run),
]


def run_check(name: str, fn: CheckFn, cfg: Settings) -> CheckResult:
    """Time one check and attach its name. Any exception becomes an error result."""
    start = time.perf_counter()
    try:
        outcome = fn(cfg)
        status = outcome.status if outcome.status in STATUS_GLYPHS else UNKNOWN
        fields = {
            "message": outcome.message,
            "details": tuple(outcome.details),
            "error": outcome.error,
            "fix": tuple(outcome.fix),
        }
    except Exception as exc:  # noqa: BLE001
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.debug("%s raised", name, exc_info=True)
        return CheckResult(name=name, status=ERROR, duration_ms=duration_ms, error=str(exc))

    duration_ms = int((time.perf_counter() - start) * 1000)
    return CheckResult(name=name, status=status, duration_ms=duration_ms, **fields)


def run_health_check(
    cfg: Settings,
    full: bool = False,
    on_result: Callable[[CheckResult], None] | None = None,
    checks: Sequence[tuple[str, CheckFn]] | None = None,
) -> tuple[list[CheckResult], Summary]:
    """Run the quick or full check list sequentially and summarize."""
    if checks is None:
        checks = FULL_CHECKS if full else QUICK_CHECKS
    results: list[CheckResult] = []
    for name, fn in checks:
        result = run_check(name, fn, cfg)
        results.append(result)
        if on_result is not None:
            on_result(result)
    return results, summarize(results)


def display_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("unknown display timezone %r, falling back to UTC", name)
        return UTC


def format_report(results: Sequence[CheckResult], summary: Summary, tz: tzinfo) -> str:
    """Render the human-readable report block persisted to the health log."""
    overall_glyph = STATUS_GLYPHS.get(summary.overall_status, STATUS_GLYPHS[UNKNOWN])
    stamp = summary.timestamp.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z")

    lines = [
        "🏥 Bot Health Check Report",
        f"📅 {stamp}",
        f"📊 Overall Status: {overall_glyph} {summary.overall_status.upper()}",
        "",
        "## Summary",
        f"Total Checks: {summary.total}",
        f"✅ Passed: {summary.passed}",
        f"⚠️  Warnings: {summary.warnings}",
        f"❌ Failed: {summary.failed}",
        f"💥 Errors: {summary.errors}",
        "",
        "## Details",
    ]
    for result in results:
        lines.append(f"{result.glyph} {result.name} [{result.duration_ms}ms]")
        if result.message:
            lines.append(f"   {result.message}")
        for detail in result.details:
            mark = "✓" if detail.status == PASS else "✗"
            lines.append(f"   {mark} {detail.message}")
        if result.error:
            lines.append(f"   Error: {result.error}")
        if result.fix:
            lines.append("   💡 Suggested fix:")
            lines.extend(f"      - {fix}" for fix in result.fix)
        lines.append("")

    return "\n".join(lines)


def should_notify(cfg: Settings, summary: Summary) -> bool:
    return not cfg.HEALTH_CHECK_ALERT_ONLY or summary.overall_status != PASS


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bot workspace self-health-check")
    parser.add_argument("--full", action="store_true", help="also run log analysis and git checks")
    parser.add_argument("--notify", action="store_true", help="send the report to notification channels")
    parser.add_argument("--dry-run", action="store_true", help="do not write the health log")
    parser.add_argument("--verbose", "-v", action="store_true", help="print the full report and debug logs")
    parser.add_argument("--env-file", default=".env", help="settings file (default: ./.env)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        cfg = load_settings(args.env_file)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else cfg.LOG_LEVEL,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        print("🏥 Starting Bot Health Check...")
        print(f"   Mode: {'Full' if args.full else 'Quick'}")
        print(f"   Notify: {'Yes' if args.notify else 'No'}")
        print()

        results, summary = run_health_check(cfg, full=args.full, on_result=print)
        report_text = format_report(results, summary, display_timezone(cfg.HEALTH_CHECK_DISPLAY_TZ))

        print()
        print("## Summary")
        print(f"Overall: {summary.overall_status.upper()}")
        print(f"Passed: {summary.passed}/{summary.total}")
        if args.verbose:
            print()
            print(report_text)

        if not args.dry_run:
            health_log.append(cfg.log_path, report_text, now=summary.timestamp)
            entry = TrendEntry.from_run(results, summary)
            health_log.append_record(cfg.history_path, entry.model_dump(mode="json"))
            print(f"📝 Log saved to: {cfg.log_path}")

        if args.notify:
            if should_notify(cfg, summary):
                print("📤 Sending notifications...")
                report = notifier.HealthReport(summary, tuple(results), report_text)
                for delivery in notifier.send(cfg, report):
                    mark = "✓" if delivery.success else "✗"
                    print(f"   {mark} {delivery.channel}" + ("" if delivery.success else f": {delivery.error}"))
            else:
                print("✓ All checks passed, skipping notification (alert-only mode)")

        exit_code = 0 if summary.overall_status == PASS else 1
        print()
        print(f"Exit code: {exit_code}")
        return exit_code
    except Exception as exc:  # noqa: BLE001
        print(f"💥 Fatal error: {exc}", file=sys.stderr)
        log.debug("fatal error", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
