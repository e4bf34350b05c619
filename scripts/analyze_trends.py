#!/usr/bin/env python3
"""
scripts/analyze_trends.py — Summarize health check history over a window.

Usage:
    python3 scripts/analyze_trends.py                       # last 7 days, text
    python3 scripts/analyze_trends.py --days 30 --format markdown --output report.md
    analyze-trends --format json                            # installed entry point

Exits 1 when a high-severity issue (a frequently failing check, or a
declining pass rate) is found, or when no history exists yet.
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys

_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

from config.settings import load_settings  # noqa: E402
from scripts import health_log, trends  # noqa: E402

log = logging.getLogger(__name__)

FORMATS = ("text", "json", "markdown")


def render(analysis: trends.TrendAnalysis, fmt: str, days: int) -> str:
    if fmt == "json":
        return trends.format_json(analysis)
    if fmt == "markdown":
        return trends.format_markdown(analysis, days)
    return trends.format_text(analysis, days)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyze health check trends")
    parser.add_argument("--days", type=int, default=7, help="analysis window in days (default: 7)")
    parser.add_argument("--output", help="write the report to this file instead of stdout")
    parser.add_argument("--format", choices=FORMATS, default="text")
    parser.add_argument("--env-file", default=".env", help="settings file (default: ./.env)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        cfg = load_settings(args.env_file)
        logging.basicConfig(level=cfg.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

        if not cfg.log_path.exists() and not cfg.history_path.exists():
            print(f"Log file not found: {cfg.log_path}", file=sys.stderr)
            print("Run a health check first to generate log data.", file=sys.stderr)
            return 1

        source = cfg.history_path if cfg.history_path.exists() else cfg.log_path
        print(f"📈 Analyzing health check trends from: {source}")

        entries = trends.within_days(trends.load_entries(cfg), args.days)
        if not entries:
            print(f"No health check data found in the last {args.days} days.")
            return 0

        print(f"Found {len(entries)} check(s) in the last {args.days} day(s).")
        print()

        analysis = trends.analyze(entries)
        report = render(analysis, args.format, args.days)

        if args.output:
            health_log.write(args.output, report)
            print(f"✓ Report saved to: {args.output}")
        else:
            print(report)

        return 1 if analysis.has_high_severity else 0
    except Exception as exc:  # noqa: BLE001
        print(f"Error: {exc}", file=sys.stderr)
        log.debug("trend analysis failed", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
