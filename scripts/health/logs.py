"""
scripts/health/logs.py — Bot log error-pattern analysis.

Scans the newest dated bot log (<prefix>-YYYY-MM-DD.log) line by line,
tallies error categories, and estimates a recent error rate from the last
100 lines.

The "rate" is the number of matching lines in that 100-line window,
reported as if it were a percentage. Thresholds are written against that
number, so it stays a count.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from scripts.health import FAIL, INFO, PASS, WARNING, CheckOutcome

if TYPE_CHECKING:
    from config.settings import Settings

log = logging.getLogger(__name__)

RECENT_WINDOW_LINES = 100

# Ordered; the first matching pattern claims the line.
ERROR_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Error:", re.IGNORECASE), "General Error"),
    (re.compile(r"Fatal error:", re.IGNORECASE), "Fatal Error"),
    (re.compile(r"SyntaxError:", re.IGNORECASE), "Syntax Error"),
    (re.compile(r"Cannot find module", re.IGNORECASE), "Module Not Found"),
    (re.compile(r"EACCES|permission denied", re.IGNORECASE), "Permission Error"),
    (re.compile(r"ENOENT.*no such file", re.IGNORECASE), "File Not Found"),
    (re.compile(r"validation_error", re.IGNORECASE), "Validation Error"),
    (re.compile(r"object_not_found", re.IGNORECASE), "Notion Object Not Found"),
    (re.compile(r"telegram.*not found|Bad Request", re.IGNORECASE), "Telegram Error"),
    (re.compile(r"dotenv.*injecting env", re.IGNORECASE), "Dotenv Warning"),
    (re.compile(r"MODULE_NOT_FOUND", re.IGNORECASE), "Module Not Found"),
]

PATH_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"skills/skills/"), 'Duplicate "skills" in path'),
    (re.compile(r"undefined.*(?:url|id|database)", re.IGNORECASE), "Undefined critical value"),
]

CATEGORY_FIXES: dict[str, str] = {
    "Module Not Found": "Run npm install in affected skill directories",
    "Syntax Error": "Fix JavaScript syntax errors in affected files",
    "Notion Object Not Found": "Check Notion database IDs and integration permissions",
    "Telegram Error": "Check TELEGRAM_BOT_TOKEN and group chat IDs",
}

# Per-category detail thresholds
CATEGORY_FAIL_OVER = 10
CATEGORY_WARN_OVER = 3

# Overall status thresholds
TOTAL_FAIL_OVER = 50
TOTAL_WARN_OVER = 10
RECENT_FAIL_OVER = 20
RECENT_WARN_OVER = 5

_TIME_RE = re.compile(r"^(\d{2}:\d{2}:\d{2})")
_ERROR_MESSAGE_RE = re.compile(r"Error: (.+)$")


@dataclass
class LogError:
    category: str
    timestamp: str
    message: str


@dataclass
class LogScan:
    errors: list[LogError] = field(default_factory=list)
    path_issues: list[str] = field(default_factory=list)
    by_category: dict[str, list[LogError]] = field(default_factory=dict)


def run(cfg: Settings) -> CheckOutcome:
    log_dir = Path(cfg.BOT_LOG_DIR).expanduser()
    log_path = latest_log_file(log_dir, cfg.BOT_LOG_PREFIX)

    if log_path is None:
        outcome = CheckOutcome(
            status=WARNING,
            message="No log files found",
            fix=["Ensure the bot has run at least once", "Check log directory permissions"],
        )
        outcome.add(WARNING, f"Log directory not found or empty: {log_dir}")
        return outcome

    outcome = CheckOutcome(status=PASS)
    outcome.add(PASS, f"Analyzing log: {log_path.name}")

    lines = log_path.read_text(encoding="utf-8", errors="replace").split("\n")
    scan = scan_lines(lines)
    total_errors = len(scan.errors)

    outcome.add(INFO, f"Found {total_errors} errors, {len(scan.path_issues)} warnings")

    for category, occurrences in scan.by_category.items():
        count = len(occurrences)
        if count > CATEGORY_FAIL_OVER:
            status = FAIL
        elif count > CATEGORY_WARN_OVER:
            status = WARNING
        else:
            status = PASS
        outcome.add(status, f"{category}: {count} occurrence(s)")
        latest = occurrences[-1]
        outcome.add(INFO, f"  Latest: {latest.message[:80]}...")
        fix = CATEGORY_FIXES.get(category)
        if fix and fix not in outcome.fix:
            outcome.fix.append(fix)

    for issue in scan.path_issues:
        outcome.add(WARNING, f"Path issue: {issue}")
        if issue.startswith("Duplicate"):
            fix = 'Fix duplicate "skills" directory in skill paths'
            if fix not in outcome.fix:
                outcome.fix.append(fix)

    recent_rate = recent_error_count(lines)
    if recent_rate > RECENT_FAIL_OVER:
        outcome.add(FAIL, f"High error rate: {recent_rate}% in recent logs")

    if total_errors > TOTAL_FAIL_OVER or recent_rate > RECENT_FAIL_OVER:
        outcome.status = FAIL
    elif total_errors > TOTAL_WARN_OVER or recent_rate > RECENT_WARN_OVER:
        outcome.status = WARNING

    outcome.message = (
        f"Log analysis: {total_errors} errors found, {recent_rate}% recent error rate"
    )
    return outcome


def latest_log_file(log_dir: Path, prefix: str) -> Path | None:
    """Newest log by the date token in its name, not by mtime."""
    name_re = re.compile(rf"^{re.escape(prefix)}-(\d{{4}}-\d{{2}}-\d{{2}})\.log$")
    try:
        candidates = [
            (match.group(1), entry)
            for entry in log_dir.iterdir()
            if (match := name_re.match(entry.name)) and entry.is_file()
        ]
    except OSError as exc:
        log.debug("cannot list %s: %s", log_dir, exc)
        return None
    if not candidates:
        return None
    return max(candidates, key=lambda item: item[0])[1]


def categorize(line: str) -> str | None:
    for pattern, category in ERROR_PATTERNS:
        if pattern.search(line):
            return category
    return None


def scan_lines(lines: list[str]) -> LogScan:
    scan = LogScan()
    by_category: dict[str, list[LogError]] = defaultdict(list)
    for line in lines:
        category = categorize(line)
        if category is not None:
            time_match = _TIME_RE.match(line)
            message_match = _ERROR_MESSAGE_RE.search(line)
            message = message_match.group(1) if message_match else line.strip()
            error = LogError(
                category=category,
                timestamp=time_match.group(1) if time_match else "",
                message=message[:200],
            )
            by_category[category].append(error)
            scan.errors.append(error)

        for pattern, message in PATH_PATTERNS:
            if pattern.search(line):
                scan.path_issues.append(message)
    scan.by_category = dict(by_category)
    return scan


def recent_error_count(lines: list[str], window: int = RECENT_WINDOW_LINES) -> int:
    """Matching lines among the last `window` lines. Reported as a percent."""
    return sum(1 for line in lines[-window:] if categorize(line) is not None)
