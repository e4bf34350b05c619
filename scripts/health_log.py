"""
scripts/health_log.py — Persisted health check history.

Two files are written per run:
  - the text log: an append-only sequence of human-readable report blocks,
    each introduced by a separator and a "📅 <ISO timestamp>" marker line
  - the history file: one versioned JSON object per line, which the trend
    analyzer and dashboard read without re-parsing report text

Neither file is ever truncated or rotated by this module.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson

log = logging.getLogger(__name__)

SEPARATOR = "=" * 60
TIMESTAMP_MARKER = "📅"
ENTRY_SPLIT_RE = re.compile(rf"{SEPARATOR}\n{TIMESTAMP_MARKER} (?=\d{{4}}-\d{{2}}-\d{{2}}T)")


def iso_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a trailing Z."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def append(path: Path | str, text: str, now: datetime | None = None) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    stamp = iso_timestamp(now or datetime.now(tz=UTC))
    entry = f"{SEPARATOR}\n{TIMESTAMP_MARKER} {stamp}\n{SEPARATOR}\n{text}\n\n"
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(entry)


def write(path: Path | str, text: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def read_recent(path: Path | str, n: int = 5) -> list[str]:
    """Last `n` raw chunks of the text log, split on the entry marker.

    For eyeballing only; structured consumers should use read_records().
    """
    path = Path(path)
    if n <= 0:
        return []
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    chunks = [chunk for chunk in ENTRY_SPLIT_RE.split(content) if chunk.strip()]
    return chunks[-n:]


def append_record(path: Path | str, record: dict[str, Any]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "ab") as handle:
        handle.write(orjson.dumps(record) + b"\n")


def read_records(path: Path | str) -> list[dict[str, Any]]:
    """Every JSON object in the history file, in file order.

    Lines that are not valid JSON objects (a torn write from an interrupted
    run, for instance) are skipped with a warning.
    """
    path = Path(path)
    records: list[dict[str, Any]] = []
    try:
        with open(path, "rb") as handle:
            for lineno, raw in enumerate(handle, start=1):
                if not raw.strip():
                    continue
                try:
                    payload = orjson.loads(raw)
                except orjson.JSONDecodeError as exc:
                    log.warning("%s:%d: skipping unreadable record (%s)", path, lineno, exc)
                    continue
                if not isinstance(payload, dict):
                    log.warning("%s:%d: skipping non-object record", path, lineno)
                    continue
                records.append(payload)
    except FileNotFoundError:
        return []
    return records
