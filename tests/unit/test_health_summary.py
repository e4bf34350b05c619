"""Unit tests for the result types and summarize() in scripts.health."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from scripts.health import (
    ERROR,
    FAIL,
    PASS,
    UNKNOWN,
    WARNING,
    CheckOutcome,
    CheckResult,
    summarize,
)

TS = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _result(status: str, name: str = "Check") -> CheckResult:
    return CheckResult(name=name, status=status, duration_ms=5)


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([PASS, PASS, PASS], PASS),
        ([PASS, WARNING, PASS], WARNING),
        ([PASS, WARNING, FAIL], FAIL),
        ([PASS, ERROR], FAIL),
        ([], PASS),
    ],
)
def test_overall_status(statuses, expected):
    summary = summarize([_result(s) for s in statuses], timestamp=TS)
    assert summary.overall_status == expected


def test_counts_partition_known_statuses():
    results = [_result(s) for s in (PASS, PASS, WARNING, FAIL, ERROR, UNKNOWN)]
    summary = summarize(results, timestamp=TS)
    assert summary.total == 6
    assert (summary.passed, summary.warnings, summary.failed, summary.errors) == (2, 1, 1, 1)


def test_unknown_alone_does_not_degrade_overall():
    summary = summarize([_result(PASS), _result(UNKNOWN)], timestamp=TS)
    assert summary.total == 2
    assert summary.overall_status == PASS


def test_summarize_is_idempotent_for_fixed_timestamp():
    results = [_result(PASS), _result(WARNING)]
    assert summarize(results, timestamp=TS) == summarize(results, timestamp=TS)


def test_default_timestamp_is_timezone_aware():
    assert summarize([]).timestamp.tzinfo is not None


def test_escalate_never_downgrades():
    outcome = CheckOutcome(status=FAIL)
    outcome.escalate(WARNING)
    assert outcome.status == FAIL
    outcome.escalate(ERROR)
    assert outcome.status == ERROR


def test_result_str_shows_glyph_and_duration():
    result = CheckResult(name="Git Status", status=WARNING, duration_ms=42, message="Not a git repository")
    assert str(result) == "⚠️ Git Status [42ms]\n   Not a git repository"


def test_unrecognized_status_renders_unknown_glyph():
    assert CheckResult(name="X", status="bogus", duration_ms=0).glyph == "❓"
