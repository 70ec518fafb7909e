from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from roster_sync.models.processing_result import ApplyReport, ReconcileResult, RunStats
from roster_sync.services.summary import render_summary_line

"""SUMMARY 行フォーマット契約テスト.

Fields appear in a fixed order, space separated, integer counters and a
non-negative decimal elapsed time.
"""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+rows=([0-9]+)\s+new=([0-9]+)\s+changed=([0-9]+)\s+id_changes=([0-9]+)\s+"
    r"applied=([0-9]+)\s+failed=([0-9]+)\s+invalid_dates=([0-9]+)\s+elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = "SUMMARY rows=4 new=1 changed=2 id_changes=1 applied=1 failed=0 invalid_dates=0 elapsed_sec=0.84"
    m = SUMMARY_PATTERN.match(line)
    assert m, "SUMMARY line should match contract regex"
    assert m.group(1) == "4"


def test_rendered_line_matches_contract():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    result = ReconcileResult(
        ok=True,
        start_time=start,
        end_time=start + timedelta(seconds=2),
        stats=RunStats(total_rows=1200, new_members=3, changed_rows=40, id_changes=2, invalid_dates=5, elapsed_seconds=12.3456),
        apply_report=ApplyReport(),
    )
    m = SUMMARY_PATTERN.match(render_summary_line(result))
    assert m
    assert m.groups() == ("1200", "3", "40", "2", "0", "0", "5", "12.346")


def test_rendered_line_for_failed_run_matches_contract():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    assert SUMMARY_PATTERN.match(render_summary_line(ReconcileResult(ok=False, start_time=start, end_time=start)))


def test_rejects_reordered_fields():
    line = "SUMMARY new=1 rows=4 changed=2 id_changes=1 applied=1 failed=0 invalid_dates=0 elapsed_sec=1"
    assert SUMMARY_PATTERN.match(line) is None
