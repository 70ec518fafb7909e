from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import pytest

from roster_sync.logging.error_log import ErrorLogBuffer
from roster_sync.models.config_models import ColumnMap
from roster_sync.models.processing_result import ErrorKind
from roster_sync.models.reconcile_models import ACTION_NEW_MEMBER
from roster_sync.reconcile import diff as diff_module
from roster_sync.services.orchestrator import (
    INCOMING_TABLE,
    ROSTER_TABLE,
    prepare_incoming,
    run_contact_dedupe,
    run_phone_normalization,
    run_reconciliation,
)
from roster_sync.store.base import TableStoreError
from roster_sync.store.memory import InMemoryTableStore

from conftest import make_store, member, table_of


@pytest.fixture()
def log(tmp_path: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(logs_dir=tmp_path / "logs")


def test_full_run(config, roster_records, incoming_records, log):
    store = make_store(roster_records, incoming_records)

    result = run_reconciliation(config, store, error_log=log)

    assert result.ok and result.error is None
    assert [a.action_text for a in result.annotations] == [
        "Member ID Changed",
        "Field Updates",
        "",
        "New Member",
    ]
    stats = result.stats
    assert (stats.total_rows, stats.new_members, stats.changed_rows, stats.id_changes) == (4, 1, 2, 1)
    assert stats.normalized_phone_cells == 1
    assert stats.invalid_dates == 0 and stats.invalid_phones == 0

    incoming = store.read_table(INCOMING_TABLE)
    assert incoming.column_values("Action") == {2: "Member ID Changed", 3: "Field Updates", 4: "", 5: "New Member"}
    assert incoming.rows[1].get("Member Mobile") == "0412 345 678"

    roster = store.read_table(ROSTER_TABLE)
    assert roster.rows[0].get("Member ID") == "101"
    assert [e.new_id for e in result.apply_report.applied] == ["101"]

    highlights = store.highlights[INCOMING_TABLE]
    assert {(h.row_number, h.column) for h in highlights} == {(2, "Member ID"), (3, "Address"), (5, None)}
    assert store.rules[INCOMING_TABLE][0].columns == config.phone_columns
    # 書き込み 1 回 + ID 更新 1 回
    assert store.commit_count == 2
    assert log.flush() is None


def test_missing_table_is_structural(config, roster_records, log, tmp_path):
    store = InMemoryTableStore([table_of(ROSTER_TABLE, roster_records)])

    result = run_reconciliation(config, store, error_log=log)

    assert not result.ok
    assert result.error.kind is ErrorKind.MISSING_TABLE
    assert store.commit_count == 0
    lines = (tmp_path / "logs").glob("errors-*.log")
    records = [json.loads(x) for p in lines for x in p.read_text(encoding="utf-8").splitlines()]
    assert records[0]["error_type"] == "MISSING_TABLE"
    assert records[0]["row"] == -1


def test_missing_identity_columns_is_structural(config, roster_records, log):
    incoming = [{"Member ID": "1", "First Name": "A"}]
    store = make_store(roster_records, incoming)

    result = run_reconciliation(config, store, error_log=log)

    assert result.error.kind is ErrorKind.MISSING_COLUMNS
    assert "Date of Birth" in result.error.message
    assert store.commit_count == 0


@pytest.mark.parametrize("chunk_size", [1, 2, 3, 100])
def test_chunk_size_does_not_change_output(config, roster_records, incoming_records, log, chunk_size):
    baseline = run_reconciliation(config, make_store(roster_records, incoming_records), error_log=log)
    chunked = run_reconciliation(
        replace(config, chunk_size=chunk_size), make_store(roster_records, incoming_records), error_log=log
    )
    assert chunked.annotations == baseline.annotations
    assert chunked.pending_events == baseline.pending_events


def test_pause_between_chunks(config, roster_records, incoming_records, log):
    cfg = replace(config, chunk_size=1, chunk_pause_seconds=0.01)
    with patch("roster_sync.services.chunks.time.sleep") as mock_sleep:
        run_reconciliation(cfg, make_store(roster_records, incoming_records), error_log=log)
    assert mock_sleep.call_count == 3  # 4 rows -> 4 chunks


def test_failure_mid_pass_writes_nothing(config, roster_records, incoming_records, log):
    store = make_store(roster_records, incoming_records)
    real = diff_module.detect_changes
    calls = {"n": 0}

    def flaky(match, incoming, cfg, tracked_fields=None):
        calls["n"] += 1
        if calls["n"] == 3:
            raise RuntimeError("boom")
        return real(match, incoming, cfg, tracked_fields)

    with patch("roster_sync.services.orchestrator.detect_changes", side_effect=flaky):
        result = run_reconciliation(replace(config, chunk_size=1), store, error_log=log)

    assert not result.ok
    assert result.error.kind is ErrorKind.PROCESSING_FAILED
    assert "boom" in result.error.message
    assert store.commit_count == 0
    assert "Action" not in store.read_table(INCOMING_TABLE).columns
    assert store.read_table(ROSTER_TABLE).rows[0].get("Member ID") == "100"


def test_write_failure_before_commit(config, roster_records, incoming_records, log):
    store = make_store(roster_records, incoming_records)
    with patch.object(store, "apply_highlights", side_effect=TableStoreError("disk full")):
        result = run_reconciliation(config, store, error_log=log)
    assert result.error.kind is ErrorKind.PROCESSING_FAILED
    assert store.commit_count == 0


def test_declined_prompt_leaves_events_pending(config, roster_records, incoming_records, log):
    cfg = replace(config, prompt_before_id_update=True, auto_apply_id_updates=False)
    store = make_store(roster_records, incoming_records)
    seen = []

    def confirm(events):
        seen.extend(events)
        return False

    result = run_reconciliation(cfg, store, confirm=confirm, error_log=log)

    assert [e.new_id for e in seen] == ["101"]
    assert result.ok
    assert len(result.pending_events) == 1
    assert result.apply_report.applied == ()
    assert store.read_table(ROSTER_TABLE).rows[0].get("Member ID") == "100"
    # annotations are still written
    assert store.read_table(INCOMING_TABLE).rows[0].get("Action") == "Member ID Changed"


def test_invalid_dates_are_counted(config, log):
    roster = [member("1", "A", "B", "31/02/2010")]
    incoming = [member("2", "C", "D", "not a date")]
    result = run_reconciliation(config, make_store(roster, incoming), error_log=log)
    assert result.stats.invalid_dates == 2
    assert result.stats.has_unreliable_values
    assert result.annotations[0].action_labels == (ACTION_NEW_MEMBER,)


def test_contacts_deduped_before_compare(config, log):
    roster = [member("1", "Kid", "Lee", "1/1/2012", **{"Member Mobile": "", "Parent1_Mobile": "0412 345 678"})]
    incoming = [member("1", "Kid", "Lee", "1/1/2012", **{"Member Mobile": "0412345678", "Parent1_Mobile": "0412345678"})]
    store = make_store(roster, incoming)

    result = run_reconciliation(config, store, error_log=log)

    assert result.stats.deduped_rows == 1
    assert result.annotations[0].action_labels == ()
    row = store.read_table(INCOMING_TABLE).rows[0]
    assert row.get("Member Mobile") == ""
    assert row.get("Parent1_Mobile") == "0412 345 678"


def test_prepare_incoming_without_dedupe(config):
    table = table_of(INCOMING_TABLE, [member("1", "A", "B", "", **{"Member Mobile": "0412345678", "Parent1_Mobile": "0412345678"})])
    prepared = prepare_incoming(table, replace(config, dedupe_contacts=False))
    assert prepared.deduped_rows == 0
    assert prepared.writes == {"Member Mobile": {2: "0412 345 678"}, "Parent1_Mobile": {2: "0412 345 678"}}


def test_run_phone_normalization(config, log):
    store = make_store([], [member("1", "A", "B", "", **{"Member Mobile": "98765432", "Parent2_Mobile": "12"})])
    result = run_phone_normalization(config, store, error_log=log)
    assert result.ok
    assert result.stats.normalized_phone_cells == 1
    assert result.stats.invalid_phones == 1
    assert store.read_table(INCOMING_TABLE).rows[0].get("Member Mobile") == "02 9876 5432"
    assert store.invalid_cells(INCOMING_TABLE) == [(2, "Parent2_Mobile")]


def test_run_contact_dedupe(config, log):
    store = make_store([], [member("1", "A", "B", "", Member_Email="p@x.com", Parent1_Email="P@x.com")])
    result = run_contact_dedupe(config, store, error_log=log)
    assert result.stats.deduped_rows == 1
    assert store.read_table(INCOMING_TABLE).rows[0].get("Member_Email") == ""


def test_single_pass_missing_table(config, log):
    result = run_phone_normalization(config, InMemoryTableStore(), error_log=log)
    assert result.error.kind is ErrorKind.MISSING_TABLE


@pytest.mark.parametrize(
    "overrides",
    [
        {"chunk_size": 0},
        {"tracked_fields": ("Address", "Action")},
        {"columns": ColumnMap(action="Member ID")},
    ],
)
def test_invalid_config_is_structural(config, roster_records, incoming_records, log, overrides):
    store = make_store(roster_records, incoming_records)
    result = run_reconciliation(replace(config, **overrides), store, error_log=log)
    assert result.error.kind is ErrorKind.INVALID_CONFIG
    assert store.commit_count == 0
