from __future__ import annotations

import pytest

from roster_sync.models.reconcile_models import ConditionalHighlightRule, HighlightInstruction
from roster_sync.store.base import TableNotFoundError, TableStore, TableStoreError
from roster_sync.store.memory import InMemoryTableStore

from conftest import table_of


@pytest.fixture()
def store() -> InMemoryTableStore:
    return InMemoryTableStore([table_of("incoming", [{"A": "x", "Phone": "0412 345 678"}, {"A": "y", "Phone": "12345"}])])


def test_implements_protocol(store):
    assert isinstance(store, TableStore)


def test_table_from_records_numbers_rows_below_header():
    table = InMemoryTableStore.table_from_records("t", [{"a": 1}, {"b": 2}], header_row=3)
    assert [r.row_number for r in table.rows] == [4, 5]
    assert table.columns == ["a", "b"]
    assert table.rows[0].values == {"a": 1, "b": None}


def test_writes_are_invisible_until_commit(store):
    store.write_column("incoming", "Action", {2: "New Member"})
    assert "Action" not in store.read_table("incoming").columns
    store.commit()
    table = store.read_table("incoming")
    assert table.rows[0].get("Action") == "New Member"
    assert table.rows[1].get("Action") is None
    assert store.commit_count == 1


def test_read_table_returns_a_copy(store):
    table = store.read_table("incoming")
    table.rows[0].values["A"] = "changed"
    assert store.read_table("incoming").rows[0].get("A") == "x"


def test_unknown_table(store):
    with pytest.raises(TableNotFoundError):
        store.read_table("roster")
    with pytest.raises(TableNotFoundError):
        store.write_cell("roster", 2, "A", "z")


def test_write_cell_errors(store):
    with pytest.raises(TableStoreError, match="unknown column"):
        store.write_cell("incoming", 2, "Nope", "z")
    with pytest.raises(TableStoreError, match="unknown row"):
        store.write_cell("incoming", 42, "A", "z")


def test_write_column_rejects_unknown_rows(store):
    with pytest.raises(TableStoreError):
        store.write_column("incoming", "A", {42: "z"})


def test_highlights_and_rules_recorded_on_commit(store):
    store.apply_highlights("incoming", [HighlightInstruction(2, None, "C6EFCE", "006100")])
    store.apply_conditional_rule(
        "incoming", ConditionalHighlightRule(("Phone",), r"^04\d\d \d{3} \d{3}$", "F4CCCC", "990000")
    )
    assert store.highlights == {}
    store.commit()
    assert len(store.highlights["incoming"]) == 1
    assert store.invalid_cells("incoming") == [(3, "Phone")]
