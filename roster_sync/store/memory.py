from __future__ import annotations

import copy
import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..models.cell import cell_text
from ..models.reconcile_models import ConditionalHighlightRule, HighlightInstruction
from ..models.row_data import RowData, Table
from .base import TableNotFoundError, TableStoreError

"""In-memory TableStore.

Holds committed tables plus a working copy; ``commit()`` promotes the working
copy. Highlights are kept as plain lists so callers (and tests) can inspect
what a sheet-backed store would have rendered.
"""

__all__ = [
    "InMemoryTableStore",
]


class InMemoryTableStore:
    def __init__(self, tables: Iterable[Table] = ()) -> None:
        self._committed: dict[str, Table] = {t.name: t for t in tables}
        self._working: dict[str, Table] = copy.deepcopy(self._committed)
        self.highlights: dict[str, list[HighlightInstruction]] = {}
        self.rules: dict[str, list[ConditionalHighlightRule]] = {}
        self._pending_highlights: dict[str, list[HighlightInstruction]] = {}
        self._pending_rules: dict[str, list[ConditionalHighlightRule]] = {}
        self.commit_count = 0

    def _table(self, name: str) -> Table:
        table = self._working.get(name)
        if table is None:
            raise TableNotFoundError(f"table not found: {name}")
        return table

    def read_table(self, name: str) -> Table:
        if name not in self._committed:
            raise TableNotFoundError(f"table not found: {name}")
        return copy.deepcopy(self._committed[name])

    def write_column(self, table: str, column: str, values: Mapping[int, Any]) -> None:
        current = self._table(table)
        if column not in current.columns:
            current.columns.append(column)
        by_row = {r.row_number: r for r in current.rows}
        unknown = set(values) - set(by_row)
        if unknown:
            raise TableStoreError(f"{table}: unknown rows {sorted(unknown)}")
        for row_number, value in values.items():
            by_row[row_number].values[column] = value

    def write_cell(self, table: str, row_number: int, column: str, value: Any) -> None:
        current = self._table(table)
        if column not in current.columns:
            raise TableStoreError(f"{table}: unknown column {column!r}")
        for row in current.rows:
            if row.row_number == row_number:
                row.values[column] = value
                return
        raise TableStoreError(f"{table}: unknown row {row_number}")

    def apply_highlights(self, table: str, instructions: Iterable[HighlightInstruction]) -> None:
        self._table(table)
        self._pending_highlights.setdefault(table, []).extend(instructions)

    def apply_conditional_rule(self, table: str, rule: ConditionalHighlightRule) -> None:
        self._table(table)
        self._pending_rules.setdefault(table, []).append(rule)

    def invalid_cells(self, table: str) -> list[tuple[int, str]]:
        """Evaluate committed conditional rules: (row_number, column) of flagged cells."""
        flagged: list[tuple[int, str]] = []
        committed = self._committed[table]
        for rule in self.rules.get(table, []):
            pattern = re.compile(rule.pattern)
            for row in committed.rows:
                for column in rule.columns:
                    text = cell_text(row.values.get(column))
                    if text and not pattern.match(text):
                        flagged.append((row.row_number, column))
        return flagged

    def commit(self) -> None:
        self._committed = copy.deepcopy(self._working)
        for name, items in self._pending_highlights.items():
            self.highlights.setdefault(name, []).extend(items)
        for name, rules in self._pending_rules.items():
            self.rules.setdefault(name, []).extend(rules)
        self._pending_highlights.clear()
        self._pending_rules.clear()
        self.commit_count += 1

    @staticmethod
    def table_from_records(name: str, records: list[dict[str, Any]], header_row: int = 1) -> Table:
        """Build a Table whose first record sits just below ``header_row``."""
        columns: list[str] = []
        for rec in records:
            for col in rec:
                if col not in columns:
                    columns.append(col)
        rows = [
            RowData(row_number=header_row + 1 + i, values={c: rec.get(c) for c in columns})
            for i, rec in enumerate(records)
        ]
        return Table(name=name, columns=columns, rows=rows)
