from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from ..models.cell import cell_text
from ..models.config_models import TableSource
from ..models.reconcile_models import ConditionalHighlightRule, HighlightInstruction
from ..models.row_data import Table
from ..store.base import TableNotFoundError, TableStoreError
from .reader import DEFAULT_KEEP_NA_STRINGS, MissingColumnsError, SheetHeaderError, normalize_sheet, read_excel_file

"""Workbook-backed TableStore.

Reads go through pandas (``read_excel_file`` / ``normalize_sheet``); writes,
fills and fonts go through openpyxl. Writes stay in the loaded workbook until
``commit()`` saves every touched file, so a run that fails before committing
leaves the files on disk untouched. A failed save drops the unsaved workbooks,
so nothing from it leaks into the next commit.

Header -> column index maps are memoized per store instance (one invocation).
"""

__all__ = [
    "ExcelTableStore",
]

logger = logging.getLogger(__name__)


def _fill(color: str) -> PatternFill:
    return PatternFill("solid", fgColor=color)


class ExcelTableStore:
    """TableStore over one or more workbooks.

    ``sources`` maps table names (e.g. "roster", "incoming") to the sheet
    holding each table; two tables may live in the same workbook.
    """

    def __init__(self, sources: Mapping[str, TableSource], keep_na_strings: list[str] | None = None) -> None:
        self._sources: dict[str, TableSource] = dict(sources)
        self._keep_na = keep_na_strings if keep_na_strings is not None else DEFAULT_KEEP_NA_STRINGS
        self._workbooks: dict[Path, Workbook] = {}
        self._dirty: set[Path] = set()
        self._header_cache: dict[str, dict[str, int]] = {}

    def _source(self, name: str) -> TableSource:
        source = self._sources.get(name)
        if source is None:
            raise TableNotFoundError(f"no source configured for table: {name}")
        return source

    def read_table(self, name: str) -> Table:
        source = self._source(name)
        path = Path(source.path)
        if not path.exists():
            raise TableNotFoundError(f"workbook not found: {path}")
        try:
            raw = read_excel_file(path, target_sheets={source.sheet}, keep_na_strings=self._keep_na)
        except (OSError, ValueError) as e:
            raise TableStoreError(f"failed reading {path}: {e}") from e
        if source.sheet not in raw:
            raise TableNotFoundError(f"sheet '{source.sheet}' not found in {path.name}")
        try:
            return normalize_sheet(raw[source.sheet], source.sheet, header_row=source.header_row)
        except (SheetHeaderError, MissingColumnsError) as e:
            raise TableStoreError(str(e)) from e

    def _worksheet(self, name: str) -> Worksheet:
        source = self._source(name)
        path = Path(source.path)
        wb = self._workbooks.get(path)
        if wb is None:
            try:
                wb = load_workbook(path)
            except (OSError, ValueError) as e:
                raise TableStoreError(f"failed opening {path}: {e}") from e
            self._workbooks[path] = wb
        if source.sheet not in wb.sheetnames:
            raise TableNotFoundError(f"sheet '{source.sheet}' not found in {path.name}")
        return wb[source.sheet]

    def _headers(self, name: str) -> dict[str, int]:
        cached = self._header_cache.get(name)
        if cached is not None:
            return cached
        ws = self._worksheet(name)
        header_row = self._source(name).header_row
        headers: dict[str, int] = {}
        for idx in range(1, ws.max_column + 1):
            value = ws.cell(row=header_row, column=idx).value
            if value is not None and str(value).strip():
                headers.setdefault(str(value).strip(), idx)
        self._header_cache[name] = headers
        return headers

    def _column_index(self, name: str, column: str, create: bool = False) -> int:
        headers = self._headers(name)
        idx = headers.get(column)
        if idx is not None:
            return idx
        if not create:
            raise TableStoreError(f"{name}: unknown column {column!r}")
        ws = self._worksheet(name)
        idx = max(headers.values(), default=0) + 1
        ws.cell(row=self._source(name).header_row, column=idx, value=column)
        headers[column] = idx
        self._mark_dirty(name)
        return idx

    def _check_row(self, name: str, row_number: int) -> None:
        ws = self._worksheet(name)
        if row_number <= self._source(name).header_row or row_number > ws.max_row:
            raise TableStoreError(f"{name}: row {row_number} outside data range")

    def _mark_dirty(self, name: str) -> None:
        self._dirty.add(Path(self._source(name).path))

    def write_column(self, table: str, column: str, values: Mapping[int, Any]) -> None:
        ws = self._worksheet(table)
        idx = self._column_index(table, column, create=True)
        for row_number, value in values.items():
            self._check_row(table, row_number)
            ws.cell(row=row_number, column=idx, value=value)
        self._mark_dirty(table)

    def write_cell(self, table: str, row_number: int, column: str, value: Any) -> None:
        ws = self._worksheet(table)
        idx = self._column_index(table, column)
        self._check_row(table, row_number)
        ws.cell(row=row_number, column=idx, value=value)
        self._mark_dirty(table)

    def apply_highlights(self, table: str, instructions: Iterable[HighlightInstruction]) -> None:
        ws = self._worksheet(table)
        width = max(self._headers(table).values(), default=ws.max_column)
        for ins in instructions:
            fill = _fill(ins.background)
            font = Font(color=ins.foreground)
            if ins.column is None:
                targets = range(1, width + 1)
            else:
                targets = [self._column_index(table, ins.column)]
            for idx in targets:
                cell = ws.cell(row=ins.row_number, column=idx)
                cell.fill = fill
                cell.font = font
        self._mark_dirty(table)

    def apply_conditional_rule(self, table: str, rule: ConditionalHighlightRule) -> None:
        """Render the rule by coloring the cells that currently fail it."""
        ws = self._worksheet(table)
        pattern = re.compile(rule.pattern)
        first = self._source(table).header_row + 1
        fill = _fill(rule.background)
        font = Font(color=rule.foreground)
        flagged = 0
        for column in rule.columns:
            if column not in self._headers(table):
                continue
            idx = self._column_index(table, column)
            for row_number in range(first, ws.max_row + 1):
                cell = ws.cell(row=row_number, column=idx)
                text = cell_text(cell.value)
                if text and not pattern.match(text):
                    cell.fill = fill
                    cell.font = font
                    flagged += 1
        logger.debug("table=%s conditional rule flagged=%d", table, flagged)
        self._mark_dirty(table)

    def commit(self) -> None:
        for path in sorted(self._dirty):
            try:
                self._workbooks[path].save(path)
            except OSError as e:
                self._discard_unsaved()
                raise TableStoreError(f"failed saving {path}: {e}") from e
            self._dirty.discard(path)

    def _discard_unsaved(self) -> None:
        # 未保存の変更は捨てる。次の書き込みはディスクから読み直す
        for path in self._dirty:
            self._workbooks.pop(path, None)
        self._dirty.clear()
        self._header_cache.clear()
