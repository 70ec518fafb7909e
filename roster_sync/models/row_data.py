from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""RowData / Table models.

RowData represents one record of either the existing roster or the imported
table. Consumers address values by column name; ``row_number`` is the 1-based
sheet row the record was read from and is what write-back operations target.
"""

__all__ = [
    "RowData",
    "Table",
]


@dataclass(frozen=True)
class RowData:
    """A single record read from a table.

    The row_number refers to the physical sheet row (header row + 1 = first record).
    """
    row_number: int  # sheet row (1-based)
    values: dict[str, Any]  # column name -> raw cell value
    raw_values: dict[str, Any] | None = None  # original values when ``values`` was rewritten
    invalid: bool = False  # row-level flag (sentinel values present)

    def get(self, column: str, default: Any = None) -> Any:
        return self.values.get(column, default)

    def has(self, column: str) -> bool:
        return column in self.values

    def replace_values(self, updates: dict[str, Any]) -> RowData:
        """Return a copy with ``updates`` merged in; the original is untouched."""
        merged = dict(self.values)
        merged.update(updates)
        return RowData(
            row_number=self.row_number,
            values=merged,
            raw_values=self.raw_values if self.raw_values is not None else dict(self.values),
            invalid=self.invalid,
        )


@dataclass(frozen=True)
class Table:
    """An ordered table of named columns."""
    name: str
    columns: list[str]
    rows: list[RowData] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def has_columns(self, *columns: str) -> bool:
        return all(c in self.columns for c in columns)

    def missing_columns(self, columns: set[str]) -> set[str]:
        return {c for c in columns if c not in self.columns}

    def column_values(self, column: str) -> dict[int, Any]:
        """Map row_number -> value for one column."""
        return {r.row_number: r.values.get(column) for r in self.rows}

    def with_rows(self, rows: list[RowData]) -> Table:
        return Table(name=self.name, columns=list(self.columns), rows=rows)
