from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from ..models.reconcile_models import ConditionalHighlightRule, HighlightInstruction
from ..models.row_data import Table

"""Abstract tabular-store capability.

The reconciliation core depends only on this interface, never on a concrete
store. Writes are buffered by implementations until ``commit()`` so that a
run either persists all of its output or none of it.
"""

__all__ = [
    "TableStore",
    "TableStoreError",
    "TableNotFoundError",
]


class TableStoreError(Exception):
    """Raised when a store cannot read or write a table."""


class TableNotFoundError(TableStoreError):
    """Raised when the named table (sheet) does not exist."""


@runtime_checkable
class TableStore(Protocol):
    def read_table(self, name: str) -> Table:
        """Return a snapshot of the named table."""
        ...

    def write_column(self, table: str, column: str, values: Mapping[int, Any]) -> None:
        """Write ``row_number -> value`` into ``column``, adding the column if needed."""
        ...

    def write_cell(self, table: str, row_number: int, column: str, value: Any) -> None:
        ...

    def apply_highlights(self, table: str, instructions: Iterable[HighlightInstruction]) -> None:
        ...

    def apply_conditional_rule(self, table: str, rule: ConditionalHighlightRule) -> None:
        ...

    def commit(self) -> None:
        """Persist buffered writes.

        If this raises, the writes buffered since the last successful commit
        are discarded and never reach a later commit.
        """
        ...
