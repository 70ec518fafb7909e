"""Tabular store capability and implementations."""

from .base import TableNotFoundError, TableStore, TableStoreError
from .memory import InMemoryTableStore

__all__ = [
    "InMemoryTableStore",
    "TableNotFoundError",
    "TableStore",
    "TableStoreError",
]
