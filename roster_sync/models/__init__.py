"""Domain models for the roster reconciliation tool.

This package contains the frozen value types shared by the reconciliation
engine, the stores, the orchestrator and the CLI.
"""

from .cell import CellKind, CellValue, cell_text, is_empty
from .config_models import (
    ColorPair,
    ColumnMap,
    DateFormat,
    HighlightColors,
    ReconcileConfig,
    TableSource,
)
from .error_record import ErrorRecord
from .processing_result import (
    ApplyFailure,
    ApplyReport,
    ErrorKind,
    ReconcileResult,
    RunError,
    RunStats,
)
from .reconcile_models import (
    ChangeAnnotation,
    ConditionalHighlightRule,
    HighlightInstruction,
    IdentifierChangeEvent,
    IdentityKey,
    MatchResult,
    MatchType,
)
from .row_data import RowData, Table

__all__ = [
    # Cells / tables
    "CellKind",
    "CellValue",
    "cell_text",
    "is_empty",
    "RowData",
    "Table",
    # Configuration models
    "ColorPair",
    "ColumnMap",
    "DateFormat",
    "HighlightColors",
    "ReconcileConfig",
    "TableSource",
    # Reconciliation values
    "ChangeAnnotation",
    "ConditionalHighlightRule",
    "HighlightInstruction",
    "IdentifierChangeEvent",
    "IdentityKey",
    "MatchResult",
    "MatchType",
    # Results
    "ApplyFailure",
    "ApplyReport",
    "ErrorKind",
    "ErrorRecord",
    "ReconcileResult",
    "RunError",
    "RunStats",
]
