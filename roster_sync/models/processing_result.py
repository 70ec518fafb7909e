from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .reconcile_models import ChangeAnnotation, IdentifierChangeEvent

"""Processing result models for the roster reconciliation tool.

The orchestrator never raises structural failures to its caller; it returns a
``ReconcileResult`` carrying an ``ok`` discriminant and, on failure, a typed
``RunError``. Presentation (log lines, terminal prompts) is left to the CLI.
"""

__all__ = [
    "ErrorKind",
    "RunError",
    "ApplyFailure",
    "ApplyReport",
    "RunStats",
    "ReconcileResult",
    "ChunkStatsAccumulator",
]


class ErrorKind(Enum):
    """Structural failure classes. Any of these means nothing was written."""
    MISSING_TABLE = "missing_table"
    MISSING_COLUMNS = "missing_columns"
    INVALID_CONFIG = "invalid_config"
    PROCESSING_FAILED = "processing_failed"


@dataclass(frozen=True)
class RunError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class ApplyFailure:
    """An identifier update that could not be written."""
    event: IdentifierChangeEvent
    message: str


@dataclass(frozen=True)
class ApplyReport:
    applied: tuple[IdentifierChangeEvent, ...] = ()
    failures: tuple[ApplyFailure, ...] = ()

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


@dataclass(frozen=True)
class RunStats:
    """Counters for the SUMMARY line."""
    total_rows: int = 0
    new_members: int = 0
    changed_rows: int = 0
    id_changes: int = 0
    invalid_dates: int = 0  # 'invalid-date' sentinels produced while keying
    invalid_phones: int = 0  # non-empty phone cells failing validation
    deduped_rows: int = 0
    normalized_phone_cells: int = 0
    elapsed_seconds: float = 0.0

    @property
    def has_unreliable_values(self) -> bool:
        return self.invalid_dates > 0 or self.invalid_phones > 0


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one run.

    ``ok`` is False only for structural failures; in that case ``error`` is set
    and no table was modified.
    """
    ok: bool
    start_time: datetime
    end_time: datetime
    error: RunError | None = None
    stats: RunStats = field(default_factory=RunStats)
    annotations: tuple[ChangeAnnotation, ...] = ()
    pending_events: tuple[IdentifierChangeEvent, ...] = ()
    apply_report: ApplyReport | None = None

    @staticmethod
    def failure(kind: ErrorKind, message: str, start_time: datetime, end_time: datetime) -> ReconcileResult:
        return ReconcileResult(
            ok=False,
            start_time=start_time,
            end_time=end_time,
            error=RunError(kind=kind, message=message),
            stats=RunStats(elapsed_seconds=(end_time - start_time).total_seconds()),
        )


class ChunkStatsAccumulator:
    """Accumulates per-chunk timings for debug reporting."""

    def __init__(self) -> None:
        self.chunk_times: list[float] = []

    def add_chunk_time(self, elapsed_seconds: float) -> None:
        self.chunk_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate chunk statistics.

        Returns:
            tuple: (total_chunks, avg_chunk_seconds, p95_chunk_seconds)
        """
        if not self.chunk_times:
            return (0, 0.0, 0.0)

        total_chunks = len(self.chunk_times)
        avg_chunk_seconds = statistics.mean(self.chunk_times)

        if total_chunks == 1:
            p95_chunk_seconds = self.chunk_times[0]
        else:
            p95_chunk_seconds = statistics.quantiles(
                self.chunk_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th of 20 cut points)

        return (total_chunks, avg_chunk_seconds, p95_chunk_seconds)
