from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ReconcileConfig
from ..models.error_record import ErrorRecord
from ..models.processing_result import (
    ApplyReport,
    ChunkStatsAccumulator,
    ErrorKind,
    ReconcileResult,
    RunStats,
)
from ..models.reconcile_models import ChangeAnnotation, ConditionalHighlightRule
from ..models.row_data import RowData, Table
from ..reconcile.apply import ConfirmCallback, apply_identifier_updates, select_approved_events
from ..reconcile.contacts import dedupe_table
from ..reconcile.dates import is_invalid_date
from ..reconcile.diff import build_highlights, detect_changes
from ..reconcile.matcher import RecordMatcher
from ..reconcile.phone import normalize_phone_columns
from ..store.base import TableNotFoundError, TableStore, TableStoreError
from .chunks import chunk_count, iter_chunks
from .progress import ProgressTracker

"""Run orchestration for the roster reconciliation tool.

A reconcile run:
1. Reads the roster and incoming tables (structural checks first)
2. De-duplicates contacts and normalizes phone columns of the incoming rows (in memory)
3. Indexes the roster and annotates incoming rows chunk by chunk
4. Writes the action column, rewritten contact cells and highlights, then commits once
5. Applies approved member ID changes to the roster, one commit per change

Structural problems and failures before step 4 finishes are returned as a
failed ReconcileResult; nothing has been written to the store in that case.
"""

__all__ = [
    "ROSTER_TABLE",
    "INCOMING_TABLE",
    "ProcessingError",
    "PreparedIncoming",
    "prepare_incoming",
    "run_reconciliation",
    "run_phone_normalization",
    "run_contact_dedupe",
]

logger = logging.getLogger(__name__)

ROSTER_TABLE = "roster"
INCOMING_TABLE = "incoming"


class ProcessingError(Exception):
    """A run-stopping problem; converted into a failed ReconcileResult."""

    def __init__(self, kind: ErrorKind, message: str, table: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.table = table


@dataclass
class PreparedIncoming:
    """Incoming table after contact de-duplication and phone normalization."""
    table: Table
    writes: dict[str, dict[int, Any]] = field(default_factory=dict)  # column -> row -> value
    deduped_rows: int = 0
    normalized_phone_cells: int = 0
    invalid_phones: int = 0
    phone_rule: ConditionalHighlightRule | None = None


def _merge_writes(target: dict[str, dict[int, Any]], updates: dict[str, dict[int, Any]]) -> None:
    for column, values in updates.items():
        if values:
            target.setdefault(column, {}).update(values)


def _read(store: TableStore, name: str) -> Table:
    try:
        return store.read_table(name)
    except TableNotFoundError as e:
        raise ProcessingError(ErrorKind.MISSING_TABLE, str(e), table=name) from e
    except TableStoreError as e:
        raise ProcessingError(ErrorKind.PROCESSING_FAILED, str(e), table=name) from e


def _require_columns(table: Table, columns: set[str], name: str) -> None:
    missing = table.missing_columns(columns)
    if missing:
        raise ProcessingError(
            ErrorKind.MISSING_COLUMNS,
            f"{name} table missing columns: {sorted(missing)}",
            table=name,
        )


def _check_config(config: ReconcileConfig) -> None:
    # 直接組み立てた ReconcileConfig はスキーマ検証を通らない
    if config.chunk_size < 1:
        raise ProcessingError(ErrorKind.INVALID_CONFIG, f"chunk_size must be >= 1 (got {config.chunk_size})")
    action = config.columns.action
    if action in config.columns.identity_columns or action in config.tracked_fields:
        raise ProcessingError(ErrorKind.INVALID_CONFIG, f"action column {action!r} collides with a compared column")


def prepare_incoming(table: Table, config: ReconcileConfig, *, dedupe: bool | None = None, phones: bool = True) -> PreparedIncoming:
    """Run the upstream cleanup passes over the incoming table.

    The returned ``writes`` hold only cells whose value changed.
    """
    prepared = PreparedIncoming(table=table)
    if config.dedupe_contacts if dedupe is None else dedupe:
        deduped, dedupe_writes = dedupe_table(prepared.table, config.columns)
        prepared.table = deduped
        prepared.deduped_rows = len({row for values in dedupe_writes.values() for row in values})
        _merge_writes(prepared.writes, dedupe_writes)
    if phones:
        result = normalize_phone_columns(prepared.table, config.phone_columns, config.colors.invalid_phone)
        prepared.table = result.table
        prepared.normalized_phone_cells = result.changed_cells
        prepared.invalid_phones = result.invalid_cells
        prepared.phone_rule = result.rule
        _merge_writes(prepared.writes, result.column_values)
    return prepared


def _annotate(
    matcher: RecordMatcher,
    rows: Sequence[RowData],
    config: ReconcileConfig,
    chunk_stats: ChunkStatsAccumulator,
) -> tuple[list[ChangeAnnotation], int]:
    annotations: list[ChangeAnnotation] = []
    invalid_dates = 0
    with ProgressTracker(len(rows), description="Reconciling") as progress:
        for chunk in iter_chunks(rows, config.chunk_size, config.chunk_pause_seconds):
            chunk_start = time.perf_counter()
            for row in chunk:
                key = matcher.key_for(row)
                if is_invalid_date(key.date_of_birth):
                    invalid_dates += 1
                annotations.append(detect_changes(matcher.match_key(key), row, config))
            chunk_stats.add_chunk_time(time.perf_counter() - chunk_start)
            progress.finish_chunk(len(chunk))
            progress.set_postfix(annotated=len(annotations))
    return annotations, invalid_dates


def _write_prepared(store: TableStore, table: str, prepared: PreparedIncoming) -> None:
    for column, values in prepared.writes.items():
        store.write_column(table, column, values)
    if prepared.phone_rule is not None and prepared.phone_rule.columns:
        store.apply_conditional_rule(table, prepared.phone_rule)


def _failure(error: ProcessingError, start: datetime, error_log: ErrorLogBuffer) -> ReconcileResult:
    message = str(error)
    logger.error("%s: %s", error.kind.value, message)
    error_log.append(
        ErrorRecord.create(table=error.table, row=-1, error_type=error.kind.name, message=message)
    )
    return ReconcileResult.failure(error.kind, message, start, datetime.now(UTC))


def _flush(error_log: ErrorLogBuffer) -> None:
    try:
        path = error_log.flush()
    except OSError as e:
        # ログ書き込み失敗で実行結果は変えない
        logger.warning("failed to write error log: %s", e)
        return
    if path is not None:
        logger.info("error log written: %s", path)


def _guarded(body: Callable[[datetime, ErrorLogBuffer], ReconcileResult], error_log: ErrorLogBuffer | None) -> ReconcileResult:
    start = datetime.now(UTC)
    log = error_log if error_log is not None else ErrorLogBuffer()
    try:
        result = body(start, log)
    except ProcessingError as e:
        result = _failure(e, start, log)
    _flush(log)
    return result


def _reconcile(
    config: ReconcileConfig,
    store: TableStore,
    confirm: ConfirmCallback | None,
    start: datetime,
    error_log: ErrorLogBuffer,
) -> ReconcileResult:
    _check_config(config)
    roster = _read(store, ROSTER_TABLE)
    incoming = _read(store, INCOMING_TABLE)
    required = config.columns.identity_columns
    _require_columns(roster, required, ROSTER_TABLE)
    _require_columns(incoming, required, INCOMING_TABLE)
    logger.info(
        "roster_rows=%d incoming_rows=%d chunks=%d",
        len(roster),
        len(incoming),
        chunk_count(len(incoming), config.chunk_size),
    )

    chunk_stats = ChunkStatsAccumulator()
    try:
        prepared = prepare_incoming(incoming, config)
        matcher = RecordMatcher(config).build(roster.rows)
        annotations, incoming_invalid_dates = _annotate(matcher, prepared.table.rows, config, chunk_stats)
    except Exception as e:
        raise ProcessingError(
            ErrorKind.PROCESSING_FAILED, f"reconciliation pass failed: {e}", table=INCOMING_TABLE
        ) from e

    n_chunks, avg_chunk, p95_chunk = chunk_stats.get_stats()
    logger.debug("chunks=%d avg_chunk_sec=%.4f p95_chunk_sec=%.4f", n_chunks, avg_chunk, p95_chunk)

    try:
        store.write_column(
            INCOMING_TABLE, config.columns.action, {a.row_number: a.action_text for a in annotations}
        )
        _write_prepared(store, INCOMING_TABLE, prepared)
        highlights = build_highlights(annotations, config.columns, config.colors)
        if highlights:
            store.apply_highlights(INCOMING_TABLE, highlights)
        store.commit()
    except TableStoreError as e:
        raise ProcessingError(
            ErrorKind.PROCESSING_FAILED, f"writing results failed: {e}", table=INCOMING_TABLE
        ) from e

    events = [a.identifier_change for a in annotations if a.identifier_change is not None]
    invalid_dates = matcher.invalid_dates + incoming_invalid_dates
    if invalid_dates:
        logger.warning("invalid_dates=%d (keyed as 'invalid-date'; matches on those rows may be unreliable)", invalid_dates)
    new_members = sum(1 for a in annotations if a.is_new)
    changed_rows = sum(1 for a in annotations if a.action_labels and not a.is_new)
    logger.info("annotated new=%d changed=%d id_changes=%d", new_members, changed_rows, len(events))

    approved = select_approved_events(events, config, confirm)
    if approved:
        report = apply_identifier_updates(store, ROSTER_TABLE, config.columns.member_id, approved, error_log)
    else:
        report = ApplyReport()

    end = datetime.now(UTC)
    stats = RunStats(
        total_rows=len(incoming),
        new_members=new_members,
        changed_rows=changed_rows,
        id_changes=len(events),
        invalid_dates=invalid_dates,
        invalid_phones=prepared.invalid_phones,
        deduped_rows=prepared.deduped_rows,
        normalized_phone_cells=prepared.normalized_phone_cells,
        elapsed_seconds=(end - start).total_seconds(),
    )
    return ReconcileResult(
        ok=True,
        start_time=start,
        end_time=end,
        stats=stats,
        annotations=tuple(annotations),
        pending_events=tuple(events),
        apply_report=report,
    )


def run_reconciliation(
    config: ReconcileConfig,
    store: TableStore,
    confirm: ConfirmCallback | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ReconcileResult:
    """Reconcile the incoming table against the roster.

    Args:
        config: Invocation configuration
        store: Store exposing the "roster" and "incoming" tables
        confirm: Called with the queued member ID changes when
            ``prompt_before_id_update`` is set; returns True to apply them
        error_log: Buffer for error records (a fresh one when omitted)

    Returns:
        ReconcileResult; ``ok`` is False for structural failures, in which
        case nothing was written.
    """
    return _guarded(lambda start, log: _reconcile(config, store, confirm, start, log), error_log)


def _single_pass(
    config: ReconcileConfig,
    store: TableStore,
    table: str,
    *,
    dedupe: bool,
    phones: bool,
    start: datetime,
) -> ReconcileResult:
    source = _read(store, table)
    prepared = prepare_incoming(source, config, dedupe=dedupe, phones=phones)
    try:
        _write_prepared(store, table, prepared)
        store.commit()
    except TableStoreError as e:
        raise ProcessingError(ErrorKind.PROCESSING_FAILED, f"writing results failed: {e}", table=table) from e
    if prepared.invalid_phones:
        logger.warning("invalid_phones=%d", prepared.invalid_phones)
    end = datetime.now(UTC)
    return ReconcileResult(
        ok=True,
        start_time=start,
        end_time=end,
        stats=RunStats(
            total_rows=len(source),
            invalid_phones=prepared.invalid_phones,
            deduped_rows=prepared.deduped_rows,
            normalized_phone_cells=prepared.normalized_phone_cells,
            elapsed_seconds=(end - start).total_seconds(),
        ),
    )


def run_phone_normalization(
    config: ReconcileConfig,
    store: TableStore,
    table: str = INCOMING_TABLE,
    error_log: ErrorLogBuffer | None = None,
) -> ReconcileResult:
    """Normalize the configured phone columns of one table and add the invalid-phone rule."""
    return _guarded(
        lambda start, _log: _single_pass(config, store, table, dedupe=False, phones=True, start=start),
        error_log,
    )


def run_contact_dedupe(
    config: ReconcileConfig,
    store: TableStore,
    table: str = INCOMING_TABLE,
    error_log: ErrorLogBuffer | None = None,
) -> ReconcileResult:
    """Clear member contact values that duplicate a parent's on the same row."""
    return _guarded(
        lambda start, _log: _single_pass(config, store, table, dedupe=True, phones=False, start=start),
        error_log,
    )
