"""
Applying approved identifier changes back onto the roster.

Each event is independent: there is no transaction spanning events, and a
failed write is reported for that event while the remaining events are still
attempted. Matches are not re-validated here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ReconcileConfig
from ..models.error_record import ErrorRecord
from ..models.processing_result import ApplyFailure, ApplyReport
from ..models.reconcile_models import IdentifierChangeEvent
from ..store.base import TableStore, TableStoreError

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[Sequence[IdentifierChangeEvent]], bool]


def select_approved_events(
    events: Sequence[IdentifierChangeEvent],
    config: ReconcileConfig,
    confirm: ConfirmCallback | None = None,
) -> list[IdentifierChangeEvent]:
    """Decide which queued events may be applied.

    - prompt_before_id_update: all events if ``confirm(events)`` says yes, else none
    - auto_apply_id_updates (no prompt): all events
    - neither: none (events stay pending)
    """
    if not events:
        return []
    if config.prompt_before_id_update:
        if confirm is None:
            logger.info("id updates require confirmation; %d left pending", len(events))
            return []
        return list(events) if confirm(events) else []
    if config.auto_apply_id_updates:
        return list(events)
    return []


def apply_identifier_updates(
    store: TableStore,
    table_name: str,
    id_column: str,
    events: Sequence[IdentifierChangeEvent],
    error_log: ErrorLogBuffer | None = None,
) -> ApplyReport:
    """Write ``new_id`` at each event's target row.

    Each successful write is committed on its own so one failing event never
    takes the others down with it.
    """
    applied: list[IdentifierChangeEvent] = []
    failures: list[ApplyFailure] = []
    for event in events:
        try:
            store.write_cell(table_name, event.target_row, id_column, event.new_id)
            store.commit()
        except TableStoreError as e:
            message = f"{event.display_name} ({event.old_id} -> {event.new_id}): {e}"
            logger.error("id update failed row=%d %s", event.target_row, message)
            failures.append(ApplyFailure(event=event, message=str(e)))
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(
                        table=table_name,
                        row=event.target_row,
                        error_type="ID_UPDATE_FAILED",
                        message=message,
                    )
                )
            continue
        logger.info("member id updated row=%d %s -> %s (%s)", event.target_row, event.old_id, event.new_id, event.display_name)
        applied.append(event)
    return ApplyReport(applied=tuple(applied), failures=tuple(failures))
