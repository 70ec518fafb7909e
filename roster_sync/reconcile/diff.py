"""
Field-level drift detection between matched records.

For each incoming row the detector produces a ChangeAnnotation:
    - no match                      -> "New Member" (nothing compared)
    - ID differs, matched by nameDob -> "Member ID Changed" + IdentifierChangeEvent
    - any tracked column differs    -> "Field Updates" (once) + changed column names

Labels keep encounter order. The detector never mutates its inputs.

Value comparison:
    - both cells dates: compared as instants
    - configured phone columns: compared after phone normalization
    - everything else: trimmed, case-folded display text

An ID that matched directly ("id") is never reported as changed, even when a
correction makes it collide with another member's ID.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ..models.cell import CellKind, CellValue, cell_text
from ..models.config_models import ColumnMap, HighlightColors, ReconcileConfig
from ..models.reconcile_models import (
    ACTION_FIELD_UPDATES,
    ACTION_ID_CHANGED,
    ACTION_NEW_MEMBER,
    ChangeAnnotation,
    HighlightInstruction,
    IdentifierChangeEvent,
    MatchResult,
    MatchType,
)
from ..models.row_data import RowData
from .identity import display_name
from .phone import normalize_phone

logger = logging.getLogger(__name__)


def comparable_text(value: Any, *, phone: bool = False) -> str:
    if phone:
        return normalize_phone(value)
    return cell_text(value).strip().casefold()


def values_differ(old: Any, new: Any, *, phone: bool = False) -> bool:
    """True when two cells differ after normalization."""
    a = CellValue.of(old)
    b = CellValue.of(new)
    if a.kind is CellKind.DATE and b.kind is CellKind.DATE:
        return bool(a.value != b.value)
    return comparable_text(old, phone=phone) != comparable_text(new, phone=phone)


def _identifier_change(
    match: MatchResult, incoming: RowData, columns: ColumnMap
) -> IdentifierChangeEvent | None:
    if match.matched is None or match.match_type is not MatchType.NAME_DOB:
        return None
    old_id = cell_text(match.matched.get(columns.member_id)).strip()
    new_id = cell_text(incoming.get(columns.member_id)).strip()
    # 空の新IDで既存IDを消すことはしない
    if not new_id or old_id == new_id:
        return None
    return IdentifierChangeEvent(
        old_id=old_id,
        new_id=new_id,
        display_name=display_name(incoming, columns),
        target_row=match.matched.row_number,
    )


def detect_changes(
    match: MatchResult,
    incoming: RowData,
    config: ReconcileConfig,
    tracked_fields: Sequence[str] | None = None,
) -> ChangeAnnotation:
    """Compare ``incoming`` with its matched roster row.

    Args:
        match: Result of RecordMatcher.match for ``incoming``.
        incoming: The imported row.
        config: Invocation configuration (columns, phone columns, tracked fields).
        tracked_fields: Overrides ``config.tracked_fields`` when given.

    Returns:
        ChangeAnnotation for the incoming row.
    """
    if match.matched is None:
        return ChangeAnnotation(row_number=incoming.row_number, action_labels=(ACTION_NEW_MEMBER,))

    existing = match.matched
    columns = config.columns
    labels: list[str] = []
    changed: set[str] = set()

    event = _identifier_change(match, incoming, columns)
    if event is not None:
        labels.append(ACTION_ID_CHANGED)
        changed.add(columns.member_id)

    phone_columns = set(config.phone_columns)
    fields = config.tracked_fields if tracked_fields is None else tracked_fields
    for column in fields:
        if not (existing.has(column) and incoming.has(column)):
            logger.debug("tracked column %r missing on one side (skipped)", column)
            continue
        if values_differ(existing.get(column), incoming.get(column), phone=column in phone_columns):
            changed.add(column)
            if ACTION_FIELD_UPDATES not in labels:
                labels.append(ACTION_FIELD_UPDATES)

    return ChangeAnnotation(
        row_number=incoming.row_number,
        action_labels=tuple(labels),
        changed_columns=frozenset(changed),
        identifier_change=event,
    )


def build_highlights(
    annotations: Iterable[ChangeAnnotation],
    columns: ColumnMap,
    colors: HighlightColors,
) -> list[HighlightInstruction]:
    """Translate annotations into per-cell / whole-row color instructions."""
    instructions: list[HighlightInstruction] = []
    for ann in annotations:
        if ann.is_new:
            instructions.append(
                HighlightInstruction(
                    row_number=ann.row_number,
                    column=None,
                    background=colors.new_member.background,
                    foreground=colors.new_member.foreground,
                )
            )
            continue
        for column in sorted(ann.changed_columns):
            pair = colors.changed_id if column == columns.member_id else colors.changed_field
            instructions.append(
                HighlightInstruction(
                    row_number=ann.row_number,
                    column=column,
                    background=pair.background,
                    foreground=pair.foreground,
                )
            )
    return instructions
