"""
Removal of member contact values that duplicate a parent/guardian's.

Exports often copy a parent's mobile or email into the member's own fields.
Per row, independently for mobiles and emails:
    - parent values (normalized, empties dropped) form a set
    - the member's own value is cleared when it is in that set
    - the comma-separated "additional emails" field loses entries equal to a
      parent email or to the (possibly just cleared) member email, and is
      de-duplicated and rejoined with ", "

Mobiles compare after phone normalization, emails after trim + lower-case.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..models.cell import cell_text
from ..models.config_models import ColumnMap
from ..models.row_data import RowData, Table
from .phone import normalize_phone

logger = logging.getLogger(__name__)

ADDITIONAL_EMAIL_SEPARATOR = ", "


def normalize_email(value: Any) -> str:
    return cell_text(value).strip().lower()


@dataclass(frozen=True)
class DedupeOutcome:
    values: dict[str, Any]  # only the columns that changed
    changed: bool


def _parent_set(row: RowData, parent_columns: tuple[str, ...], normalize) -> set[str]:
    values = {normalize(row.get(c)) for c in parent_columns if row.has(c)}
    values.discard("")
    return values


def _dedupe_additional(raw: Any, excluded: set[str]) -> str:
    seen: list[str] = []
    for part in cell_text(raw).split(","):
        email = normalize_email(part)
        if not email or email in excluded or email in seen:
            continue
        seen.append(email)
    return ADDITIONAL_EMAIL_SEPARATOR.join(seen)


def dedupe_contacts(row: RowData, columns: ColumnMap) -> DedupeOutcome:
    """Compute contact-field updates for one row; ``row`` is not modified."""
    updates: dict[str, Any] = {}

    parent_mobiles = _parent_set(row, columns.parent_mobiles, normalize_phone)
    if row.has(columns.member_mobile):
        member_mobile = normalize_phone(row.get(columns.member_mobile))
        if member_mobile and member_mobile in parent_mobiles:
            updates[columns.member_mobile] = ""

    parent_emails = _parent_set(row, columns.parent_emails, normalize_email)
    member_email = ""
    if row.has(columns.member_email):
        member_email = normalize_email(row.get(columns.member_email))
        if member_email and member_email in parent_emails:
            updates[columns.member_email] = ""
            member_email = ""

    if row.has(columns.additional_emails):
        original = cell_text(row.get(columns.additional_emails))
        excluded = set(parent_emails)
        if member_email:
            excluded.add(member_email)
        cleaned = _dedupe_additional(original, excluded)
        if cleaned != original:
            updates[columns.additional_emails] = cleaned

    return DedupeOutcome(values=updates, changed=bool(updates))


def dedupe_table(table: Table, columns: ColumnMap) -> tuple[Table, dict[str, dict[int, Any]]]:
    """Apply dedupe_contacts to every row.

    Returns:
        tuple: (updated table copy, column -> row_number -> new value for changed cells)
    """
    rows: list[RowData] = []
    writes: dict[str, dict[int, Any]] = {}
    changed_rows = 0
    for row in table.rows:
        outcome = dedupe_contacts(row, columns)
        if not outcome.changed:
            rows.append(row)
            continue
        changed_rows += 1
        for column, value in outcome.values.items():
            writes.setdefault(column, {})[row.row_number] = value
        rows.append(row.replace_values(outcome.values))
    logger.debug("table=%s contact_dedupe changed_rows=%d", table.name, changed_rows)
    return table.with_rows(rows), writes
