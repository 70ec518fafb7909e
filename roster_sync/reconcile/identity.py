"""
Identity keys for roster records.

A record's identity has two parts:
    1. membership_id: the explicit identifier (trimmed, may be empty)
    2. name_dob_key: normalized first name, last name and date of birth

The composite part exists because the external dump has no stable shared
identifier: IDs are assigned late, re-issued, or corrected between imports.
Two records with the same normalized first name, last name and DOB always get
the same name_dob_key regardless of casing, whitespace or Unicode form.
"""

from __future__ import annotations

import unicodedata
from typing import Any

from ..models.cell import cell_text
from ..models.config_models import ColumnMap, DateFormat
from ..models.reconcile_models import IdentityKey
from ..models.row_data import RowData
from .dates import normalize_date

# ASCII unit separator; never typed into a name field
KEY_SEPARATOR = "\x1f"


def normalize_name_part(value: Any) -> str:
    """Case-fold, NFKC-normalize and collapse whitespace runs to one space."""
    text = unicodedata.normalize("NFKC", cell_text(value))
    return " ".join(text.casefold().split())


def build_identity_key(
    row: RowData,
    columns: ColumnMap,
    date_format: DateFormat,
    timezone: str,
) -> IdentityKey:
    """Derive the IdentityKey of ``row``."""
    first = normalize_name_part(row.get(columns.first_name))
    last = normalize_name_part(row.get(columns.last_name))
    dob = normalize_date(row.get(columns.date_of_birth), date_format, timezone)
    return IdentityKey(
        membership_id=cell_text(row.get(columns.member_id)).strip(),
        name_dob_key=KEY_SEPARATOR.join((first, last, dob)),
        date_of_birth=dob,
        has_name_dob=bool(first or last or dob),
    )


def display_name(row: RowData, columns: ColumnMap) -> str:
    """'First Last' as typed in the row, for confirmation prompts and logs."""
    parts = [cell_text(row.get(columns.first_name)).strip(), cell_text(row.get(columns.last_name)).strip()]
    return " ".join(p for p in parts if p)
