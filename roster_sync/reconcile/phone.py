"""
Phone number normalization for Australian roster data.

Canonical shapes:
    - mobile:   "04XX XXX XXX"
    - landline: "0[2378] XXXX XXXX"

Normalization is best-effort: inputs that match none of the rules come back
stripped to digits (and a leading '+') rather than raising. Empty or
unrecognizable input becomes "". Applying the normalizer to its own output is
a no-op.

Rules, in order:
    1. Strip everything that is not a digit or a leading '+'
    2. "+61..." -> "0..."
    3. "61..." with at least 10 digits -> "0..."
    4. 9 digits starting 4 or 2 -> prepend "0" (dropped trunk prefix)
    5. 8 digits starting 8 or 9 -> prepend "02" (Sydney local number)
    6. "0[2378]" + 8 digits -> "0X XXXX XXXX"
    7. "04" + 8 digits -> "04XX XXX XXX"
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..models.cell import cell_text
from ..models.config_models import ColorPair
from ..models.reconcile_models import ConditionalHighlightRule
from ..models.row_data import Table

logger = logging.getLogger(__name__)

NON_DIGIT_PATTERN = re.compile(r"\D")
LANDLINE_DIGITS_PATTERN = re.compile(r"^0[2378]\d{8}$")
MOBILE_DIGITS_PATTERN = re.compile(r"^04\d{8}$")
VALID_PHONE_PATTERN = re.compile(r"^(?:04\d\d \d{3} \d{3}|0[2378] \d{4} \d{4})$")


def _strip_phone(text: str) -> str:
    cleaned = text.strip()
    digits = NON_DIGIT_PATTERN.sub("", cleaned)
    if cleaned.startswith("+"):
        return f"+{digits}"
    return digits


def normalize_phone(value: Any) -> str:
    """
    Normalize a phone number to the canonical Australian display format.

    Args:
        value: Raw cell value (string, number, or empty).

    Returns:
        Formatted number, the stripped input when no rule applies, or "".

    Examples:
        >>> normalize_phone("+61412345678")
        '0412 345 678'
        >>> normalize_phone("98765432")
        '02 9876 5432'
        >>> normalize_phone("invalid!")
        ''
    """
    text = cell_text(value)
    if not text:
        return ""

    number = _strip_phone(text)
    if number == "+":
        return ""

    if number.startswith("+61"):
        number = "0" + number[3:]
    elif number.startswith("61") and len(number) >= 10:
        number = "0" + number[2:]

    if len(number) == 9 and number[0] in "42":
        number = "0" + number
    if len(number) == 8 and number[0] in "89":
        number = "02" + number

    if LANDLINE_DIGITS_PATTERN.match(number):
        return f"{number[:2]} {number[2:6]} {number[6:]}"
    if MOBILE_DIGITS_PATTERN.match(number):
        return f"{number[:4]} {number[4:7]} {number[7:]}"
    return number


def is_valid_phone(value: Any) -> bool:
    """True iff ``value`` is already in one of the two canonical shapes."""
    return bool(VALID_PHONE_PATTERN.match(cell_text(value)))


def invalid_phone_rule(columns: Iterable[str], colors: ColorPair) -> ConditionalHighlightRule:
    """Describe the 'non-empty and not a valid phone' highlight for a store to render."""
    return ConditionalHighlightRule(
        columns=tuple(columns),
        pattern=VALID_PHONE_PATTERN.pattern,
        background=colors.background,
        foreground=colors.foreground,
    )


@dataclass(frozen=True)
class PhoneColumnsResult:
    """Outcome of normalizing every phone column of a table."""
    table: Table  # normalized copy
    column_values: dict[str, dict[int, str]]  # column -> row_number -> rewritten value (changed cells only)
    changed_cells: int
    invalid_cells: int
    rule: ConditionalHighlightRule


def normalize_phone_columns(table: Table, columns: Iterable[str], colors: ColorPair) -> PhoneColumnsResult:
    """Normalize the given phone columns of ``table``.

    Columns absent from the table are skipped. The input table is not mutated.
    """
    present: list[str] = []
    for column in columns:
        if column in table.columns:
            present.append(column)
        else:
            logger.warning("phone column %r not found in table %r (skipped)", column, table.name)

    column_values: dict[str, dict[int, str]] = {c: {} for c in present}
    new_rows = []
    changed = 0
    invalid = 0
    for row in table.rows:
        updates: dict[str, str] = {}
        for column in present:
            raw = row.values.get(column)
            normalized = normalize_phone(raw)
            if normalized != cell_text(raw):
                column_values[column][row.row_number] = normalized
                updates[column] = normalized
                changed += 1
            if normalized and not VALID_PHONE_PATTERN.match(normalized):
                invalid += 1
        new_rows.append(row.replace_values(updates) if updates else row)

    if invalid:
        logger.warning("table=%s invalid_phone_cells=%d", table.name, invalid)
    logger.debug("table=%s phone_columns=%s changed_cells=%d", table.name, present, changed)

    return PhoneColumnsResult(
        table=table.with_rows(new_rows),
        column_values=column_values,
        changed_cells=changed,
        invalid_cells=invalid,
        rule=invalid_phone_rule(present, colors),
    )
