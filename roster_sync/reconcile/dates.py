"""
Date normalization for roster data.

Every input resolves to one of:
    - a CanonicalDate "YYYY-MM-DD"
    - "" for empty input
    - the sentinel "invalid-date" when parsing fails

The function never raises. Feeding a CanonicalDate back in returns it unchanged.

Input handling by cell kind:
    - NUMBER: spreadsheet serial (days since 1899-12-30 UTC), converted to the
      target timezone before the calendar date is taken
    - DATE: naive values keep their calendar date, aware values are converted
      to the target timezone first
    - STRING: regex selected by the date-format hint, then generic parsing
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any

import pandas as pd

from ..models.cell import CellKind, CellValue
from ..models.config_models import DateFormat

logger = logging.getLogger(__name__)

INVALID_DATE = "invalid-date"

# Excel / Google Sheets day zero (the 1900 leap-year bug is folded into this epoch)
SERIAL_EPOCH = pd.Timestamp("1899-12-30", tz="UTC")

ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
SLASH_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})$")
HAS_DIGIT_PATTERN = re.compile(r"\d")


def _expand_year(year: str) -> str:
    return f"20{year}" if len(year) == 2 else year


def _from_parts(year: str, month: str, day: str) -> str:
    # date() rejects impossible calendar dates (e.g. 31/02)
    return date(int(_expand_year(year)), int(month), int(day)).isoformat()


def _match_hint(text: str, date_format: DateFormat) -> str | None:
    if date_format is DateFormat.ISO:
        m = ISO_PATTERN.match(text)
        if m:
            return _from_parts(m.group(1), m.group(2), m.group(3))
        return None
    m = SLASH_PATTERN.match(text)
    if not m:
        return None
    if date_format is DateFormat.AU:
        day, month, year = m.groups()
    else:
        month, day, year = m.groups()
    return _from_parts(year, month, day)


def _from_timestamp(ts: pd.Timestamp, timezone: str) -> str:
    if ts is pd.NaT:
        return INVALID_DATE
    if ts.tzinfo is not None:
        ts = ts.tz_convert(timezone)
    return ts.strftime("%Y-%m-%d")


def _from_serial(days: float, timezone: str) -> str:
    instant = SERIAL_EPOCH + pd.Timedelta(days=days)
    return instant.tz_convert(timezone).strftime("%Y-%m-%d")


def _from_text(text: str, date_format: DateFormat, timezone: str) -> str:
    hinted = _match_hint(text, date_format)
    if hinted is not None:
        return hinted
    # 汎用パース (pandas / dateutil)。"now" や "today" は日付として扱わない
    if not HAS_DIGIT_PATTERN.search(text):
        return INVALID_DATE
    return _from_timestamp(pd.Timestamp(text), timezone)


def normalize_date(value: Any, date_format: DateFormat = DateFormat.ISO, timezone: str = "UTC") -> str:
    """
    Normalize a date cell to "YYYY-MM-DD".

    Args:
        value: Raw cell value (string, serial number, date/datetime, or empty).
        date_format: Convention used to read slash-separated strings.
        timezone: IANA timezone the calendar date is taken in.

    Returns:
        CanonicalDate, "" for empty input, or "invalid-date".

    Examples:
        >>> normalize_date("3/04/2010", DateFormat.AU)
        '2010-04-03'
        >>> normalize_date("4/3/10", DateFormat.US)
        '2010-04-03'
        >>> normalize_date(40179, DateFormat.ISO, "Australia/Sydney")
        '2010-01-01'
    """
    cell = CellValue.of(value)
    if cell.is_empty:
        return ""
    try:
        if cell.kind is CellKind.NUMBER:
            return _from_serial(cell.value, timezone)
        if cell.kind is CellKind.DATE:
            return _from_timestamp(cell.value, timezone)
        return _from_text(cell.value.strip(), date_format, timezone)
    except (ValueError, TypeError, OverflowError, KeyError) as e:
        logger.debug("unparseable date %r (%s): %s", value, date_format.value, e)
        return INVALID_DATE


def is_invalid_date(value: str) -> bool:
    return value == INVALID_DATE
