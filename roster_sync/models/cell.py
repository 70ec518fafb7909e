from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from numbers import Number
from typing import Any

import pandas as pd

"""Tagged scalar model for spreadsheet cells.

A single column in an exported sheet can hold strings, numbers and dates
interchangeably (Excel stores a date of birth as a serial number in one row and
as typed text in the next). Normalizers never sniff raw values directly; they
classify a cell once with ``CellValue.of`` and branch on ``CellValue.kind``.
"""

__all__ = [
    "CellKind",
    "CellValue",
    "cell_text",
    "is_empty",
]


class CellKind(Enum):
    """Discriminant for ``CellValue``."""
    EMPTY = "empty"
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


@dataclass(frozen=True)
class CellValue:
    """A classified cell value.

    ``value`` holds a ``str`` for STRING, an ``int``/``float`` for NUMBER,
    a ``pandas.Timestamp`` for DATE and ``None`` for EMPTY.
    """
    kind: CellKind
    value: Any = None

    @staticmethod
    def of(raw: Any) -> CellValue:
        """Classify a raw cell value read from a table."""
        if raw is None:
            return CellValue(CellKind.EMPTY)
        if isinstance(raw, CellValue):
            return raw
        if isinstance(raw, str):
            if raw.strip() == "":
                return CellValue(CellKind.EMPTY)
            return CellValue(CellKind.STRING, raw)
        # bool は Number のサブクラスなので先に判定
        if isinstance(raw, bool):
            return CellValue(CellKind.STRING, str(raw))
        if isinstance(raw, (pd.Timestamp, datetime, date)):
            if raw is pd.NaT:
                return CellValue(CellKind.EMPTY)
            return CellValue(CellKind.DATE, pd.Timestamp(raw))
        if isinstance(raw, Number):
            as_float = float(raw)  # type: ignore[arg-type]
            if math.isnan(as_float):
                return CellValue(CellKind.EMPTY)
            if as_float.is_integer():
                return CellValue(CellKind.NUMBER, int(as_float))
            return CellValue(CellKind.NUMBER, as_float)
        try:
            if pd.isna(raw):
                return CellValue(CellKind.EMPTY)
        except (TypeError, ValueError):
            pass
        return CellValue(CellKind.STRING, str(raw))

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    def text(self) -> str:
        """Render the value as display text (no trimming)."""
        if self.kind is CellKind.EMPTY:
            return ""
        if self.kind is CellKind.DATE:
            return self.value.strftime("%Y-%m-%d")
        return str(self.value)


def cell_text(raw: Any) -> str:
    """Return display text for a raw cell value.

    Integral floats lose their ``.0`` (``100.0 -> "100"``), dates render as
    ``YYYY-MM-DD`` and empty/NaN cells become ``""``.
    """
    return CellValue.of(raw).text()


def is_empty(raw: Any) -> bool:
    return CellValue.of(raw).is_empty
