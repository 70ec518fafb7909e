from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.row_data import RowData, Table

"""Excel reader.

Reads sheets with pandas (header=None, raw grid) and turns them into Tables:
- the configured header row (1-based, default 1) names the columns
- every following row is a record; fully empty rows are skipped but do not
  shift the sheet row numbers kept on each RowData
- expected columns missing from the header raise MissingColumnsError
"""

# Strings an export legitimately contains that pandas would otherwise turn into NaN
DEFAULT_KEEP_NA_STRINGS = ["NA", "N/A", "n/a", "None", "NULL", "null", "nan"]


class SheetHeaderError(Exception):
    """Raised when the header row is missing or invalid."""

class MissingColumnsError(Exception):
    """Raised when expected columns are missing in sheet header."""


def read_excel_file(
    path: Path, target_sheets: Iterable[str] | None = None, keep_na_strings: list[str] | None = None
) -> dict[str, pd.DataFrame]:
    """Read an Excel file returning raw DataFrames keyed by sheet name.

    Parameters
    ----------
    path: Excel ファイルパス
    target_sheets: 対象シート制限 (None なら全シート)
    keep_na_strings: strings excluded from pandas' default NaN conversion
    """
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        custom_na = parsers.STR_NA_VALUES.copy() - set(keep_na_strings)
        na_values = list(custom_na)
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    wanted = set(target_sheets) if target_sheets is not None else None
    dfs: dict[str, pd.DataFrame] = {}
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            df = xls.parse(name, header=None, keep_default_na=keep_default_na, na_values=na_values)
            dfs[str(name)] = df
    return dfs


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalize_sheet(
    df: pd.DataFrame,
    sheet_name: str,
    header_row: int = 1,
    expected_columns: set[str] | None = None,
) -> Table:
    """Turn a raw sheet grid into a Table.

    Steps:
    1. Validate the header row exists
    2. Extract column names from it (blank header cells become "Column<N>")
    3. Rows below become records, numbered by their sheet row
    4. Validate expected columns subset
    """
    header_index = header_row - 1
    if df.shape[0] <= header_index:
        raise SheetHeaderError(f"sheet '{sheet_name}' lacks header row {header_row}")
    header_series = df.iloc[header_index]
    columns = [
        f"Column{i + 1}" if _is_blank(c) else str(c).strip()
        for i, c in enumerate(header_series.tolist())
    ]

    if expected_columns is not None:
        missing = expected_columns - set(columns)
        if missing:
            raise MissingColumnsError(f"sheet '{sheet_name}' missing columns: {sorted(missing)}")

    rows: list[RowData] = []
    for offset, (_, raw) in enumerate(df.iloc[header_index + 1:].iterrows()):
        values = raw.tolist()
        if all(_is_blank(v) for v in values):
            continue
        row_dict = {
            col: (None if _is_blank(val) and not isinstance(val, str) else val)
            for col, val in zip(columns, values, strict=False)
        }
        rows.append(RowData(row_number=header_row + 1 + offset, values=row_dict))

    return Table(name=sheet_name, columns=columns, rows=rows)
