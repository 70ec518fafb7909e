#!/usr/bin/env python3
"""Sample workbook generation for manual and performance runs.

Writes two workbooks matching the default column names:
- roster.xlsx (sheet "Roster"): the existing member roster
- import.xlsx (sheet "Import"): an export derived from the roster with
  controlled member ID changes, field drift and brand new members

Row 1 of each sheet is the header row.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

FIRST_NAMES = ["Alex", "Jo Anne", "Sam", "Priya", "Liam", "Mei", "Noah", "Zoe", "Tariq", "Ava"]
LAST_NAMES = ["Lee", "Smith", "Nguyen", "Patel", "Brown", "Wilson", "Chen", "Taylor", "Singh", "Kelly"]
STREETS = ["George St", "Pitt St", "King St", "Oxford St", "Crown St"]

COLUMNS = [
    "Member ID",
    "First Name",
    "Last Name",
    "Date of Birth",
    "Medical Info",
    "Member Mobile",
    "Member_Email",
    "Additional Email Addresses",
    "Parent1_Mobile",
    "Parent1_Email",
    "Parent2_Mobile",
    "Parent2_Email",
    "Address",
]


def _mobile() -> str:
    return "04" + "".join(str(d) for d in np.random.randint(0, 10, 8))


def _member(n: int) -> dict[str, Any]:
    first = FIRST_NAMES[np.random.randint(len(FIRST_NAMES))]
    last = LAST_NAMES[np.random.randint(len(LAST_NAMES))]
    dob = pd.Timestamp("2005-01-01") + pd.Timedelta(days=int(np.random.randint(0, 365 * 12)))
    parent_mobile = _mobile()
    parent_email = f"{last.lower()}.family{n}@example.com"
    # 3割ほど保護者と同じ連絡先を本人欄にも入れる (contacts 重複の再現)
    copied = np.random.rand() < 0.3
    return {
        "Member ID": str(100 + n),
        "First Name": first,
        "Last Name": last,
        "Date of Birth": dob.strftime("%d/%m/%Y"),
        "Medical Info": "",
        "Member Mobile": parent_mobile if copied else _mobile(),
        "Member_Email": parent_email if copied else f"{first.lower().replace(' ', '')}{n}@example.com",
        "Additional Email Addresses": parent_email if copied else "",
        "Parent1_Mobile": parent_mobile,
        "Parent1_Email": parent_email,
        "Parent2_Mobile": "",
        "Parent2_Email": "",
        "Address": f"{np.random.randint(1, 300)} {STREETS[np.random.randint(len(STREETS))]}",
    }


def generate_roster(rows: int, seed: int = 42) -> pd.DataFrame:
    np.random.seed(seed)
    return pd.DataFrame([_member(n) for n in range(rows)], columns=COLUMNS)


def derive_import(
    roster: pd.DataFrame,
    id_change_rate: float = 0.02,
    drift_rate: float = 0.1,
    new_members: int = 10,
    seed: int = 43,
) -> pd.DataFrame:
    """Build an export from ``roster`` with controlled differences.

    - ``id_change_rate``: share of members re-issued a new Member ID
    - ``drift_rate``: share of members whose Address or Medical Info changed
    - ``new_members``: rows appended that exist nowhere in the roster
    """
    np.random.seed(seed)
    df = roster.copy()
    n = len(df)
    next_id = 100 + n + new_members

    id_rows = np.random.choice(n, size=int(n * id_change_rate), replace=False) if n else []
    for offset, idx in enumerate(id_rows):
        df.at[idx, "Member ID"] = str(next_id + offset)

    drift_rows = np.random.choice(n, size=int(n * drift_rate), replace=False) if n else []
    for idx in drift_rows:
        if np.random.rand() < 0.5:
            df.at[idx, "Address"] = f"{np.random.randint(300, 600)} {STREETS[np.random.randint(len(STREETS))]}"
        else:
            df.at[idx, "Medical Info"] = "Asthma"

    extra = pd.DataFrame([_member(n + i) for i in range(new_members)], columns=COLUMNS)
    return pd.concat([df, extra], ignore_index=True)


def write_workbook(df: pd.DataFrame, path: Path, sheet: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet, index=False)
    print(f"Created {path} (sheet={sheet}, rows={len(df):,})")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate sample roster / import workbooks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 1,000 members into ./data
  %(prog)s data --rows 1000

  # Larger run with more ID churn
  %(prog)s data --rows 20000 --id-change-rate 0.05
        """,
    )
    parser.add_argument("output_dir", type=Path, help="Directory for roster.xlsx / import.xlsx")
    parser.add_argument("--rows", type=int, default=1_000, help="Roster members (default: 1,000)")
    parser.add_argument("--new-members", type=int, default=10, help="Rows only present in the import (default: 10)")
    parser.add_argument("--id-change-rate", type=float, default=0.02, help="Share of re-issued IDs (default: 0.02)")
    parser.add_argument("--drift-rate", type=float, default=0.1, help="Share of rows with field drift (default: 0.1)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not (0 <= args.id_change_rate <= 1 and 0 <= args.drift_rate <= 1):
        print("Error: rates must be within 0..1", file=sys.stderr)
        return 1

    roster = generate_roster(args.rows, args.seed)
    incoming = derive_import(roster, args.id_change_rate, args.drift_rate, args.new_members, args.seed + 1)
    try:
        write_workbook(roster, args.output_dir / "roster.xlsx", "Roster")
        write_workbook(incoming, args.output_dir / "import.xlsx", "Import")
    except OSError as e:
        print(f"Error writing workbooks: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
