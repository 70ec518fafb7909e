# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from roster_sync.logging.init import reset_logging
from roster_sync.models.config_models import ReconcileConfig, TableSource
from roster_sync.models.row_data import RowData, Table
from roster_sync.services.orchestrator import INCOMING_TABLE, ROSTER_TABLE
from roster_sync.store.memory import InMemoryTableStore

ROSTER_COLUMNS = [
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


def member(member_id: Any, first: str, last: str, dob: Any, **extra: Any) -> dict[str, Any]:
    """One roster/import record with every default column present."""
    rec: dict[str, Any] = {c: "" for c in ROSTER_COLUMNS}
    rec.update({"Member ID": member_id, "First Name": first, "Last Name": last, "Date of Birth": dob})
    rec.update(extra)
    return rec


def make_row(row_number: int = 2, **values: Any) -> RowData:
    return RowData(row_number=row_number, values=dict(values))


def make_store(roster: list[dict[str, Any]], incoming: list[dict[str, Any]]) -> InMemoryTableStore:
    return InMemoryTableStore(
        [
            InMemoryTableStore.table_from_records(ROSTER_TABLE, roster),
            InMemoryTableStore.table_from_records(INCOMING_TABLE, incoming),
        ]
    )


def write_sheet(path: Path, sheet: str, records: list[dict[str, Any]], columns: list[str] | None = None) -> Path:
    """Write records to ``path``/``sheet`` with the header on row 1."""
    df = pd.DataFrame(records, columns=columns or ROSTER_COLUMNS)
    mode = "a" if path.exists() else "w"
    kwargs = {"if_sheet_exists": "replace"} if mode == "a" else {}
    with pd.ExcelWriter(path, engine="openpyxl", mode=mode, **kwargs) as writer:
        df.to_excel(writer, sheet_name=sheet, index=False)
    return path


@pytest.fixture(autouse=True)
def _clean_logging():
    # ハンドラは setup 時の sys.stdout を掴むので、テスト毎に作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("ROSTER_SYNC_CONFIG", raising=False)
        yield p


@pytest.fixture()
def config() -> ReconcileConfig:
    return ReconcileConfig(
        roster=TableSource(path="data/roster.xlsx", sheet="Roster"),
        incoming=TableSource(path="data/import.xlsx", sheet="Import"),
        prompt_before_id_update=False,
        auto_apply_id_updates=True,
    )


@pytest.fixture()
def sample_config_yaml() -> str:
    return """roster:
  path: ./data/roster.xlsx
  sheet: Roster
incoming:
  path: ./data/import.xlsx
  sheet: Import
date_format: International (AU)
timezone: Australia/Sydney
prompt_before_id_update: false
auto_apply_id_updates: true
chunk_size: 2
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "reconcile.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def roster_records() -> list[dict[str, Any]]:
    return [
        member("100", "Alex", "Lee", "3/04/2010", Address="1 George St"),
        member("200", "Jo Anne", "Smith", "12/11/2008", **{"Member Mobile": "0412 345 678"}),
        member("300", "Sam", "Nguyen", "01/01/2011", **{"Medical Info": "None"}),
    ]


@pytest.fixture()
def incoming_records() -> list[dict[str, Any]]:
    return [
        # ID re-issued: matched by name + DOB
        member("101", "Alex", "Lee", "03/04/2010", Address="1 George St"),
        # same member, field drift (address) and a local mobile format
        member("200", "jo  anne", "SMITH", "12/11/2008", Address="9 King St", **{"Member Mobile": "+61412345678"}),
        # unchanged
        member("300", "Sam", "Nguyen", "01/01/2011", **{"Medical Info": "None"}),
        # unknown everywhere
        member("", "Priya", "Patel", "20/06/2012"),
    ]


@pytest.fixture()
def excel_workbooks(temp_workdir: Path, roster_records, incoming_records) -> tuple[Path, Path]:
    roster = write_sheet(temp_workdir / "data" / "roster.xlsx", "Roster", roster_records)
    incoming = write_sheet(temp_workdir / "data" / "import.xlsx", "Import", incoming_records)
    return roster, incoming


def table_of(name: str, records: list[dict[str, Any]]) -> Table:
    return InMemoryTableStore.table_from_records(name, records)
