from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Config dataclasses for the roster reconciliation tool.

These are the invocation-scoped configuration values constructed once by
``roster_sync.config.loader.load_config`` and passed explicitly through every
component. Nothing here is cached at module level.
"""

__all__ = [
    "DateFormat",
    "ColorPair",
    "HighlightColors",
    "TableSource",
    "ColumnMap",
    "ReconcileConfig",
    "DEFAULT_TRACKED_FIELDS",
    "DEFAULT_PHONE_COLUMNS",
]


class DateFormat(Enum):
    """Date-input convention of string cells."""
    ISO = "ISO"
    AU = "International (AU)"
    US = "US"

    @classmethod
    def parse(cls, value: str) -> DateFormat:
        for member in cls:
            if value == member.value or value == member.name:
                return member
        raise ValueError(f"unknown date format: {value!r}")


DEFAULT_TRACKED_FIELDS: tuple[str, ...] = (
    "Medical Info",
    "Member Mobile",
    "Member_Email",
    "Additional Email Addresses",
    "Parent1_Mobile",
    "Parent1_Email",
    "Parent2_Mobile",
    "Parent2_Email",
    "Address",
)

DEFAULT_PHONE_COLUMNS: tuple[str, ...] = (
    "Member Mobile",
    "Parent1_Mobile",
    "Parent2_Mobile",
)


@dataclass(frozen=True)
class ColorPair:
    background: str  # hex RGB without '#', e.g. "C6EFCE"
    foreground: str


@dataclass(frozen=True)
class HighlightColors:
    """Background/foreground pairs used by highlight instructions."""
    new_member: ColorPair = ColorPair("C6EFCE", "006100")
    changed_field: ColorPair = ColorPair("FFEB9C", "9C5700")
    changed_id: ColorPair = ColorPair("FFC7CE", "9C0006")
    invalid_phone: ColorPair = ColorPair("F4CCCC", "990000")


@dataclass(frozen=True)
class TableSource:
    """Where a table lives in the tabular store."""
    path: str  # workbook path
    sheet: str  # sheet name inside the workbook
    header_row: int = 1  # 1-based row holding the column names


@dataclass(frozen=True)
class ColumnMap:
    """Column names used for identity, annotation and contact fields."""
    member_id: str = "Member ID"
    first_name: str = "First Name"
    last_name: str = "Last Name"
    date_of_birth: str = "Date of Birth"
    action: str = "Action"
    member_mobile: str = "Member Mobile"
    member_email: str = "Member_Email"
    additional_emails: str = "Additional Email Addresses"
    parent1_mobile: str = "Parent1_Mobile"
    parent1_email: str = "Parent1_Email"
    parent2_mobile: str = "Parent2_Mobile"
    parent2_email: str = "Parent2_Email"

    @property
    def identity_columns(self) -> set[str]:
        """Columns both tables must carry for reconciliation to run at all."""
        return {self.member_id, self.first_name, self.last_name, self.date_of_birth}

    @property
    def parent_mobiles(self) -> tuple[str, str]:
        return (self.parent1_mobile, self.parent2_mobile)

    @property
    def parent_emails(self) -> tuple[str, str]:
        return (self.parent1_email, self.parent2_email)


@dataclass(frozen=True)
class ReconcileConfig:
    """Root configuration object for one reconciliation invocation."""
    roster: TableSource
    incoming: TableSource
    columns: ColumnMap = field(default_factory=ColumnMap)
    tracked_fields: tuple[str, ...] = DEFAULT_TRACKED_FIELDS
    phone_columns: tuple[str, ...] = DEFAULT_PHONE_COLUMNS
    date_format: DateFormat = DateFormat.AU
    timezone: str = "UTC"
    prompt_before_id_update: bool = True
    auto_apply_id_updates: bool = False
    dedupe_contacts: bool = True
    debug: bool = False
    chunk_size: int = 500
    chunk_pause_seconds: float = 0.0
    colors: HighlightColors = field(default_factory=HighlightColors)
