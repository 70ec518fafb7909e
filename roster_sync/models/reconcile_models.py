from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .row_data import RowData

"""Value types produced by the reconciliation engine.

All of these are derived, read-only, per-invocation values.
"""

__all__ = [
    "ACTION_NEW_MEMBER",
    "ACTION_ID_CHANGED",
    "ACTION_FIELD_UPDATES",
    "ACTION_DELIMITER",
    "IdentityKey",
    "MatchType",
    "MatchResult",
    "IdentifierChangeEvent",
    "ChangeAnnotation",
    "HighlightInstruction",
    "ConditionalHighlightRule",
]

ACTION_NEW_MEMBER = "New Member"
ACTION_ID_CHANGED = "Member ID Changed"
ACTION_FIELD_UPDATES = "Field Updates"
ACTION_DELIMITER = ", "


@dataclass(frozen=True)
class IdentityKey:
    """Two-part identity of a record: explicit ID plus name/DOB composite."""
    membership_id: str  # may be ""
    name_dob_key: str
    date_of_birth: str = ""  # CanonicalDate used in the key
    has_name_dob: bool = True  # False when first, last and DOB are all empty

    @property
    def id_key(self) -> str | None:
        return f"id:{self.membership_id}" if self.membership_id else None


class MatchType(str, Enum):
    ID = "id"
    NAME_DOB = "nameDob"
    NONE = "none"


@dataclass(frozen=True)
class MatchResult:
    matched: RowData | None
    match_type: MatchType

    @property
    def is_match(self) -> bool:
        return self.matched is not None


@dataclass(frozen=True)
class IdentifierChangeEvent:
    """A queued identifier change; applied only after explicit approval."""
    old_id: str
    new_id: str
    display_name: str
    target_row: int  # roster sheet row holding the identifier to overwrite


@dataclass(frozen=True)
class ChangeAnnotation:
    """Per incoming row outcome of diff detection."""
    row_number: int  # incoming sheet row
    action_labels: tuple[str, ...] = ()
    changed_columns: frozenset[str] = frozenset()
    identifier_change: IdentifierChangeEvent | None = None

    @property
    def action_text(self) -> str:
        return ACTION_DELIMITER.join(self.action_labels)

    @property
    def is_new(self) -> bool:
        return ACTION_NEW_MEMBER in self.action_labels


@dataclass(frozen=True)
class HighlightInstruction:
    """Color one cell (or a whole row when ``column`` is None)."""
    row_number: int
    column: str | None
    background: str
    foreground: str


@dataclass(frozen=True)
class ConditionalHighlightRule:
    """Color any non-empty cell of ``columns`` whose text fails ``pattern``."""
    columns: tuple[str, ...]
    pattern: str
    background: str
    foreground: str
