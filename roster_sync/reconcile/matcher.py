"""
Two-tier record matching.

Resolution strategy for an incoming record:
    1. Explicit ID: "id:<membership_id>" when the incoming ID is non-empty
    2. Name + date of birth composite key as fallback
    3. No match -> the incoming record is a new member

The explicit identifier is authoritative when present and unchanged. The
fallback recovers matches across an identifier change or a first assignment,
at the cost of aliasing distinct people who share a name and DOB.

Index semantics: every roster row is stored under both keys and later rows
overwrite earlier ones (most-recent-wins).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..models.config_models import ReconcileConfig
from ..models.reconcile_models import IdentityKey, MatchResult, MatchType
from ..models.row_data import RowData
from .dates import is_invalid_date
from .identity import build_identity_key

logger = logging.getLogger(__name__)


class RecordMatcher:
    """Index of existing roster rows by identity key."""

    def __init__(self, config: ReconcileConfig) -> None:
        self.config = config
        self._index: dict[str, RowData] = {}
        self.invalid_dates = 0  # roster rows whose DOB keyed as "invalid-date"

    def __len__(self) -> int:
        return len(self._index)

    def key_for(self, row: RowData) -> IdentityKey:
        return build_identity_key(row, self.config.columns, self.config.date_format, self.config.timezone)

    def _insert(self, key: str, row: RowData) -> None:
        previous = self._index.get(key)
        if previous is not None and previous.row_number != row.row_number:
            logger.debug(
                "identity key alias: roster row %d replaces row %d", row.row_number, previous.row_number
            )
        self._index[key] = row

    def build(self, rows: Iterable[RowData]) -> RecordMatcher:
        """Index the existing roster. Returns self for chaining."""
        self._index.clear()
        self.invalid_dates = 0
        count = 0
        for row in rows:
            key = self.key_for(row)
            if is_invalid_date(key.date_of_birth):
                self.invalid_dates += 1
            if key.id_key is not None:
                self._insert(key.id_key, row)
            if key.has_name_dob:
                self._insert(key.name_dob_key, row)
            count += 1
        logger.debug("indexed roster rows=%d keys=%d", count, len(self._index))
        return self

    def match_key(self, key: IdentityKey) -> MatchResult:
        if key.id_key is not None:
            found = self._index.get(key.id_key)
            if found is not None:
                return MatchResult(matched=found, match_type=MatchType.ID)
        if key.has_name_dob:
            found = self._index.get(key.name_dob_key)
            if found is not None:
                return MatchResult(matched=found, match_type=MatchType.NAME_DOB)
        return MatchResult(matched=None, match_type=MatchType.NONE)

    def match(self, row: RowData) -> MatchResult:
        """Resolve one incoming row to at most one roster row."""
        return self.match_key(self.key_for(row))

    def match_all(self, rows: Iterable[RowData]) -> list[MatchResult]:
        return [self.match(r) for r in rows]
