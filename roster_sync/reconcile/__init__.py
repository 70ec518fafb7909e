"""Record reconciliation engine.

Leaf-first: phone and date normalizers, identity keys, two-tier matcher,
field diff detection, contact de-duplication and identifier write-back.
"""

from .apply import apply_identifier_updates, select_approved_events
from .contacts import dedupe_contacts, dedupe_table, normalize_email
from .dates import INVALID_DATE, normalize_date
from .diff import build_highlights, detect_changes, values_differ
from .identity import build_identity_key, normalize_name_part
from .matcher import RecordMatcher
from .phone import is_valid_phone, normalize_phone, normalize_phone_columns

__all__ = [
    "INVALID_DATE",
    "RecordMatcher",
    "apply_identifier_updates",
    "build_highlights",
    "build_identity_key",
    "dedupe_contacts",
    "dedupe_table",
    "detect_changes",
    "is_valid_phone",
    "normalize_date",
    "normalize_email",
    "normalize_name_part",
    "normalize_phone",
    "normalize_phone_columns",
    "select_approved_events",
    "values_differ",
]
