from __future__ import annotations

from typing import Any

from .types import KeyListing, KeyRecord


def _records(listing: Any) -> list[KeyRecord]:
    # Callers sometimes pass through whatever a failed listing produced
    if not isinstance(listing, list | tuple):
        return []
    return [item for item in listing if isinstance(item, KeyRecord)]


def record_matches(identifier: str, record: KeyRecord) -> bool:
    """True if any text field of the record contains identifier (case-sensitive)."""
    return any(identifier in value for value in record.text_fields())


def find_all(identifier: str, listing: Any) -> KeyListing:
    return [record for record in _records(listing) if record_matches(identifier, record)]


def find_first(identifier: str, listing: Any) -> KeyRecord | None:
    for record in _records(listing):
        if record_matches(identifier, record):
            return record
    return None


def key_exists(identifier: str, listing: Any) -> bool:
    return find_first(identifier, listing) is not None
