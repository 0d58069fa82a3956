"""Reconciliation of freshly extracted entries with a stored calendar."""

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .extractor import ExtractionResult
from .models import Calendar, Entry


@dataclass
class ReconcileResult:
    """Updated calendar plus the number of entries seen for the first time."""

    calendar: Calendar
    new_entries: int


def find_new_entries(known: list[Entry], extracted: list[Entry]) -> list[Entry]:
    """Return extracted entries whose url is not among the known entries.

    Args:
        known: Entries already stored for the calendar
        extracted: Entries from the latest extraction, in page order

    Returns:
        New entries in page order
    """
    known_urls = {entry.url for entry in known}
    new_entries = []

    for entry in extracted:
        if entry.url in known_urls:
            continue
        new_entries.append(entry)

    return new_entries


def reconcile(
    existing: Calendar,
    extracted: ExtractionResult,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """Merge an extraction into a stored calendar.

    The extracted list replaces the stored one in full: the page is
    authoritative for which entries exist and in what order. Only urls
    not stored before count as new, and new_count accumulates until it
    is acknowledged.

    Args:
        existing: Calendar as currently stored (not modified)
        extracted: Result of extracting the calendar page
        now: Timestamp to record, defaults to the current time

    Returns:
        ReconcileResult with the updated calendar and the new entry count
    """
    new_entries = find_new_entries(existing.entries, extracted.entries)

    calendar = dataclasses.replace(
        existing,
        title=extracted.title,
        entries=list(extracted.entries),
        last_updated=now or datetime.now(),
        new_count=existing.new_count + len(new_entries),
    )

    return ReconcileResult(calendar=calendar, new_entries=len(new_entries))
