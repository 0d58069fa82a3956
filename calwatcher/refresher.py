"""Calendar refresh logic for CalWatcher."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .controllers import CalendarNotFoundError
from .db import Database, StaleCalendarError
from .extractor import extract
from .fetcher import FetchError, fetch
from .models import Calendar
from .reconciler import reconcile

logger = logging.getLogger(__name__)

MAX_SAVE_ATTEMPTS = 3


@dataclass
class RefreshResult:
    """Result of refreshing a single calendar."""

    calendar_title: str
    url: str
    new_entries: int
    total_found: int
    error: Optional[str] = None


class ExtractionDriftError(Exception):
    """Raised when a page lists items but none of them could be extracted."""

    def __init__(self, url: str, skipped: int):
        self.url = url
        self.skipped = skipped
        super().__init__(
            f"No entries extracted from {skipped} item(s) at {url}; page markup may have changed"
        )


def refresh_calendar(
    db: Database,
    calendar: Calendar,
    fetch: Callable[[str], str] = fetch,
) -> RefreshResult:
    """Fetch a calendar page and merge its entries into the stored calendar.

    If another writer saved the calendar after it was loaded, the fresh
    copy is reloaded and the same extraction is reconciled against it.

    Args:
        db: Database instance
        calendar: Calendar to refresh, as loaded from the database
        fetch: Page fetcher

    Returns:
        RefreshResult for the calendar

    Raises:
        FetchError: If the page cannot be fetched
        ExtractionDriftError: If the entry list yielded nothing usable
        CalendarNotFoundError: If the calendar was removed meanwhile
        StaleCalendarError: If every save attempt lost a concurrent update
    """
    extracted = extract(fetch(calendar.url))

    if extracted.drift_suspected:
        # Stored entries stay untouched
        raise ExtractionDriftError(calendar.url, extracted.skipped)

    current = calendar
    for attempt in range(1, MAX_SAVE_ATTEMPTS + 1):
        result = reconcile(current, extracted)
        try:
            db.save_calendar(result.calendar)
            break
        except StaleCalendarError:
            if attempt == MAX_SAVE_ATTEMPTS:
                raise
            logger.debug(f"Calendar {calendar.url} changed during refresh, retrying")
            current = db.load_calendar(calendar.id)
            if current is None:
                raise CalendarNotFoundError(calendar.id)

    logger.info(f"Refreshed '{result.calendar.title}': {result.new_entries} new")

    return RefreshResult(
        calendar_title=result.calendar.title,
        url=calendar.url,
        new_entries=result.new_entries,
        total_found=len(extracted.entries),
    )


def refresh_all(
    db: Database,
    fetch: Callable[[str], str] = fetch,
    notify: Optional[Callable[[int], None]] = None,
) -> list[RefreshResult]:
    """Refresh every subscribed calendar.

    A failure for one calendar is logged and recorded in its result; the
    stored calendar stays untouched and the rest are still refreshed.

    Args:
        db: Database instance
        fetch: Page fetcher
        notify: Called once with the number of new entries found this cycle

    Returns:
        List of RefreshResult for each calendar
    """
    calendars = db.list_calendars()
    results = []

    for calendar in calendars:
        try:
            result = refresh_calendar(db, calendar, fetch=fetch)
        except Exception as e:
            if isinstance(e, (FetchError, ExtractionDriftError)):
                logger.warning(f"Failed to update {calendar.url}: {e}")
            else:
                logger.exception(f"Failed to update {calendar.url}")
            result = RefreshResult(
                calendar_title=calendar.title,
                url=calendar.url,
                new_entries=0,
                total_found=0,
                error=str(e),
            )
        results.append(result)

    if notify is not None:
        notify(total_new_entries(results))

    return results


def refresh_by_ref(
    db: Database,
    ref: str,
    fetch: Callable[[str], str] = fetch,
) -> Optional[RefreshResult]:
    """Refresh a specific calendar by id or URL.

    Returns:
        RefreshResult if calendar found, None otherwise
    """
    calendar = db.load_calendar(ref) or db.get_calendar_by_url(ref)
    if not calendar:
        return None

    return refresh_calendar(db, calendar, fetch=fetch)


def total_new_entries(results: list[RefreshResult]) -> int:
    """Sum of new entries over the successful results of one cycle."""
    return sum(result.new_entries for result in results if result.error is None)


def badge_text(count: int) -> str:
    """Badge label for a new entry count; empty clears the badge."""
    return str(count) if count > 0 else ""
