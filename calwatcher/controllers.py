"""Business logic controllers for CalWatcher."""

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from .db import Database
from .extractor import PLATFORM, extract
from .fetcher import fetch
from .models import Calendar, Entry, Favorite, Settings

logger = logging.getLogger(__name__)


class CalendarNotFoundError(Exception):
    """Raised when a calendar is not found."""

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Calendar '{ref}' not found")


class CalendarAlreadyExistsError(Exception):
    """Raised when subscribing to a calendar URL that is already tracked."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Calendar with URL '{url}' already exists")


class EntryNotFoundError(Exception):
    """Raised when no stored calendar has an entry with the given URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Entry '{url}' not found")


class InvalidSettingError(Exception):
    """Raised when a setting value is out of range."""

    def __init__(self, name: str, value):
        self.name = name
        self.value = value
        super().__init__(f"Invalid value for {name}: {value}")


def subscribe(
    db: Database,
    url: str,
    fetch: Callable[[str], str] = fetch,
) -> Calendar:
    """Subscribe to a calendar page.

    Fetches the page once so the new calendar starts with its title and
    current entries; none of them count as new.

    Args:
        db: Database instance
        url: Calendar page URL
        fetch: Page fetcher

    Returns:
        The created Calendar

    Raises:
        CalendarAlreadyExistsError: If the URL is already subscribed
        FetchError: If the page cannot be fetched
    """
    if db.get_calendar_by_url(url):
        raise CalendarAlreadyExistsError(url)

    extracted = extract(fetch(url))

    calendar = Calendar(
        id=uuid.uuid4().hex,
        url=url,
        title=extracted.title,
        platform=PLATFORM,
        entries=extracted.entries,
        last_updated=datetime.now(),
        new_count=0,
    )
    db.add_calendar(calendar)
    logger.info(f"Subscribed to '{calendar.title}' ({len(calendar.entries)} entries)")
    return calendar


def get_calendar(db: Database, ref: str) -> Calendar:
    """Look up a calendar by id or by URL.

    Raises:
        CalendarNotFoundError: If neither matches
    """
    calendar = db.load_calendar(ref) or db.get_calendar_by_url(ref)
    if not calendar:
        raise CalendarNotFoundError(ref)
    return calendar


def unsubscribe(db: Database, ref: str) -> Calendar:
    """Remove a calendar and its entries. Favorites are kept.

    Args:
        db: Database instance
        ref: Calendar id or URL

    Returns:
        The removed Calendar

    Raises:
        CalendarNotFoundError: If calendar not found
    """
    calendar = get_calendar(db, ref)
    db.remove_calendar(calendar.id)
    return calendar


def acknowledge(db: Database, ref: Optional[str] = None) -> int:
    """Reset the unseen count of one calendar or of all calendars.

    Args:
        db: Database instance
        ref: Calendar id or URL; all calendars if None

    Returns:
        Number of calendars whose count was reset

    Raises:
        CalendarNotFoundError: If ref provided but not found
    """
    calendar_id = get_calendar(db, ref).id if ref else None
    return db.reset_new_counts(calendar_id)


def total_new_count(db: Database) -> int:
    """Sum of unseen counts over all calendars."""
    return sum(calendar.new_count for calendar in db.list_calendars())


def find_entry(db: Database, url: str) -> tuple[Calendar, Entry]:
    """Find a stored entry by URL.

    Returns:
        Tuple of (owning calendar, entry)

    Raises:
        EntryNotFoundError: If no calendar lists the URL
    """
    for calendar in db.list_calendars():
        for entry in calendar.entries:
            if entry.url == url:
                return calendar, entry
    raise EntryNotFoundError(url)


def add_favorite(db: Database, url: str) -> Favorite:
    """Pin a stored entry as favorite.

    Args:
        db: Database instance
        url: Entry URL

    Returns:
        The stored Favorite (the existing one if already pinned)

    Raises:
        EntryNotFoundError: If no calendar lists the URL
    """
    existing = db.get_favorite(url)
    if existing:
        return existing

    calendar, entry = find_entry(db, url)
    favorite = Favorite.from_entry(entry, calendar.title)
    db.add_favorite(favorite)
    return favorite


def remove_favorite(db: Database, url: str) -> bool:
    """Unpin a favorite. Returns False if it was not pinned."""
    return db.remove_favorite(url)


def toggle_favorite(db: Database, url: str) -> bool:
    """Pin or unpin an entry.

    Returns:
        True if the entry is pinned afterwards
    """
    if db.remove_favorite(url):
        return False
    add_favorite(db, url)
    return True


def update_settings(db: Database, refresh_interval: int) -> Settings:
    """Change the periodic refresh interval.

    Args:
        db: Database instance
        refresh_interval: Minutes between refreshes, at least 1

    Returns:
        The stored Settings

    Raises:
        InvalidSettingError: If refresh_interval is below 1
    """
    if refresh_interval < 1:
        raise InvalidSettingError("refresh_interval", refresh_interval)

    settings = db.get_settings()
    settings.refresh_interval = refresh_interval
    db.set_settings(settings)
    return settings
