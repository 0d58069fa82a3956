"""Data models for CalWatcher."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

UNKNOWN_AUTHOR = "Unknown"
DEFAULT_REFRESH_INTERVAL = 60  # minutes


@dataclass
class Entry:
    """Represents one dated, linked item of a calendar."""

    date: str
    title: str
    url: str
    author: str = UNKNOWN_AUTHOR
    icon: Optional[str] = None

    @classmethod
    def create(
        cls,
        date: str,
        url: str,
        title: Optional[str] = None,
        author: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> "Entry":
        """Build an entry, applying the title and author fallbacks.

        Args:
            date: Display date label, must not be empty
            url: Destination link, must not be empty
            title: Display title, falls back to url
            author: Author name, falls back to "Unknown"
            icon: Optional author avatar URL

        Returns:
            A valid Entry

        Raises:
            ValueError: If date or url is empty
        """
        if not date:
            raise ValueError("Entry date must not be empty")
        if not url:
            raise ValueError("Entry url must not be empty")

        return cls(
            date=date,
            title=title or url,
            url=url,
            author=author or UNKNOWN_AUTHOR,
            icon=icon or None,
        )


@dataclass
class Calendar:
    """Represents a subscribed calendar."""

    id: str
    url: str
    title: str
    platform: str = "adventar"
    entries: list[Entry] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    new_count: int = 0
    version: int = 0


@dataclass
class Favorite:
    """Represents an entry pinned by the user."""

    url: str
    title: str
    date: str
    author: str = UNKNOWN_AUTHOR
    icon: Optional[str] = None
    calendar_title: str = ""

    @classmethod
    def from_entry(cls, entry: Entry, calendar_title: str) -> "Favorite":
        return cls(
            url=entry.url,
            title=entry.title,
            date=entry.date,
            author=entry.author,
            icon=entry.icon,
            calendar_title=calendar_title,
        )


@dataclass
class Settings:
    """User settings persisted in the database."""

    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
