"""SQLite database operations for CalWatcher."""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import DEFAULT_DB_PATH
from .models import DEFAULT_REFRESH_INTERVAL, Calendar, Entry, Favorite, Settings


class StaleCalendarError(Exception):
    """Raised when a calendar changed in the database since it was loaded."""

    def __init__(self, calendar_id: str, version: int):
        self.calendar_id = calendar_id
        self.version = version
        super().__init__(f"Calendar {calendar_id} is no longer at version {version}")


class Database:
    """SQLite database interface for CalWatcher."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to the SQLite database file. Defaults to ~/.calwatcher/calwatcher.db
        """
        self.db_path = db_path or DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS calendars (
                id TEXT PRIMARY KEY,
                url TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                platform TEXT NOT NULL,
                last_updated TIMESTAMP,
                new_count INTEGER NOT NULL DEFAULT 0,
                version INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS entries (
                calendar_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                date TEXT NOT NULL,
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                author TEXT NOT NULL,
                icon TEXT,
                PRIMARY KEY (calendar_id, position),
                FOREIGN KEY (calendar_id) REFERENCES calendars(id)
            );

            CREATE TABLE IF NOT EXISTS favorites (
                url TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                date TEXT NOT NULL,
                author TEXT NOT NULL,
                icon TEXT,
                calendar_title TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)
        conn.commit()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # Calendar operations

    def add_calendar(self, calendar: Calendar) -> Calendar:
        """Add a new calendar along with its entries.

        Args:
            calendar: Calendar object to add, with its id already assigned

        Returns:
            The stored Calendar

        Raises:
            sqlite3.IntegrityError: If the id or url is already stored
        """
        conn = self._get_conn()
        with conn:
            conn.execute(
                """
                INSERT INTO calendars (id, url, title, platform, last_updated, new_count, version)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    calendar.id,
                    calendar.url,
                    calendar.title,
                    calendar.platform,
                    self._format_datetime(calendar.last_updated),
                    calendar.new_count,
                    calendar.version,
                ),
            )
            self._insert_entries(conn, calendar.id, calendar.entries)
        return calendar

    def load_calendar(self, calendar_id: str) -> Optional[Calendar]:
        """Get a calendar by id.

        Args:
            calendar_id: The calendar's id

        Returns:
            Calendar object or None if not found
        """
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM calendars WHERE id = ?", (calendar_id,)).fetchone()
        return self._row_to_calendar(row) if row else None

    def get_calendar_by_url(self, url: str) -> Optional[Calendar]:
        """Get a calendar by its page URL.

        Args:
            url: The calendar's URL

        Returns:
            Calendar object or None if not found
        """
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM calendars WHERE url = ?", (url,)).fetchone()
        return self._row_to_calendar(row) if row else None

    def list_calendars(self) -> list[Calendar]:
        """List all calendars in the order they were added.

        Returns:
            List of Calendar objects
        """
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM calendars ORDER BY rowid").fetchall()
        return [self._row_to_calendar(row) for row in rows]

    def save_calendar(self, calendar: Calendar) -> Calendar:
        """Store an updated calendar and replace its entries.

        The write only succeeds if the stored version still equals
        calendar.version; the stored version is then incremented.

        Args:
            calendar: Calendar carrying the version it was loaded at

        Returns:
            The calendar with its new version

        Raises:
            StaleCalendarError: If the calendar was changed or removed meanwhile
        """
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                """
                UPDATE calendars
                SET url = ?, title = ?, platform = ?, last_updated = ?, new_count = ?,
                    version = version + 1
                WHERE id = ? AND version = ?
                """,
                (
                    calendar.url,
                    calendar.title,
                    calendar.platform,
                    self._format_datetime(calendar.last_updated),
                    calendar.new_count,
                    calendar.id,
                    calendar.version,
                ),
            )
            if cursor.rowcount == 0:
                raise StaleCalendarError(calendar.id, calendar.version)

            conn.execute("DELETE FROM entries WHERE calendar_id = ?", (calendar.id,))
            self._insert_entries(conn, calendar.id, calendar.entries)

        calendar.version += 1
        return calendar

    def reset_new_counts(self, calendar_id: Optional[str] = None) -> int:
        """Reset new_count to zero.

        Args:
            calendar_id: Only reset this calendar; all calendars if None

        Returns:
            Number of calendars that had a non-zero count
        """
        conn = self._get_conn()
        query = "UPDATE calendars SET new_count = 0, version = version + 1 WHERE new_count > 0"
        params: list = []

        if calendar_id is not None:
            query += " AND id = ?"
            params.append(calendar_id)

        cursor = conn.execute(query, params)
        conn.commit()
        return cursor.rowcount

    def remove_calendar(self, calendar_id: str) -> bool:
        """Remove a calendar and its entries.

        Args:
            calendar_id: The calendar's id

        Returns:
            True if calendar was removed, False if not found
        """
        conn = self._get_conn()
        # Delete associated entries first
        conn.execute("DELETE FROM entries WHERE calendar_id = ?", (calendar_id,))
        cursor = conn.execute("DELETE FROM calendars WHERE id = ?", (calendar_id,))
        conn.commit()
        return cursor.rowcount > 0

    def get_entries(self, calendar_id: str) -> list[Entry]:
        """Get the entries of a calendar in page order."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM entries WHERE calendar_id = ? ORDER BY position",
            (calendar_id,),
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _insert_entries(conn: sqlite3.Connection, calendar_id: str, entries: list[Entry]) -> None:
        conn.executemany(
            """
            INSERT INTO entries (calendar_id, position, date, title, url, author, icon)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (calendar_id, position, e.date, e.title, e.url, e.author, e.icon)
                for position, e in enumerate(entries)
            ],
        )

    def _row_to_calendar(self, row: sqlite3.Row) -> Calendar:
        """Convert a database row to a Calendar object."""
        return Calendar(
            id=row["id"],
            url=row["url"],
            title=row["title"],
            platform=row["platform"],
            entries=self.get_entries(row["id"]),
            last_updated=self._parse_datetime(row["last_updated"]),
            new_count=row["new_count"],
            version=row["version"],
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> Entry:
        return Entry(
            date=row["date"],
            title=row["title"],
            url=row["url"],
            author=row["author"],
            icon=row["icon"],
        )

    # Favorite operations

    def add_favorite(self, favorite: Favorite) -> bool:
        """Pin an entry as favorite.

        Args:
            favorite: Favorite to add

        Returns:
            True if added, False if a favorite with the same url exists
        """
        conn = self._get_conn()
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO favorites (url, title, date, author, icon, calendar_title)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                favorite.url,
                favorite.title,
                favorite.date,
                favorite.author,
                favorite.icon,
                favorite.calendar_title,
            ),
        )
        conn.commit()
        return cursor.rowcount > 0

    def get_favorite(self, url: str) -> Optional[Favorite]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM favorites WHERE url = ?", (url,)).fetchone()
        return self._row_to_favorite(row) if row else None

    def list_favorites(self) -> list[Favorite]:
        """List favorites in the order they were pinned."""
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM favorites ORDER BY rowid").fetchall()
        return [self._row_to_favorite(row) for row in rows]

    def remove_favorite(self, url: str) -> bool:
        """Remove a favorite by url.

        Returns:
            True if removed, False if not found
        """
        conn = self._get_conn()
        cursor = conn.execute("DELETE FROM favorites WHERE url = ?", (url,))
        conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_favorite(row: sqlite3.Row) -> Favorite:
        return Favorite(
            url=row["url"],
            title=row["title"],
            date=row["date"],
            author=row["author"],
            icon=row["icon"],
            calendar_title=row["calendar_title"],
        )

    # Settings

    def get_settings(self) -> Settings:
        """Get user settings, with defaults for anything not stored."""
        conn = self._get_conn()
        rows = conn.execute("SELECT key, value FROM settings").fetchall()
        stored = {row["key"]: row["value"] for row in rows}

        try:
            refresh_interval = int(stored.get("refresh_interval", DEFAULT_REFRESH_INTERVAL))
        except ValueError:
            refresh_interval = DEFAULT_REFRESH_INTERVAL

        return Settings(refresh_interval=refresh_interval)

    def set_settings(self, settings: Settings) -> None:
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            ("refresh_interval", str(settings.refresh_interval)),
        )
        conn.commit()

    @staticmethod
    def _format_datetime(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        """Parse a datetime string from the database."""
        if value is None:
            return None
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
