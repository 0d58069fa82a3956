"""Tests for the command line interface."""

import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from calwatcher.cli import cli
from calwatcher.controllers import CalendarNotFoundError
from calwatcher.db import Database, StaleCalendarError
from calwatcher.fetcher import FetchError

CALENDAR_URL = "https://adventar.org/calendars/7"

PAGE = """
<title>Winter Fest - Adventar</title>
<ul class="EntryList">
  <li class="item">
    <div class="date">12/01</div>
    <div class="user"><img src="icon.png"> <a>Ann</a></div>
    <div class="left"><div class="link"><a href="https://x/1">https://x/1</a></div><div>My Post</div></div>
    <div class="image"></div>
  </li>
</ul>
"""

PAGE_WITH_NEW_ENTRY = PAGE.replace(
    "</ul>",
    """
  <li class="item">
    <div class="date">12/02</div>
    <div class="user"><a>Bob</a></div>
    <div class="left"><div class="link"><a href="https://x/2">https://x/2</a></div><div>Next Post</div></div>
    <div class="image"></div>
  </li>
</ul>""",
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


def invoke(runner: CliRunner, db_path: Path, *args: str, **kwargs):
    return runner.invoke(cli, ["--db", str(db_path), *args], **kwargs)


@patch("calwatcher.cli.fetch")
def test_add_and_list(mock_fetch, runner, db_path):
    mock_fetch.return_value = PAGE

    result = invoke(runner, db_path, "add", CALENDAR_URL)

    assert result.exit_code == 0
    assert "Added calendar 'Winter Fest' (1 entries)" in result.output

    result = invoke(runner, db_path, "list")
    assert "Winter Fest" in result.output
    assert CALENDAR_URL in result.output


@patch("calwatcher.cli.fetch")
def test_add_duplicate_fails(mock_fetch, runner, db_path):
    mock_fetch.return_value = PAGE
    invoke(runner, db_path, "add", CALENDAR_URL)

    result = invoke(runner, db_path, "add", CALENDAR_URL)

    assert result.exit_code == 1
    assert "already exists" in result.output


@patch("calwatcher.cli.fetch")
def test_add_fetch_error(mock_fetch, runner, db_path):
    mock_fetch.side_effect = FetchError("Failed to fetch page: unreachable")

    result = invoke(runner, db_path, "add", CALENDAR_URL)

    assert result.exit_code == 1
    assert "Failed to fetch page" in result.output


def test_list_empty(runner, db_path):
    result = invoke(runner, db_path, "list")
    assert "No calendars tracked yet" in result.output


@patch("calwatcher.cli.fetch")
def test_refresh_reports_new_entries_and_badge(mock_fetch, runner, db_path):
    mock_fetch.return_value = PAGE
    invoke(runner, db_path, "add", CALENDAR_URL)
    mock_fetch.return_value = PAGE_WITH_NEW_ENTRY

    result = invoke(runner, db_path, "refresh")

    assert result.exit_code == 0
    assert "New: 1" in result.output
    assert "Found 1 new entry(ies) total!" in result.output
    assert "[1]" in result.output


@patch("calwatcher.cli.fetch")
def test_refresh_single_not_found(mock_fetch, runner, db_path):
    result = invoke(runner, db_path, "refresh", "missing")

    assert result.exit_code == 1
    assert "Calendar 'missing' not found" in result.output


@patch("calwatcher.cli.fetch")
def test_entries_and_favorites(mock_fetch, runner, db_path):
    mock_fetch.return_value = PAGE
    invoke(runner, db_path, "add", CALENDAR_URL)

    result = invoke(runner, db_path, "entries", CALENDAR_URL)
    assert "My Post" in result.output
    assert "Author: Ann" in result.output

    result = invoke(runner, db_path, "favorite", "https://x/1")
    assert result.exit_code == 0

    result = invoke(runner, db_path, "favorites")
    assert "My Post" in result.output
    assert "Calendar: Winter Fest" in result.output

    result = invoke(runner, db_path, "unfavorite", "https://x/1")
    assert result.exit_code == 0
    assert "No favorites yet." in invoke(runner, db_path, "favorites").output


@patch("calwatcher.cli.fetch")
def test_ack_clears_counts(mock_fetch, runner, db_path):
    mock_fetch.return_value = PAGE
    invoke(runner, db_path, "add", CALENDAR_URL)
    mock_fetch.return_value = PAGE_WITH_NEW_ENTRY
    invoke(runner, db_path, "refresh")

    result = invoke(runner, db_path, "ack")

    assert "Cleared new entries of 1 calendar(s)" in result.output
    db = Database(db_path)
    try:
        assert db.list_calendars()[0].new_count == 0
    finally:
        db.close()


@patch("calwatcher.cli.fetch")
def test_remove_with_confirmation_flag(mock_fetch, runner, db_path):
    mock_fetch.return_value = PAGE
    invoke(runner, db_path, "add", CALENDAR_URL)

    result = invoke(runner, db_path, "remove", CALENDAR_URL, "--yes")

    assert result.exit_code == 0
    assert "Removed calendar 'Winter Fest'" in result.output


def test_settings(runner, db_path):
    result = invoke(runner, db_path, "settings", "--refresh-interval", "15")
    assert "Refresh interval: 15 minute(s)" in result.output

    result = invoke(runner, db_path, "settings", "--refresh-interval", "0")
    assert result.exit_code == 1


@patch("calwatcher.cli.fetch")
def test_watch_once(mock_fetch, runner, db_path):
    mock_fetch.return_value = PAGE
    invoke(runner, db_path, "add", CALENDAR_URL)

    result = invoke(runner, db_path, "watch", "--once")

    assert result.exit_code == 0
    assert "No new entries found." in result.output


@patch("calwatcher.cli.subscribe")
def test_add_concurrent_duplicate_fails(mock_subscribe, runner, db_path):
    mock_subscribe.side_effect = sqlite3.IntegrityError("UNIQUE constraint failed: calendars.url")

    result = invoke(runner, db_path, "add", CALENDAR_URL)

    assert result.exit_code == 1
    assert f"Calendar with URL '{CALENDAR_URL}' already exists" in result.output


@patch("calwatcher.cli.refresh_by_ref")
def test_refresh_single_lost_update(mock_refresh, runner, db_path):
    mock_refresh.side_effect = StaleCalendarError("cal-1", 3)

    result = invoke(runner, db_path, "refresh", "cal-1")

    assert result.exit_code == 1
    assert "Error: Calendar cal-1 is no longer at version 3" in result.output


@patch("calwatcher.cli.refresh_by_ref")
def test_refresh_single_removed_meanwhile(mock_refresh, runner, db_path):
    mock_refresh.side_effect = CalendarNotFoundError("cal-1")

    result = invoke(runner, db_path, "refresh", "cal-1")

    assert result.exit_code == 1
    assert "Calendar 'cal-1' not found" in result.output


@patch("calwatcher.cli.fetch")
def test_watch_rejects_zero_interval(mock_fetch, runner, db_path):
    result = invoke(runner, db_path, "watch", "--interval", "0", "--once")

    assert result.exit_code == 1
    assert "Invalid value for interval: 0" in result.output
    mock_fetch.assert_not_called()
