"""CLI commands for CalWatcher."""

import functools
import logging
import sqlite3
import time
from pathlib import Path
from typing import Optional

import click

from .config import get_config, setup_logging
from .controllers import (
    CalendarAlreadyExistsError,
    CalendarNotFoundError,
    EntryNotFoundError,
    InvalidSettingError,
    acknowledge,
    add_favorite,
    get_calendar,
    remove_favorite,
    subscribe,
    total_new_count,
    unsubscribe,
    update_settings,
)
from .db import Database, StaleCalendarError
from .fetcher import FetchError, fetch
from .refresher import ExtractionDriftError, badge_text, refresh_all, refresh_by_ref

logger = logging.getLogger(__name__)


@click.group()
@click.version_option()
@click.option("--db", "db_path", type=click.Path(path_type=Path), help="Database file path")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, db_path: Optional[Path], verbose: bool):
    """CalWatcher - Track event calendars and detect new entries."""
    config = get_config(db_path)
    setup_logging("DEBUG" if verbose else config.log_level)
    ctx.obj = config


def _open_db(ctx: click.Context) -> Database:
    return Database(ctx.obj.db_path)


def _fetcher(ctx: click.Context):
    return functools.partial(fetch, timeout=ctx.obj.timeout)


def _error(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"))
    raise SystemExit(1)


@cli.command()
@click.argument("url")
@click.pass_context
def add(ctx: click.Context, url: str):
    """Subscribe to a calendar page."""
    db = _open_db(ctx)
    try:
        calendar = subscribe(db, url, fetch=_fetcher(ctx))
        click.echo(
            click.style(
                f"Added calendar '{calendar.title}' ({len(calendar.entries)} entries)",
                fg="green",
            )
        )
    except (CalendarAlreadyExistsError, FetchError) as e:
        _error(str(e))
    except sqlite3.IntegrityError:
        _error(f"Calendar with URL '{url}' already exists")
    finally:
        db.close()


@cli.command()
@click.argument("calendar")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def remove(ctx: click.Context, calendar: str, yes: bool):
    """Unsubscribe from a calendar (by id or URL)."""
    db = _open_db(ctx)
    try:
        try:
            found = get_calendar(db, calendar)
        except CalendarNotFoundError as e:
            _error(str(e))

        if not yes:
            click.confirm(f"Remove calendar '{found.title}'?", abort=True)

        unsubscribe(db, found.id)
        click.echo(click.style(f"Removed calendar '{found.title}'", fg="green"))
    finally:
        db.close()


@cli.command("list")
@click.pass_context
def list_calendars(ctx: click.Context):
    """List subscribed calendars."""
    db = _open_db(ctx)
    try:
        calendars = db.list_calendars()
        if not calendars:
            click.echo("No calendars tracked yet. Use 'calwatcher add' to add one.")
            return

        click.echo(click.style(f"Tracked calendars ({len(calendars)}):", fg="cyan", bold=True))
        click.echo()

        for calendar in calendars:
            new_label = click.style(f" [{calendar.new_count} new]", fg="yellow") if calendar.new_count else ""
            click.echo(click.style(f"  {calendar.title}", fg="white", bold=True) + new_label)
            click.echo(f"    ID: {calendar.id}")
            click.echo(f"    URL: {calendar.url}")
            click.echo(f"    Platform: {calendar.platform} | Entries: {len(calendar.entries)}")
            if calendar.last_updated:
                click.echo(f"    Last updated: {calendar.last_updated.strftime('%Y-%m-%d %H:%M')}")
            click.echo()
    finally:
        db.close()


@cli.command()
@click.argument("calendar")
@click.pass_context
def entries(ctx: click.Context, calendar: str):
    """List the entries of a calendar."""
    db = _open_db(ctx)
    try:
        try:
            found = get_calendar(db, calendar)
        except CalendarNotFoundError as e:
            _error(str(e))

        if not found.entries:
            click.echo(f"No entries in '{found.title}' yet.")
            return

        favorites = {f.url for f in db.list_favorites()}
        click.echo(click.style(f"{found.title} ({len(found.entries)}):", fg="cyan", bold=True))
        click.echo()

        for entry in found.entries:
            star = click.style("*", fg="yellow") if entry.url in favorites else " "
            click.echo(f"  {star} {click.style(entry.date, fg='cyan')} {entry.title}")
            click.echo(f"       Author: {entry.author}")
            click.echo(f"       URL: {entry.url}")
            click.echo()
    finally:
        db.close()


@cli.command()
@click.argument("calendar", required=False)
@click.pass_context
def refresh(ctx: click.Context, calendar: Optional[str]):
    """Check calendars for new entries.

    If CALENDAR is provided, only that calendar is refreshed.
    Otherwise, all calendars are refreshed.
    """
    db = _open_db(ctx)
    try:
        if calendar:
            try:
                result = refresh_by_ref(db, calendar, fetch=_fetcher(ctx))
            except (
                FetchError,
                ExtractionDriftError,
                StaleCalendarError,
                CalendarNotFoundError,
            ) as e:
                _error(str(e))
            if result is None:
                _error(f"Calendar '{calendar}' not found")

            _print_refresh_result(result)
            return

        if not db.list_calendars():
            click.echo("No calendars tracked yet. Use 'calwatcher add' to add one.")
            return

        _run_cycle(db, ctx)
    finally:
        db.close()


def _run_cycle(db: Database, ctx: click.Context) -> int:
    """Refresh all calendars and print results and the badge."""
    totals = []
    results = refresh_all(db, fetch=_fetcher(ctx), notify=totals.append)

    for result in results:
        _print_refresh_result(result)

    total_new = totals[0] if totals else 0
    click.echo()
    if total_new > 0:
        click.echo(click.style(f"Found {total_new} new entry(ies) total!", fg="green", bold=True))
    else:
        click.echo(click.style("No new entries found.", fg="yellow"))
    _print_badge(total_new)
    return total_new


def _print_refresh_result(result):
    """Print a single refresh result."""
    status_color = "green" if result.new_entries > 0 else "white"

    click.echo(click.style(f"  {result.calendar_title}", fg="white", bold=True))

    if result.error:
        click.echo(click.style(f"    Error: {result.error}", fg="red"))
    else:
        click.echo(
            f"    Found: {result.total_found} | "
            + click.style(f"New: {result.new_entries}", fg=status_color)
        )


def _print_badge(count: int) -> None:
    text = badge_text(count)
    if text:
        click.echo(click.style(f"[{text}]", fg="white", bg="red", bold=True))


@cli.command()
@click.argument("calendar", required=False)
@click.pass_context
def ack(ctx: click.Context, calendar: Optional[str]):
    """Mark new entries as seen."""
    db = _open_db(ctx)
    try:
        try:
            count = acknowledge(db, calendar)
        except CalendarNotFoundError as e:
            _error(str(e))
        click.echo(click.style(f"Cleared new entries of {count} calendar(s)", fg="green"))
    finally:
        db.close()


@cli.command()
@click.argument("url")
@click.pass_context
def favorite(ctx: click.Context, url: str):
    """Pin an entry as favorite."""
    db = _open_db(ctx)
    try:
        try:
            fav = add_favorite(db, url)
        except EntryNotFoundError as e:
            _error(str(e))
        click.echo(click.style(f"Pinned '{fav.title}'", fg="green"))
    finally:
        db.close()


@cli.command()
@click.argument("url")
@click.pass_context
def unfavorite(ctx: click.Context, url: str):
    """Unpin a favorite entry."""
    db = _open_db(ctx)
    try:
        if not remove_favorite(db, url):
            _error(f"Favorite '{url}' not found")
        click.echo(click.style(f"Unpinned '{url}'", fg="green"))
    finally:
        db.close()


@cli.command()
@click.pass_context
def favorites(ctx: click.Context):
    """List favorite entries."""
    db = _open_db(ctx)
    try:
        favs = db.list_favorites()
        if not favs:
            click.echo("No favorites yet.")
            return

        click.echo(click.style(f"Favorites ({len(favs)}):", fg="cyan", bold=True))
        click.echo()
        for fav in favs:
            click.echo(f"  {click.style(fav.date, fg='cyan')} {fav.title}")
            click.echo(f"       Calendar: {fav.calendar_title}")
            click.echo(f"       Author: {fav.author}")
            click.echo(f"       URL: {fav.url}")
            click.echo()
    finally:
        db.close()


@cli.command()
@click.option("--refresh-interval", type=int, help="Minutes between periodic refreshes")
@click.pass_context
def settings(ctx: click.Context, refresh_interval: Optional[int]):
    """Show or change settings."""
    db = _open_db(ctx)
    try:
        if refresh_interval is not None:
            try:
                update_settings(db, refresh_interval)
            except InvalidSettingError as e:
                _error(str(e))
            click.echo(click.style("Settings saved", fg="green"))

        current = db.get_settings()
        click.echo(f"Refresh interval: {current.refresh_interval} minute(s)")
        click.echo(f"Database: {ctx.obj.db_path}")
    finally:
        db.close()


@cli.command()
@click.option("--interval", type=int, help="Minutes between refreshes (defaults to the saved setting)")
@click.option("--once", is_flag=True, help="Run a single cycle and exit")
@click.pass_context
def watch(ctx: click.Context, interval: Optional[int], once: bool):
    """Refresh all calendars periodically."""
    db = _open_db(ctx)
    try:
        minutes = interval if interval is not None else db.get_settings().refresh_interval
        if minutes < 1:
            _error(f"Invalid value for interval: {minutes}")

        pending = total_new_count(db)
        if pending:
            click.echo(click.style(f"{pending} unseen entry(ies) from earlier cycles", fg="yellow"))

        while True:
            _run_cycle(db, ctx)
            if once:
                return
            logger.debug(f"Sleeping {minutes} minute(s)")
            time.sleep(minutes * 60)
    except KeyboardInterrupt:
        click.echo("Stopped.")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
