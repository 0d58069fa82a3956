"""Entry extraction from Adventar calendar pages."""

import logging
import re
import warnings
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from .models import Entry

logger = logging.getLogger(__name__)

PLATFORM = "adventar"
SITE_NAME = "Adventar"
UNKNOWN_TITLE = "Unknown Calendar"

TITLE_RE = re.compile(r"<title[^>]*>(.*?) - " + re.escape(SITE_NAME) + r"</title>")
ENTRY_LIST_RE = re.compile(r'<ul[^>]*class="EntryList"[^>]*>([\s\S]*?)</ul>')
ENTRY_ITEM_RE = re.compile(r'<li[^>]*class="item"[^>]*>')

DATE_RE = re.compile(r'class="date"[^>]*>([^<]+)<')
LINK_RE = re.compile(r'class="link"[^>]*><a[^>]*href="([^"]+)"')
USER_BLOCK_RE = re.compile(
    r'class="user"[^>]*>([\s\S]*?)(?=class="(?:left|article|link|image)"|\Z)'
)
USER_ICON_RE = re.compile(r'<img[^>]*src="([^"]+)"')
USER_NAME_RE = re.compile(r'<a[^>]*>([^<]+)<')
LEFT_COLUMN_RE = re.compile(r'class="left"[^>]*>([\s\S]*?)</div>\s*<div class="image"')
LINK_BLOCK_RE = re.compile(r'<div[^>]*class="link"[\s\S]*?</div>')
AFTER_LINK_RE = re.compile(r'class="link"[\s\S]*?</div>\s*<div[^>]*>([\s\S]*?)</div>')

SegmentExtractor = Callable[[str], Optional[str]]


@dataclass
class ExtractionResult:
    """Outcome of extracting a calendar page.

    Besides the title and entries, records how many item segments had to be
    skipped so callers can tell an empty calendar from markup drift.
    """

    title: str = UNKNOWN_TITLE
    entries: list[Entry] = field(default_factory=list)
    skipped: int = 0
    container_found: bool = False

    @property
    def drift_suspected(self) -> bool:
        """True when the entry list exists and has items but none were usable."""
        return self.container_found and self.skipped > 0 and not self.entries


def extract(raw_text: str) -> ExtractionResult:
    """Extract the calendar title and entries from a raw page.

    Never raises: missing markers degrade to "Unknown Calendar" and an
    empty entry list, and unusable item segments are skipped.

    Args:
        raw_text: Raw HTML of a calendar page

    Returns:
        ExtractionResult with entries in page order
    """
    result = ExtractionResult(title=extract_title(raw_text))

    container = _match_group(ENTRY_LIST_RE, raw_text)
    if container is None:
        logger.debug("No entry list found in page")
        return result
    result.container_found = True

    for segment in split_items(container):
        try:
            entry = extract_entry(segment)
        except Exception:
            logger.debug("Failed to extract entry from segment", exc_info=True)
            entry = None

        if entry is None:
            result.skipped += 1
        else:
            result.entries.append(entry)

    if result.drift_suspected:
        logger.warning(
            f"Entry list of '{result.title}' has {result.skipped} item(s) "
            "but none could be extracted; page markup may have changed"
        )

    return result


def extract_title(raw_text: str) -> str:
    """Return the calendar title from the document title, or "Unknown Calendar"."""
    title = _match_group(TITLE_RE, raw_text)
    return title if title is not None else UNKNOWN_TITLE


def split_items(container: str) -> list[str]:
    """Split entry list content into non-blank item segments.

    Text before the first item marker is not an item.
    """
    segments = ENTRY_ITEM_RE.split(container)[1:]
    return [segment for segment in segments if segment.strip()]


def extract_entry(segment: str) -> Optional[Entry]:
    """Build an Entry from one item segment.

    Date and link are required; author, icon and title fall back to
    defaults.

    Args:
        segment: Markup of a single entry item

    Returns:
        Entry, or None if the date or the link is missing
    """
    date = extract_date(segment)
    url = extract_link(segment)
    if not date or not url:
        return None

    return Entry.create(
        date=date,
        url=url,
        title=_first_success(TITLE_EXTRACTORS, segment),
        author=extract_author(segment),
        icon=extract_icon(segment),
    )


def extract_date(segment: str) -> Optional[str]:
    date = _match_group(DATE_RE, segment)
    if date is None:
        return None
    return strip_tags(date) or None


def extract_link(segment: str) -> Optional[str]:
    return _match_group(LINK_RE, segment)


def extract_icon(segment: str) -> Optional[str]:
    user = _match_group(USER_BLOCK_RE, segment)
    if user is None:
        return None
    return _match_group(USER_ICON_RE, user)


def extract_author(segment: str) -> Optional[str]:
    user = _match_group(USER_BLOCK_RE, segment)
    if user is None:
        return None
    author = _match_group(USER_NAME_RE, user)
    if author is None:
        return None
    return strip_tags(author) or None


def title_from_left_column(segment: str) -> Optional[str]:
    """Title text of the left column, minus the link block it contains."""
    content = _match_group(LEFT_COLUMN_RE, segment)
    if content is None:
        return None
    content = LINK_BLOCK_RE.sub("", content, count=1)
    return strip_tags(content) or None


def title_after_link(segment: str) -> Optional[str]:
    """Title text of the element right after the link block."""
    content = _match_group(AFTER_LINK_RE, segment)
    if content is None:
        return None
    return strip_tags(content) or None


TITLE_EXTRACTORS: tuple[SegmentExtractor, ...] = (
    title_from_left_column,
    title_after_link,
)


def strip_tags(fragment: str) -> str:
    """Remove markup from a fragment, decode character references and trim."""
    with warnings.catch_warnings():
        # Fragments are often bare URLs or dates
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        return BeautifulSoup(fragment, "html.parser").get_text().strip()


def _first_success(extractors: Iterable[SegmentExtractor], segment: str) -> Optional[str]:
    for extractor in extractors:
        value = extractor(segment)
        if value:
            return value
    return None


def _match_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1) if match else None
