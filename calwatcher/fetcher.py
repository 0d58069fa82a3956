"""Page retrieval for CalWatcher."""

import logging

import requests

from .config import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)


def fetch(url: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """Fetch a calendar page and return its text.

    Args:
        url: URL of the calendar page
        timeout: Request timeout in seconds

    Returns:
        Decoded response body

    Raises:
        FetchError: If the page cannot be fetched
    """
    logger.debug(f"Fetching {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"Failed to fetch page: {e}") from e

    return response.text


class FetchError(Exception):
    """Raised when a page cannot be fetched."""

    pass
