"""Runtime configuration for CalWatcher."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_PATH = Path.home() / ".calwatcher" / "calwatcher.db"
DEFAULT_TIMEOUT = 30  # seconds
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class Config:
    db_path: Path = DEFAULT_DB_PATH
    timeout: int = DEFAULT_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def get_timeout() -> int:
    value = os.getenv("CALWATCHER_TIMEOUT")
    if not value:
        return DEFAULT_TIMEOUT
    try:
        timeout = int(value)
    except ValueError:
        logging.warning("Invalid CALWATCHER_TIMEOUT %s, falling back to %s", value, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_TIMEOUT


def get_config(db_path: Optional[Path] = None) -> Config:
    """Build the configuration from the environment.

    Args:
        db_path: Explicit database path, overrides CALWATCHER_DB

    Returns:
        Config instance
    """
    env_db = os.getenv("CALWATCHER_DB")
    return Config(
        db_path=db_path or (Path(env_db).expanduser() if env_db else DEFAULT_DB_PATH),
        timeout=get_timeout(),
        log_level=os.getenv("CALWATCHER_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )


def setup_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
