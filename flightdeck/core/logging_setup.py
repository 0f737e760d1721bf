"""
Logging Setup Module

Configures the root logger once for the service: a console handler plus an
optional rotating file handler, both sharing one format.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from flightdeck.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Initialize logging for the application.

    Args:
        level: Level name (DEBUG/INFO/WARNING/ERROR); defaults to settings.LOG_LEVEL
        log_file: Optional path for a rotating log file; defaults to settings.LOG_FILE
    """
    global _configured
    if _configured:
        return

    level_name = (level or settings.LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(numeric_level)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    console.setLevel(numeric_level)
    root.addHandler(console)

    target = log_file or settings.LOG_FILE
    if target:
        path = Path(target).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        # Rotate at 5MB, keep 7 backups
        file_handler = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=7, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(numeric_level)
        root.addHandler(file_handler)

    _configured = True
    logging.getLogger(__name__).info("Logging initialized at %s", level_name)
