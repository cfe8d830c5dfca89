# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Logging setup for the auth service.

Levels, handlers and format live in etc/logging.conf.  The file handler's
target is written there as the ``%(log_file)s`` placeholder; it is filled in
with ``<LOG_DIR>/app.log`` before the config is applied.

Usage:
    from core.logger import logger               # "inkpost"
    from core.logger import get_logger
    audit_log = get_logger("audit")              # "inkpost.audit"
"""

import configparser
import logging
import logging.config
from pathlib import Path
from typing import Optional

from core.config import settings

ROOT_LOGGER = "inkpost"

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_DEFAULT_CONF = _PROJECT_ROOT / "etc" / "logging.conf"


def _log_dir() -> Path:
    # LOG_DIR may be relative; it is taken from the project root, not the cwd
    log_dir = Path(settings.log_dir)
    if not log_dir.is_absolute():
        log_dir = _PROJECT_ROOT / log_dir
    return log_dir


def configure_logging(conf_path: Optional[Path] = None) -> Path:
    """
    Apply the logging config and return the log file path in use.  Safe to
    call more than once; the last call wins.
    """
    log_dir = _log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "app.log"

    raw = Path(conf_path or _DEFAULT_CONF).read_text(encoding="utf-8")
    # RawConfigParser: the format strings hold %(asctime)s and friends
    parser = configparser.RawConfigParser()
    parser.read_string(raw.replace("%(log_file)s", str(log_file)))

    logging.config.fileConfig(parser, disable_existing_loggers=False)
    return log_file


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child of the ``inkpost`` logger, so it shares its handlers."""
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


configure_logging()

logger = get_logger()
