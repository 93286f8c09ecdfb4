"""stdout logging shared by the API process, the job worker and the maintenance scripts."""

import logging
import sys

from auditflow.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Per-request chatter from these libraries only shows in debug mode.
_CHATTY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def setup_logging() -> None:
    """Attach a stdout handler to the root logger.

    debug=True in settings logs everything at DEBUG; otherwise the root
    level is INFO and the chatty client libraries are held at WARNING.
    """
    debug = get_settings().debug
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass __name__ so records carry the auditflow module path."""
    return logging.getLogger(name)
