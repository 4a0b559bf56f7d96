"""Process-wide logging: one stdout handler on the root logger."""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
HANDLER_NAME = "autopress-stdout"

_ENV_VARS = ("AUTOPRESS_LOG_LEVEL", "LOG_LEVEL")
# One line per HTTP request at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore", "anthropic", "google_genai")


def resolve_level(level: str | int | None = None) -> int:
    """Explicit level first, then the first env var that is set, then INFO.

    Names are case-insensitive and numeric strings are accepted. Unknown
    names resolve to INFO.
    """
    if level is None:
        level = next((os.environ[var] for var in _ENV_VARS if os.environ.get(var)), None)
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def setup_logging(level: str | int | None = None) -> int:
    """Attach the stdout handler once and apply the level. Returns the level used."""
    desired = resolve_level(level)

    root = logging.getLogger()
    if not any(handler.get_name() == HANDLER_NAME for handler in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        logging.captureWarnings(True)
    root.setLevel(desired)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(desired, logging.WARNING))
    return desired
