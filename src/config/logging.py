"""
Whose Track? - Logging Configuration

One stream handler on the root logger; modules log through
``logging.getLogger(__name__)``.
"""

import logging

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%H:%M:%S"

# Chatty third-party loggers that drown out game events at DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "websockets", "urllib3")


def configure_logging(level: str | int = "INFO") -> None:
    """Install the app log handler. Safe to call on every Streamlit rerun."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_whose_track", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
        handler._whose_track = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
