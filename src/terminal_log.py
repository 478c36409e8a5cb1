# src/terminal_log.py
"""
Tagged logging for the dashboard's terminal panel.

Every record carries a short tag (DATA, CALC, HANDOVER, ...). The terminal
handler keeps the last lines in memory so the UI can render them.
"""

import logging
from collections import deque

import config

LOG_FORMAT = "[%(asctime)s] [%(tag)s] %(message)s"
TIME_FORMAT = "%H:%M:%S"


class TagFilter(logging.Filter):
    """Give untagged records their level name as tag."""

    def filter(self, record):
        if not hasattr(record, "tag"):
            record.tag = record.levelname
        return True


class TerminalLogHandler(logging.Handler):
    def __init__(self, max_lines=config.LOG_LINES):
        super().__init__()
        self.lines = deque(maxlen=max_lines)
        self.addFilter(TagFilter())
        self.setFormatter(logging.Formatter(LOG_FORMAT, TIME_FORMAT))

    def emit(self, record):
        try:
            self.lines.append(self.format(record))
        except Exception:
            self.handleError(record)

    def clear(self):
        self.lines.clear()


def tagged(logger, tag):
    """Bind a terminal tag to a logger."""
    return logging.LoggerAdapter(logger, {"tag": tag})


def setup_logging(level=logging.INFO):
    """Configure tagged console logging; safe to call more than once."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=TIME_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, TagFilter) for f in handler.filters):
            handler.addFilter(TagFilter())


def attach_terminal(accept=None, max_lines=config.LOG_LINES):
    """Add a terminal handler to the root logger.

    `accept(record)` narrows which records it keeps, e.g. to one dashboard
    session.
    """
    handler = TerminalLogHandler(max_lines)
    if accept is not None:
        handler.addFilter(accept)
    logging.getLogger().addHandler(handler)
    return handler
