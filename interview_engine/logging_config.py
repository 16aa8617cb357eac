"""Structured logging configuration.

Call ``setup_logging()`` once from every entrypoint (CLI / web) before
the interview engine starts.  Library modules just use
``logging.getLogger(__name__)`` and inherit the root configuration.
"""

from __future__ import annotations

import logging
import os
import sys

# Chatty client libraries that log every HTTP round-trip at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "langchain", "langgraph")

_TEXT_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_JSON_FORMAT = (
    '{"time":"%(asctime)s","level":"%(levelname)s",'
    '"logger":"%(name)s","message":"%(message)s"}'
)


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger with a consistent format.

    ``LOG_FORMAT=json`` switches to one-line JSON records for log
    shippers; the default is a human-readable text layout.  ``level``
    overrides ``LOG_LEVEL`` when given (the CLI uses this for ``--verbose``).
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_format = os.getenv("LOG_FORMAT", "text").lower()

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=_JSON_FORMAT if log_format == "json" else _TEXT_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
