"""
logging_config.py — One-time logging setup for the app process.

Modules log through `logging.getLogger(__name__)`; setup_logging() is called
once by create_app() and only configures the `chatrooms` logger tree, so
tests and embedding applications keep their own root configuration.
"""

from __future__ import annotations

import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "chatrooms": {
                "handlers": ["console"],
                "level": level.upper(),
                "propagate": True,
            },
        },
    })