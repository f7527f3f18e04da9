"""Logging setup shared by the API and the CLI."""

from __future__ import annotations

import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "info") -> None:
    """Install a single stream handler on the package logger."""

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "loggers": {
                "inventory_ledger": {
                    "handlers": ["console"],
                    "level": level.upper(),
                    "propagate": True,
                }
            },
        }
    )
