"""Logging setup for the API process."""
import logging
from logging.config import dictConfig

from addons_app.config import settings

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["console"], "level": "INFO"},
        "addons_app": {"handlers": ["console"], "level": settings.log_level, "propagate": False},
        "storefront": {"handlers": ["console"], "level": settings.log_level, "propagate": False},
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
}


def setup_logging():
    """Apply the logging configuration."""
    dictConfig(LOGGING_CONFIG)
    logging.getLogger(__name__).debug("Logging configured")
