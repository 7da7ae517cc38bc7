# app/core/logging_config.py
import logging
import logging.config
import sys
from typing import Any, Dict

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Console output for everything, plus a file for the ``app`` tree.

    Grading records carry context through ``extra``; the handlers here only
    decide where they go.
    """
    app_level = "DEBUG" if settings.DEBUG else "INFO"
    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": sys.stdout,
            },
            "grading_file": {
                "class": "logging.FileHandler",
                "formatter": "default",
                "filename": settings.LOG_FILE,
                "delay": True,
            },
        },
        "root": {"handlers": ["console"], "level": "INFO"},
        "loggers": {
            # Propagates to root so test log capture sees grading records
            "app": {"handlers": ["grading_file"], "level": app_level},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(logging_config)
    logging.getLogger(__name__).info(
        f"Logging configured for {settings.ENVIRONMENT} (debug={settings.DEBUG})"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name"""
    return logging.getLogger(f"app.{name}")


# Initialize logging when module is imported
setup_logging()
