"""
Logging configuration that keeps injected allocation failures out of the console
"""

import logging
import logging.config
from typing import Any, Dict, Optional


class InjectedFailureFilter(logging.Filter):
    """Filter to suppress logs about deliberately injected allocation failures."""

    def __init__(self, level: str = "WARNING"):
        super().__init__()
        self.level = logging.getLevelName(level.upper()) if isinstance(level, str) else level

    def filter(self, record: logging.LogRecord) -> bool:
        """Drop injected-failure records unless the console level is DEBUG."""
        if getattr(record, "injected", False):
            return self.level <= logging.DEBUG
        return True


def get_logging_config(level: str = "WARNING", log_file: Optional[str] = None) -> Dict[str, Any]:
    """Get logging configuration with injected-failure suppression."""
    handlers = ["default"]
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "injected_failure_filter": {
                "()": InjectedFailureFilter,
                "level": level
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
                "level": level,
                "filters": ["injected_failure_filter"]
            }
        },
        "loggers": {
            "strqueue": {
                "handlers": handlers,
                "level": "DEBUG" if log_file else level,
                "propagate": False
            }
        },
        "root": {
            "level": "WARNING",
            "handlers": ["default"]
        }
    }

    if log_file:
        # File log keeps everything, including injected failures
        config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": log_file,
            "mode": "w"
        }
        handlers.append("file")

    return config


def configure_logging(level: str = "WARNING", log_file: Optional[str] = None) -> None:
    logging.config.dictConfig(get_logging_config(level, log_file))
