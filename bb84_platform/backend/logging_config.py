"""
logging_config.py — Centralised logging configuration.

Usage in any module:
    from .logging_config import get_logger
    log = get_logger("bb84.session")

configure_logging() is called once, at the server entry point.
"""
import copy
import logging
import logging.config
import os
from typing import Optional

from .config import LOG_FILE, LOG_LEVEL

# ---------------------------------------------------------------------------
# Named loggers used across the project
# "bb84.session"  — session state machine: phases, QBER, keys, restarts
# "bb84.channel"  — photon transmission and interception
# "bb84.network"  — WebSocket connections, roster, relays, rejections
# ---------------------------------------------------------------------------

_LOGGING_CONFIG: dict = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "brief": {
            "format": "[%(levelname)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "brief",
            "level": "DEBUG",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "bb84.session": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "bb84.channel": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "bb84.network": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
    "root": {
        "level": "WARNING",
        "handlers": ["console"],
    },
}


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Initialise logging from the built-in config dict.  When *log_file* (or
    BB84_LOG_FILE) is set, a rotating audit file is attached to every
    named logger.
    """
    cfg = copy.deepcopy(_LOGGING_CONFIG)
    level = (level or LOG_LEVEL).upper()
    log_file = log_file or LOG_FILE

    for logger_cfg in cfg["loggers"].values():
        logger_cfg["level"] = level

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        cfg["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "level": "DEBUG",
            "filename": log_file,
            "maxBytes": 10_485_760,   # 10 MB before rotating
            "backupCount": 5,
            "mode": "a",
            "encoding": "utf-8",
        }
        for logger_cfg in cfg["loggers"].values():
            logger_cfg["handlers"].append("file")

    logging.config.dictConfig(cfg)


def get_logger(name: str) -> logging.Logger:
    """Returns a named logger ('bb84.session', 'bb84.channel', 'bb84.network')."""
    return logging.getLogger(name)
