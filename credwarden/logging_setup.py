"""Logging configuration for credwarden.

Security events (logins, lockouts, unlocks, password and settings changes)
are written to the "credwarden.audit" child logger. They reach the main log
like everything else and are also kept in a separate audit file.
"""

import logging
import os
from datetime import datetime

from credwarden import __version__

LOGGER_NAME = "credwarden"
AUDIT_LOGGER_NAME = "credwarden.audit"


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(level: str = "INFO", path: str = "./logs", audit_file: bool = True):
    """Configure and return the credwarden logger.

    Calling it again replaces the handlers of the previous call.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR)
        path: Directory path for log files
        audit_file: Also write security events to audit_<timestamp>.log
    """
    os.makedirs(path, exist_ok=True)
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    log_file = os.path.join(path, f"credwarden({__version__})_{stamp}.log")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _reset_handlers(logger)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s')

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)

    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    _reset_handlers(audit)
    audit.setLevel(logging.NOTSET)
    if audit_file:
        # Security events are kept even when the main log is quieter
        audit.setLevel(logging.INFO)
        audit_handler = logging.FileHandler(os.path.join(path, f"audit_{stamp}.log"))
        audit_handler.setLevel(logging.INFO)
        audit_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        audit.addHandler(audit_handler)

    logger.debug(f"Log file created: {log_file}")

    return logger
