"""
IntelliStudy Logging
Every module logs under the ``intellistudy.*`` hierarchy; this wires that
tree to stdout and, optionally, to a log file.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"

# Chatty third-party loggers pulled in by the vision stack
QUIET_LOGGERS = ("ultralytics", "urllib3", "absl", "matplotlib")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    logger = logging.getLogger("intellistudy")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Re-running (uvicorn --reload, tests) must not duplicate output
    if not logger.handlers:
        handlers = [logging.StreamHandler(sys.stdout)]
        if log_file:
            handlers.append(logging.FileHandler(log_file))
        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
