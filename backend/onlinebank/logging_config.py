"""Logging setup for the banking API.

Log records go to a rotating file under `settings.LOG_DIR` and to the
console. Modules obtain loggers with `logging.getLogger("onlinebank.<area>")`
so every record lands under the package's logger tree.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "onlinebank.log"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5


def setup_logging(log_dir: str = None, level: str = None) -> logging.Logger:
    """Configure the `onlinebank` logger tree once and return its root.

    Calling the function again is a no-op so importing the app from
    tests or scripts does not stack handlers.
    """
    root = logging.getLogger("onlinebank")
    if root.handlers:
        return root

    log_dir = log_dir or settings.LOG_DIR
    level = (level or settings.LOG_LEVEL).upper()
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root.setLevel(level)
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    root.propagate = False
    return root
