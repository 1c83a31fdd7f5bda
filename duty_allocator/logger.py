# duty_allocator/logger.py
import logging
import os
import sys

LOG_FILE_ENV = "DUTY_ALLOCATOR_LOG_FILE"

logger = logging.getLogger("duty_allocator")
logger.setLevel(logging.INFO)

# Prevent duplicate handlers if imported multiple times
if not logger.handlers:
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(stream_handler)

    log_path = os.environ.get(LOG_FILE_ENV)
    if log_path:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Child logger of the package logger, e.g. ``duty_allocator.allocator``."""
    return logger.getChild(name.rsplit(".", 1)[-1])
