"""
Progress output and the crawl log file.

Messages meant for the operator are printed and written to the log; the log
file is ``<log_dir>/YYYY-MM-DD.log`` with a ``_N`` suffix for later runs of the
same day.
"""
from __future__ import annotations
import logging
import os
from datetime import datetime
from typing import Optional

logger = logging.getLogger("wikicrawl")

LOG_FORMAT = "%(asctime)s.%(msecs)03d-[%(levelname)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d_%H:%M:%S"


def next_log_path(log_dir: str, today: Optional[str] = None) -> str:
    """Return the path of the next log file of the day."""
    log_name = today or datetime.now().strftime("%Y-%m-%d")
    existing = [name for name in os.listdir(log_dir) if name.startswith(log_name)] if os.path.isdir(log_dir) else []
    if existing:
        log_name = f"{log_name}_{len(existing) + 1}"
    return os.path.join(log_dir, f"{log_name}.log")


def setup_logs(log_dir: str = "logs", level: int = logging.INFO) -> str:
    """Send every log record of the process to a fresh dated log file."""
    os.makedirs(log_dir, exist_ok=True)
    path = next_log_path(log_dir)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    return path


def println_and_log(message: str):
    print(message)
    logger.info(message)


def warn_and_log(message: str):
    print(f"WARNING: {message}")
    logger.warning(message)


def error_and_log(message: str):
    print(f"ERROR: {message}")
    logger.error(message)
