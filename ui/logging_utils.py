"""Logging setup shared by the API and scripts."""
from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
NOISY_LOGGERS = ("urllib3", "httpx", "multipart")


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure root logging once.

    ``NOVA_LOG_LEVEL`` and ``NOVA_LOG_FILE`` are used when the arguments are
    omitted. An empty log file name keeps logging on the console only.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level_name = (level or os.getenv("NOVA_LOG_LEVEL", "INFO")).upper()
    resolved_level = getattr(logging, level_name, logging.INFO)
    file_name = log_file if log_file is not None else os.getenv("NOVA_LOG_FILE", "nova.log")

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if file_name:
        log_path = Path(file_name)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    root_logger.setLevel(resolved_level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))
