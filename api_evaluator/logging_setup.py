from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: int | str = logging.INFO, log_file: str | Path | None = None) -> logging.Logger:
    """Configure console logging, plus a file handler when ``log_file`` is given."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Calling setup twice must not duplicate every line.
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    log_path: Optional[Path] = Path(log_file) if log_file else None
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.info("Log file created at: %s", log_path.resolve())

    # urllib3 logs every connection attempt at DEBUG.
    logging.getLogger("urllib3").setLevel(max(logging.getLogger().level, logging.INFO))

    return logger
