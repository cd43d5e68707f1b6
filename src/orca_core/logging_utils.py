from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(
    level: int | str = logging.INFO,
    log_path: Optional[str] = None,
    also_console: bool = True,
) -> Optional[str]:
    """Configure root logging for the orca tools.

    Library modules only create named loggers; handlers are installed here,
    once, by the command line entry points.

    Returns the log file path in use, if any.
    """
    logger = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_orca_configured", False):
        return getattr(logger, "_orca_log_path", None)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: list[logging.Handler] = []

    if log_path:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(fmt)
        handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_orca_configured", True)
    setattr(logger, "_orca_log_path", log_path)

    logging.getLogger(__name__).debug("Logging initialized (level=%s, file=%s)", level, log_path)
    return log_path
