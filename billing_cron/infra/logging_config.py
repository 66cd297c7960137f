"""
Logging setup for the billing_cron package.

One file per calendar day, named after the day and the process start time:
logs/billing_cron_YYYYMMDD_<START_HHMMSS>.log
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

LOGGER_NAME = "billing_cron"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# httpx logs every request at INFO; provider polling would drown the job logs.
QUIET_LOGGERS = ("httpx", "httpcore")

_PROCESS_START_TIME: Optional[str] = None


def _process_start_hhmmss() -> str:
    global _PROCESS_START_TIME
    if _PROCESS_START_TIME is None:
        _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")
    return _PROCESS_START_TIME


class DailyRotatingFileHandler(logging.FileHandler):
    """
    FileHandler that reopens on the first record of a new day.

    The HHMMSS suffix stays fixed for the life of the process, so the files
    of one process sort together.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        prefix: str = LOGGER_NAME,
        encoding: str = "utf-8",
        now: Callable[[], datetime] = datetime.now,
    ):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.prefix = prefix
        self._now = now
        self._start_hhmmss = _process_start_hhmmss()
        self._day = self._today()
        super().__init__(self.path_for(self._day), mode="a", encoding=encoding)

    def _today(self) -> str:
        return self._now().strftime("%Y%m%d")

    def path_for(self, day: str) -> str:
        return str(self.log_dir / f"{self.prefix}_{day}_{self._start_hhmmss}.log")

    def emit(self, record: logging.LogRecord) -> None:
        today = self._today()
        if today != self._day:
            self.close()
            self._day = today
            self.baseFilename = self.path_for(today)
            self.stream = self._open()
        super().emit(record)


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> logging.Logger:
    """
    Attach console and daily-file handlers to the package logger.

    Module loggers (billing_cron.scheduler.orchestrator, ...) propagate up
    to it, so one call at process start covers the package. Calling again
    replaces the handlers.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; unknown names
            fall back to INFO
        log_dir: Directory for the daily files
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        DailyRotatingFileHandler(log_dir=log_dir),
    ]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.info(f"Logging started - level: {log_level.upper()}, file: {handlers[1].baseFilename}")
    return logger
