"""Per-run logging: timestamped file + stdout, with credential redaction."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path


LOGGER_NAME = "vps_deploy"
LOG_FORMAT = "%(asctime)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
REDACTED = "***"

logger = logging.getLogger(LOGGER_NAME)


def log_file_name(started_at: datetime) -> str:
    return f"deploy_{started_at.strftime('%Y%m%d_%H%M%S')}.log"


class SecretRedactingFilter(logging.Filter):
    """Replaces every registered secret in a record's rendered message.

    Attached to the handlers (not the logger) so records from child loggers
    are scrubbed too.
    """

    def __init__(self) -> None:
        super().__init__()
        self._secrets: set[str] = set()

    def add_secret(self, value: str) -> None:
        value = str(value or "")
        if value.strip():
            self._secrets.add(value)

    def redact(self, text: str) -> str:
        # Longest first so a secret containing another secret is fully masked.
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secrets:
            record.msg = self.redact(record.getMessage())
            record.args = None
        return True


_redactor = SecretRedactingFilter()


def register_secret(value: str) -> None:
    _redactor.add_secret(value)


def redact(text: str) -> str:
    return _redactor.redact(text)


def setup_run_logging(*, log_dir: Path, started_at: datetime | None = None) -> Path:
    """Attach a fresh file handler and a stdout handler to the deploy logger.

    Returns the path of the run's log file.
    """
    started_at = started_at or datetime.now()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / log_file_name(started_at)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: list[logging.Handler] = [
        logging.FileHandler(log_path, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(_redactor)
        logger.addHandler(handler)

    logger.setLevel(logging.INFO)
    return log_path


def log_output(text: str | None, *, prefix: str = "") -> None:
    """Log captured command output line by line."""
    for line in str(text or "").splitlines():
        if line.strip():
            logger.info(f"{prefix}{line.rstrip()}")


class StepLogger:
    """Numbered stage banners: `[vps-deploy] Step N: message`."""

    def __init__(self, tag: str = "vps-deploy") -> None:
        self.tag = tag
        self.step_number = 0

    def step(self, message: str) -> None:
        self.step_number += 1
        logger.info(f"[{self.tag}] Step {self.step_number}: {message}")

    def info(self, message: str) -> None:
        logger.info(f"[{self.tag}] {message}")

    def warning(self, message: str) -> None:
        logger.warning(f"[{self.tag}] WARNING: {message}")

    def error(self, message: str) -> None:
        logger.error(f"[{self.tag}] ERROR: {message}")
