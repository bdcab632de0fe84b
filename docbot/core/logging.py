"""Structured logging configuration using structlog."""

import logging
import re
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, override

import structlog

APP_LOG_NAME = "app.log"
ERROR_LOG_NAME = "error.log"
REQUEST_LOG_NAME = "request.log"

# ANSI escape code pattern for stripping colors
ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")

# Values that must never reach log files verbatim
SENSITIVE_PATTERNS = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "api_key": re.compile(r"\b(sk-|pcsk_|AKIA|ghp_)[A-Za-z0-9_-]{16,}\b"),
    "bearer": re.compile(r"Bearer\s+[A-Za-z0-9._-]+", re.IGNORECASE),
    "ip_address": re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b"),
}

_MASKING_ENABLED = True


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return ANSI_ESCAPE.sub("", text)


def mask_sensitive(message: str) -> str:
    """Mask e-mail addresses, API keys, bearer tokens and IP addresses."""
    masked = message
    for kind, pattern in SENSITIVE_PATTERNS.items():
        if kind == "email":
            masked = pattern.sub(lambda m: "***@" + m.group().split("@", 1)[1], masked)
        elif kind == "ip_address":
            masked = pattern.sub("***.***.***.***", masked)
        elif kind == "bearer":
            masked = pattern.sub("Bearer ***", masked)
        else:
            masked = pattern.sub("***", masked)
    return masked


class CleanFileHandler(logging.Handler):
    """File handler that writes clean, readable logs without ANSI codes."""

    def __init__(self, filepath: Path, max_size_mb: int = 10, max_days: int = 30):
        super().__init__()
        self.filepath = filepath
        self.max_size = max_size_mb * 1024 * 1024
        self.max_days = max_days

    @override
    def emit(self, record: Any) -> None:
        try:
            msg = self.format(record)
            clean_msg = strip_ansi(msg)

            with open(self.filepath, "a", encoding="utf-8") as f:
                f.write(clean_msg + "\n")

            if self.filepath.stat().st_size > self.max_size:
                self._rotate()

        except Exception:
            self.handleError(record)

    def _rotate(self) -> None:
        """Rotate log file with timestamp."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        rotated = self.filepath.with_suffix(f".{timestamp}.log")
        if self.filepath.exists():
            self.filepath.rename(rotated)

        self._cleanup_old_logs()

    def _cleanup_old_logs(self) -> None:
        """Delete rotated files older than max_days."""
        cutoff = datetime.now() - timedelta(days=self.max_days)

        for log_file in self.filepath.parent.glob(f"{self.filepath.stem}.*.log"):
            try:
                timestamp_str = log_file.stem.split(".")[-1]
                file_time = datetime.strptime(timestamp_str, "%Y%m%d_%H%M%S")
                if file_time < cutoff:
                    log_file.unlink()
            except (ValueError, OSError):
                continue


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    log_to_file: bool = True,
    log_dir: str | Path = "logs",
    mask_values: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON format; otherwise, console-friendly format
        log_to_file: If True, also write logs to files under ``log_dir``
        log_dir: Directory for app/error/request log files
        mask_values: Mask e-mails, keys and IPs in request logs
    """
    global _MASKING_ENABLED
    _MASKING_ENABLED = mask_values

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if log_to_file:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)

        app_handler = CleanFileHandler(directory / APP_LOG_NAME, max_size_mb=10, max_days=30)
        app_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        app_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(app_handler)

        error_handler = CleanFileHandler(directory / ERROR_LOG_NAME, max_size_mb=5, max_days=60)
        error_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

        request_handler = CleanFileHandler(directory / REQUEST_LOG_NAME, max_size_mb=20, max_days=7)
        request_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        request_logger = logging.getLogger("request")
        request_logger.addHandler(request_handler)
        request_logger.setLevel(logging.INFO)
        request_logger.propagate = False

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors_list = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors_list = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors_list,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float | None = None,
    request_id: str | None = None,
    client: str | None = None,
    error: str | None = None,
) -> None:
    """Write one readable line per API request to the request log."""
    logger = logging.getLogger("request")

    parts = [f"[{method}] {path}", f"| {status_code}"]
    if request_id:
        parts.append(f"| id={request_id[:8]}")
    if client:
        parts.append(f"| client={client}")
    if duration_ms is not None:
        parts.append(f"| {duration_ms:.0f}ms")
    if error:
        parts.append(f"| ERROR: {error[:500]}")

    line = " ".join(parts)
    if _MASKING_ENABLED:
        line = mask_sensitive(line)
    logger.info(line)
