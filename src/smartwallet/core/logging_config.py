"""
smartwallet - Structured Logging Configuration

Library modules only ever call ``logging.getLogger(__name__)`` and attach
context through ``extra={"event": ..., ...}``. Applications (the CLI, a
coordinator process, a test harness) decide where records go by calling
``setup_logging`` once; records are then emitted as one JSON object per line
with the ``extra`` fields promoted to top-level keys.

Usage:
    from smartwallet.core.logging_config import setup_logging

    logger = setup_logging(
        name="smartwallet",
        log_file="/var/log/smartwallet/ledger.json",
        level="INFO",
    )
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding timestamp, environment, service and source location
    to every record.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        timestamp: bool = True,
        environment: Optional[str] = None,
        service_name: str = "smartwallet",
    ):
        super().__init__(fmt=fmt)
        self.timestamp = timestamp
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        if self.timestamp and not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(
    name: str = "smartwallet",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "production",
    enable_console: bool = True,
    enable_file: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    stream: Any = None,
) -> logging.Logger:
    """
    Route the ``name`` logger hierarchy to JSON handlers.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        name: Logger name; child loggers (``name.*``) inherit the handlers
        log_file: Rotating JSON log file, used when ``enable_file`` is set
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Value of the ``environment`` field on every record
        enable_console: Also write to ``stream`` (stderr by default)
        enable_file: Also write to ``log_file``
        max_bytes: Rotation threshold for ``log_file``
        backup_count: Rotated files kept next to ``log_file``
        stream: Console stream override

    Raises:
        ValueError: If ``level`` is not a logging level name
    """
    log_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers = []

    formatter = CustomJsonFormatter(environment=environment, service_name=name.split(".")[0])
    handlers: List[logging.Handler] = []

    if enable_console:
        handlers.append(logging.StreamHandler(stream or sys.stderr))

    if enable_file and log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    filename=log_file,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                )
            )
        except OSError as e:
            logger.warning(
                "Could not create file handler for %s: %s",
                log_file,
                e,
                extra={"event": "logging.file_handler_failed", "log_file": log_file},
            )

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def setup_cli_logging(level: str = "WARNING") -> logging.Logger:
    """Console-only logging for the command line tool."""
    return setup_logging(
        name="smartwallet",
        level=level,
        environment="cli",
        enable_file=False,
    )
