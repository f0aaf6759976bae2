"""
Loguru setup for the campaign backend.

One console sink plus rotating file sinks. Routing to the narrower files is
done on the message prefix:

- ``REQUEST``      -> requests.log (HTTP middleware)
- ``PERFORMANCE``  -> performance.log (stage and tool timings)
- ``TOOL``         -> tools.log (gateway calls and their failures)

Everything at DEBUG and above also lands in app.log; errors in errors.log.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Request
from loguru import logger

from app.config.settings import settings

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
SHORT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"


def _prefixed(prefix: str):
    return lambda record: record["message"].startswith(prefix)


class LoguruConfig:
    """Installs the application's sinks on the global loguru logger."""

    # (file name, level, rotation, retention, message prefix or None)
    FILE_SINKS = (
        ("app.log", "DEBUG", "10 MB", "7 days", None),
        ("errors.log", "ERROR", "5 MB", "30 days", None),
        ("requests.log", "INFO", "20 MB", "14 days", "REQUEST"),
        ("performance.log", "INFO", "10 MB", "7 days", "PERFORMANCE"),
        ("tools.log", "INFO", "20 MB", "14 days", "TOOL"),
    )

    def __init__(self, app_name: str = "adyn-backend", logs_dir: str = "logs"):
        self.app_name = app_name
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def setup_logger(self, log_level: str = "INFO") -> None:
        logger.remove()

        logger.add(
            sys.stdout,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=log_level,
            colorize=True,
            backtrace=True,
            diagnose=True
        )

        for filename, level, rotation, retention, prefix in self.FILE_SINKS:
            logger.add(
                self.logs_dir / filename,
                format=SHORT_FORMAT if prefix else FILE_FORMAT,
                level=level,
                rotation=rotation,
                retention=retention,
                compression="zip",
                encoding="utf-8",
                filter=_prefixed(prefix) if prefix else None,
                backtrace=prefix is None,
                diagnose=prefix is None,
            )


def _client_context(request: Request, **extra: Any) -> Dict[str, Any]:
    context = {
        "client_ip": request.client.host if request.client else None,
        "timestamp": datetime.now().isoformat(),
    }
    context.update(extra)
    return context


def log_request_start(request: Request) -> None:
    logger.bind(**_client_context(
        request,
        query_params=str(request.query_params),
        user_agent=request.headers.get("user-agent"),
    )).info(f"REQUEST START: {request.method} {request.url.path}")


def log_request_end(request: Request, status_code: int, process_time: float) -> None:
    logger.bind(**_client_context(request)).info(
        f"REQUEST END: {request.method} {request.url.path} - {status_code} ({process_time:.4f}s)"
    )


def log_request_error(request: Request, error: Exception, process_time: float) -> None:
    logger.bind(**_client_context(request, error_type=type(error).__name__)).error(
        f"REQUEST ERROR: {request.method} {request.url.path} - {error} ({process_time:.4f}s)"
    )


def log_performance(operation: str, duration: float, source_id: Optional[Any] = None) -> None:
    """Record how long an operation took; ``source_id`` ties it to one run."""
    suffix = f" [source={source_id}]" if source_id is not None else ""
    logger.info(f"PERFORMANCE: {operation} completed in {duration:.4f}s{suffix}")


def log_tool_event(namespace: str, tool_name: str, message: str, level: str = "INFO") -> None:
    logger.log(level, f"TOOL {namespace}.{tool_name}: {message}")


loguru_config = LoguruConfig(logs_dir=settings.LOGS_DIR)
loguru_config.setup_logger(log_level=settings.LOG_LEVEL)

app_logger = logger
