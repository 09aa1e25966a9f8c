"""
Structured logging for the import pipeline.

Combines colored console logging and JSON-line structured events that carry
a per-invocation correlation ID.
"""
import logging
import json
import uuid
import sys
import contextvars
from typing import Optional, Dict, Any
from datetime import datetime, timezone

import colorlog

# Context variables to trace a single import invocation
_request_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar('request_context', default={})


def setup_colored_logging(service_name: str = "importer", level: str = "INFO"):
    """
    Configures colored logging with colorlog.

    Args:
        service_name: Service name shown in every log line
        level: Root log level name

    Returns:
        The configured root logger
    """
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    formatter = colorlog.ColoredFormatter(
        f'%(log_color)s[%(levelname)s]%(reset)s %(cyan)s{service_name}%(reset)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        reset=True,
        log_colors={
            'DEBUG': 'white',
            'INFO': 'blue',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        },
        secondary_log_colors={},
        style='%'
    )

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Drop existing handlers
    root_logger.handlers = []
    root_logger.addHandler(handler)

    # Quieter third-party loggers
    logging.getLogger('chardet').setLevel(logging.WARNING)
    logging.getLogger('openpyxl').setLevel(logging.WARNING)

    return root_logger


def set_request_context(correlation_id: Optional[str] = None, **fields) -> str:
    """
    Sets the logging context for the current import invocation.

    Args:
        correlation_id: Correlation ID (generated when None)
        **fields: Extra fields attached to every structured event (e.g. file_name)

    Returns:
        The correlation ID in effect
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    context = {k: v for k, v in fields.items() if v is not None}
    context["correlation_id"] = correlation_id

    _request_context.set(context)
    return correlation_id


def get_request_context() -> Dict[str, Any]:
    """
    Returns the current invocation context.

    Returns:
        Dict with correlation_id and any extra fields
    """
    return _request_context.get({})


def get_correlation_id() -> Optional[str]:
    """Returns the correlation ID of the current context, if any."""
    return get_request_context().get("correlation_id")


def clear_request_context() -> None:
    _request_context.set({})


def log_json(
    level: str,
    message: str,
    correlation_id: Optional[str] = None,
    stage: Optional[str] = None,
    file_name: Optional[str] = None,
    file_type: Optional[str] = None,
    rows_total: Optional[int] = None,
    rows_with_warnings: Optional[int] = None,
    warning_count: Optional[int] = None,
    elapsed_ms: Optional[float] = None,
    decision: Optional[str] = None,
    **extra
):
    """
    Structured log event emitted as a single JSON line.

    Args:
        level: 'info', 'warning', 'error', 'debug'
        message: Message to log
        correlation_id: Correlation ID (taken from context when None)
        stage: Pipeline stage (read, header, match, sanitize)
        file_name: File being imported
        file_type: Detected file type
        rows_total: Number of data rows
        rows_with_warnings: Rows with at least one sanitization warning
        warning_count: Total sanitization warnings
        elapsed_ms: Elapsed time in milliseconds
        decision: Pipeline decision (ok/error)
        **extra: Additional fields
    """
    ctx = get_request_context()
    if correlation_id is None:
        correlation_id = ctx.get("correlation_id")
    if file_name is None:
        file_name = ctx.get("file_name")

    log_data: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level.upper(),
        "message": message,
    }

    if correlation_id:
        log_data["correlation_id"] = correlation_id
    if file_name:
        log_data["file_name"] = file_name
    if file_type:
        log_data["file_type"] = file_type
    if stage:
        log_data["stage"] = stage

    # Metrics
    if rows_total is not None:
        log_data["rows_total"] = rows_total
    if rows_with_warnings is not None:
        log_data["rows_with_warnings"] = rows_with_warnings
    if warning_count is not None:
        log_data["warning_count"] = warning_count
    if elapsed_ms is not None:
        log_data["elapsed_ms"] = elapsed_ms

    if decision:
        log_data["decision"] = decision

    log_data.update(extra)

    logger = logging.getLogger(__name__)
    log_func = getattr(logger, level.lower(), logger.info)
    log_func(json.dumps(log_data, ensure_ascii=False, default=str))
