# ============================================================================
# src/order_proof/utils/logging.py
# ============================================================================
"""
Logging configuration and utilities for the order proof engine.
"""

import asyncio
import functools
import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


OCR_LOGGER_NAMES = (
    'order_proof.ocr',
    'order_proof.preprocessors',
    'order_proof.core.orchestrator',
)

TEXT_PREVIEW_CHARS = 400


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_json: bool = False,
    debug_ocr: bool = False,
) -> None:
    """
    Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging
        format_json: Whether to use JSON format
        debug_ocr: Raise recognition loggers to DEBUG (text previews, timings)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True
    )

    set_ocr_debug(debug_ocr)


def set_ocr_debug(enabled: bool) -> None:
    """Toggle DEBUG output for the recognition-related loggers."""
    for name in OCR_LOGGER_NAMES:
        logging.getLogger(name).setLevel(logging.DEBUG if enabled else logging.NOTSET)


def text_preview(text: str, limit: int = TEXT_PREVIEW_CHARS) -> str:
    """Single-line preview of recognized text for debug logs."""
    flat = ' | '.join(line.strip() for line in (text or '').splitlines() if line.strip())
    return flat[:limit]


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra'):
            log_data['extra'] = record.extra

        return json.dumps(log_data, default=str)


def log_performance(logger: logging.Logger, operation: str):
    """
    Decorator to log operation duration. Works on sync and async callables.

    Args:
        logger: Logger instance
        operation: Operation name
    """
    def decorator(func):
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    logger.error(f"{operation} failed after {time.perf_counter() - start:.3f}s: {e}")
                    raise
                logger.info(f"{operation} completed in {time.perf_counter() - start:.3f}s")
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{operation} failed after {time.perf_counter() - start:.3f}s: {e}")
                raise
            logger.info(f"{operation} completed in {time.perf_counter() - start:.3f}s")
            return result

        return wrapper
    return decorator
