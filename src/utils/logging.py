"""Logging configuration and utilities."""

import asyncio
import json
import logging
import logging.handlers
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Optional, Dict, Any, Callable

from rich.console import Console
from rich.logging import RichHandler

from .config import get_settings

console = Console(stderr=True)

# Chatty client libraries used by the retrieval and inference pipelines
NOISY_LOGGERS = (
    "httpx", "httpcore", "urllib3", "openai", "pinecone",
    "sentence_transformers", "langchain", "langchain_core",
    "langchain_openai", "langgraph", "sqlalchemy.engine", "aiosqlite",
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured log files."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'process': record.process,
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # Structured payload attached via extra={'extra_fields': {...}}
        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Filter to add contextual information to log records."""

    def __init__(self, context: Dict[str, Any] = None):
        super().__init__()
        self.context = context or {}

    def filter(self, record: logging.LogRecord) -> bool:
        """Merge the static context into the record's extra fields."""
        if self.context:
            extra_fields = dict(getattr(record, 'extra_fields', None) or {})
            for key, value in self.context.items():
                extra_fields.setdefault(key, value)
            record.extra_fields = extra_fields
        return True


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    use_rich: bool = True,
    use_json: bool = False,
    context: Dict[str, Any] = None
) -> None:
    """Set up application logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        use_rich: Whether to use Rich handler for console output
        use_json: Whether to use JSON formatting for file output
        context: Additional context to add to all log records
    """
    settings = get_settings()

    if level is None:
        level = settings.logging.level

    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if context:
        root_logger.addFilter(ContextFilter(context))

    if use_rich and settings.is_development:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True
        )
        console_handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(settings.logging.format))

    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    file_path = log_file or settings.logging.file_path
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=file_path,
            maxBytes=settings.logging.max_file_size,
            backupCount=settings.logging.backup_count,
            encoding='utf-8'
        )

        if use_json or settings.is_production:
            file_handler.setFormatter(JSONFormatter(datefmt='%Y-%m-%d %H:%M:%S'))
        else:
            file_handler.setFormatter(logging.Formatter(settings.logging.format))

        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str, context: Dict[str, Any] = None) -> logging.Logger:
    """Get a logger instance with the given name and optional context.

    Args:
        name: Logger name (usually __name__)
        context: Additional context to add to all log records from this logger

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if context and not any(
        isinstance(f, ContextFilter) and f.context == context for f in logger.filters
    ):
        logger.addFilter(ContextFilter(context))

    return logger


def log_performance(logger: logging.Logger = None) -> Callable:
    """Decorator to log function execution time.

    Works for both plain functions and coroutine functions.

    Args:
        logger: Logger instance to use (defaults to function's module logger)

    Returns:
        Decorator function
    """
    def decorator(func: Callable) -> Callable:
        func_logger = logger or logging.getLogger(func.__module__)

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    duration = time.perf_counter() - start_time
                    func_logger.error(f"{func.__name__} failed after {duration:.2f}s: {e}")
                    raise
                func_logger.debug(f"{func.__name__} completed in {time.perf_counter() - start_time:.2f}s")
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                func_logger.error(f"{func.__name__} failed after {duration:.2f}s: {e}")
                raise
            func_logger.debug(f"{func.__name__} completed in {time.perf_counter() - start_time:.2f}s")
            return result

        return wrapper
    return decorator


class LoggerMixin:
    """Mixin class to add logging capabilities to any class."""

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class."""
        if not hasattr(self, '_logger'):
            self._logger = get_logger(
                f"{self.__class__.__module__}.{self.__class__.__name__}",
                context={'class': self.__class__.__name__}
            )
        return self._logger


def setup_pipeline_logging(
    pipeline_name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    use_json: bool = False
) -> logging.Logger:
    """Set up logging specifically for pipeline execution.

    Args:
        pipeline_name: Name of the pipeline ('retrieval' or 'inference')
        log_level: Logging level
        log_file: Optional log file path (defaults to logs/{pipeline_name}.log)
        use_json: Whether to use JSON formatting

    Returns:
        Logger instance for the pipeline
    """
    if log_file is None:
        log_file = f"logs/{pipeline_name}.log"

    context = {
        'pipeline': pipeline_name,
        'component': 'pipeline'
    }

    setup_logging(
        level=log_level,
        log_file=log_file,
        use_json=use_json,
        context=context
    )

    return get_logger(f"pipelines.{pipeline_name}", context)


# Initialize logging on import
setup_logging()
