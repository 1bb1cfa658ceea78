"""Logging utilities for the inference pipeline.

Inference-specific loggers, an operation-timing decorator for plain and
coroutine functions, and structured helpers for token usage and latency.
"""

import asyncio
import logging
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional

from src.utils.logging import (
    get_logger,
    setup_pipeline_logging,
    LoggerMixin,
)


INFERENCE_CONTEXT = {
    "pipeline": "inference",
    "component": "inference_pipeline",
}


def get_inference_logger(
    name: str,
    context: Optional[Dict[str, Any]] = None
) -> logging.Logger:
    """Get a logger for inference pipeline components.

    Args:
        name: Logger name (usually __name__ or component name)
        context: Additional context to add to log records

    Returns:
        Logger instance with inference context
    """
    merged_context = {**INFERENCE_CONTEXT}
    if context:
        merged_context.update(context)

    return get_logger(f"pipelines.inference.{name}", merged_context)


def setup_inference_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    use_json: bool = False
) -> logging.Logger:
    """Set up logging for inference pipeline execution.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path (defaults to logs/inference_pipeline.log)
        use_json: Whether to use JSON formatting for file output
    """
    if log_file is None:
        log_file = "logs/inference_pipeline.log"

    return setup_pipeline_logging(
        pipeline_name="inference",
        log_level=log_level,
        log_file=log_file,
        use_json=use_json
    )


def log_inference_operation(
    operation_name: str,
    logger: Optional[logging.Logger] = None
) -> Callable:
    """Decorator to log inference operations with timing and context.

    Works on both plain and coroutine functions. Errors are logged and
    re-raised.

    Args:
        operation_name: Name of the operation being logged
        logger: Logger instance to use (defaults to inference logger)
    """
    def _started(op_logger: logging.Logger) -> float:
        op_logger.debug(
            f"Starting {operation_name}",
            extra={"extra_fields": {"operation": operation_name}}
        )
        return time.perf_counter()

    def _succeeded(op_logger: logging.Logger, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        op_logger.info(
            f"{operation_name} completed in {duration_ms:.2f}ms",
            extra={"extra_fields": {
                "operation": operation_name,
                "duration_ms": duration_ms,
                "status": "success"
            }}
        )

    def _failed(op_logger: logging.Logger, start_time: float, error: Exception) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        op_logger.error(
            f"{operation_name} failed after {duration_ms:.2f}ms: {error}",
            extra={"extra_fields": {
                "operation": operation_name,
                "duration_ms": duration_ms,
                "status": "error",
                "error_type": type(error).__name__
            }},
            exc_info=True
        )

    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                op_logger = logger or get_inference_logger(func.__module__)
                start_time = _started(op_logger)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _failed(op_logger, start_time, e)
                    raise
                _succeeded(op_logger, start_time)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            op_logger = logger or get_inference_logger(func.__module__)
            start_time = _started(op_logger)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _failed(op_logger, start_time, e)
                raise
            _succeeded(op_logger, start_time)
            return result

        return wrapper
    return decorator


class InferenceLoggerMixin(LoggerMixin):
    """Mixin class to add inference-specific logging to any class.

    Usage:
        class MyComponent(InferenceLoggerMixin):
            def do_something(self):
                self.logger.info("Doing something")
    """

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class with inference context."""
        if not hasattr(self, '_logger'):
            self._logger = get_inference_logger(
                f"{self.__class__.__module__}.{self.__class__.__name__}",
                context={"class": self.__class__.__name__}
            )
        return self._logger


def log_token_usage(
    logger: logging.Logger,
    model: str,
    input_tokens: int,
    output_tokens: int,
    operation: str = "inference"
) -> None:
    """Log token usage for cost monitoring."""
    total_tokens = input_tokens + output_tokens

    logger.info(
        f"Token usage for {operation}: {total_tokens} total "
        f"({input_tokens} input, {output_tokens} output)",
        extra={"extra_fields": {
            "operation": operation,
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": total_tokens,
            "metric_type": "token_usage"
        }}
    )


def log_latency(
    logger: logging.Logger,
    operation: str,
    latency_ms: float,
    metadata: Optional[Dict[str, Any]] = None
) -> None:
    """Log operation latency for performance monitoring."""
    extra_fields = {
        "operation": operation,
        "latency_ms": latency_ms,
        "metric_type": "latency"
    }

    if metadata:
        extra_fields.update(metadata)

    logger.info(
        f"{operation} latency: {latency_ms:.2f}ms",
        extra={"extra_fields": extra_fields}
    )
