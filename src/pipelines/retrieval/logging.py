"""Logging utilities for the retrieval pipeline."""

import asyncio
import hashlib
import time
from functools import wraps
from typing import Dict, Any, Optional, Callable
import logging

from src.utils.logging import get_logger, LoggerMixin


def query_hash(text: Optional[str]) -> Optional[str]:
    """Short stable identifier for a query so raw text stays out of metrics."""
    if not text:
        return None
    return hashlib.sha256(text.strip().lower().encode("utf-8")).hexdigest()[:8]


class RetrievalLoggerMixin(LoggerMixin):
    """Enhanced logger mixin for retrieval pipeline components."""

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this retrieval component."""
        if not hasattr(self, '_logger'):
            component_name = self.__class__.__name__
            self._logger = get_logger(
                f"src.pipelines.retrieval.{component_name.lower()}",
                context={
                    'pipeline': 'retrieval',
                    'component': component_name
                }
            )
        return self._logger

    def log_operation_start(self, operation: str, **context) -> None:
        """Log the start of an operation with context."""
        self.logger.debug(
            f"Starting {operation}",
            extra={
                'extra_fields': {
                    'operation': operation,
                    'operation_status': 'started',
                    **context
                }
            }
        )

    def log_operation_success(self, operation: str, duration_ms: float, **context) -> None:
        """Log successful completion of an operation."""
        self.logger.info(
            f"Completed {operation} in {duration_ms:.2f}ms",
            extra={
                'extra_fields': {
                    'operation': operation,
                    'operation_status': 'completed',
                    'duration_ms': duration_ms,
                    **context
                }
            }
        )

    def log_operation_error(self, operation: str, error: BaseException, duration_ms: float, **context) -> None:
        """Log operation failure with error details."""
        self.logger.error(
            f"Failed {operation} after {duration_ms:.2f}ms: {error!r}",
            extra={
                'extra_fields': {
                    'operation': operation,
                    'operation_status': 'failed',
                    'duration_ms': duration_ms,
                    'error_type': type(error).__name__,
                    'error_message': str(error),
                    **context
                }
            },
            exc_info=error
        )

    def log_operation_degraded(self, operation: str, reason: str, **context) -> None:
        """Log that an operation fell back to its degraded output."""
        self.logger.warning(
            f"{operation} degraded: {reason}",
            extra={
                'extra_fields': {
                    'operation': operation,
                    'operation_status': 'degraded',
                    'reason': reason,
                    **context
                }
            }
        )


def log_retrieval_operation(operation_name: str):
    """Decorator to log retrieval operations with timing and error handling.

    Errors are logged and re-raised; fallbacks are the caller's business.
    Supports both plain methods and coroutine methods.

    Args:
        operation_name: Name of the operation being logged

    Returns:
        Decorator function
    """
    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                start_time = time.perf_counter()
                self.log_operation_start(operation_name)
                try:
                    result = await func(self, *args, **kwargs)
                except Exception as e:
                    self.log_operation_error(operation_name, e, (time.perf_counter() - start_time) * 1000)
                    raise
                self.log_operation_success(operation_name, (time.perf_counter() - start_time) * 1000)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(self, *args, **kwargs):
            start_time = time.perf_counter()
            self.log_operation_start(operation_name)
            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                self.log_operation_error(operation_name, e, (time.perf_counter() - start_time) * 1000)
                raise
            self.log_operation_success(operation_name, (time.perf_counter() - start_time) * 1000)
            return result

        return wrapper
    return decorator


class RetrievalMetricsLogger:
    """Specialized logger for retrieval pipeline metrics."""

    def __init__(self, component_name: str):
        """Initialize metrics logger.

        Args:
            component_name: Name of the component generating metrics
        """
        self.component_name = component_name
        self.logger = get_logger(
            "src.pipelines.retrieval.metrics",
            context={
                'pipeline': 'retrieval',
                'metrics_logger': True
            }
        )

    def _emit(self, message: str, metric_type: str, **fields) -> None:
        self.logger.info(
            message,
            extra={
                'extra_fields': {
                    'metric_type': metric_type,
                    'component': self.component_name,
                    **fields
                }
            }
        )

    def log_source_results(
        self,
        source: str,
        results_count: int,
        search_time_ms: float,
        failed: bool = False,
        filters_applied: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log the outcome of one candidate source call."""
        self._emit(
            f"Source {source} returned {results_count} candidates",
            'source_results',
            source=source,
            results_count=results_count,
            search_time_ms=search_time_ms,
            failed=failed,
            filters_applied=filters_applied or {}
        )

    def log_consolidation(self, source_counts: Dict[str, int], consolidated_count: int) -> None:
        """Log how many unique candidates survived de-duplication."""
        total = sum(source_counts.values())
        self._emit(
            "Candidates consolidated",
            'consolidation',
            source_counts=source_counts,
            input_count=total,
            consolidated_count=consolidated_count,
            duplicates_dropped=total - consolidated_count
        )

    def log_filter_results(
        self,
        input_count: int,
        output_count: int,
        rejections: Dict[str, int],
        relaxed_categories: int = 0
    ) -> None:
        """Log safety filter outcomes by rejection reason."""
        self._emit(
            "Safety filter applied",
            'safety_filter',
            input_count=input_count,
            output_count=output_count,
            rejections=rejections,
            relaxed_categories=relaxed_categories
        )

    def log_rerank(
        self,
        input_count: int,
        output_count: int,
        rerank_time_ms: float,
        outcome: str
    ) -> None:
        """Log reranking outcome: ``skipped``, ``reranked`` or ``fallback``."""
        self._emit(
            f"Rerank {outcome}",
            'rerank',
            input_count=input_count,
            output_count=output_count,
            rerank_time_ms=rerank_time_ms,
            outcome=outcome
        )

    def log_cache_operation(
        self,
        operation: str,  # "hit", "miss", "set", "evict"
        key_hash: str,
        cache_size: Optional[int] = None
    ) -> None:
        """Log cache operations."""
        self.logger.debug(
            f"Cache {operation}",
            extra={
                'extra_fields': {
                    'metric_type': 'cache_operation',
                    'component': self.component_name,
                    'cache_operation': operation,
                    'key_hash': key_hash,
                    'cache_size': cache_size
                }
            }
        )

    def log_pipeline_metrics(
        self,
        total_time_ms: float,
        query: Optional[str],
        returned_count: int,
        consolidated_count: int,
        filtered_count: int,
        reranked: bool
    ) -> None:
        """Log end-to-end hybrid search metrics."""
        self._emit(
            "Hybrid search completed",
            'pipeline_metrics',
            query_hash=query_hash(query),
            total_time_ms=total_time_ms,
            returned_count=returned_count,
            consolidated_count=consolidated_count,
            filtered_count=filtered_count,
            reranked=reranked
        )
