"""
Unit tests for the shared and pipeline-specific logging utilities.
"""

import json
import logging

import pytest

from src.pipelines.inference.logging import log_inference_operation, log_latency, log_token_usage
from src.pipelines.retrieval.logging import (
    RetrievalLoggerMixin,
    RetrievalMetricsLogger,
    log_retrieval_operation,
    query_hash,
)
from src.utils.logging import ContextFilter, JSONFormatter, get_logger, log_performance, setup_pipeline_logging


def make_record(**extra_fields) -> logging.LogRecord:
    record = logging.LogRecord("test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    if extra_fields:
        record.extra_fields = extra_fields
    return record


class Component(RetrievalLoggerMixin):
    @log_retrieval_operation("lookup")
    async def lookup(self, fail: bool = False):
        if fail:
            raise ValueError("bad lookup")
        return "found"

    @log_retrieval_operation("count")
    def count(self):
        return 3


class TestFormattersAndFilters:
    """Test JSONFormatter and ContextFilter."""

    def test_json_formatter(self):
        """Extra fields are merged into the JSON line."""
        line = JSONFormatter().format(make_record(operation="search", results=3))

        entry = json.loads(line)
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["operation"] == "search"
        assert entry["results"] == 3

    def test_context_filter_does_not_override(self):
        record = make_record(component="explicit")

        ContextFilter({"component": "default", "pipeline": "retrieval"}).filter(record)

        assert record.extra_fields == {"component": "explicit", "pipeline": "retrieval"}

    def test_get_logger_adds_filter_once(self):
        logger = get_logger("tests.context", {"pipeline": "retrieval"})
        get_logger("tests.context", {"pipeline": "retrieval"})

        assert sum(isinstance(f, ContextFilter) for f in logger.filters) == 1

    def test_query_hash(self):
        assert query_hash(" Samsung Phones ") == query_hash("samsung phones")
        assert len(query_hash("samsung phones")) == 8
        assert query_hash("") is None


class TestDecorators:
    """Test the operation logging decorators."""

    @pytest.mark.asyncio
    async def test_retrieval_operation_success(self, caplog):
        caplog.set_level(logging.INFO)

        assert await Component().lookup() == "found"
        assert Component().count() == 3
        assert "Completed lookup" in caplog.text
        assert "Completed count" in caplog.text

    @pytest.mark.asyncio
    async def test_retrieval_operation_error_reraised(self, caplog):
        """Errors are logged with their type and re-raised."""
        with pytest.raises(ValueError):
            await Component().lookup(fail=True)

        record = next(r for r in caplog.records if r.levelno == logging.ERROR)
        assert record.extra_fields["error_type"] == "ValueError"
        assert record.extra_fields["operation_status"] == "failed"

    @pytest.mark.asyncio
    async def test_inference_operation_async(self, caplog):
        caplog.set_level(logging.INFO)

        @log_inference_operation("chat")
        async def chat():
            return "ok"

        assert await chat() == "ok"
        assert "chat completed" in caplog.text

    def test_inference_operation_error(self, caplog):
        @log_inference_operation("chat")
        def chat():
            raise RuntimeError("model down")

        with pytest.raises(RuntimeError):
            chat()

        assert "chat failed" in caplog.text

    @pytest.mark.asyncio
    async def test_log_performance(self, caplog):
        caplog.set_level(logging.DEBUG)

        @log_performance()
        async def slow():
            return 1

        @log_performance()
        def fast():
            return 2

        assert await slow() == 1
        assert fast() == 2
        assert "slow completed" in caplog.text
        assert "fast completed" in caplog.text


class TestMetrics:
    """Test structured metric helpers."""

    def test_consolidation_metrics(self, caplog):
        caplog.set_level(logging.INFO)

        RetrievalMetricsLogger("Consolidator").log_consolidation({"brand": 3, "semantic": 4}, 5)

        record = caplog.records[-1]
        assert record.extra_fields["metric_type"] == "consolidation"
        assert record.extra_fields["duplicates_dropped"] == 2

    def test_token_usage_and_latency(self, caplog):
        caplog.set_level(logging.INFO)
        logger = logging.getLogger("tests.inference")

        log_token_usage(logger, model="gpt-4o-mini", input_tokens=100, output_tokens=20)
        log_latency(logger, "chat_turn", 12.5, {"rounds": 2})

        usage, latency = caplog.records[-2:]
        assert usage.extra_fields["total_tokens"] == 120
        assert latency.extra_fields["rounds"] == 2


class TestPipelineLoggingSetup:
    """Test setup_pipeline_logging."""

    def test_writes_json_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_filters, saved_level = list(root.handlers), list(root.filters), root.level
        log_file = tmp_path / "logs" / "retrieval.log"
        try:
            logger = setup_pipeline_logging("retrieval", "INFO", str(log_file), use_json=True)
            logger.info("pipeline ready")
            for handler in root.handlers:
                handler.flush()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.filters[:] = saved_filters
            root.setLevel(saved_level)

        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["message"] == "pipeline ready"
        assert entry["pipeline"] == "retrieval"
