"""
Unit tests for the Reranker and the cross-encoder reranking service.

Tests the small-set skip, id mapping, and the fallback to pre-rerank order on
every kind of service failure.
"""

import asyncio
from decimal import Decimal
from typing import List, Sequence, Tuple
from unittest.mock import Mock, patch

import pytest

from src.pipelines.retrieval.config import RetrievalSettings
from src.pipelines.retrieval.exceptions import ConfigurationError, RerankError
from src.pipelines.retrieval.models import CatalogItem
from src.pipelines.retrieval.processors.reranker import (
    CrossEncoderRerankingService,
    Reranker,
    render_document,
)


def items(count: int) -> List[CatalogItem]:
    return [
        CatalogItem(id=f"item-{i:02d}", name=f"Item {i}", brand="Acme", category="Gadgets", price=Decimal("10"))
        for i in range(count)
    ]


class FakeService:
    """Reranking service answering with a canned id list."""

    available = True

    def __init__(self, ranked_ids=None, error: Exception = None, delay: float = 0.0):
        self.ranked_ids = ranked_ids
        self.error = error
        self.delay = delay
        self.calls = []

    async def rerank(self, query: str, documents: Sequence[Tuple[str, str]], top_n: int) -> List[str]:
        self.calls.append((query, list(documents), top_n))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.ranked_ids is not None:
            return self.ranked_ids
        return [doc_id for doc_id, _ in reversed(documents)][:top_n]


class TestRenderDocument:
    """Test the text scored against the query."""

    def test_format(self):
        item = CatalogItem(id="a", name="Pegasus 40", brand="Nike", category="Running Shoes",
                           price=Decimal("1"), description="Road shoe")

        assert render_document(item) == "Pegasus 40 by Nike. Category: Running Shoes. Road shoe"

    def test_truncates_description(self):
        """Long descriptions are cut with an ellipsis."""
        item = CatalogItem(id="a", name="X", price=Decimal("1"), description="d" * 50)

        assert render_document(item, description_limit=10) == "X. " + "d" * 10 + "..."

    def test_missing_brand_and_category_skipped(self):
        """Absent attributes leave no empty segments behind."""
        unbranded = CatalogItem(id="a", name="Yoga Mat", category="Fitness", price=Decimal("1"), description="Grippy")
        uncategorised = CatalogItem(id="b", name="Yoga Mat", brand="Decathlon", price=Decimal("1"))

        assert render_document(unbranded) == "Yoga Mat. Category: Fitness. Grippy"
        assert render_document(uncategorised) == "Yoga Mat by Decathlon"


class TestReranker:
    """Test Reranker."""

    @pytest.mark.asyncio
    async def test_skips_small_sets(self):
        """Ten or fewer candidates are returned unchanged without a service call."""
        service = FakeService()
        reranker = Reranker(service, page_size=10)

        page, reranked = await reranker.rerank("query", items(10))

        assert [i.id for i in page] == [i.id for i in items(10)]
        assert reranked is False
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_reranks_large_sets(self):
        """The service order is applied and the page is capped."""
        service = FakeService()
        reranker = Reranker(service, page_size=10)

        page, reranked = await reranker.rerank("query", items(15))

        assert reranked is True
        assert [i.id for i in page] == [f"item-{i:02d}" for i in range(14, 4, -1)]
        query, documents, top_n = service.calls[0]
        assert query == "query"
        assert len(documents) == 15
        assert top_n == 10

    @pytest.mark.asyncio
    async def test_unknown_and_duplicate_ids_ignored(self):
        """Ids the service invents or repeats are dropped."""
        service = FakeService(ranked_ids=["ghost", "item-12", "item-12", "item-03"])
        reranker = Reranker(service, page_size=10)

        page, reranked = await reranker.rerank("query", items(13))

        assert reranked is True
        assert [i.id for i in page] == ["item-12", "item-03"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("service", [
        FakeService(error=RerankError("model crashed")),
        FakeService(error=RuntimeError("boom")),
        FakeService(ranked_ids=[]),
        FakeService(ranked_ids=["ghost"]),
    ])
    async def test_falls_back_to_first_page(self, service):
        """Any failure returns the first page in pre-rerank order."""
        reranker = Reranker(service, page_size=10)
        candidates = items(25)

        page, reranked = await reranker.rerank("query", candidates)

        assert reranked is False
        assert page == candidates[:10]

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        """A slow service is abandoned after the timeout."""
        reranker = Reranker(FakeService(delay=1.0), page_size=10, timeout_seconds=0.01)
        candidates = items(11)

        page, reranked = await reranker.rerank("query", candidates)

        assert reranked is False
        assert page == candidates[:10]

    @pytest.mark.asyncio
    async def test_no_query_truncates(self):
        """Without query text the candidates are only truncated."""
        service = FakeService()
        reranker = Reranker(service, page_size=10)

        page, reranked = await reranker.rerank(None, items(20))

        assert reranked is False
        assert len(page) == 10
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_no_service_truncates(self):
        """A disabled reranker only truncates."""
        page, reranked = await Reranker(None, page_size=10).rerank("query", items(20))

        assert reranked is False
        assert page == items(20)[:10]

    def test_from_settings_disabled(self):
        """Disabling reranking in settings drops the service."""
        reranker = Reranker.from_settings(RetrievalSettings(rerank_enabled=False), service=FakeService())

        assert reranker.service is None
        assert reranker.available is False

    def test_from_settings_defaults(self):
        """Settings provide the page size and timeout."""
        settings = RetrievalSettings(page_size=5, rerank_timeout_seconds=2.0)

        reranker = Reranker.from_settings(settings)

        assert isinstance(reranker.service, CrossEncoderRerankingService)
        assert reranker.page_size == 5
        assert reranker.timeout_seconds == 2.0
        assert reranker.available is False


class TestCrossEncoderRerankingService:
    """Test the cross-encoder service with a mocked model."""

    @pytest.mark.asyncio
    async def test_orders_by_score(self):
        """Ids come back by descending score, ties in input order."""
        model = Mock()
        model.predict.return_value = [0.1, 0.9, 0.5, 0.9]
        service = CrossEncoderRerankingService("test-model", model=model)
        documents = [("a", "doc a"), ("b", "doc b"), ("c", "doc c"), ("d", "doc d")]

        ranked = await service.rerank("query", documents, top_n=3)

        assert ranked == ["b", "d", "c"]
        model.predict.assert_called_once_with([("query", "doc a"), ("query", "doc b"),
                                               ("query", "doc c"), ("query", "doc d")])

    @pytest.mark.asyncio
    async def test_score_count_mismatch(self):
        """A malformed model answer is a RerankError."""
        model = Mock()
        model.predict.return_value = [0.1]
        service = CrossEncoderRerankingService("test-model", model=model)

        with pytest.raises(RerankError):
            await service.rerank("query", [("a", "x"), ("b", "y")], top_n=2)

    @pytest.mark.asyncio
    async def test_uninitialized(self):
        """Calling before the model is loaded fails."""
        service = CrossEncoderRerankingService("test-model")

        assert service.available is False
        with pytest.raises(RerankError):
            await service.rerank("query", [("a", "x")], top_n=1)

    def test_initialize_failure(self):
        """A model that cannot be loaded is a configuration error."""
        with patch("src.pipelines.retrieval.processors.reranker.CrossEncoder",
                   side_effect=OSError("no such model")):
            service = CrossEncoderRerankingService("missing/model")

            with pytest.raises(ConfigurationError):
                service.initialize()

        assert service.available is False
