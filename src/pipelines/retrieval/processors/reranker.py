"""
Cross-encoder reranking of filtered candidates.

The reranker only reorders; it never adds items and only drops what falls off
the page. Any failure of the reranking service (exception, timeout, empty
answer) falls back to the first page of candidates in their pre-rerank order.
"""

import asyncio
import time
from typing import List, Optional, Protocol, Sequence, Set, Tuple

from sentence_transformers import CrossEncoder

from ..config import RetrievalSettings
from ..exceptions import ConfigurationError, RerankError
from ..logging import RetrievalLoggerMixin, RetrievalMetricsLogger
from ..models import CatalogItem


class RerankingService(Protocol):
    """Orders (id, document) pairs by relevance to a query."""

    @property
    def available(self) -> bool: ...

    async def rerank(self, query: str, documents: Sequence[Tuple[str, str]], top_n: int) -> List[str]: ...


class CrossEncoderRerankingService(RetrievalLoggerMixin):
    """sentence-transformers CrossEncoder behind the RerankingService protocol."""

    def __init__(self, model_name: str, model=None):
        self.model_name = model_name
        self._model = model

    @property
    def available(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        """Load the cross-encoder weights.

        Raises:
            ConfigurationError: If the model cannot be loaded
        """
        if self._model is not None:
            return
        try:
            self._model = CrossEncoder(self.model_name)
        except Exception as e:
            raise ConfigurationError(
                f"Failed to load rerank model '{self.model_name}': {e}",
                invalid_values={"rerank_model_name": self.model_name}
            ) from e
        self.logger.info(f"Loaded rerank model {self.model_name}")

    async def rerank(self, query: str, documents: Sequence[Tuple[str, str]], top_n: int) -> List[str]:
        if self._model is None:
            raise RerankError("Rerank model is not initialized", model=self.model_name)

        pairs = [(query, text) for _, text in documents]
        scores = await asyncio.to_thread(self._model.predict, pairs)
        if len(scores) != len(documents):
            raise RerankError(
                f"Rerank model returned {len(scores)} scores for {len(documents)} documents",
                model=self.model_name,
                candidate_count=len(documents)
            )

        # stable sort keeps the incoming order for ties
        order = sorted(range(len(documents)), key=lambda i: float(scores[i]), reverse=True)
        return [documents[i][0] for i in order[:top_n]]


def render_document(item: CatalogItem, description_limit: int = 200) -> str:
    """Text representation of an item scored against the query."""
    text = item.name
    if item.brand:
        text += f" by {item.brand}"
    if item.category:
        text += f". Category: {item.category}"
    if item.description:
        description = item.description
        if len(description) > description_limit:
            description = description[:description_limit] + "..."
        text += f". {description}"
    return text


class Reranker(RetrievalLoggerMixin):
    """Reorders candidates by cross-encoder relevance and keeps one page."""

    def __init__(
        self,
        service: Optional[RerankingService],
        page_size: int = 10,
        timeout_seconds: float = 5.0,
        description_limit: int = 200,
    ):
        self.service = service
        self.page_size = page_size
        self.timeout_seconds = timeout_seconds
        self.description_limit = description_limit
        self.metrics_logger = RetrievalMetricsLogger("Reranker")

    @classmethod
    def from_settings(cls, settings: RetrievalSettings, service: Optional[RerankingService] = None) -> "Reranker":
        if not settings.rerank_enabled:
            service = None
        elif service is None:
            service = CrossEncoderRerankingService(settings.rerank_model_name)
        return cls(
            service=service,
            page_size=settings.page_size,
            timeout_seconds=settings.rerank_timeout_seconds,
            description_limit=settings.rerank_description_limit,
        )

    @property
    def available(self) -> bool:
        return self.service is not None and self.service.available

    async def rerank(self, query: Optional[str], items: Sequence[CatalogItem]) -> Tuple[List[CatalogItem], bool]:
        """Return ``(page, reranked)`` for the filtered candidates.

        Sets no larger than a page are returned unchanged. A missing query or
        an unavailable service degrades to truncation.
        """
        start_time = time.perf_counter()
        head = list(items[:self.page_size])

        if len(items) <= self.page_size:
            self.metrics_logger.log_rerank(len(items), len(head), 0.0, "skipped")
            return head, False

        if not query or not self.available:
            self.metrics_logger.log_rerank(len(items), len(head), 0.0, "unavailable")
            return head, False

        by_id = {item.id: item for item in items}
        documents = [(item.id, render_document(item, self.description_limit)) for item in items]

        try:
            ranked_ids = await asyncio.wait_for(
                self.service.rerank(query, documents, self.page_size),
                timeout=self.timeout_seconds
            )
            page: List[CatalogItem] = []
            seen: Set[str] = set()
            for item_id in ranked_ids:
                if item_id in by_id and item_id not in seen:
                    seen.add(item_id)
                    page.append(by_id[item_id])
            if not page:
                raise RerankError("Rerank service returned no known ids", candidate_count=len(items))
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.log_operation_degraded("rerank", f"using pre-rerank order: {e}", candidate_count=len(items))
            self.metrics_logger.log_rerank(len(items), len(head), duration_ms, "fallback")
            return head, False

        page = page[:self.page_size]
        self.metrics_logger.log_rerank(len(items), len(page), (time.perf_counter() - start_time) * 1000, "reranked")
        return page, True
