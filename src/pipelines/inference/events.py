"""Search analytics events emitted for product-returning tool calls.

Events record what the assistant searched for on the user's behalf and what
came back. Publishing is best effort: a failing publisher is logged and never
affects the chat answer.
"""

import uuid
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from src.pipelines.retrieval.models import CatalogItem

from .logging import InferenceLoggerMixin


CATEGORY_INFERENCE_WINDOW = 10


class SearchType(str, Enum):
    HYBRID = "HYBRID"
    FTS = "FTS"


class SearchEvent(BaseModel):
    """One AI-initiated search and its outcome."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = "anonymous"
    session_id: str = ""
    query: str = ""
    search_type: SearchType
    tool_name: str
    category: str = ""
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    results_count: int = 0
    returned_product_ids: List[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def infer_category(items: Sequence[CatalogItem], window: int = CATEGORY_INFERENCE_WINDOW) -> str:
    """Most common category among the first ``window`` items.

    Ties go to the category seen first. Returns "" when nothing has a category.
    """
    counts = Counter(item.category for item in items[:window] if item.category)
    if not counts:
        return ""
    # Counter preserves first-seen order and most_common is stable for ties
    return counts.most_common(1)[0][0]


def build_search_event(
    tool_name: str,
    search_type: SearchType,
    items: Sequence[CatalogItem],
    processing_time_ms: float,
    query: Optional[str] = None,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    min_rating: Optional[float] = None,
) -> SearchEvent:
    return SearchEvent(
        user_id=user_id or "anonymous",
        session_id=session_id or "",
        query=query or "",
        search_type=search_type,
        tool_name=tool_name,
        category=category or infer_category(items),
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        results_count=len(items),
        returned_product_ids=[item.id for item in items[:CATEGORY_INFERENCE_WINDOW]],
        processing_time_ms=processing_time_ms,
    )


class SearchEventPublisher(Protocol):
    async def publish(self, event: SearchEvent) -> None: ...


class LoggingEventPublisher(InferenceLoggerMixin):
    """Default publisher: one structured log record per event."""

    async def publish(self, event: SearchEvent) -> None:
        self.logger.info(
            f"Search event: {event.tool_name} returned {event.results_count} products",
            extra={'extra_fields': {'metric_type': 'search_event', **event.model_dump(mode="json")}}
        )


class NullEventPublisher:
    """Publisher that drops every event."""

    async def publish(self, event: SearchEvent) -> None:
        return None
