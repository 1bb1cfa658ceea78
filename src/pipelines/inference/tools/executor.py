"""Execution of validated tool calls against the retrieval pipeline."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.pipelines.retrieval.models import CatalogItem
from src.pipelines.retrieval.pipeline import RetrievalPipeline

from ..events import LoggingEventPublisher, SearchEventPublisher, SearchType, build_search_event
from ..logging import InferenceLoggerMixin
from .schemas import (
    CompareProductsArgs,
    GetCategoriesArgs,
    GetFeaturedProductsArgs,
    GetProductDetailsArgs,
    GetProductsByBrandArgs,
    SearchProductsArgs,
    ToolCall,
)


PRODUCT_NOT_FOUND = "Product not found"


@dataclass
class ToolContext:
    """Per-session data attached to analytics events."""

    user_message: str = ""
    user_id: Optional[str] = None
    session_id: Optional[str] = None


@dataclass
class ToolResult:
    """Payload returned to the model plus the items it mentions."""

    payload: Dict[str, Any]
    items: List[CatalogItem] = field(default_factory=list)


def products_payload(items: List[CatalogItem]) -> Dict[str, Any]:
    return {"products": [item.to_tool_dict() for item in items], "count": len(items)}


class ToolExecutor(InferenceLoggerMixin):
    """Runs one tool call; never raises.

    Failures of the underlying lookup become ``{"error": message}`` payloads
    so the model can recover on its next turn.
    """

    def __init__(self, pipeline: RetrievalPipeline, publisher: Optional[SearchEventPublisher] = None):
        self.pipeline = pipeline
        self.publisher = publisher or LoggingEventPublisher()

    async def execute(self, call: ToolCall, context: Optional[ToolContext] = None) -> ToolResult:
        context = context or ToolContext()
        start_time = time.perf_counter()
        try:
            result = await self._dispatch(call)
        except Exception as e:
            self.logger.error(
                f"Tool {call.tool} failed: {e}",
                extra={'extra_fields': {'tool': call.tool, 'error_type': type(e).__name__}},
                exc_info=True
            )
            return ToolResult(payload={"error": str(e)})

        await self._publish(call, result.items, (time.perf_counter() - start_time) * 1000, context)
        return result

    async def _dispatch(self, call: ToolCall) -> ToolResult:
        match call:
            case SearchProductsArgs():
                search = await self.pipeline.search(call.to_constraints())
                self.logger.debug("Hybrid search finished", extra={'extra_fields': search.to_metadata()})
                return ToolResult(payload=products_payload(search.items), items=search.items)

            case GetProductDetailsArgs(product_id=product_id, product_name=product_name):
                item = await self.pipeline.get_item_details(product_id, product_name)
                if item is None:
                    return ToolResult(payload={"error": PRODUCT_NOT_FOUND})
                return ToolResult(payload={"product": item.to_tool_dict()}, items=[item])

            case GetCategoriesArgs():
                categories = await self.pipeline.list_categories()
                return ToolResult(payload={
                    "categories": [{"id": c.id, "name": c.name} for c in categories],
                    "count": len(categories),
                })

            case GetFeaturedProductsArgs():
                items = await self.pipeline.featured()
                return ToolResult(payload=products_payload(items), items=items)

            case CompareProductsArgs(product_names=names):
                items = await self.pipeline.compare_items(names)
                return ToolResult(payload=products_payload(items), items=items)

            case GetProductsByBrandArgs(brand=brand):
                items = await self.pipeline.products_by_brand(brand)
                return ToolResult(payload=products_payload(items), items=items)

    async def _publish(self, call: ToolCall, items: List[CatalogItem], elapsed_ms: float, context: ToolContext) -> None:
        if isinstance(call, GetCategoriesArgs):
            return

        if isinstance(call, SearchProductsArgs):
            event = build_search_event(
                call.tool, SearchType.HYBRID, items, elapsed_ms,
                query=context.user_message, user_id=context.user_id, session_id=context.session_id,
                category=call.category, min_price=call.min_price, max_price=call.max_price,
                min_rating=call.min_rating,
            )
        else:
            event = build_search_event(
                call.tool, SearchType.FTS, items, elapsed_ms,
                query=context.user_message, user_id=context.user_id, session_id=context.session_id,
            )

        try:
            await self.publisher.publish(event)
        except Exception as e:
            self.logger.warning(
                f"Failed to publish search event: {e}",
                extra={'extra_fields': {'tool': call.tool, 'event_id': event.event_id}}
            )
