"""Data models for the hybrid retrieval pipeline.

``CatalogItem`` and ``SearchConstraints`` are frozen pydantic models: items are
read-only snapshots of catalog rows and constraints are built once per tool
invocation. ``CandidateSet`` is the ordered, de-duplicated merge of the
candidate sources.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CandidateSource(str, Enum):
    """Candidate sources in consolidation priority order."""

    BRAND = "brand"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    CATEGORY = "category"


# Brand-matched items first so generically similar items from other brands
# cannot push them out of the top page.
SOURCE_PRIORITY = (
    CandidateSource.BRAND,
    CandidateSource.SEMANTIC,
    CandidateSource.KEYWORD,
    CandidateSource.CATEGORY,
)


class CatalogItem(BaseModel):
    """Immutable snapshot of a catalog product."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Opaque unique item identifier")
    name: str = Field(..., description="Display name")
    brand: Optional[str] = Field(default=None, description="Brand name")
    category: Optional[str] = Field(default=None, description="Leaf category name")
    price: Decimal = Field(..., ge=0, description="Price in INR")
    rating: Optional[float] = Field(default=None, ge=0.0, le=5.0, description="Average rating")
    description: str = Field(default="", description="Free-text description")
    thumbnail_url: Optional[str] = Field(default=None, description="Thumbnail reference")
    in_stock: bool = Field(default=True, description="Whether the item can be ordered")

    def to_tool_dict(self) -> Dict[str, Any]:
        """Serialise the item for a tool response or a chat response payload."""
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "category": self.category,
            "brand": self.brand,
            "rating": self.rating,
            "description": self.description,
            "imageUrl": self.thumbnail_url,
            "inStock": self.in_stock,
        }


class SearchConstraints(BaseModel):
    """Normalized search request for one tool invocation.

    Blank strings are treated as absent. An inverted price range is accepted
    and simply matches nothing.
    """

    model_config = ConfigDict(frozen=True)

    query: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[Decimal] = Field(default=None, ge=0)
    max_price: Optional[Decimal] = Field(default=None, ge=0)
    min_rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)

    @field_validator("query", "category", "brand", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = " ".join(v.split())
            return v or None
        return v

    @property
    def semantic_query(self) -> Optional[str]:
        """Text embedded for semantic search: the full request, else the brand."""
        return self.query or self.brand

    @property
    def keyword_query(self) -> Optional[str]:
        """Text sent to keyword search: the brand, else the full request.

        A single brand token matches item text reliably, whereas multi-word
        natural language often does not appear literally.
        """
        return self.brand or self.query

    @property
    def has_price_bounds(self) -> bool:
        return self.min_price is not None or self.max_price is not None

    def is_empty(self) -> bool:
        """True when no dimension of the request is populated."""
        return not any(
            value is not None
            for value in (self.query, self.category, self.brand,
                          self.min_price, self.max_price, self.min_rating)
        )

    def to_log_dict(self) -> Dict[str, Any]:
        return {key: (float(value) if isinstance(value, Decimal) else value)
                for key, value in self.model_dump(exclude_none=True).items()}


class CandidateSet:
    """Ordered, de-duplicated mapping of item id to CatalogItem.

    The first occurrence of an id wins; later duplicates are discarded without
    merging any fields. Iteration yields items in insertion order.
    """

    def __init__(self) -> None:
        self._items: "OrderedDict[str, CatalogItem]" = OrderedDict()
        self._sources: Dict[str, CandidateSource] = {}

    def add(self, item: CatalogItem, source: CandidateSource) -> bool:
        """Insert ``item`` unless its id is already present.

        Returns:
            True if the item was inserted, False if it was a duplicate
        """
        if item.id in self._items:
            return False
        self._items[item.id] = item
        self._sources[item.id] = source
        return True

    def extend(self, items: Iterable[CatalogItem], source: CandidateSource) -> int:
        """Insert items in order; returns how many were new."""
        return sum(1 for item in items if self.add(item, source))

    def source_of(self, item_id: str) -> Optional[CandidateSource]:
        return self._sources.get(item_id)

    def items(self) -> List[CatalogItem]:
        return list(self._items.values())

    def ids(self) -> List[str]:
        return list(self._items.keys())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __getitem__(self, item_id: str) -> CatalogItem:
        return self._items[item_id]

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class CategoryRef:
    """Resolved catalog category."""

    id: str
    name: str
    path: Optional[str] = None


@dataclass
class HybridSearchResult:
    """Outcome of one hybrid retrieval invocation."""

    constraints: SearchConstraints
    items: List[CatalogItem]
    source_counts: Dict[str, int] = field(default_factory=dict)
    consolidated_count: int = 0
    filtered_count: int = 0
    reranked: bool = False
    latency_ms: float = 0.0
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "source_counts": self.source_counts,
            "consolidated_count": self.consolidated_count,
            "filtered_count": self.filtered_count,
            "returned_count": len(self.items),
            "reranked": self.reranked,
            "latency_ms": round(self.latency_ms, 2),
        }
