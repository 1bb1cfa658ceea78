"""Shared fixtures: a seeded SQLite catalog and CatalogItem factories."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import pytest
import pytest_asyncio

from src.core.database.connection import DatabaseManager
from src.core.database.models import CATEGORY_PATH_SEPARATOR, Category, Product
from src.pipelines.retrieval.catalog.store import CatalogStore
from src.pipelines.retrieval.models import CatalogItem, CandidateSource, SearchConstraints
from src.pipelines.retrieval.search.adapters import CandidateAdapter
from src.utils.config import DatabaseSettings


SAMSUNG_TV_COUNT = 27
LISTED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_item(
    item_id: str,
    name: Optional[str] = None,
    brand: Optional[str] = "Acme",
    category: Optional[str] = "Gadgets",
    price: str = "1000",
    rating: Optional[float] = 4.0,
    description: str = "",
) -> CatalogItem:
    return CatalogItem(
        id=item_id,
        name=name or f"Item {item_id}",
        brand=brand,
        category=category,
        price=Decimal(price),
        rating=rating,
        description=description,
    )


class StaticAdapter(CandidateAdapter):
    """Candidate source returning a fixed list, or raising."""

    def __init__(self, source: CandidateSource, items: List[CatalogItem] = (), error: Exception = None):
        super().__init__(timeout_seconds=1.0)
        self.source = source
        self.items = list(items)
        self.error = error
        self.calls: List[SearchConstraints] = []

    async def _search(self, constraints: SearchConstraints, limit: int) -> List[CatalogItem]:
        self.calls.append(constraints)
        if self.error is not None:
            raise self.error
        return self.items


def _category(name: str, parent: Optional[Category] = None) -> Category:
    path = name if parent is None else parent.path + CATEGORY_PATH_SEPARATOR + name
    return Category(
        id=name.lower().replace(" ", "-"),
        name=name,
        path=path,
        level=0 if parent is None else parent.level + 1,
        parent_id=None if parent is None else parent.id,
        active=True,
    )


def _product(
    product_id: str,
    name: str,
    brand: str,
    category: Category,
    price: int,
    rating: str,
    featured: bool = False,
    status: str = "ACTIVE",
    description: str = "",
    created_at: datetime = LISTED_AT,
) -> Product:
    return Product(
        id=product_id,
        sku=product_id.upper(),
        name=name,
        description=description,
        price=Decimal(price),
        brand=brand,
        category_id=category.id,
        rating=Decimal(rating),
        review_count=10,
        stock_quantity=5,
        status=status,
        featured=featured,
        created_at=created_at,
    )


def seed_rows() -> List[object]:
    electronics = _category("Electronics")
    smartphones = _category("Smartphones", electronics)
    televisions = _category("Televisions", electronics)
    footwear = _category("Footwear")
    running = _category("Running Shoes", footwear)
    sneakers = _category("Sneakers", footwear)

    rows: List[object] = [electronics, smartphones, televisions, footwear, running, sneakers]
    rows += [
        _product("samsung-m34", "Samsung Galaxy M34 5G", "Samsung", smartphones, 25000, "4.3",
                 featured=True, description="Budget 5G mobile phone with a 6000mAh battery",
                 created_at=datetime(2024, 1, 10, tzinfo=timezone.utc)),
        _product("samsung-s23", "Samsung Galaxy S23 FE", "Samsung", smartphones, 45000, "4.5",
                 description="Flagship mobile phone with a triple camera"),
    ]
    for i in range(SAMSUNG_TV_COUNT):
        rows.append(_product(
            f"samsung-tv-{i:02d}", f"Samsung Crystal 4K TV Model {i:02d}", "Samsung", televisions,
            31000 + i * 6500, "4.0", description="Smart LED television",
        ))
    rows += [
        _product("puma-smash", "Puma Smash v2 Sneakers", "Puma", sneakers, 3999, "4.1",
                 featured=True, description="Leather low-top sneakers",
                 created_at=datetime(2024, 3, 5, tzinfo=timezone.utc)),
        _product("puma-tv", "Puma Vision Smart TV", "Puma", televisions, 18000, "3.2",
                 description="Licensed 43 inch television"),
        _product("nike-pegasus", "Nike Pegasus 40 Running Shoes", "Nike", running, 11000, "4.6",
                 featured=True, description="Neutral road running shoes",
                 created_at=datetime(2024, 2, 20, tzinfo=timezone.utc)),
        _product("nike-old", "Nike Air Retired", "Nike", running, 5000, "3.9", status="DISCONTINUED"),
    ]
    return rows


@pytest_asyncio.fixture
async def db_manager(tmp_path):
    manager = DatabaseManager(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"))
    await manager.create_tables()
    async with manager.get_session() as session:
        session.add_all(seed_rows())
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def catalog(db_manager):
    return CatalogStore(db_manager)


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def adapter_factory():
    return StaticAdapter
