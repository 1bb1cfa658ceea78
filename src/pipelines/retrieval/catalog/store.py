"""Catalog store for the retrieval pipeline.

Read-only queries over the product and category tables: category resolution
and descendant expansion, brand and category browse, keyword search, lookups
by id, featured items and the category listing. PostgreSQL full-text search is
used when the engine is PostgreSQL; every other dialect, and any FTS query that
returns nothing, falls back to case-insensitive LIKE matching.
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Set

from sqlalchemy import Select, func, literal, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.connection import DatabaseManager
from src.core.database.models import CATEGORY_PATH_SEPARATOR, Category, Product

from ..exceptions import CatalogError
from ..logging import RetrievalLoggerMixin
from ..models import CatalogItem, CategoryRef

ACTIVE = "ACTIVE"
LIKE_ESCAPE = "/"


def like_pattern(text: str) -> str:
    """Substring LIKE pattern for ``text`` with wildcards escaped."""
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def to_catalog_item(product: Product) -> CatalogItem:
    """Snapshot an ORM product as an immutable CatalogItem."""
    return CatalogItem(
        id=product.id,
        name=product.name,
        brand=product.brand,
        category=product.category.name if product.category is not None else None,
        price=product.price,
        rating=float(product.rating) if product.rating is not None else None,
        description=product.description or "",
        thumbnail_url=product.thumbnail_url,
        in_stock=(product.stock_quantity or 0) > 0,
    )


class CatalogStore(RetrievalLoggerMixin):
    """Async catalog queries backed by SQLAlchemy."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @property
    def supports_full_text(self) -> bool:
        return self.db.dialect_name == "postgresql"

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.db.get_session() as session:
                yield session
        except SQLAlchemyError as e:
            raise CatalogError(f"Catalog query failed: {e}", operation=operation) from e

    @staticmethod
    def _apply_bounds(
        stmt: Select,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        min_rating: Optional[float] = None,
    ) -> Select:
        if min_price is not None:
            stmt = stmt.where(Product.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Product.price <= max_price)
        if min_rating is not None:
            stmt = stmt.where(Product.rating >= min_rating)
        return stmt

    @staticmethod
    def _active_products() -> Select:
        return select(Product).where(Product.status == ACTIVE)

    async def _fetch(self, session: AsyncSession, stmt: Select) -> List[CatalogItem]:
        result = await session.execute(stmt)
        return [to_catalog_item(product) for product in result.scalars().all()]

    # ------------------------------------------------------------------
    # Taxonomy
    # ------------------------------------------------------------------

    async def resolve_category(self, name: Optional[str]) -> Optional[CategoryRef]:
        """Resolve a human-readable category name.

        Case-insensitive exact match first, then case-insensitive substring
        match (shortest name wins). Returns None when nothing matches.
        """
        if not name or not name.strip():
            return None
        needle = name.strip().lower()

        async with self._session("resolve_category") as session:
            exact = await session.execute(
                select(Category)
                .where(Category.active.is_(True), func.lower(Category.name) == needle)
                .order_by(Category.level, Category.name)
                .limit(1)
            )
            category = exact.scalars().first()

            if category is None:
                partial = await session.execute(
                    select(Category)
                    .where(Category.active.is_(True), Category.name.ilike(like_pattern(needle), escape=LIKE_ESCAPE))
                    .order_by(func.length(Category.name), Category.level, Category.name)
                    .limit(1)
                )
                category = partial.scalars().first()

        if category is None:
            self.logger.debug(f"Category '{name}' did not resolve")
            return None
        return CategoryRef(id=category.id, name=category.name, path=category.path)

    async def _descendants(self, session: AsyncSession, ref: CategoryRef) -> List[Category]:
        if not ref.path:
            return []
        result = await session.execute(
            select(Category).where(
                Category.active.is_(True),
                Category.path.startswith(ref.path + CATEGORY_PATH_SEPARATOR, autoescape=True),
            )
        )
        return list(result.scalars().all())

    async def category_with_descendants(self, ref: CategoryRef) -> List[CategoryRef]:
        """The category itself followed by every active descendant."""
        async with self._session("category_with_descendants") as session:
            descendants = await self._descendants(session, ref)
        return [ref] + [CategoryRef(id=c.id, name=c.name, path=c.path) for c in descendants]

    async def expand_category_names(self, name: Optional[str]) -> Set[str]:
        """Names of the resolved category and all its descendants.

        Returns an empty set when the name does not resolve.
        """
        ref = await self.resolve_category(name)
        if ref is None:
            return set()
        return {c.name for c in await self.category_with_descendants(ref)}

    async def list_categories(self) -> List[CategoryRef]:
        """Every active category, ordered by path."""
        async with self._session("list_categories") as session:
            result = await session.execute(
                select(Category)
                .where(Category.active.is_(True))
                .order_by(func.coalesce(Category.path, Category.name))
            )
            return [CategoryRef(id=c.id, name=c.name, path=c.path) for c in result.scalars().all()]

    async def all_category_names(self) -> Set[str]:
        return {c.name for c in await self.list_categories()}

    # ------------------------------------------------------------------
    # Product queries
    # ------------------------------------------------------------------

    async def browse_brand(
        self,
        brand: str,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        min_rating: Optional[float] = None,
        limit: int = 10,
    ) -> List[CatalogItem]:
        """Items of an exact (case-insensitive) brand, cheapest first.

        Bounds are part of the query so budget items are not crowded out by
        the brand's expensive catalog.
        """
        stmt = self._active_products().where(func.lower(Product.brand) == brand.strip().lower())
        stmt = self._apply_bounds(stmt, min_price, max_price, min_rating)
        stmt = stmt.order_by(Product.price.asc(), Product.id).limit(limit)

        async with self._session("browse_brand") as session:
            return await self._fetch(session, stmt)

    async def browse_category(
        self,
        name: str,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        min_rating: Optional[float] = None,
        limit: int = 10,
    ) -> List[CatalogItem]:
        """Items in a resolved category or its descendants, best rated first.

        Returns an empty list when the category does not resolve.
        """
        ref = await self.resolve_category(name)
        if ref is None:
            return []
        category_ids = [c.id for c in await self.category_with_descendants(ref)]
        return await self.browse_category_ids(category_ids, min_price, max_price, min_rating, limit)

    async def browse_category_ids(
        self,
        category_ids: Sequence[str],
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        min_rating: Optional[float] = None,
        limit: int = 10,
    ) -> List[CatalogItem]:
        if not category_ids:
            return []
        stmt = self._active_products().where(Product.category_id.in_(list(category_ids)))
        stmt = self._apply_bounds(stmt, min_price, max_price, min_rating)
        stmt = stmt.order_by(Product.rating.desc().nulls_last(), Product.price.asc(), Product.id).limit(limit)

        async with self._session("browse_category") as session:
            return await self._fetch(session, stmt)

    async def keyword_search(
        self,
        text: str,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        min_rating: Optional[float] = None,
        limit: int = 10,
    ) -> List[CatalogItem]:
        """Text match over name, brand, category and description.

        Full-text ranked on PostgreSQL, falling back to substring matching when
        FTS finds nothing or the dialect has no FTS.
        """
        text = " ".join(text.split())
        if not text:
            return []

        async with self._session("keyword_search") as session:
            if self.supports_full_text:
                items = await self._fetch(session, self._full_text_stmt(text, min_price, max_price, min_rating, limit))
                if items:
                    return items
                self.logger.debug("FTS returned no results, falling back to LIKE search")

            return await self._fetch(session, self._like_stmt(text, min_price, max_price, min_rating, limit))

    def _full_text_stmt(self, text, min_price, max_price, min_rating, limit) -> Select:
        document = func.to_tsvector(
            "english",
            func.concat_ws(
                " ",
                Product.name,
                func.coalesce(Product.brand, ""),
                func.coalesce(Category.name, ""),
                func.coalesce(Product.description, ""),
            ),
        )
        ts_query = func.plainto_tsquery("english", text)
        stmt = (
            self._active_products()
            .outerjoin(Category, Product.category_id == Category.id)
            .where(document.bool_op("@@")(ts_query))
        )
        stmt = self._apply_bounds(stmt, min_price, max_price, min_rating)
        return stmt.order_by(func.ts_rank(document, ts_query).desc(), Product.id).limit(limit)

    def _like_stmt(self, text, min_price, max_price, min_rating, limit) -> Select:
        pattern = like_pattern(text)
        stmt = (
            self._active_products()
            .outerjoin(Category, Product.category_id == Category.id)
            .where(or_(
                Product.name.ilike(pattern, escape=LIKE_ESCAPE),
                func.coalesce(Product.description, "").ilike(pattern, escape=LIKE_ESCAPE),
                func.coalesce(Product.brand, "").ilike(pattern, escape=LIKE_ESCAPE),
                func.coalesce(Category.name, "").ilike(pattern, escape=LIKE_ESCAPE),
            ))
        )
        stmt = self._apply_bounds(stmt, min_price, max_price, min_rating)
        # Name hits first, then best rated
        name_hit = Product.name.ilike(pattern, escape=LIKE_ESCAPE)
        return stmt.order_by(
            name_hit.desc(), Product.rating.desc().nulls_last(), Product.price.asc(), Product.id
        ).limit(limit)

    async def browse_price_range(
        self,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        min_rating: Optional[float] = None,
        limit: int = 10,
    ) -> List[CatalogItem]:
        """Items within the price bounds, cheapest first."""
        stmt = self._apply_bounds(self._active_products(), min_price, max_price, min_rating)
        stmt = stmt.order_by(Product.price.asc(), Product.id).limit(limit)

        async with self._session("browse_price_range") as session:
            return await self._fetch(session, stmt)

    async def featured(self, limit: int = 10) -> List[CatalogItem]:
        """Featured items, newest first."""
        stmt = (
            self._active_products()
            .where(Product.featured.is_(True))
            .order_by(Product.created_at.desc(), Product.id)
            .limit(limit)
        )
        async with self._session("featured") as session:
            return await self._fetch(session, stmt)

    async def get_items(self, ids: Sequence[str]) -> List[CatalogItem]:
        """Fetch active items by id, preserving the order of ``ids``.

        Unknown or inactive ids are skipped.
        """
        if not ids:
            return []
        async with self._session("get_items") as session:
            result = await session.execute(
                self._active_products().where(Product.id.in_(list(dict.fromkeys(ids))))
            )
            by_id: Dict[str, CatalogItem] = {
                product.id: to_catalog_item(product) for product in result.scalars().all()
            }
        return [by_id[item_id] for item_id in dict.fromkeys(ids) if item_id in by_id]

    async def get_item(self, item_id: str) -> Optional[CatalogItem]:
        items = await self.get_items([item_id])
        return items[0] if items else None

    async def ping(self) -> bool:
        """Cheap connectivity check used by health reporting."""
        async with self._session("ping") as session:
            await session.execute(select(literal(1)))
        return True
