"""
Unit tests for SafetyFilter and BrandInferrer.

Tests brand inference, every constraint check, and the brand-anchored
category relaxation.
"""

from decimal import Decimal
from typing import Optional

import pytest
from hypothesis import given, settings, strategies as st

from src.pipelines.retrieval.config import DEFAULT_BRAND_ALIASES
from src.pipelines.retrieval.models import CatalogItem, SearchConstraints
from src.pipelines.retrieval.processors.category_domains import CategoryDomains
from src.pipelines.retrieval.processors.safety_filter import BrandInferrer, FilterCriteria, SafetyFilter


DOMAINS = CategoryDomains.from_dict({
    "version": "test",
    "domains": {
        "footwear": ["Running Shoes", "Sneakers", "Sports Shoes"],
        "audio": ["Headphones", "Earbuds"],
    },
})


def item(
    item_id: str,
    brand: Optional[str] = "Samsung",
    category: Optional[str] = "Smartphones",
    price: str = "20000",
    rating: Optional[float] = 4.2,
) -> CatalogItem:
    return CatalogItem(id=item_id, name=item_id, brand=brand, category=category,
                       price=Decimal(price), rating=rating)


@pytest.fixture
def safety_filter():
    return SafetyFilter(BrandInferrer(DEFAULT_BRAND_ALIASES), DOMAINS)


class TestBrandInferrer:
    """Test lexical brand inference."""

    def test_infers_from_query(self):
        """A brand word in the query implies the brand."""
        inferrer = BrandInferrer(DEFAULT_BRAND_ALIASES)

        assert inferrer.infer("Samsung mobile phones") == "Samsung"
        assert inferrer.infer("best iphone15 deals") == "Apple"

    def test_requires_word_start(self):
        """Aliases inside other words do not count."""
        inferrer = BrandInferrer(DEFAULT_BRAND_ALIASES)

        assert inferrer.infer("pineapple slicer") is None
        assert inferrer.infer("sailboat shoes") is None

    def test_no_text(self):
        """Missing text infers nothing."""
        assert BrandInferrer(DEFAULT_BRAND_ALIASES).infer(None) is None

    def test_table_order_wins(self):
        """The first alias in the table that matches is used."""
        inferrer = BrandInferrer({"pixel": "Google", "samsung": "Samsung"})

        assert inferrer.infer("samsung vs pixel") == "Google"


class TestConstraintChecks:
    """Test brand, price, rating and category checks."""

    def test_explicit_brand_beats_inferred(self, safety_filter):
        """An explicit brand is used even when the query names another."""
        constraints = SearchConstraints(query="samsung phones", brand="Apple")

        assert safety_filter.effective_brand(constraints) == "Apple"

    def test_brand_is_case_insensitive(self, safety_filter):
        """Brand comparison ignores case and surrounding space."""
        criteria = safety_filter.build_criteria(SearchConstraints(brand="samsung"), set())
        items = [item("a", brand=" SAMSUNG "), item("b", brand="Apple"), item("c", brand=None)]

        assert [i.id for i in safety_filter.apply(items, criteria)] == ["a"]

    def test_inferred_brand_filters(self, safety_filter):
        """A brand implied by the query filters like an explicit one."""
        criteria = safety_filter.build_criteria(SearchConstraints(query="Samsung mobile phones"), set())
        items = [item("a"), item("b", brand="OnePlus")]

        assert [i.id for i in safety_filter.apply(items, criteria)] == ["a"]

    def test_price_bounds_are_inclusive(self, safety_filter):
        """Items priced exactly at a bound pass."""
        constraints = SearchConstraints(min_price=Decimal("1000"), max_price=Decimal("2000"))
        criteria = safety_filter.build_criteria(constraints, set())
        items = [item("low", price="999"), item("min", price="1000"),
                 item("max", price="2000"), item("high", price="2000.01")]

        assert [i.id for i in safety_filter.apply(items, criteria)] == ["min", "max"]

    def test_unrated_items_fail_rating_bound(self, safety_filter):
        """An item without a rating fails any rating bound."""
        criteria = safety_filter.build_criteria(SearchConstraints(min_rating=4.0), set())
        items = [item("rated", rating=4.0), item("unrated", rating=None), item("poor", rating=3.9)]

        assert [i.id for i in safety_filter.apply(items, criteria)] == ["rated"]

    def test_category_uses_allowed_set(self, safety_filter):
        """Only categories in the expanded set pass when no brand is active."""
        criteria = safety_filter.build_criteria(SearchConstraints(category="Footwear"),
                                                {"Footwear", "Running Shoes"})
        items = [item("run", brand="Nike", category="running shoes"),
                 item("sneaker", brand="Nike", category="Sneakers"),
                 item("none", brand="Nike", category=None)]

        kept, report = safety_filter.apply_with_report(items, criteria)

        assert [i.id for i in kept] == ["run"]
        assert report.rejections["category"] == 2

    def test_empty_allowed_set_disables_category_check(self, safety_filter):
        """An unresolved category applies no category filter."""
        criteria = safety_filter.build_criteria(SearchConstraints(category="Gizmos"), set())

        assert len(safety_filter.apply([item("a", category=None), item("b")], criteria)) == 2

    def test_report_counts(self, safety_filter):
        """The report accounts for every input item."""
        criteria = safety_filter.build_criteria(
            SearchConstraints(brand="Samsung", max_price=Decimal("30000"), min_rating=4.0), set())
        items = [item("ok"), item("brand", brand="Apple"), item("price", price="45000"), item("rating", rating=3.0)]

        kept, report = safety_filter.apply_with_report(items, criteria)

        assert report.input_count == 4
        assert report.output_count == len(kept) == 1
        assert dict(report.rejections) == {"brand": 1, "price": 1, "rating": 1}


class TestCategoryRelaxation:
    """Test brand-anchored category relaxation."""

    def test_relaxation_requires_brand(self, safety_filter):
        """Without a brand the domain is not used."""
        criteria = safety_filter.build_criteria(SearchConstraints(category="Running Shoes"), {"Running Shoes"})

        assert criteria.relaxed_categories == set()
        assert safety_filter.apply([item("s", brand="Puma", category="Sneakers")], criteria) == []

    def test_brand_admits_same_domain(self, safety_filter):
        """A brand match admits categories from the requested domain."""
        criteria = safety_filter.build_criteria(
            SearchConstraints(category="Running Shoes", brand="Puma"), {"Running Shoes"})
        items = [item("sneaker", brand="Puma", category="Sneakers"),
                 item("tv", brand="Puma", category="Televisions"),
                 item("other", brand="Nike", category="Sneakers")]

        kept, report = safety_filter.apply_with_report(items, criteria)

        assert [i.id for i in kept] == ["sneaker"]
        assert report.relaxed_admissions == 1
        assert report.rejections == {"category": 1, "brand": 1}

    def test_ungrouped_category_not_relaxed(self, safety_filter):
        """Categories outside every domain keep the strict check."""
        criteria = safety_filter.build_criteria(
            SearchConstraints(category="Smartphones", brand="Samsung"), {"Smartphones"})

        assert criteria.relaxed_categories == set()
        assert safety_filter.apply([item("tv", category="Televisions")], criteria) == []

    def test_samsung_phones_under_budget(self, safety_filter):
        """Budget Samsung phone kept, pricier phone and televisions dropped."""
        candidates = [item("phone-25k", price="25000"), item("phone-45k", price="45000")]
        candidates += [item(f"tv-{i}", category="Televisions", price=str(31000 + i * 6500)) for i in range(27)]
        constraints = SearchConstraints(query="Samsung mobile phones", brand="Samsung", max_price=Decimal("30000"))

        kept = safety_filter.apply(candidates, safety_filter.build_criteria(constraints, set()))

        assert [i.id for i in kept] == ["phone-25k"]

    def test_samsung_budget_boundary(self, safety_filter):
        """Without a category, a television priced exactly at the budget passes."""
        candidates = [item("phone-25k", price="25000"),
                      item("tv-at-budget", category="Televisions", price="30000"),
                      item("tv-over-budget", category="Televisions", price="30000.01")]
        constraints = SearchConstraints(query="Samsung mobile phones", brand="Samsung", max_price=Decimal("30000"))

        kept, report = safety_filter.apply_with_report(candidates, safety_filter.build_criteria(constraints, set()))

        assert [i.id for i in kept] == ["phone-25k", "tv-at-budget"]
        assert report.rejections == {"price": 1}

    def test_category_excludes_television_at_budget(self, safety_filter):
        """Naming the category keeps a budget-priced television out."""
        candidates = [item("phone-30k", price="30000"),
                      item("tv-at-budget", category="Televisions", price="30000")]
        constraints = SearchConstraints(category="Smartphones", brand="Samsung", max_price=Decimal("30000"))

        kept = safety_filter.apply(candidates, safety_filter.build_criteria(constraints, {"Smartphones"}))

        assert [i.id for i in kept] == ["phone-30k"]


prices = st.decimals(min_value=0, max_value=100000, places=2, allow_nan=False, allow_infinity=False)
ratings = st.one_of(st.none(), st.floats(min_value=0.0, max_value=5.0))
brands = st.sampled_from([None, "Samsung", "samsung", "Puma", "Apple"])
categories = st.sampled_from([None, "Sneakers", "Running Shoes", "Televisions", "Smartphones"])

items_strategy = st.lists(
    st.builds(
        CatalogItem,
        id=st.uuids().map(str),
        name=st.just("item"),
        brand=brands,
        category=categories,
        price=prices,
        rating=ratings,
    ),
    max_size=20,
)

constraints_strategy = st.builds(
    SearchConstraints,
    brand=st.sampled_from([None, "Samsung", "Puma"]),
    min_price=st.one_of(st.none(), prices),
    max_price=st.one_of(st.none(), prices),
    min_rating=st.one_of(st.none(), st.floats(min_value=0.0, max_value=5.0)),
)

allowed_strategy = st.sampled_from([set(), {"Running Shoes"}, {"Televisions"}, {"Smartphones", "Televisions"}])


class TestFilterProperties:
    """Property tests: every kept item satisfies every active constraint."""

    @settings(max_examples=100, deadline=None)
    @given(items=items_strategy, constraints=constraints_strategy, allowed=allowed_strategy)
    def test_kept_items_satisfy_constraints(self, items, constraints, allowed):
        safety_filter = SafetyFilter(BrandInferrer(DEFAULT_BRAND_ALIASES), DOMAINS)
        criteria = safety_filter.build_criteria(constraints, allowed)

        kept = safety_filter.apply(items, criteria)

        allowed_lower = {c.lower() for c in criteria.allowed_categories | criteria.relaxed_categories}
        for kept_item in kept:
            if criteria.brand:
                assert kept_item.brand is not None
                assert kept_item.brand.lower() == criteria.brand.lower()
            if constraints.min_price is not None:
                assert kept_item.price >= constraints.min_price
            if constraints.max_price is not None:
                assert kept_item.price <= constraints.max_price
            if constraints.min_rating is not None:
                assert kept_item.rating is not None and kept_item.rating >= constraints.min_rating
            if allowed:
                assert kept_item.category is not None
                assert kept_item.category.lower() in allowed_lower

    @settings(max_examples=100, deadline=None)
    @given(items=items_strategy, constraints=constraints_strategy, allowed=allowed_strategy)
    def test_output_is_ordered_subset(self, items, constraints, allowed):
        safety_filter = SafetyFilter(BrandInferrer(DEFAULT_BRAND_ALIASES), DOMAINS)

        kept = safety_filter.apply(items, safety_filter.build_criteria(constraints, allowed))

        positions = [items.index(k) for k in kept]
        assert positions == sorted(positions)

    @settings(max_examples=100, deadline=None)
    @given(items=items_strategy, allowed=allowed_strategy)
    def test_relaxation_never_applies_without_brand(self, items, allowed):
        safety_filter = SafetyFilter(BrandInferrer(DEFAULT_BRAND_ALIASES), DOMAINS)
        criteria = FilterCriteria(brand=None, allowed_categories=allowed,
                                  relaxed_categories={"Sneakers", "Running Shoes"})

        kept = safety_filter.apply(items, criteria)

        if allowed:
            assert all(k.category.lower() in {c.lower() for c in allowed} for k in kept)
