"""Tests for similar product retrieval."""

from datetime import datetime, timezone

import pytest

from src.personalization.catalog import CatalogLookup, InMemoryCatalog
from src.personalization.exceptions import DependencyError
from src.personalization.similarity import (
    TIER_ATTRIBUTES,
    TIER_GLOBAL,
    TIER_SAME_BRAND,
    TIER_SAME_CATEGORY,
    SimilarityEngine,
    name_keywords,
    similarity_conditions,
)


class FailingCatalog(CatalogLookup):
    """Catalog whose queries always fail."""

    def __init__(self, product):
        self.product = product

    def get_product(self, product_id):
        return self.product

    def query_active(self, filter_expr=None, exclude_ids=(), order_by=(), limit=None):
        raise DependencyError("catalog", ConnectionError("connection refused"))


@pytest.fixture
def catalog(make_product):
    return InMemoryCatalog([
        make_product("R", name="Hydra Glow Serum", category_ids=["C1"], brand_id="B1",
                     tags=["vegan"], average_rating=4.0),
        make_product("A", name="Hydra Night Cream", category_ids=["C2"], brand_id="B2",
                     average_rating=3.0),
        make_product("B", name="Plain Toner", category_ids=["C1"], brand_id="B3",
                     average_rating=4.5),
        make_product("C", name="Clay Mask", category_ids=["C3"], brand_id="B4",
                     average_rating=5.0, is_best_seller=True),
        make_product("D", name="Zinc Balm", category_ids=["C1"], brand_id="B1",
                     average_rating=5.0, status="out_of_stock"),
        make_product("E", name="UV", average_rating=2.0),
    ])


@pytest.fixture
def engine(catalog):
    return SimilarityEngine(catalog)


def ids(candidates):
    return [product.id for product in candidates]


def test_name_keywords_drop_short_tokens():
    assert name_keywords("Hydra-Glow serum, 50ml UV") == ["hydra", "glow", "serum", "50ml"]
    assert name_keywords("UV") == []
    assert name_keywords("Glow glow GLOW") == ["glow"]


def test_similarity_conditions_follow_available_attributes(make_product):
    bare = make_product("X", name="UV")
    rich = make_product("Y", name="Calm Toner", category_ids=["C1"], brand_id="B1",
                        tags=["vegan"], skin_types=["dry"], concerns=["redness"])

    assert similarity_conditions(bare) == []
    assert len(similarity_conditions(rich)) == 6


def test_attribute_matches_come_first(engine):
    """Name keyword and category matches outrank the global fallback."""
    candidates, details = engine.similar("R", return_details=True)

    assert ids(candidates) == ["B", "A", "C", "E"]
    assert details["tiers"]["B"] == TIER_ATTRIBUTES
    assert details["tiers"]["A"] == TIER_ATTRIBUTES
    assert details["tiers"]["C"] == TIER_GLOBAL


def test_reference_and_inactive_products_are_excluded(engine):
    product_ids = ids(engine.similar("R", limit=10))

    assert "R" not in product_ids
    assert "D" not in product_ids
    assert len(product_ids) == len(set(product_ids))


def test_limit_is_respected(engine):
    assert ids(engine.similar("R", limit=1)) == ["B"]
    assert ids(engine.similar("R", limit=0)) == []


def test_short_name_without_attributes_uses_global_tier(engine):
    """A product with nothing to match on gets best sellers, then top rated."""
    candidates, details = engine.similar("E", limit=3, return_details=True)

    assert ids(candidates) == ["C", "B", "R"]
    assert set(details["tiers"].values()) == {TIER_GLOBAL}


def test_same_category_and_brand_tiers_fill_after_attributes(make_product):
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    catalog = InMemoryCatalog([
        make_product("R", name="Ab", category_ids=["C1"], brand_id="B1", created_at=created),
        make_product("X", name="Cd", category_ids=["C1"], average_rating=4.0,
                     created_at=created),
        make_product("Y", name="Ef", brand_id="B1", average_rating=3.5, created_at=created),
        make_product("Z", name="Gh", average_rating=5.0, created_at=created),
    ])
    engine = SimilarityEngine(catalog)

    candidates, details = engine.similar("R", limit=3, return_details=True)

    # Attribute overlap already covers X and Y; the later tiers add nothing
    assert ids(candidates) == ["X", "Y", "Z"]
    assert details["tiers"] == {"X": TIER_ATTRIBUTES, "Y": TIER_ATTRIBUTES, "Z": TIER_GLOBAL}
    assert TIER_SAME_CATEGORY not in details["tiers"].values()
    assert TIER_SAME_BRAND not in details["tiers"].values()


@pytest.mark.parametrize("product_id", ["missing", "bad id!", "", None])
def test_unresolvable_product_returns_empty(engine, product_id):
    assert ids(engine.similar(product_id)) == []


def test_catalog_failure_returns_empty(make_product):
    engine = SimilarityEngine(FailingCatalog(make_product("R", category_ids=["C1"])))

    candidates, details = engine.similar("R", return_details=True)

    assert len(candidates) == 0
    assert details["error_type"] == "DependencyError"
