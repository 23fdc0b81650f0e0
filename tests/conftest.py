"""Shared fixtures for the GlowRec test suite."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.personalization.catalog import InMemoryCatalog
from src.personalization.ledger import InMemoryActivityLedger
from src.personalization.models import ProductAttributes


@pytest.fixture
def make_product():
    """Factory for catalog products with sensible defaults."""

    def _make(product_id, **overrides):
        fields = {
            "id": product_id,
            "name": f"Product {product_id}",
            "average_rating": 3.0,
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return ProductAttributes(**fields)

    return _make


@pytest.fixture
def ledger():
    """Fixture providing an empty in-memory activity ledger."""
    return InMemoryActivityLedger()


@pytest.fixture
def shop_catalog(make_product):
    """Small catalog used by the candidate and service tests.

    P6 is discontinued and must never be recommended.
    """
    return InMemoryCatalog([
        make_product("P1", category_ids=["C1"], brand_id="B1", average_rating=4.0,
                     review_count=10),
        make_product("P2", category_ids=["C1"], brand_id="B2", average_rating=4.5,
                     review_count=30),
        make_product("P3", category_ids=["C1"], brand_id="B1", average_rating=4.8,
                     review_count=5),
        make_product("P4", category_ids=["C2"], brand_id="B3", average_rating=5.0,
                     review_count=50, is_best_seller=True),
        make_product("P5", category_ids=["C2"], brand_id="B3", average_rating=3.0,
                     review_count=1),
        make_product("P6", category_ids=["C1"], brand_id="B1", average_rating=5.0,
                     status="discontinued"),
    ])
