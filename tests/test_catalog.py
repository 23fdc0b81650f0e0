"""Tests for the in-memory catalog and catalog loading."""

import json

import pytest

from src.personalization.catalog import (
    BY_POPULARITY,
    BY_RATING,
    AnyOf,
    InMemoryCatalog,
    Intersects,
    IsIn,
    NameKeywords,
    TextMatch,
    load_catalog,
)
from src.personalization.exceptions import ProductNotFoundError
from src.personalization.models import ProductStatus


def ids(products):
    return [product.id for product in products]


def test_query_active_orders_by_rating_with_insertion_tie_break(make_product):
    catalog = InMemoryCatalog([
        make_product("A", average_rating=4.0),
        make_product("B", average_rating=4.5),
        make_product("C", average_rating=4.0),
        make_product("D", average_rating=5.0, status="discontinued"),
    ])

    assert ids(catalog.query_active()) == ["B", "A", "C"]
    assert ids(catalog.query_active(exclude_ids={"B"}, limit=1)) == ["A"]
    assert catalog.query_active(limit=0) == []


def test_popularity_order(make_product):
    catalog = InMemoryCatalog([
        make_product("A", average_rating=5.0, review_count=3),
        make_product("B", average_rating=4.0, is_best_seller=True),
        make_product("C", average_rating=5.0, review_count=90),
    ])

    assert ids(catalog.query_active(order_by=BY_POPULARITY)) == ["B", "C", "A"]


def test_conditions(make_product):
    catalog = InMemoryCatalog([
        make_product("A", name="Rose Toner", category_ids=["C1"], tags=["vegan"]),
        make_product("B", name="Clay Mask", brand_id="B7", tags=["vegan-friendly"]),
        make_product("C", name="Night (Repair) Cream", description_short="With Retinol"),
    ])

    assert ids(catalog.query_active(Intersects("category_ids", ["C1", "C9"]), order_by=BY_RATING)) == ["A"]
    assert ids(catalog.query_active(IsIn("brand_id", ["B7"]))) == ["B"]
    assert ids(catalog.query_active(NameKeywords(["MASK"]))) == ["B"]
    assert ids(catalog.query_active(AnyOf([]))) == []
    assert ids(catalog.query_active(AnyOf([IsIn("brand_id", ["B7"]), NameKeywords(["rose"])]))) == ["A", "B"]


def test_text_match_is_literal_and_case_insensitive(make_product):
    catalog = InMemoryCatalog([
        make_product("A", name="Rose Toner", tags=["vegan"]),
        make_product("B", name="Clay Mask", tags=["vegan-friendly"]),
        make_product("C", name="Night (Repair) Cream", description_full="With RETINOL"),
    ])

    assert ids(catalog.query_active(TextMatch(["retinol"]))) == ["C"]
    assert ids(catalog.query_active(TextMatch(["(repair"]))) == ["C"]
    assert ids(catalog.query_active(TextMatch(["vegan"]))) == ["A"]
    assert ids(catalog.query_active(TextMatch(["vegan"], tag_substring=True))) == ["A", "B"]


def test_get_product_and_lookup(make_product):
    catalog = InMemoryCatalog([make_product("A")])

    assert catalog.get_product("A").id == "A"
    with pytest.raises(ProductNotFoundError) as exc_info:
        catalog.get_product("Z")
    assert exc_info.value.status_code == 404

    result = catalog.lookup("Z")
    assert not result.ok
    assert isinstance(result.error, ProductNotFoundError)
    assert catalog.lookup("A").ok


def test_add_products_replaces_by_id(make_product):
    catalog = InMemoryCatalog([make_product("A", average_rating=1.0)])
    catalog.add_products([make_product("A", average_rating=4.0), make_product("B")])

    assert len(catalog) == 2
    assert catalog.get_product("A").average_rating == 4.0
    assert catalog.count_active() == 2


def test_load_catalog_from_json(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([
        {"id": "p1", "name": "Rose Toner", "category_ids": ["c1"], "brand_id": "b1",
         "tags": ["vegan"], "average_rating": 4.2, "review_count": 10,
         "is_best_seller": True, "status": "active",
         "created_at": "2024-03-01T00:00:00+00:00"},
        {"id": "p2", "name": "Clay Mask", "status": "discontinued"},
    ]))

    catalog = load_catalog(path)

    assert len(catalog) == 2
    assert catalog.count_active() == 1
    product = catalog.get_product("p1")
    assert product.category_ids == ["c1"]
    assert product.is_best_seller is True
    assert catalog.get_product("p2").status == ProductStatus.DISCONTINUED


def test_load_catalog_from_csv(tmp_path):
    path = tmp_path / "catalog.csv"
    path.write_text(
        "id,name,category_ids,tags,brand_id,average_rating,status\n"
        "p1,Rose Toner,c1|c2,vegan|spf,b1,4.2,active\n"
        "p2,Clay Mask,,,,3.0,active\n"
    )

    catalog = load_catalog(path)

    first = catalog.get_product("p1")
    assert first.category_ids == ["c1", "c2"]
    assert first.tags == ["vegan", "spf"]
    assert first.brand_id == "b1"
    second = catalog.get_product("p2")
    assert second.category_ids == []
    assert second.brand_id is None


def test_load_catalog_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_catalog(tmp_path / "missing.json")

    unsupported = tmp_path / "catalog.xml"
    unsupported.write_text("<products/>")
    with pytest.raises(ValueError):
        load_catalog(unsupported)

    no_name = tmp_path / "catalog.csv"
    no_name.write_text("id,brand_id\np1,b1\n")
    with pytest.raises(ValueError):
        load_catalog(no_name)
