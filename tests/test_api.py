"""Tests for the FastAPI application endpoints.

This module contains integration tests for the GlowRec API endpoints,
including health checks, recommendations and activity tracking.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import create_app
from src.config import Settings
from src.personalization.service import RecommendationService


@pytest.fixture
def service(shop_catalog, ledger):
    service = RecommendationService(shop_catalog, ledger, Settings())
    yield service
    service.close()


@pytest.fixture
def client(service):
    """Test client for an app serving the shared shop catalog."""
    return TestClient(create_app(service))


def product_ids(response):
    return [product["id"] for product in response.json()["products"]]


def test_ping_endpoint(client):
    """Test that the /ping endpoint returns correct status and JSON."""
    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_status_endpoint(client):
    """Test that the /status endpoint reports catalog and ledger sizes."""
    response = client.get("/status")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["catalog_size"] == 6
    assert data["active_products"] == 5
    assert data["activity_records"] == 0


def test_personalized_endpoint_cold_start(client):
    response = client.get("/recommendations/personalized/u1?limit=3")

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == "u1"
    assert data["count"] == 3
    assert product_ids(response) == ["P4", "P3", "P2"]
    assert data["details"] is None


def test_personalized_endpoint_with_explain(client):
    client.post("/activity/u1/view/P1")
    client.post("/activity/u1/purchase/P2", json={"variant_id": "v1"})

    response = client.get("/recommendations/personalized/u1?limit=3&explain=true")

    assert response.status_code == 200
    data = response.json()
    assert product_ids(response) == ["P3", "P4", "P5"]
    assert data["details"]["method"] == "signal"
    assert data["details"]["excluded"] == ["P1", "P2"]


def test_similar_endpoint(client):
    response = client.get("/recommendations/similar/P1?limit=2")

    assert response.status_code == 200
    assert response.json()["product_id"] == "P1"
    assert response.json()["count"] == 2
    assert "P1" not in product_ids(response)


def test_similar_endpoint_unknown_product_is_empty(client):
    response = client.get("/recommendations/similar/nope")

    assert response.status_code == 200
    assert response.json()["products"] == []


def test_search_endpoint_logs_search_for_user(client, service):
    response = client.get("/recommendations/search", params={"query": "product", "user_id": "u7"})

    assert response.status_code == 200
    assert response.json()["query"] == "product"
    assert response.json()["count"] == 5
    assert service.get_user_search_history("u7") == ["product"]


def test_search_endpoint_without_user_records_nothing(client, service):
    client.get("/recommendations/search", params={"query": "product"})

    assert service.ledger.count() == 0


def test_popular_endpoint(client):
    response = client.get("/recommendations/popular?limit=2")

    assert response.status_code == 200
    assert product_ids(response) == ["P4", "P3"]


def test_history_endpoints(client):
    client.post("/activity/u1/search", json={"search_query": "spf"})
    client.post("/activity/u1/view/P3", json={"time_spent": 12.5})

    searches = client.get("/recommendations/history/search/u1")
    viewed = client.get("/recommendations/history/viewed/u1")

    assert searches.json() == {"user_id": "u1", "items": ["spf"]}
    assert viewed.json() == {"user_id": "u1", "items": ["P3"]}


@pytest.mark.parametrize(
    "path, activity_type",
    [
        ("/activity/u1/view/P1", "view"),
        ("/activity/u1/click/P1", "click"),
        ("/activity/u1/add-to-cart/P1", "add_to_cart"),
        ("/activity/u1/purchase/P1", "purchase"),
    ],
)
def test_product_activity_endpoints(client, path, activity_type):
    response = client.post(path)

    assert response.status_code == 201
    data = response.json()
    assert data["activity_type"] == activity_type
    assert data["product_id"] == "P1"
    assert data["user_id"] == "u1"
    assert data["record_id"]


def test_filter_activity_endpoint(client, service):
    response = client.post(
        "/activity/u1/filter",
        json={"skin_types": ["dry"], "price": {"min": 10, "max": 25}},
    )

    assert response.status_code == 201
    assert response.json()["activity_type"] == "filter_use"
    patterns = service.aggregator.filter_usage_patterns("u1")
    assert patterns.skin_type_usage == {"dry": 1}


def test_metrics_endpoint_counts_calls(client):
    client.get("/recommendations/personalized/u1?limit=2")
    client.get("/recommendations/personalized/u2?limit=2")
    client.get("/recommendations/popular")

    metrics = client.get("/metrics").json()

    assert metrics["endpoints"]["personalized"]["count"] == 2
    assert metrics["endpoints"]["popular"]["count"] == 1
    assert metrics["tiers"]["cold_start"] == 2
    assert metrics["tiers"]["fill"] == 2


def test_request_id_header_is_echoed(client):
    response = client.get("/ping", headers={"X-Request-ID": "abc123"})

    assert response.headers["X-Request-ID"] == "abc123"
    assert client.get("/ping").headers["X-Request-ID"]
