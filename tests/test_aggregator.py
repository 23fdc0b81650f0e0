"""Tests for preference aggregation."""

import pytest

from src.personalization.activity import ActivityLogger
from src.personalization.aggregator import (
    ACTIVITY_WEIGHTS,
    PreferenceAggregator,
    activity_weight,
)
from src.personalization.catalog import InMemoryCatalog
from src.personalization.models import ActivityType


@pytest.fixture
def catalog(make_product):
    return InMemoryCatalog([
        make_product("P1", category_ids=["C1"], brand_id="B1", tags=["vegan"]),
        make_product("P2", category_ids=["C1", "C2"], brand_id="B2", tags=["vegan", "spf"]),
        make_product("P3"),
    ])


@pytest.fixture
def activity(ledger):
    return ActivityLogger(ledger)


@pytest.fixture
def aggregator(ledger, catalog):
    return PreferenceAggregator(ledger, catalog)


def test_activity_weights():
    assert activity_weight(ActivityType.PURCHASE) == 10
    assert activity_weight(ActivityType.ADD_TO_CART) == 5
    assert activity_weight(ActivityType.SEARCH) == 3
    assert activity_weight(ActivityType.CLICK) == 2
    assert activity_weight(ActivityType.FILTER_USE) == 2
    assert activity_weight(ActivityType.VIEW) == 1
    assert sum(ACTIVITY_WEIGHTS.values()) == 23


def test_view_and_purchase_sum_into_category_score(activity, aggregator):
    """A view (1) and a purchase (10) of the same product score 11."""
    activity.log_product_view("u1", "P1")
    activity.log_purchase("u1", "P1")

    assert aggregator.preferred_categories("u1") == {"C1": 11.0}
    assert aggregator.preferred_brands("u1") == {"B1": 11.0}
    assert aggregator.preferred_tags("u1") == {"vegan": 11.0}


def test_every_category_and_tag_of_a_product_is_credited(activity, aggregator):
    activity.log_add_to_cart("u1", "P2")
    activity.log_product_click("u1", "P1")

    profile = aggregator.preference_profile("u1")

    assert profile.categories == {"C1": 7.0, "C2": 5.0}
    assert profile.brands == {"B2": 5.0, "B1": 2.0}
    assert profile.tags == {"vegan": 7.0, "spf": 5.0}
    assert profile.scored_records == 2


def test_product_without_attributes_contributes_nothing(activity, aggregator):
    activity.log_purchase("u1", "P3")

    profile = aggregator.preference_profile("u1")

    assert not profile.has_signal
    assert profile.scored_records == 1
    assert profile.skipped == []


def test_unknown_product_is_skipped(activity, aggregator):
    """Records whose product cannot be resolved are skipped, not fatal."""
    activity.log_purchase("u1", "ghost")
    activity.log_product_view("u1", "ghost")
    activity.log_product_view("u1", "P1")

    profile = aggregator.preference_profile("u1")

    assert profile.categories == {"C1": 1.0}
    assert [result.product_id for result in profile.skipped] == ["ghost"]
    assert profile.skipped[0].error is not None


def test_aggregation_is_idempotent(activity, aggregator):
    activity.log_product_view("u1", "P1")
    activity.log_add_to_cart("u1", "P2")

    assert aggregator.preferred_categories("u1") == aggregator.preferred_categories("u1")
    assert aggregator.preferred_tags("u1") == aggregator.preferred_tags("u1")


def test_unknown_user_has_empty_maps(aggregator):
    assert aggregator.preferred_categories("nobody") == {}
    assert aggregator.recently_viewed("nobody") == []
    assert aggregator.search_history("nobody") == []


def test_recently_viewed_is_distinct_newest_first(activity, aggregator):
    for product_id in ["P1", "P2", "P1", "P3"]:
        activity.log_product_view("u1", product_id)

    assert aggregator.recently_viewed("u1") == ["P3", "P1", "P2"]
    assert aggregator.recently_viewed("u1", limit=2) == ["P3", "P1"]
    assert aggregator.recently_viewed("u1", limit=0) == []


def test_cart_and_purchase_lists_only_read_their_type(activity, aggregator):
    activity.log_product_view("u1", "P1")
    activity.log_add_to_cart("u1", "P2")
    activity.log_purchase("u1", "P3")

    assert aggregator.most_added_to_cart("u1") == ["P2"]
    assert aggregator.purchased("u1") == ["P3"]


def test_filter_usage_counts_raw_frequency(activity, aggregator):
    """Filter usage counts each value once per snapshot, without weights."""
    activity.log_filter_use("u1", {"skin_types": ["dry"], "concerns": ["acne", "redness"]})
    activity.log_filter_use("u1", {"skin_types": ["dry", "oily"], "price": {"min": 5, "max": 20}})

    patterns = aggregator.filter_usage_patterns("u1")

    assert patterns.skin_type_usage == {"dry": 2, "oily": 1}
    assert patterns.concerns_usage == {"acne": 1, "redness": 1}
    assert len(patterns.price_ranges) == 1
    assert patterns.price_ranges[0].max == 20
    assert patterns.category_usage == {}


def test_filter_usage_respects_sample_size(activity, aggregator):
    activity.log_filter_use("u1", {"tags": ["old"]})
    activity.log_filter_use("u1", {"tags": ["new"]})

    patterns = aggregator.filter_usage_patterns("u1", sample_size=1)

    assert patterns.tag_usage == {"new": 1}


def test_search_history_keeps_duplicates(activity, aggregator):
    for query in ["serum", "spf", "serum"]:
        activity.log_search("u1", query)

    assert aggregator.search_history("u1") == ["serum", "spf", "serum"]
    assert aggregator.search_history("u1", limit=2) == ["serum", "spf"]


def test_one_record_of_each_type_sums_to_23(ledger, aggregator):
    """Seeding every activity type against the same product sums the table."""
    ledger.append_many([
        {"user_id": "u1", "activity_type": activity_type.value, "product_id": "P1"}
        for activity_type in ActivityType
    ])

    assert aggregator.preferred_categories("u1") == {"C1": 23.0}


def test_filter_usage_with_zero_sample_is_empty(activity, aggregator):
    activity.log_search("u1", "serum")
    activity.log_filter_use("u1", {"skin_types": ["oily"]})

    patterns = aggregator.filter_usage_patterns("u1", sample_size=0)

    assert patterns.skin_type_usage == {}
    assert aggregator.search_history("u1", limit=0) == []
