"""Tests for cart building: totals, savings, unmatched items and cost analysis."""

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from cartmatch.cart import CartBuilder
from cartmatch.config import DEFAULT_CONFIG, MatchThresholds
from cartmatch.errors import InvalidArgument
from cartmatch.schema import Deal, MatchType, RetailerProduct, ShoppingListItem, UserPreferences

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_item(id, name, quantity=1):
    return ShoppingListItem(id=id, product_name=name, quantity=quantity)


def _make_product(id, name, price=300, quantity=1, is_name_brand=False):
    return RetailerProduct(id=id, name=name, price=price, quantity=quantity, is_name_brand=is_name_brand)


def _make_deal(id, product_name, regular, sale, days_left=4):
    return Deal(
        id=id,
        product_name=product_name,
        retailer_id=1,
        regular_price=regular,
        sale_price=sale,
        start_date=NOW - timedelta(days=3),
        end_date=NOW + timedelta(days=days_left),
    )


@pytest.fixture
def builder():
    return CartBuilder()


@pytest.fixture
def banana_catalog():
    products = [_make_product(1, "Organic Bananas", price=149)]
    deals = [_make_deal(10, "Organic Bananas", regular=199, sale=149)]
    return products, deals


class TestDealSavings:
    def test_deal_savings(self, builder, banana_catalog):
        products, deals = banana_catalog
        cart = builder.build_cart([_make_item(1, "bananas")], 1, products, deals, now=NOW)

        assert len(cart.items) == 1
        line = cart.items[0]
        assert line.estimated_price == 149
        assert line.original_price == 199
        assert line.savings == 50
        assert line.deal_id == 10
        assert line.match_type == MatchType.EXACT
        assert cart.deals_saved == 50
        assert cart.total_estimated_value == 149
        assert cart.cost_analysis.total_savings_from_deals == 50

    def test_totals_scale_with_quantity(self, builder, banana_catalog):
        products, deals = banana_catalog
        cart = builder.build_cart([_make_item(1, "bananas", quantity=3)], 1, products, deals, now=NOW)
        assert cart.total_estimated_value == 447
        assert cart.deals_saved == 150

    def test_expired_deal_gives_no_savings(self, builder):
        products = [_make_product(1, "Bananas", price=199)]
        deals = [_make_deal(10, "Bananas", regular=199, sale=149, days_left=-1)]
        cart = builder.build_cart([_make_item(1, "bananas")], 1, products, deals, now=NOW)
        line = cart.items[0]
        assert line.deal_id is None
        assert line.savings == 0
        assert line.estimated_price == line.original_price == 199

    def test_savings_never_negative(self, builder):
        products = [_make_product(1, "Apples", price=300)]
        deals = [_make_deal(10, "Apples", regular=300, sale=250)]
        cart = builder.build_cart([_make_item(1, "apples", 2)], 1, products, deals, now=NOW)
        assert all(line.savings >= 0 for line in cart.items)
        assert cart.deals_saved == 100


class TestCompleteness:
    def test_unmatched_item_reported(self, builder):
        cart = builder.build_cart([_make_item(1, "xyz123nonexistent")], 1, [], [], now=NOW)
        assert cart.items == []
        assert len(cart.unmatched_items) == 1
        assert cart.unmatched_items[0].reason == 'No suitable match found for "xyz123nonexistent"'
        assert cart.match_summary["none"] == 1
        assert cart.total_estimated_value == 0

    def test_every_item_accounted_for(self, builder, banana_catalog):
        products, deals = banana_catalog
        products = products + [_make_product(2, "Whole Milk", price=349), _make_product(3, "Wheat Bread", 279)]
        items = [
            _make_item(1, "bananas"),
            _make_item(2, "Great Value Milk"),
            _make_item(3, "bread"),
            _make_item(4, "dragon fruit"),
        ]
        cart = builder.build_cart(items, 1, products, deals, now=NOW)
        assert len(cart.items) + len(cart.unmatched_items) == len(items)
        assert [u.item.id for u in cart.unmatched_items] == [4]
        assert sum(cart.match_summary.values()) == len(items)

    def test_empty_catalog_and_deals(self, builder):
        items = [_make_item(1, "milk"), _make_item(2, "eggs")]
        cart = builder.build_cart(items, 1, [], [], now=NOW)
        assert len(cart.unmatched_items) == 2
        assert cart.cost_analysis.average_cost_per_unit == 0.0

    def test_empty_list(self, builder):
        cart = builder.build_cart([], 1, [_make_product(1, "Milk")], [], now=NOW)
        assert cart.items == [] and cart.unmatched_items == []
        assert cart.match_summary == {"exact": 0, "brand": 0, "fuzzy": 0, "category": 0, "none": 0}

    def test_low_confidence_match_is_unmatched(self):
        config = replace(DEFAULT_CONFIG, thresholds=replace(MatchThresholds(), cart_confidence=0.95))
        builder = CartBuilder(config)
        cart = builder.build_cart([_make_item(1, "bananna")], 1, [_make_product(1, "Banana", price=25)], now=NOW)
        assert cart.items == []
        assert cart.unmatched_items[0].reason == "Similar product (86% match), $0.25/unit"
        assert cart.match_summary["none"] == 1


class TestValidation:
    @pytest.mark.parametrize("quantity", [0, -1, -0.5, float("nan"), float("inf")])
    def test_non_positive_or_non_finite_quantity_rejected(self, builder, quantity):
        with pytest.raises(InvalidArgument):
            builder.build_cart([_make_item(1, "milk", quantity)], 1, [_make_product(1, "Milk")], [], now=NOW)

    def test_non_numeric_quantity_rejected(self, builder):
        with pytest.raises(InvalidArgument):
            builder.build_cart([_make_item(1, "milk", "2")], 1, [], [], now=NOW)

    def test_missing_name_rejected(self, builder):
        with pytest.raises(InvalidArgument):
            builder.build_cart([_make_item(1, None)], 1, [], [], now=NOW)

    def test_malformed_retailer_rejected(self, builder):
        with pytest.raises(InvalidArgument):
            builder.build_cart([_make_item(1, "milk")], None, [], [], now=NOW)

    def test_validation_happens_before_matching(self, builder):
        items = [_make_item(1, "milk"), _make_item(2, "eggs", 0)]
        with pytest.raises(InvalidArgument, match="quantity"):
            builder.build_cart(items, 1, [_make_product(1, "Milk")], [], now=NOW)


class TestCostAnalysis:
    def test_summary_and_weighted_unit_cost(self, builder):
        products = [_make_product(1, "Apples", price=100), _make_product(2, "Eggs", price=600, quantity=2)]
        items = [_make_item(1, "apples", 2), _make_item(2, "eggs", 1)]
        cart = builder.build_cart(items, 1, products, [], now=NOW)

        assert cart.match_summary == {"exact": 2, "brand": 0, "fuzzy": 0, "category": 0, "none": 0}
        # (100 * 2 + 300 * 1) / 3
        assert cart.cost_analysis.average_cost_per_unit == pytest.approx(500 / 3)
        assert cart.cost_analysis.preference_alignment == 0.0
        assert cart.total_estimated_value == 800

    def test_preference_alignment(self, builder, banana_catalog):
        products, deals = banana_catalog
        prefs = UserPreferences(prefer_organic=True, prioritize_cost_savings=True)
        cart = builder.build_cart([_make_item(1, "bananas")], 1, products, deals, prefs, now=NOW)
        assert cart.items[0].preference_alignment == pytest.approx(60)
        assert cart.cost_analysis.preference_alignment == pytest.approx(60)
        assert "organic as preferred" in cart.items[0].match_explanation


class TestSuggestedQuantity:
    def test_capped_for_household_packs(self, builder):
        products = [_make_product(1, "Toilet Paper 12 ct", price=999, quantity=12)]
        cart = builder.build_cart([_make_item(1, "Toilet Paper", 24)], 1, products, [], now=NOW)
        line = cart.items[0]
        assert line.suggested_quantity == 12
        assert line.quantity == 24
        assert cart.total_estimated_value == 999 * 24


def test_payload_serializes(builder, banana_catalog):
    products, deals = banana_catalog
    items = [_make_item(1, "bananas"), _make_item(2, "xyz123nonexistent")]
    payload = builder.build_cart(items, 1, products, deals, now=NOW).to_dict()
    encoded = json.loads(json.dumps(payload))
    assert encoded["retailer_id"] == 1
    assert encoded["items"][0]["match_type"] == "exact"
    assert encoded["unmatched_items"][0]["reason"].startswith("No suitable match")
    assert set(encoded["cost_analysis"]) == {
        "average_cost_per_unit", "total_savings_from_deals", "preference_alignment",
    }
