"""Tests for input record validation and output records."""

from datetime import datetime, timedelta, timezone

import pytest

from cartmatch.errors import InvalidArgument
from cartmatch.schema import (
    Deal,
    MatchResult,
    MatchType,
    RetailerProduct,
    ShoppingListItem,
    Unit,
    UserPreferences,
    validate_identifier,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _deal_dict(**overrides):
    data = {
        "id": 1,
        "product_name": "Organic Bananas",
        "retailer_id": 1,
        "regular_price": 199,
        "sale_price": 149,
        "start_date": "2026-02-25T00:00:00Z",
        "end_date": "2026-03-04T00:00:00Z",
    }
    data.update(overrides)
    return data


class TestIdentifiers:
    @pytest.mark.parametrize("value", [1, 42, "sku-1", "walmart"])
    def test_valid(self, value):
        assert validate_identifier(value) == value

    @pytest.mark.parametrize("value", [None, 0, -3, "", "   ", True, 2.0, []])
    def test_invalid(self, value):
        with pytest.raises(InvalidArgument):
            validate_identifier(value)


class TestShoppingListItem:
    def test_defaults(self):
        item = ShoppingListItem.from_dict({"id": 1, "product_name": "Milk"})
        assert item.quantity == 1
        assert item.unit == Unit.COUNT

    def test_unit_is_case_insensitive(self):
        assert ShoppingListItem.from_dict({"id": 1, "product_name": "Apples", "unit": "lb"}).unit == Unit.LB

    def test_unknown_unit(self):
        with pytest.raises(InvalidArgument, match="unit"):
            ShoppingListItem.from_dict({"id": 1, "product_name": "Apples", "unit": "furlong"})

    @pytest.mark.parametrize("quantity", [0, -2, "3", None, float("nan"), float("-inf")])
    def test_bad_quantity(self, quantity):
        with pytest.raises(InvalidArgument):
            ShoppingListItem.from_dict({"id": 1, "product_name": "Milk", "quantity": quantity})

    def test_missing_name(self):
        with pytest.raises(InvalidArgument, match="product_name"):
            ShoppingListItem.from_dict({"id": 1})


class TestRetailerProduct:
    def test_from_dict(self):
        product = RetailerProduct.from_dict({"id": "sku-9", "name": "Eggs", "price": 389, "quantity": 12})
        assert product.price == 389
        assert product.quantity == 12
        assert product.is_name_brand is False

    def test_price_rounded_to_minor_units(self):
        assert RetailerProduct.from_dict({"id": 1, "name": "Eggs", "price": 389.4}).price == 389

    @pytest.mark.parametrize("price", [None, -1, "3.49", True, float("nan"), float("inf")])
    def test_bad_price(self, price):
        with pytest.raises(InvalidArgument):
            RetailerProduct.from_dict({"id": 1, "name": "Eggs", "price": price})

    @pytest.mark.parametrize("quantity", [-6, 0, 0.0, float("nan")])
    def test_bad_pack_size(self, quantity):
        with pytest.raises(InvalidArgument, match="pack"):
            RetailerProduct.from_dict({"id": 1, "name": "Eggs", "price": 100, "quantity": quantity})

    def test_missing_pack_size_defaults_to_one(self):
        assert RetailerProduct.from_dict({"id": 1, "name": "Eggs", "price": 100, "quantity": None}).quantity == 1
        assert RetailerProduct.from_dict({"id": 1, "name": "Butter", "price": 300, "quantity": 0.5}).quantity == 0.5


class TestDeal:
    def test_parses_utc_suffix(self):
        deal = Deal.from_dict(_deal_dict())
        assert deal.start_date == datetime(2026, 2, 25, tzinfo=timezone.utc)

    def test_naive_dates_are_utc(self):
        deal = Deal.from_dict(_deal_dict(start_date="2026-02-25T00:00:00", end_date=datetime(2026, 3, 4)))
        assert deal.start_date.tzinfo is not None
        assert deal.end_date == datetime(2026, 3, 4, tzinfo=timezone.utc)

    def test_end_before_start(self):
        with pytest.raises(InvalidArgument, match="end_date"):
            Deal.from_dict(_deal_dict(end_date="2026-02-01T00:00:00Z"))

    def test_unparseable_date(self):
        with pytest.raises(InvalidArgument):
            Deal.from_dict(_deal_dict(start_date="next tuesday"))

    def test_active_window_is_half_open(self):
        deal = Deal.from_dict(_deal_dict())
        assert deal.is_active(deal.start_date)
        assert deal.is_active(NOW)
        assert not deal.is_active(deal.end_date)
        assert not deal.is_active(deal.start_date - timedelta(seconds=1))

    def test_naive_now_accepted(self):
        assert Deal.from_dict(_deal_dict()).is_active(datetime(2026, 3, 1, 12))

    def test_discount_fraction(self):
        assert Deal.from_dict(_deal_dict()).discount_fraction == pytest.approx(50 / 199)
        assert Deal.from_dict(_deal_dict(regular_price=0, sale_price=0)).discount_fraction == 0.0

    def test_round_trip_dict(self):
        deal = Deal.from_dict(_deal_dict())
        assert Deal.from_dict(deal.to_dict()) == deal


def test_preferences_default_off():
    prefs = UserPreferences.from_dict({})
    assert prefs == UserPreferences()
    assert not any(prefs.to_dict().values())


class TestMatchResult:
    def test_confidence_range_enforced(self):
        with pytest.raises(ValueError):
            MatchResult(confidence=1.5, match_type=MatchType.EXACT, retailer_product=None)

    def test_no_match(self):
        result = MatchResult.no_match("dragon fruit")
        assert result.match_type == MatchType.NONE
        assert result.confidence == 0.0
        assert result.to_dict()["retailer_product"] is None
        assert result.explanation == 'No suitable match found for "dragon fruit"'
