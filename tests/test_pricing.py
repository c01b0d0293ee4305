from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from catalog.models.product import PricingInfo
from catalog.services.pricing import format_minor_units, to_major_units


@pytest.mark.parametrize("amount,currency,expected", [
    (1234, "USD", "12.34 USD"),
    (-50, "eur", "-0.50 EUR"),
    (0, "GBP", "0.00 GBP"),
    (1500, "JPY", "1500 JPY"),
])
def test_format_minor_units(amount, currency, expected):
    assert format_minor_units(amount, currency) == expected


def test_default_currency():
    assert format_minor_units(199) == "1.99 USD"
    assert to_major_units(199) == Decimal("1.99")


class TestPricingInfo:
    now = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_regular_price_without_special(self):
        assert PricingInfo(price=1000).current_price(self.now) == 1000

    def test_special_price_inside_window(self):
        pricing = PricingInfo(
            price=1000,
            special_price=750,
            special_from=self.now - timedelta(days=1),
            special_to=self.now + timedelta(days=1),
        )
        assert pricing.current_price(self.now) == 750

    def test_special_price_outside_window(self):
        pricing = PricingInfo(price=1000, special_price=750, special_to=self.now - timedelta(seconds=1))
        assert pricing.current_price(self.now) == 1000
        upcoming = PricingInfo(price=1000, special_price=750, special_from=self.now + timedelta(days=2))
        assert upcoming.current_price(self.now) == 1000

    def test_open_ended_special_price(self):
        assert PricingInfo(price=1000, special_price=900).current_price(self.now) == 900

    def test_naive_bounds_are_treated_as_utc(self):
        pricing = PricingInfo(
            price=1000,
            special_price=600,
            special_from=datetime(2026, 5, 1),
            special_to=datetime(2026, 7, 1),
        )
        assert pricing.current_price(self.now) == 600
