"""Tests for order money and delivery-transition rules."""

from decimal import Decimal

import pytest

from palmtrack.middleware.exceptions import BusinessLogicError
from palmtrack.services.orders import check_transition, line_total, order_totals

D = Decimal


@pytest.mark.unit
class TestOrderMoney:

    def test_palm_fruit_is_priced_by_weight(self):
        assert line_total("PALM_FRUIT_BUNCHES", D("3"), D("2.5"), D("120")) == D("300.00")

    def test_other_items_priced_by_quantity(self):
        assert line_total("BLOCK_5_INCH", D("200"), D("6.5"), D("999")) == D("1300.00")

    def test_missing_weight_is_zero(self):
        assert line_total("palm_fruit_bunches", D("3"), D("2.5")) == D("0.00")

    def test_rounds_half_up_to_cents(self):
        assert line_total("CEMENT_BAG", D("1"), D("10.005")) == D("10.01")

    def test_totals_apply_discount(self):
        assert order_totals([D("100"), D("50.50")], D("20")) == (D("150.50"), D("130.50"))

    def test_total_never_negative(self):
        assert order_totals([D("100")], D("150")) == (D("100.00"), D("0"))


@pytest.mark.unit
class TestDeliveryTransitions:

    @pytest.mark.parametrize("current, target", [
        ("PENDING", "PARTIALLY_DELIVERED"),
        ("PENDING", "DELIVERED"),
        ("PENDING", "CANCELLED"),
        ("PARTIALLY_DELIVERED", "DELIVERED"),
        ("PARTIALLY_DELIVERED", "PARTIALLY_DELIVERED"),
    ])
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize("current, target", [
        ("DELIVERED", "PENDING"),
        ("DELIVERED", "DELIVERED"),
        ("CANCELLED", "PENDING"),
        ("PARTIALLY_DELIVERED", "PENDING"),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(BusinessLogicError) as exc:
            check_transition(current, target)
        assert exc.value.error_code == "INVALID_TRANSITION"
