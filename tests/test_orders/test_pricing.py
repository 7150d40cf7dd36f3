"""
Tests for the delivery fee calculator.

Covers the base fee formula for each delivery tier, the fragile surcharge,
half-up rounding, and rejection of invalid distances.
"""

from decimal import Decimal

import pytest

from courier.core.errors import InputValidationError
from courier.services.orders.enums import DeliveryType
from courier.services.orders.pricing import (
    FeeSchedule,
    compute_fee,
    compute_insurance,
    get_multiplier,
    quote,
)


class TestComputeFee:
    """Test suite for compute_fee."""

    def test_standard_five_km(self, fee_schedule: FeeSchedule):
        assert compute_fee(5, DeliveryType.STANDARD, fee_schedule) == 1000

    def test_express_applies_multiplier(self, fee_schedule: FeeSchedule):
        assert compute_fee(5, DeliveryType.EXPRESS, fee_schedule) == 1500

    def test_same_day_applies_multiplier(self, fee_schedule: FeeSchedule):
        assert compute_fee(5, DeliveryType.SAME_DAY, fee_schedule) == 1200

    def test_zero_distance_charges_base_rate(self, fee_schedule: FeeSchedule):
        assert compute_fee(0, DeliveryType.STANDARD, fee_schedule) == 500

    def test_accepts_string_tier(self, fee_schedule: FeeSchedule):
        assert compute_fee(5, "EXPRESS", fee_schedule) == 1500

    def test_unknown_tier_prices_at_one(self, fee_schedule: FeeSchedule):
        assert compute_fee(5, "overnight", fee_schedule) == 1000

    def test_rounds_half_up(self, fee_schedule: FeeSchedule):
        # (500 + 0.005 * 100) * 1.0 = 500.5
        assert compute_fee(Decimal("0.005"), DeliveryType.STANDARD, fee_schedule) == 501

    def test_fractional_distance(self, fee_schedule: FeeSchedule):
        # (500 + 2.35 * 100) * 1.5 = 1102.5
        assert compute_fee(2.35, DeliveryType.EXPRESS, fee_schedule) == 1103

    @pytest.mark.parametrize("distance", [-1, "-0.5", Decimal("-3")])
    def test_negative_distance_rejected(self, fee_schedule: FeeSchedule, distance):
        with pytest.raises(InputValidationError) as exc_info:
            compute_fee(distance, DeliveryType.STANDARD, fee_schedule)
        assert exc_info.value.context["field"] == "distance_km"

    @pytest.mark.parametrize("distance", [float("nan"), float("inf"), "abc", True])
    def test_non_numeric_distance_rejected(self, fee_schedule: FeeSchedule, distance):
        with pytest.raises(InputValidationError):
            compute_fee(distance, DeliveryType.STANDARD, fee_schedule)


class TestComputeInsurance:
    """Test suite for the fragile surcharge."""

    def test_not_fragile_is_free(self, fee_schedule: FeeSchedule):
        assert compute_insurance(1000, False, fee_schedule) == 0

    def test_fragile_ten_percent(self, fee_schedule: FeeSchedule):
        assert compute_insurance(1000, True, fee_schedule) == 100

    def test_fragile_rounds_half_up(self, fee_schedule: FeeSchedule):
        assert compute_insurance(1005, True, fee_schedule) == 101


class TestQuote:
    """Test suite for the combined quote."""

    def test_fragile_standard_quote(self, fee_schedule: FeeSchedule):
        result = quote(5, DeliveryType.STANDARD, True, fee_schedule)

        assert result.base_fee == 1000
        assert result.fragile_handling_fee == 100
        assert result.total_cost == 1100
        assert result.multiplier == Decimal("1.0")

    def test_total_is_sum_of_parts(self, fee_schedule: FeeSchedule):
        result = quote(Decimal("12.4"), DeliveryType.SAME_DAY, True, fee_schedule)
        assert result.total_cost == result.base_fee + result.fragile_handling_fee

    @pytest.mark.parametrize(
        "tier,minutes,window",
        [
            (DeliveryType.STANDARD, 150, "2-3 hours"),
            (DeliveryType.EXPRESS, 45, "30-60 mins"),
            (DeliveryType.SAME_DAY, 270, "3-6 hours"),
        ],
    )
    def test_duration_estimates(self, fee_schedule: FeeSchedule, tier, minutes, window):
        result = quote(5, tier, False, fee_schedule)
        assert result.estimated_duration_minutes == minutes
        assert result.duration_range == window

    def test_unknown_tier_uses_standard_duration(self, fee_schedule: FeeSchedule):
        result = quote(5, "overnight", False, fee_schedule)
        assert result.estimated_duration_minutes == 150
        assert result.multiplier == Decimal("1.0")


def test_get_multiplier_handles_none():
    assert get_multiplier(None) == Decimal("1.0")
