"""Delivery fee calculation.

Fees are computed with Decimal arithmetic and rounded half-up to whole
currency units, so the preview quoted to a customer and the total persisted
on the order are always identical for the same inputs.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from courier.core.config import get_settings
from courier.core.errors import InputValidationError
from courier.services.orders.enums import DELIVERY_TYPE_MULTIPLIERS, DeliveryType

DEFAULT_MULTIPLIER = Decimal("1.0")

Number = Union[int, float, Decimal, str]


@dataclass(frozen=True)
class FeeSchedule:
    """Rates applied by the fee calculator."""

    base_rate: Decimal
    per_km_rate: Decimal
    insurance_rate: Decimal

    @classmethod
    def from_settings(cls) -> "FeeSchedule":
        settings = get_settings()
        return cls(
            base_rate=Decimal(settings.delivery_base_rate),
            per_km_rate=Decimal(settings.delivery_per_km_rate),
            insurance_rate=Decimal(settings.fragile_insurance_rate),
        )


@dataclass(frozen=True)
class FeeQuote:
    """Priced delivery preview."""

    base_fee: int
    fragile_handling_fee: int
    total_cost: int
    multiplier: Decimal
    estimated_duration_minutes: int
    duration_range: str


def _round_whole(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_decimal(value: Number, field: str) -> Decimal:
    if isinstance(value, bool):
        raise InputValidationError(f"{field} must be a number", field=field, value=value)
    if isinstance(value, float) and not math.isfinite(value):
        raise InputValidationError(f"{field} must be finite", field=field, value=value)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InputValidationError(
            f"{field} must be a number", field=field, value=value
        ) from e
    if not result.is_finite():
        raise InputValidationError(f"{field} must be finite", field=field, value=value)
    if result < 0:
        raise InputValidationError(
            f"{field} cannot be negative", field=field, value=value
        )
    return result


def get_multiplier(delivery_type: Union[DeliveryType, str, None]) -> Decimal:
    """Resolve the price multiplier for a delivery type; unknown types get 1.0."""
    if isinstance(delivery_type, DeliveryType):
        return DELIVERY_TYPE_MULTIPLIERS[delivery_type]
    if isinstance(delivery_type, str):
        try:
            return DELIVERY_TYPE_MULTIPLIERS[DeliveryType(delivery_type.lower())]
        except ValueError:
            return DEFAULT_MULTIPLIER
    return DEFAULT_MULTIPLIER


def compute_fee(
    distance_km: Number,
    delivery_type: Union[DeliveryType, str, None],
    schedule: Optional[FeeSchedule] = None,
) -> int:
    """
    Compute the delivery fee in whole currency units.

    fee = round((base_rate + distance_km * per_km_rate) * multiplier)

    Args:
        distance_km: Distance between pickup and drop-off, >= 0
        delivery_type: Delivery tier; unknown tiers price at 1.0
        schedule: Rates to apply, defaults to configured rates

    Raises:
        InputValidationError: If distance is negative or not a finite number

    Example:
        >>> compute_fee(5, DeliveryType.STANDARD)
        1000
        >>> compute_fee(5, DeliveryType.EXPRESS)
        1500
    """
    schedule = schedule or FeeSchedule.from_settings()
    distance = to_decimal(distance_km, "distance_km")
    raw = (schedule.base_rate + distance * schedule.per_km_rate) * get_multiplier(
        delivery_type
    )
    return _round_whole(raw)


def compute_insurance(
    fee: Number,
    is_fragile: bool,
    schedule: Optional[FeeSchedule] = None,
) -> int:
    """
    Compute the fragile handling surcharge.

    Returns round(fee * insurance_rate) when fragile, else 0.
    """
    if not is_fragile:
        return 0
    schedule = schedule or FeeSchedule.from_settings()
    return _round_whole(to_decimal(fee, "fee") * schedule.insurance_rate)


def quote(
    distance_km: Number,
    delivery_type: Union[DeliveryType, str],
    is_fragile: bool = False,
    schedule: Optional[FeeSchedule] = None,
) -> FeeQuote:
    """Price a delivery: base fee, fragile surcharge and their total."""
    schedule = schedule or FeeSchedule.from_settings()
    base_fee = compute_fee(distance_km, delivery_type, schedule)
    fragile_fee = compute_insurance(base_fee, is_fragile, schedule)

    try:
        tier = (
            delivery_type
            if isinstance(delivery_type, DeliveryType)
            else DeliveryType.from_string(delivery_type)
        )
    except ValueError:
        tier = DeliveryType.STANDARD

    return FeeQuote(
        base_fee=base_fee,
        fragile_handling_fee=fragile_fee,
        total_cost=base_fee + fragile_fee,
        multiplier=get_multiplier(delivery_type),
        estimated_duration_minutes=tier.nominal_duration_minutes,
        duration_range=tier.duration_range,
    )
