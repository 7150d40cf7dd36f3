"""Order, bidding and delivery enums for the delivery lifecycle.

This module defines the core enums for delivery orders including order
status, bidding status, bid status, vehicle and delivery type, together with
the order status transition table enforced by the state machine.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, Set


class OrderStatus(str, Enum):
    """Delivery order lifecycle status.

    Valid transitions:
    - PENDING -> ACCEPTED (bid accepted), CANCELLED
    - ACCEPTED -> PICKUP_CONFIRMED, IN_TRANSIT, CANCELLED
    - PICKUP_CONFIRMED -> IN_TRANSIT, CANCELLED
    - IN_TRANSIT -> DELIVERED, CANCELLED
    - DELIVERED -> (terminal state)
    - CANCELLED -> (terminal state)
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    PICKUP_CONFIRMED = "pickup_confirmed"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid order status: {value}. "
                f"Valid values are: {valid_values}"
            )

    def is_terminal(self) -> bool:
        """Check if status is a terminal state (DELIVERED, CANCELLED)."""
        return self in {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

    def is_active(self) -> bool:
        """Check if a partner is currently working the order."""
        return self in {
            OrderStatus.ACCEPTED,
            OrderStatus.PICKUP_CONFIRMED,
            OrderStatus.IN_TRANSIT,
        }

    def can_cancel(self) -> bool:
        return not self.is_terminal()

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class BiddingStatus(str, Enum):
    """Whether an order is still collecting partner offers."""

    OPEN_FOR_BIDS = "open_for_bids"
    BIDS_CLOSED = "bids_closed"
    BID_ACCEPTED = "bid_accepted"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class BidStatus(str, Enum):
    """Partner bid status.

    A bid leaves PENDING at most once; every other status is terminal.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"

    @classmethod
    def from_string(cls, value: str) -> "BidStatus":
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid bid status: {value}. "
                f"Valid values are: {valid_values}"
            )

    def is_terminal(self) -> bool:
        return self != BidStatus.PENDING


class VehicleType(str, Enum):
    """Vehicle classes partners deliver with."""

    BIKE = "bike"
    VAN = "van"
    TRUCK = "truck"

    @classmethod
    def from_string(cls, value: str) -> "VehicleType":
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid vehicle type: {value}. "
                f"Valid values are: {valid_values}"
            )

    @property
    def display_name(self) -> str:
        return {
            VehicleType.BIKE: "Bike",
            VehicleType.VAN: "Van",
            VehicleType.TRUCK: "Truck",
        }[self]


class DeliveryType(str, Enum):
    """Delivery speed tiers.

    Each tier carries a price multiplier, a nominal duration range shown to
    customers, and a nominal duration in minutes used for estimates.
    """

    STANDARD = "standard"
    EXPRESS = "express"
    SAME_DAY = "same_day"

    @classmethod
    def from_string(cls, value: str) -> "DeliveryType":
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid delivery type: {value}. "
                f"Valid values are: {valid_values}"
            )

    @property
    def multiplier(self) -> Decimal:
        return DELIVERY_TYPE_MULTIPLIERS[self]

    @property
    def duration_range(self) -> str:
        return {
            DeliveryType.STANDARD: "2-3 hours",
            DeliveryType.EXPRESS: "30-60 mins",
            DeliveryType.SAME_DAY: "3-6 hours",
        }[self]

    @property
    def nominal_duration_minutes(self) -> int:
        return {
            DeliveryType.STANDARD: 150,
            DeliveryType.EXPRESS: 45,
            DeliveryType.SAME_DAY: 270,
        }[self]

    @property
    def display_name(self) -> str:
        return {
            DeliveryType.STANDARD: "Standard Delivery",
            DeliveryType.EXPRESS: "Express Delivery",
            DeliveryType.SAME_DAY: "Same Day Delivery",
        }[self]


class OrderPaymentStatus(str, Enum):
    """Payment state of a delivery order."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


DELIVERY_TYPE_MULTIPLIERS: Dict[DeliveryType, Decimal] = {
    DeliveryType.STANDARD: Decimal("1.0"),
    DeliveryType.EXPRESS: Decimal("1.5"),
    DeliveryType.SAME_DAY: Decimal("1.2"),
}

# State transition validation rules
ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.PICKUP_CONFIRMED,
        OrderStatus.IN_TRANSIT,  # Navigation started, pickup implied
        OrderStatus.CANCELLED,
    },
    OrderStatus.PICKUP_CONFIRMED: {
        OrderStatus.IN_TRANSIT,
        OrderStatus.CANCELLED,
    },
    OrderStatus.IN_TRANSIT: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def validate_order_status_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Validate if order status transition is allowed."""
    return new in ORDER_STATUS_TRANSITIONS.get(current, set())


def get_allowed_order_transitions(current: OrderStatus) -> Set[OrderStatus]:
    """Get all allowed transitions from current order status."""
    return ORDER_STATUS_TRANSITIONS.get(current, set()).copy()
