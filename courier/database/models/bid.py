"""
Bid model for partner offers against open delivery orders.

A partial unique index guarantees that at most one bid per order can hold
the ``accepted`` status, whatever the interleaving of concurrent writers.
"""

import uuid
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from courier.database.base import BaseModel, enum_column
from courier.services.orders.enums import BidStatus, VehicleType


class Bid(BaseModel):
    """
    A partner's priced offer to fulfill a specific order.

    Attributes:
        order_id: Order the offer is made against
        partner_id: Partner making the offer
        bid_amount: Offered price in whole currency units
        vehicle_type: Vehicle the partner will use
        estimated_pickup_minutes: Minutes until the partner reaches pickup
        message: Optional note to the customer
        status: pending until accepted, rejected or withdrawn
    """

    __tablename__ = "bids"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_orders.id", ondelete="CASCADE"),
        nullable=False,
        comment="Order the bid is made against",
    )

    partner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
        comment="Partner who made the bid",
    )

    bid_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    vehicle_type: Mapped[VehicleType] = mapped_column(
        enum_column(VehicleType, "vehicle_type"),
        nullable=False,
    )

    estimated_pickup_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[BidStatus] = mapped_column(
        enum_column(BidStatus, "bid_status"),
        nullable=False,
        default=BidStatus.PENDING,
    )

    __table_args__ = (
        Index("ix_bids_order_created", "order_id", "created_at"),
        Index("ix_bids_order_status", "order_id", "status"),
        Index(
            "uq_bids_one_accepted_per_order",
            "order_id",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
        ),
        CheckConstraint("bid_amount > 0", name="ck_bids_amount_positive"),
        CheckConstraint(
            "estimated_pickup_minutes > 0",
            name="ck_bids_pickup_minutes_positive",
        ),
        {"comment": "Partner offers against delivery orders"},
    )

    def __repr__(self) -> str:
        return (
            f"<Bid(id={self.id}, order_id={self.order_id}, "
            f"partner_id={self.partner_id}, amount={self.bid_amount}, "
            f"status={self.status.value if self.status else None})>"
        )
