"""
Partner profile, delivery rating and partner earning models.

A rating and an earning each reference exactly one order, and both
``order_id`` columns are unique: an order is rated once and pays its
partner once.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from courier.database.base import BaseModel, enum_column
from courier.services.orders.enums import VehicleType


class PartnerProfile(BaseModel):
    """
    Delivery partner's working profile.

    Attributes:
        user_id: Partner the profile belongs to
        vehicle_type: Vehicle the partner usually delivers with
        vehicle_registration: Plate number of that vehicle
        is_online: Whether the partner is currently taking jobs
        total_earnings: Lifetime earnings in whole currency units
        pending_payout: Earnings not yet paid out
        completed_deliveries: Number of delivered orders
        average_rating: Mean customer rating, 0 until first rated
        rating_count: Number of ratings behind the average
    """

    __tablename__ = "partner_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        unique=True,
        comment="Partner the profile belongs to",
    )

    vehicle_type: Mapped[Optional[VehicleType]] = mapped_column(
        enum_column(VehicleType, "vehicle_type"),
        nullable=True,
    )

    vehicle_registration: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    is_online: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    total_earnings: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    pending_payout: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    completed_deliveries: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    average_rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2), nullable=False, default=Decimal("0"), server_default="0"
    )

    rating_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    __table_args__ = (
        CheckConstraint(
            "average_rating >= 0 AND average_rating <= 5",
            name="ck_partner_profiles_average_rating_range",
        ),
        CheckConstraint("total_earnings >= 0", name="ck_partner_profiles_earnings_non_negative"),
        {"comment": "Delivery partner profiles"},
    )


class Rating(BaseModel):
    """A customer's 1-5 rating of the partner who delivered their order."""

    __tablename__ = "ratings"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    partner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_ratings_rating_range"),
    )


class PartnerEarning(BaseModel):
    """Amount a partner earned for one delivered order."""

    __tablename__ = "partner_earnings"

    partner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_partner_earnings_partner_created", "partner_id", "created_at"),
        CheckConstraint("amount > 0", name="ck_partner_earnings_amount_positive"),
    )
