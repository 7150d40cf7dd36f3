"""
Delivery order models.

This module defines the DeliveryOrder model together with its append-only
tracking events and the delivery proof a partner attaches on completion.
Check constraints back the pricing and assignment invariants at the database
level so no code path can persist an order that violates them.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from courier.database.base import Base, BaseModel, UUIDMixin, enum_column
from courier.services.orders.enums import (
    BiddingStatus,
    DeliveryType,
    OrderPaymentStatus,
    OrderStatus,
    VehicleType,
)


class DeliveryOrder(BaseModel):
    """
    A customer's request to move a package between two addresses.

    Attributes:
        order_number: Human-readable order number, unique
        idempotency_key: Client supplied key deduplicating retried creates
        customer_id: Customer who placed the order
        partner_id: Partner assigned once a bid is accepted
        status: Lifecycle status
        bid_status: Whether the order is still collecting offers
        selected_bid_id: Bid that won the order
        accept_request_id: Request id of the accepting command, for replays
        base_fee: Distance and tier based delivery fee
        fragile_handling_fee: Fragile surcharge, zero when not fragile
        total_cost: base_fee + fragile_handling_fee
        version: Optimistic concurrency version
    """

    __tablename__ = "delivery_orders"

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Human-readable order number",
    )

    idempotency_key: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Client supplied create idempotency key",
    )

    # Parties
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
        comment="Customer who placed the order",
    )

    partner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
        index=True,
        comment="Partner assigned to deliver the order",
    )

    # Classification
    vehicle_type: Mapped[VehicleType] = mapped_column(
        enum_column(VehicleType, "vehicle_type"),
        nullable=False,
        comment="Requested vehicle class",
    )

    delivery_type: Mapped[DeliveryType] = mapped_column(
        enum_column(DeliveryType, "delivery_type"),
        nullable=False,
        default=DeliveryType.STANDARD,
        comment="Delivery speed tier",
    )

    # Route
    pickup_address: Mapped[str] = mapped_column(Text, nullable=False)
    dropoff_address: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient_phone: Mapped[str] = mapped_column(String(32), nullable=False)

    distance_km: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Distance between pickup and drop-off",
    )

    estimated_duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Nominal delivery duration",
    )

    # Package
    package_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    package_weight: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=True,
        comment="Package weight in kilograms",
    )

    declared_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=14, scale=2),
        nullable=True,
        comment="Declared package value",
    )

    is_fragile: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    # Pricing
    base_fee: Mapped[int] = mapped_column(Integer, nullable=False)
    fragile_handling_fee: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_cost: Mapped[int] = mapped_column(Integer, nullable=False)

    # Lifecycle
    status: Mapped[OrderStatus] = mapped_column(
        enum_column(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Current lifecycle status",
    )

    bid_status: Mapped[BiddingStatus] = mapped_column(
        enum_column(BiddingStatus, "bidding_status"),
        nullable=False,
        default=BiddingStatus.OPEN_FOR_BIDS,
        index=True,
        comment="Bidding state of the order",
    )

    selected_bid_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "bids.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_delivery_orders_selected_bid_id",
        ),
        nullable=True,
        comment="Accepted bid",
    )

    accept_request_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Request id of the accept command that assigned the partner",
    )

    payment_status: Mapped[OrderPaymentStatus] = mapped_column(
        enum_column(OrderPaymentStatus, "order_payment_status"),
        nullable=False,
        default=OrderPaymentStatus.PENDING,
    )

    payment_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Bidding parameters (stored, not acted upon)
    bidding_window_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    auto_accept_threshold: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_bid_decrement: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_lowest_bid: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="1",
        comment="Optimistic concurrency version, bumped on every update",
    )

    # Delivery timestamps
    estimated_delivery_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    actual_delivery_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_delivery_orders_customer_created", "customer_id", "created_at"),
        Index("ix_delivery_orders_partner_status", "partner_id", "status"),
        Index("ix_delivery_orders_bid_status_created", "bid_status", "created_at"),
        Index(
            "uq_delivery_orders_customer_idempotency_key",
            "customer_id",
            "idempotency_key",
            unique=True,
            postgresql_where=text("idempotency_key IS NOT NULL"),
        ),
        CheckConstraint(
            "total_cost = base_fee + fragile_handling_fee",
            name="ck_delivery_orders_total_cost",
        ),
        CheckConstraint(
            "bid_status <> 'open_for_bids' OR partner_id IS NULL",
            name="ck_delivery_orders_no_partner_while_open",
        ),
        CheckConstraint("base_fee >= 0", name="ck_delivery_orders_base_fee_non_negative"),
        CheckConstraint(
            "fragile_handling_fee >= 0",
            name="ck_delivery_orders_fragile_fee_non_negative",
        ),
        CheckConstraint("distance_km >= 0", name="ck_delivery_orders_distance_non_negative"),
        {"comment": "Customer delivery orders"},
    )

    # UPDATEs carry "WHERE version = :expected"; a miss raises StaleDataError.
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    def __repr__(self) -> str:
        return (
            f"<DeliveryOrder(id={self.id}, order_number={self.order_number}, "
            f"status={self.status.value if self.status else None}, "
            f"bid_status={self.bid_status.value if self.bid_status else None})>"
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    @property
    def is_open_for_bids(self) -> bool:
        return self.bid_status == BiddingStatus.OPEN_FOR_BIDS


class TrackingEvent(Base, UUIDMixin):
    """
    Immutable audit record of one lifecycle transition of an order.

    Rows are only ever inserted; there is no updated_at.
    """

    __tablename__ = "tracking_events"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[OrderStatus] = mapped_column(
        enum_column(OrderStatus, "order_status"),
        nullable=False,
        comment="Status the order moved into",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
        comment="User whose action caused the transition",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_tracking_events_order_created", "order_id", "created_at"),
        {"comment": "Append-only order tracking feed"},
    )


class DeliveryProof(BaseModel):
    """Photo evidence a partner attaches when completing a delivery."""

    __tablename__ = "delivery_proofs"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    partner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    image_url: Mapped[str] = mapped_column(String(2048), nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
