"""
Delivery order Pydantic schemas for API request/response validation.

This module defines schemas for fee quotes, order creation, partner-side
lifecycle actions, cancellation, and the order and tracking event views
returned to clients.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from courier.services.orders.enums import (
    BiddingStatus,
    DeliveryType,
    OrderPaymentStatus,
    OrderStatus,
    VehicleType,
)


class QuoteRequest(BaseModel):
    """Inputs for a fee preview."""

    distance_km: Decimal = Field(..., ge=0, le=10000, description="Route distance in km")
    delivery_type: DeliveryType = Field(DeliveryType.STANDARD, description="Delivery tier")
    is_fragile: bool = Field(False, description="Whether the package is fragile")


class QuoteResponse(BaseModel):
    """Priced delivery preview."""

    base_fee: int
    fragile_handling_fee: int
    total_cost: int
    multiplier: Decimal
    estimated_duration_minutes: int
    duration_range: str


class OrderCreateRequest(BaseModel):
    """Request to create a delivery order."""

    model_config = ConfigDict(str_strip_whitespace=True)

    pickup_address: str = Field(..., min_length=1, max_length=500)
    dropoff_address: str = Field(..., min_length=1, max_length=500)
    recipient_name: str = Field(..., min_length=1, max_length=200)
    recipient_phone: str = Field(..., min_length=7, max_length=32)
    vehicle_type: VehicleType
    delivery_type: DeliveryType = DeliveryType.STANDARD
    distance_km: Decimal = Field(..., gt=0, le=10000)
    package_description: Optional[str] = Field(None, max_length=1000)
    package_weight: Optional[Decimal] = Field(None, ge=0)
    declared_value: Optional[Decimal] = Field(None, ge=0)
    is_fragile: bool = False
    bidding_window_minutes: Optional[int] = Field(None, gt=0, le=1440)
    auto_accept_threshold: Optional[int] = Field(None, gt=0)
    min_bid_decrement: Optional[int] = Field(None, gt=0)
    idempotency_key: Optional[str] = Field(
        None,
        min_length=1,
        max_length=100,
        description="Client key; repeating it returns the order created first",
    )

    @field_validator("recipient_phone")
    @classmethod
    def validate_phone_format(cls, v: str) -> str:
        """Validate phone number contains enough digits."""
        digits = "".join(filter(str.isdigit, v))
        if len(digits) < 7:
            raise ValueError("Phone number must contain at least 7 digits")
        return v


class TransitionNoteRequest(BaseModel):
    """Optional note attached to a partner lifecycle action."""

    note: Optional[str] = Field(None, max_length=500)


class DeliveryProofRequest(BaseModel):
    """Proof of delivery submitted by the assigned partner."""

    image_url: str = Field(..., min_length=1, max_length=2048)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("image_url must be an http(s) URL")
        return v


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class OrderResponse(BaseModel):
    """Order view returned to customers and partners."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    customer_id: UUID
    partner_id: Optional[UUID] = None
    vehicle_type: VehicleType
    delivery_type: DeliveryType
    pickup_address: str
    dropoff_address: str
    recipient_name: str
    recipient_phone: str
    package_description: Optional[str] = None
    package_weight: Optional[Decimal] = None
    declared_value: Optional[Decimal] = None
    is_fragile: bool
    distance_km: Decimal
    estimated_duration_minutes: int
    base_fee: int
    fragile_handling_fee: int
    total_cost: int
    status: OrderStatus
    bid_status: BiddingStatus
    selected_bid_id: Optional[UUID] = None
    payment_status: OrderPaymentStatus
    payment_reference: Optional[str] = None
    bidding_window_minutes: Optional[int] = None
    auto_accept_threshold: Optional[int] = None
    min_bid_decrement: Optional[int] = None
    current_lowest_bid: Optional[int] = None
    version: int
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    skip: int
    limit: int


class TrackingEventResponse(BaseModel):
    """One entry of an order's tracking feed."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    status: OrderStatus
    notes: Optional[str] = None
    actor_id: Optional[UUID] = None
    created_at: datetime
