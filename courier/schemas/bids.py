"""Bid Pydantic schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from courier.schemas.orders import OrderResponse
from courier.services.orders.enums import BidStatus, VehicleType


class BidCreateRequest(BaseModel):
    """A partner's offer against an open order."""

    bid_amount: int = Field(..., gt=0, description="Offered price in whole currency units")
    vehicle_type: VehicleType
    estimated_pickup_minutes: int = Field(..., gt=0, le=1440)
    message: Optional[str] = Field(None, max_length=500)


class BidAcceptRequest(BaseModel):
    request_id: Optional[str] = Field(
        None,
        min_length=1,
        max_length=100,
        description="Client request id; replaying it returns the stored result",
    )


class BidResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    partner_id: UUID
    bid_amount: int
    vehicle_type: VehicleType
    estimated_pickup_minutes: int
    message: Optional[str] = None
    status: BidStatus
    created_at: datetime
    updated_at: datetime


class BidAcceptanceResponse(BaseModel):
    bid: BidResponse
    order: OrderResponse
    replayed: bool = False
