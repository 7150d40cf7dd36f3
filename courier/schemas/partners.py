"""Partner profile, earnings and rating schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from courier.services.orders.enums import VehicleType


class PartnerProfileResponse(BaseModel):
    """Partner profile as returned to the partner and to customers."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    vehicle_type: Optional[VehicleType] = None
    vehicle_registration: Optional[str] = None
    is_online: bool
    completed_deliveries: int
    average_rating: Decimal
    rating_count: int


class PartnerProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    vehicle_type: Optional[VehicleType] = None
    vehicle_registration: Optional[str] = Field(None, min_length=1, max_length=32)


class OnlineStatusRequest(BaseModel):
    is_online: bool = Field(..., strict=True)


class EarningsSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    today: int
    last_7_days: int
    total_earnings: int
    pending_payout: int
    completed_deliveries: int
    average_rating: Decimal


class RatingRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: int = Field(..., ge=1, le=5, strict=True)
    comment: Optional[str] = Field(None, max_length=1000)


class RatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    partner_id: UUID
    rating: int
    comment: Optional[str] = None
    created_at: datetime
