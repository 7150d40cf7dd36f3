"""Bill payment schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from courier.services.bills.enums import BillCategory, BillPaymentStatus


class BillPaymentRequest(BaseModel):
    """Purchase request; which optional fields are required depends on category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    category: BillCategory
    provider: str = Field(..., min_length=1, max_length=50, description="Network or biller id")
    account_number: str = Field(..., min_length=1, max_length=20)
    amount: int = Field(..., gt=0, le=1_000_000)
    phone: Optional[str] = Field(None, max_length=20)
    variation_code: Optional[str] = Field(None, max_length=100)


class SmartCardVerifyRequest(BaseModel):
    card_number: str = Field(..., min_length=1, max_length=20)
    service_id: str = Field("dstv", min_length=1, max_length=50)


class SmartCardVerifyResponse(BaseModel):
    content: dict[str, Any]


class BillPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    request_id: str
    category: BillCategory
    provider: str
    service_id: str
    account_number: str
    amount: int
    payment_status: BillPaymentStatus
    transaction_reference: Optional[str] = None
    response_code: Optional[str] = None
    created_at: datetime
