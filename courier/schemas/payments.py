"""
Payment and wallet Pydantic schemas.

Amounts are whole currency units; conversion to gateway minor units happens
inside the gateway client.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from courier.services.payments.enums import (
    PaymentPurpose,
    PaymentTransactionStatus,
    WalletTransactionStatus,
    WalletTransactionType,
)


class _EmailRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3, max_length=255, description="Payer email")

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        """Validate email format."""
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Invalid email format")
        return v.lower()


class OrderPaymentRequest(_EmailRequest):
    order_id: UUID


class WalletTopupRequest(_EmailRequest):
    amount: int = Field(..., gt=0, le=10_000_000)


class PaymentTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference: str
    order_id: Optional[UUID] = None
    amount: int
    currency: str
    purpose: PaymentPurpose
    status: PaymentTransactionStatus
    authorization_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class WalletResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    balance: int
    currency: str
    is_active: bool
    updated_at: datetime


class WalletTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transaction_type: WalletTransactionType
    amount: int
    balance_before: int
    balance_after: int
    description: Optional[str] = None
    reference: str
    status: WalletTransactionStatus
    created_at: datetime
