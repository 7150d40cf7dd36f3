"""
Database models package initialization.

This module exports all database models for SQLAlchemy and Alembic auto-generation.
Models are imported here to ensure they are registered with the Base metadata
for proper migration generation and relationship resolution.
"""

from courier.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from courier.database.models.bid import Bid
from courier.database.models.message import ChatMessage
from courier.database.models.order import DeliveryOrder, DeliveryProof, TrackingEvent
from courier.database.models.partner import PartnerEarning, PartnerProfile, Rating
from courier.database.models.payment import BillPayment, PaymentTransaction
from courier.database.models.wallet import Wallet, WalletTransaction

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Bid",
    "BillPayment",
    "ChatMessage",
    "DeliveryOrder",
    "DeliveryProof",
    "PartnerEarning",
    "PartnerProfile",
    "PaymentTransaction",
    "Rating",
    "TrackingEvent",
    "Wallet",
    "WalletTransaction",
]
