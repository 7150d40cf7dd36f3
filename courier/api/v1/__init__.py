"""
API v1 package initialization.

This module collects the v1 routers of the courier marketplace.
"""

from courier.api.v1.bids import router as bids_router
from courier.api.v1.bills import router as bills_router
from courier.api.v1.messages import router as messages_router
from courier.api.v1.orders import router as orders_router
from courier.api.v1.partners import router as partners_router
from courier.api.v1.payments import router as payments_router

__all__ = [
    "bids_router",
    "bills_router",
    "messages_router",
    "orders_router",
    "partners_router",
    "payments_router",
]
