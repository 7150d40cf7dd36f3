"""
FastAPI dependencies for authentication, authorization and service wiring.

This module provides dependency functions for bearer token authentication
into an explicit ActorContext, role-based access control, database session
management, and construction of the domain services for each request.
"""

from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from courier.cache.redis_client import RedisClient, get_connected_redis_client
from courier.core.logging import get_logger, set_user_id
from courier.core.security import ActorContext, ActorRole, TokenError, actor_from_token
from courier.database.connection import get_db
from courier.services.bids.service import BidService
from courier.services.bills.service import BillsService
from courier.services.bills.vtpass_client import VTPassClient
from courier.services.messages.service import ChatService
from courier.services.orders.service import OrderService
from courier.services.partners.service import PartnerService
from courier.services.payments.paystack_client import PaystackClient
from courier.services.payments.service import PaymentService
from courier.services.tracking.feed import TrackingFeed
from courier.services.wallet.service import WalletService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> ActorContext:
    """
    Resolve the bearer token into the acting user.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        actor = actor_from_token(credentials.credentials)
    except TokenError as e:
        logger.warning("Authentication failed", code=e.code)
        raise credentials_exception from e

    set_user_id(str(actor.user_id))
    return actor


def require_role(*allowed_roles: ActorRole):
    """
    Create dependency that requires one of the given roles.

    ``both`` satisfies customer and partner requirements; ``admin``
    satisfies every requirement.

    Example:
        @router.get("/open", dependencies=[Depends(require_role(ActorRole.PARTNER))])
        async def open_orders():
            ...
    """

    async def role_checker(
        actor: Annotated[ActorContext, Depends(get_current_actor)],
    ) -> ActorContext:
        if not actor.has_role(*allowed_roles):
            logger.warning(
                "Authorization failed: Insufficient permissions",
                user_id=str(actor.user_id),
                role=actor.role.value,
                required_roles=[r.value for r in allowed_roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions for this operation",
            )
        return actor

    return role_checker


CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]
CustomerActor = Annotated[ActorContext, Depends(require_role(ActorRole.CUSTOMER))]
PartnerActor = Annotated[ActorContext, Depends(require_role(ActorRole.PARTNER))]
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
OptionalRedis = Annotated[Optional[RedisClient], Depends(get_connected_redis_client)]


def get_tracking_feed(db: DatabaseSession, redis_client: OptionalRedis) -> TrackingFeed:
    return TrackingFeed(db, redis_client)


def get_order_service(
    db: DatabaseSession,
    feed: Annotated[TrackingFeed, Depends(get_tracking_feed)],
) -> OrderService:
    return OrderService(db, feed)


def get_bid_service(
    db: DatabaseSession,
    feed: Annotated[TrackingFeed, Depends(get_tracking_feed)],
) -> BidService:
    return BidService(db, feed)


def get_chat_service(db: DatabaseSession, redis_client: OptionalRedis) -> ChatService:
    return ChatService(db, redis_client)


def get_wallet_service(db: DatabaseSession) -> WalletService:
    return WalletService(db)


def get_partner_service(db: DatabaseSession) -> PartnerService:
    return PartnerService(db)


async def get_paystack_client() -> AsyncIterator[PaystackClient]:
    async with PaystackClient() as client:
        yield client


async def get_vtpass_client() -> AsyncIterator[VTPassClient]:
    async with VTPassClient() as client:
        yield client


def get_payment_service(
    db: DatabaseSession,
    gateway: Annotated[PaystackClient, Depends(get_paystack_client)],
    wallet_service: Annotated[WalletService, Depends(get_wallet_service)],
) -> PaymentService:
    return PaymentService(db, gateway, wallet_service)


def get_bills_service(
    db: DatabaseSession,
    aggregator: Annotated[VTPassClient, Depends(get_vtpass_client)],
    wallet_service: Annotated[WalletService, Depends(get_wallet_service)],
) -> BillsService:
    return BillsService(db, aggregator, wallet_service)


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
BidServiceDep = Annotated[BidService, Depends(get_bid_service)]
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
WalletServiceDep = Annotated[WalletService, Depends(get_wallet_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
BillsServiceDep = Annotated[BillsService, Depends(get_bills_service)]
PartnerServiceDep = Annotated[PartnerService, Depends(get_partner_service)]
