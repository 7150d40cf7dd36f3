"""
Order data access repository with transaction support.

This module implements the OrderRepository class providing async methods for
inserting delivery orders, loading them (optionally row-locked), listing
them for customers, partners and the open marketplace, and reading and
writing their tracking events and delivery proofs. Database failures are
rolled back and surfaced as RemoteCallFailedError.
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import PreconditionFailedError, RemoteCallFailedError
from courier.core.logging import get_logger
from courier.database.models.order import DeliveryOrder, DeliveryProof, TrackingEvent
from courier.services.orders.enums import BiddingStatus, OrderStatus, VehicleType

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


class OrderRepository:
    """
    Repository for delivery order data access operations.

    Provides async methods for CRUD operations on orders with support for
    row locking, filtering, and pagination.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, error: SQLAlchemyError, **context: Any) -> None:
        await self.session.rollback()
        logger.error(
            "Order repository operation failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )
        raise RemoteCallFailedError(
            f"Database error during {operation}",
            service="database",
            operation=operation,
            **context,
        ) from error

    async def create_order(self, order: DeliveryOrder, event: TrackingEvent) -> DeliveryOrder:
        """
        Insert an order together with its creation tracking event.

        Raises:
            PreconditionFailedError: If the order number or idempotency key
                is already taken
            RemoteCallFailedError: If the insert fails
        """
        try:
            self.session.add(order)
            await self.session.flush()

            event.order_id = order.id
            self.session.add(event)
            await self.session.flush()

        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                "Order creation failed - integrity error",
                order_number=order.order_number,
                error=str(e.orig) if e.orig else str(e),
            )
            raise PreconditionFailedError(
                "Order conflicts with an existing order",
                order_number=order.order_number,
                idempotency_key=order.idempotency_key,
            ) from e
        except SQLAlchemyError as e:
            await self._fail("create_order", e, order_number=order.order_number)

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
        )
        return order

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[DeliveryOrder]:
        """
        Retrieve order by ID.

        Args:
            order_id: Order identifier
            for_update: Lock the row until the transaction ends

        Returns:
            Order if found, None otherwise
        """
        stmt = select(DeliveryOrder).where(DeliveryOrder.id == order_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_order_by_id", e, order_id=str(order_id))

    async def get_order_by_idempotency_key(
        self,
        customer_id: uuid.UUID,
        idempotency_key: str,
    ) -> Optional[DeliveryOrder]:
        stmt = select(DeliveryOrder).where(
            DeliveryOrder.customer_id == customer_id,
            DeliveryOrder.idempotency_key == idempotency_key,
        )
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail(
                "get_order_by_idempotency_key",
                e,
                customer_id=str(customer_id),
            )

    async def get_order_by_number(self, order_number: str) -> Optional[DeliveryOrder]:
        try:
            result = await self.session.execute(
                select(DeliveryOrder).where(DeliveryOrder.order_number == order_number)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_order_by_number", e, order_number=order_number)

    async def list_customer_orders(
        self,
        customer_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Sequence[DeliveryOrder]:
        """List a customer's orders newest-first."""
        stmt = select(DeliveryOrder).where(DeliveryOrder.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(DeliveryOrder.status == status)
        return await self._page("list_customer_orders", stmt, skip, limit)

    async def list_open_orders(
        self,
        vehicle_type: Optional[VehicleType] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Sequence[DeliveryOrder]:
        """List orders still collecting bids, newest-first."""
        stmt = select(DeliveryOrder).where(
            DeliveryOrder.bid_status == BiddingStatus.OPEN_FOR_BIDS,
            DeliveryOrder.status == OrderStatus.PENDING,
        )
        if vehicle_type is not None:
            stmt = stmt.where(DeliveryOrder.vehicle_type == vehicle_type)
        return await self._page("list_open_orders", stmt, skip, limit)

    async def list_partner_orders(
        self,
        partner_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Sequence[DeliveryOrder]:
        """List orders assigned to a partner, newest-first."""
        stmt = select(DeliveryOrder).where(DeliveryOrder.partner_id == partner_id)
        if status is not None:
            stmt = stmt.where(DeliveryOrder.status == status)
        return await self._page("list_partner_orders", stmt, skip, limit)

    async def _page(self, operation: str, stmt, skip: int, limit: int) -> Sequence[DeliveryOrder]:
        stmt = (
            stmt.order_by(DeliveryOrder.created_at.desc(), DeliveryOrder.id)
            .offset(max(skip, 0))
            .limit(min(max(limit, 1), MAX_PAGE_SIZE))
        )
        try:
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            await self._fail(operation, e)

    async def list_tracking_events(
        self,
        order_id: uuid.UUID,
        limit: Optional[int] = None,
    ) -> Sequence[TrackingEvent]:
        """List an order's tracking events newest-first."""
        stmt = (
            select(TrackingEvent)
            .where(TrackingEvent.order_id == order_id)
            .order_by(TrackingEvent.created_at.desc(), TrackingEvent.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            await self._fail("list_tracking_events", e, order_id=str(order_id))

    async def add_delivery_proof(self, proof: DeliveryProof) -> DeliveryProof:
        """
        Store a delivery proof.

        Raises:
            PreconditionFailedError: If the order already has a proof
        """
        try:
            self.session.add(proof)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise PreconditionFailedError(
                "Delivery proof already submitted for this order",
                order_id=str(proof.order_id),
            ) from e
        except SQLAlchemyError as e:
            await self._fail("add_delivery_proof", e, order_id=str(proof.order_id))
        return proof

    async def get_delivery_proof(self, order_id: uuid.UUID) -> Optional[DeliveryProof]:
        try:
            result = await self.session.execute(
                select(DeliveryProof).where(DeliveryProof.order_id == order_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_delivery_proof", e, order_id=str(order_id))
