"""
OrderStore - order history, status and deletion

Orders are read newest first. Line items carry the frozen purchase price;
the product name and image are joined from the live catalog for display
only.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import (
    InvalidOrderStatusError,
    OrderDeletionNotAllowedError,
    OrderNotFoundError,
    OrderStatusTransitionError,
)
from storefront.core.utils import utcnow, to_money, total_pages
from storefront.models import Order, OrderItem, OrderStatus, Product
from storefront.models.order import ORDER_STATUS_TRANSITIONS

logger = logging.getLogger(__name__)


@dataclass
class OrderPage:
    orders: List[Order]
    total: int
    page: int
    total_pages: int


@dataclass
class OrderLine:
    id: int
    product_id: int
    product_name: Optional[str]
    image_url: Optional[str]
    quantity: int
    price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.price * self.quantity)


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    """Coerce to OrderStatus or raise InvalidOrderStatusError."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidOrderStatusError(value, allowed=[s.value for s in OrderStatus])


def validate_status_transition(current: Union[str, OrderStatus], requested: Union[str, OrderStatus]) -> OrderStatus:
    """
    Check a lifecycle move. Re-applying the current status is allowed and
    is a no-op for the caller.
    """
    current_status = parse_status(current)
    requested_status = parse_status(requested)
    if requested_status == current_status:
        return requested_status
    if requested_status not in ORDER_STATUS_TRANSITIONS[current_status]:
        raise OrderStatusTransitionError(current_status.value, requested_status.value)
    return requested_status


class OrderStore:
    """Persisted orders and their line items."""

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        order_id: int,
        owner_user_id: Optional[int] = None,
    ) -> Optional[Order]:
        """Fetch an order, optionally only if it belongs to ``owner_user_id``."""
        query = select(Order).where(Order.id == order_id)
        if owner_user_id is not None:
            query = query.where(Order.user_id == owner_user_id)
        result = await db.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    @staticmethod
    async def _page(db: AsyncSession, conditions, page: int, page_size: int) -> OrderPage:
        count_query = select(func.count(Order.id))
        query = select(Order)
        for condition in conditions:
            count_query = count_query.where(condition)
            query = query.where(condition)

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return OrderPage(
            orders=list(result.scalars().all()),
            total=total,
            page=page,
            total_pages=total_pages(total, page_size),
        )

    @staticmethod
    async def list_by_user(db: AsyncSession, user_id: int, page: int = 1, page_size: int = 10) -> OrderPage:
        return await OrderStore._page(db, [Order.user_id == user_id], page, page_size)

    @staticmethod
    async def list_all(
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        status: Optional[Union[str, OrderStatus]] = None,
    ) -> OrderPage:
        """All orders across users, optionally filtered by status (admin view)."""
        conditions = []
        if status is not None:
            conditions.append(Order.status == parse_status(status).value)
        return await OrderStore._page(db, conditions, page, page_size)

    @staticmethod
    async def get_line_items(db: AsyncSession, order_id: int) -> List[OrderLine]:
        result = await db.execute(
            select(
                OrderItem.id,
                OrderItem.product_id,
                OrderItem.quantity,
                OrderItem.price,
                Product.name,
                Product.image_url,
            )
            .outerjoin(Product, OrderItem.product_id == Product.id)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.id)
        )
        return [
            OrderLine(
                id=row.id,
                product_id=row.product_id,
                product_name=row.name,
                image_url=row.image_url,
                quantity=row.quantity,
                price=to_money(row.price),
            )
            for row in result.all()
        ]

    @staticmethod
    async def get_details(
        db: AsyncSession,
        order_id: int,
        owner_user_id: Optional[int] = None,
    ) -> Optional[Tuple[Order, List[OrderLine]]]:
        order = await OrderStore.get_by_id(db, order_id, owner_user_id)
        if not order:
            return None
        return order, await OrderStore.get_line_items(db, order_id)

    @staticmethod
    async def update_status(db: AsyncSession, order_id: int, new_status: Union[str, OrderStatus]) -> bool:
        """
        Overwrite the status with any value from the enumeration.

        Lifecycle rules are enforced by change_order_status, not here.
        """
        status = parse_status(new_status)
        result = await db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(status=status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def delete(db: AsyncSession, order_id: int, owner_user_id: int) -> bool:
        """Delete a cancelled order and its line items."""
        order = await OrderStore.get_by_id(db, order_id, owner_user_id)
        if not order:
            raise OrderNotFoundError(order_id)
        if order.status != OrderStatus.CANCELLED.value:
            raise OrderDeletionNotAllowedError(order_id, order.status)

        await db.execute(
            delete(OrderItem)
            .where(OrderItem.order_id == order_id)
            .execution_options(synchronize_session=False)
        )
        await db.delete(order)
        await db.flush()
        logger.info("Deleted cancelled order %s for user %s", order_id, owner_user_id)
        return True


async def change_order_status(db: AsyncSession, order_id: int, new_status: Union[str, OrderStatus]) -> Order:
    """
    Move an order along its lifecycle, rejecting backwards or skipped moves.
    Returns the refreshed order.
    """
    order = await OrderStore.get_by_id(db, order_id)
    if not order:
        raise OrderNotFoundError(order_id)

    previous = order.status
    status = validate_status_transition(order.status, new_status)
    if status.value != previous:
        await OrderStore.update_status(db, order_id, status)
        order = await OrderStore.get_by_id(db, order_id)
        logger.info("Order %s status %s -> %s", order_id, previous, status.value)
    return order

