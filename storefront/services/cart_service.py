"""
CartService - per-user cart lines and live totals

Cart totals are always computed against the current catalog price; the
price only freezes when an order is placed. Methods flush but never commit;
the request (or the checkout flow) owns the transaction.

Concurrent increments of the same line are only as safe as a single
UPDATE statement; strict serialisation of cart edits is not attempted.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.utils import utcnow, to_money
from storefront.models import CartItem, Product

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    id: int
    product_id: int
    quantity: int
    product_name: str
    unit_price: Decimal
    stock: int
    image_url: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class CartTotal:
    total_amount: Decimal
    item_count: int


def _line_query():
    return (
        select(
            CartItem.id,
            CartItem.product_id,
            CartItem.quantity,
            Product.name,
            Product.price,
            Product.stock,
            Product.image_url,
        )
        .join(Product, CartItem.product_id == Product.id)
    )


def _to_line(row) -> CartLine:
    return CartLine(
        id=row.id,
        product_id=row.product_id,
        quantity=row.quantity,
        product_name=row.name,
        unit_price=to_money(row.price),
        stock=row.stock,
        image_url=row.image_url,
    )


class CartService:
    """Cart aggregate operations, all scoped to one user."""

    @staticmethod
    async def get_items(db: AsyncSession, user_id: int) -> List[CartLine]:
        """Cart lines with live product data, most recently added first."""
        result = await db.execute(
            _line_query()
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at.desc(), CartItem.id.desc())
        )
        return [_to_line(row) for row in result.all()]

    @staticmethod
    async def get_item(db: AsyncSession, user_id: int, line_id: int) -> Optional[CartLine]:
        result = await db.execute(
            _line_query().where(CartItem.id == line_id, CartItem.user_id == user_id)
        )
        row = result.first()
        return _to_line(row) if row else None

    @staticmethod
    async def add_item(db: AsyncSession, user_id: int, product_id: int, quantity: int) -> int:
        """
        Add ``quantity`` of a product. An existing line for the same product
        is incremented in place; otherwise a new line is inserted.

        Returns the cart line id.
        """
        result = await db.execute(
            select(CartItem.id).where(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id,
            )
        )
        line_id = result.scalar_one_or_none()

        if line_id is not None:
            await db.execute(
                update(CartItem)
                .where(CartItem.id == line_id)
                .values(quantity=CartItem.quantity + quantity, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            logger.debug("Cart line %s incremented by %s", line_id, quantity)
            return line_id

        item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
        db.add(item)
        await db.flush()
        return item.id

    @staticmethod
    async def update_quantity(db: AsyncSession, user_id: int, line_id: int, quantity: int) -> bool:
        """Set a line's quantity. False if the line does not belong to the user."""
        result = await db.execute(
            update(CartItem)
            .where(CartItem.id == line_id, CartItem.user_id == user_id)
            .values(quantity=quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def remove_item(db: AsyncSession, user_id: int, line_id: int) -> bool:
        result = await db.execute(
            delete(CartItem)
            .where(CartItem.id == line_id, CartItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def clear(db: AsyncSession, user_id: int) -> bool:
        """Delete every line for the user. Succeeds on an empty cart too."""
        result = await db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        logger.debug("Cleared %s cart lines for user %s", result.rowcount, user_id)
        return True

    @staticmethod
    async def get_total(db: AsyncSession, user_id: int) -> CartTotal:
        """Sum of live price x quantity, and the number of cart lines."""
        result = await db.execute(
            select(
                func.coalesce(func.sum(CartItem.quantity * Product.price), 0),
                func.count(CartItem.id),
            )
            .select_from(CartItem)
            .join(Product, CartItem.product_id == Product.id)
            .where(CartItem.user_id == user_id)
        )
        total, count = result.one()
        return CartTotal(total_amount=to_money(total or 0), item_count=count or 0)

