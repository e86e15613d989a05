"""
OrderTransactionEngine - all-or-nothing order placement

Given an immutable snapshot of a cart, one unit of work:

1. inserts the order header (status pending, frozen total)
2. for each snapshot line, in order:
   a. inserts the order line with the snapshot unit price
   b. conditionally decrements the product's stock
3. commits

A refused decrement aborts the unit with OutOfStockError naming the
product; any other failure aborts with OrderProcessingError. In both cases
the transaction is rolled back, so no header, no line and no stock change
from the attempt is visible afterwards.

The caller's stock pre-check is advisory. The conditional decrement inside
the transaction is what prevents two checkouts from selling the same last
unit.

Placing an order is not idempotent: the same snapshot submitted twice
creates two orders.
"""
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from storefront.core.database import AsyncSessionLocal
from storefront.core.exceptions import (
    CheckoutValidationError,
    OrderProcessingError,
    OutOfStockError,
    StorefrontError,
)
from storefront.core.unit_of_work import UnitOfWork
from storefront.core.utils import to_money
from storefront.models import Order, OrderItem, OrderStatus
from storefront.services.product_store import ProductStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotLine:
    """One cart line as read immediately before checkout."""
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PlacedOrder:
    order_id: int
    total_amount: Decimal


def snapshot_from_cart(lines: Iterable) -> Tuple[SnapshotLine, ...]:
    """Freeze cart lines (anything with product_id, quantity, unit_price)."""
    return tuple(
        SnapshotLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=to_money(line.unit_price),
        )
        for line in lines
    )


def snapshot_total(snapshot: Iterable[SnapshotLine]) -> Decimal:
    return to_money(sum((line.subtotal for line in snapshot), Decimal("0")))


class OrderTransactionEngine:
    """
    Runs order placement on its own session so the transaction boundary is
    exactly the order, independent of whatever the calling request has
    already read.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or AsyncSessionLocal

    @staticmethod
    def _validate_snapshot(snapshot: Tuple[SnapshotLine, ...]) -> None:
        if not snapshot:
            raise CheckoutValidationError("Cannot place an order with no items", field="cart")
        for line in snapshot:
            if line.quantity < 1:
                raise CheckoutValidationError(
                    f"Invalid quantity {line.quantity} for product {line.product_id}",
                    field="quantity",
                )
            if line.unit_price < 0:
                raise CheckoutValidationError(
                    f"Invalid unit price for product {line.product_id}",
                    field="unit_price",
                )

    @staticmethod
    def _insert_order_step(
        user_id: int,
        shipping_address: str,
        payment_method: str,
        total: Decimal,
        payment_id: Optional[str],
    ):
        async def insert_order(session, context):
            order = Order(
                user_id=user_id,
                total_amount=total,
                status=OrderStatus.PENDING.value,
                shipping_address=shipping_address,
                payment_method=payment_method,
                payment_id=payment_id,
            )
            session.add(order)
            await session.flush()
            context["order_id"] = order.id

        return insert_order

    @staticmethod
    def _insert_line_step(line: SnapshotLine):
        async def insert_line(session, context):
            session.add(OrderItem(
                order_id=context["order_id"],
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.unit_price,
            ))
            await session.flush()

        return insert_line

    @staticmethod
    def _decrement_step(line: SnapshotLine):
        async def decrement(session, context):
            if await ProductStore.decrement_stock(session, line.product_id, line.quantity):
                return
            status = await ProductStore.check_stock(session, line.product_id)
            raise OutOfStockError(
                f"Product {line.product_id} does not have enough stock "
                f"(requested {line.quantity}, available {status.stock})",
                product_id=line.product_id,
                requested_qty=line.quantity,
                available_qty=status.stock,
            )

        return decrement

    def build_unit_of_work(
        self,
        user_id: int,
        shipping_address: str,
        payment_method: str,
        snapshot: Tuple[SnapshotLine, ...],
        payment_id: Optional[str] = None,
    ) -> UnitOfWork:
        total = snapshot_total(snapshot)
        uow = UnitOfWork(self._session_factory, name="place_order")
        uow.add_step(
            "insert_order",
            self._insert_order_step(user_id, shipping_address, payment_method, total, payment_id),
        )
        for index, line in enumerate(snapshot):
            uow.add_step(f"insert_line[{index}]", self._insert_line_step(line))
            uow.add_step(f"decrement_stock[{index}]", self._decrement_step(line))
        return uow

    async def place_order(
        self,
        user_id: int,
        shipping_address: str,
        payment_method: str,
        snapshot: Iterable[SnapshotLine],
        payment_id: Optional[str] = None,
    ) -> PlacedOrder:
        """
        Create the order, its lines and the stock decrements atomically.

        Raises:
            CheckoutValidationError: empty or malformed snapshot (no transaction opened)
            OutOfStockError: a decrement was refused; everything rolled back
            OrderProcessingError: any other failure; everything rolled back
        """
        snapshot = tuple(snapshot)
        self._validate_snapshot(snapshot)
        total = snapshot_total(snapshot)

        uow = self.build_unit_of_work(user_id, shipping_address, payment_method, snapshot, payment_id)
        started = time.monotonic()
        try:
            context = await uow.run()
        except StorefrontError:
            raise
        except Exception as e:
            logger.error(
                "Order placement failed for user %s: %s: %s", user_id, type(e).__name__, e
            )
            raise OrderProcessingError(
                "Order could not be processed. No changes were made.",
                details={"user_id": user_id},
            ) from e

        order_id = context["order_id"]
        logger.info(
            "ORDER_PLACED order_id=%s user_id=%s lines=%d total=%s duration_ms=%.1f",
            order_id,
            user_id,
            len(snapshot),
            total,
            (time.monotonic() - started) * 1000,
        )
        return PlacedOrder(order_id=order_id, total_amount=total)


order_engine = OrderTransactionEngine()
