"""
Order placement against a real database: atomicity, oversell protection
and price freezing.
"""
import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.core.exceptions import (
    CheckoutValidationError,
    OrderProcessingError,
    OutOfStockError,
)
from storefront.models import Order, OrderItem, OrderStatus, Product
from storefront.services.order_engine import SnapshotLine
from storefront.services.order_store import OrderStore

pytestmark = pytest.mark.integration

ADDRESS = "12 Harbour Road, Busan"


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count(model.id)))).scalar()


class TestPlaceOrder:

    @pytest.mark.asyncio
    async def test_creates_pending_order_with_frozen_lines(self, order_engine, make_product, read_stock, db_session):
        lamp = await make_product("Lamp", "1000.00", stock=5)
        mug = await make_product("Mug", "500.00", stock=3)

        placed = await order_engine.place_order(
            user_id=1,
            shipping_address=ADDRESS,
            payment_method="Credit Card",
            snapshot=[
                SnapshotLine(lamp, 2, Decimal("1000.00")),
                SnapshotLine(mug, 1, Decimal("500.00")),
            ],
        )

        assert placed.total_amount == Decimal("2500.00")
        assert await read_stock(lamp) == 3
        assert await read_stock(mug) == 2

        order = await OrderStore.get_by_id(db_session, placed.order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.total_amount == Decimal("2500.00")
        assert order.payment_method == "Credit Card"

        lines = await OrderStore.get_line_items(db_session, placed.order_id)
        assert [(l.product_id, l.quantity, l.price) for l in lines] == [
            (lamp, 2, Decimal("1000.00")),
            (mug, 1, Decimal("500.00")),
        ]

    @pytest.mark.asyncio
    async def test_price_change_does_not_touch_placed_order(self, order_engine, make_product, session_factory):
        lamp = await make_product("Lamp", "1000.00", stock=5)
        placed = await order_engine.place_order(
            1, ADDRESS, "PayPal", [SnapshotLine(lamp, 1, Decimal("1000.00"))]
        )

        async with session_factory() as session:
            product = await session.get(Product, lamp)
            product.price = Decimal("1500.00")
            await session.commit()

        async with session_factory() as session:
            order = await OrderStore.get_by_id(session, placed.order_id)
            lines = await OrderStore.get_line_items(session, placed.order_id)
        assert order.total_amount == Decimal("1000.00")
        assert lines[0].price == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_not_idempotent(self, order_engine, make_product, read_stock, session_factory):
        lamp = await make_product("Lamp", "10.00", stock=5)
        snapshot = (SnapshotLine(lamp, 1, Decimal("10.00")),)

        first = await order_engine.place_order(1, ADDRESS, "PayPal", snapshot)
        second = await order_engine.place_order(1, ADDRESS, "PayPal", snapshot)

        assert first.order_id != second.order_id
        assert await read_stock(lamp) == 3
        assert await _count(session_factory, Order) == 2

    @pytest.mark.asyncio
    async def test_empty_snapshot_rejected_before_transaction(self, order_engine, session_factory):
        with pytest.raises(CheckoutValidationError):
            await order_engine.place_order(1, ADDRESS, "PayPal", [])
        assert await _count(session_factory, Order) == 0

    @pytest.mark.asyncio
    async def test_zero_quantity_line_rejected(self, order_engine, make_product, read_stock):
        lamp = await make_product("Lamp", "10.00", stock=5)
        with pytest.raises(CheckoutValidationError):
            await order_engine.place_order(1, ADDRESS, "PayPal", [SnapshotLine(lamp, 0, Decimal("10.00"))])
        assert await read_stock(lamp) == 5


class TestAtomicity:

    @pytest.mark.asyncio
    async def test_stock_failure_on_later_line_rolls_back_everything(
        self, order_engine, make_product, read_stock, session_factory
    ):
        plenty = await make_product("Plenty", "10.00", stock=10)
        scarce = await make_product("Scarce", "20.00", stock=1)

        with pytest.raises(OutOfStockError) as exc_info:
            await order_engine.place_order(
                1, ADDRESS, "PayPal",
                [SnapshotLine(plenty, 4, Decimal("10.00")), SnapshotLine(scarce, 2, Decimal("20.00"))],
            )

        assert exc_info.value.product_id == scarce
        assert exc_info.value.details["available_qty"] == 1
        assert await read_stock(plenty) == 10
        assert await read_stock(scarce) == 1
        assert await _count(session_factory, Order) == 0
        assert await _count(session_factory, OrderItem) == 0

    @pytest.mark.asyncio
    async def test_storage_fault_becomes_processing_error(
        self, order_engine, make_product, read_stock, session_factory
    ):
        lamp = await make_product("Lamp", "10.00", stock=10)
        missing_product_id = lamp + 1000

        with pytest.raises(OrderProcessingError) as exc_info:
            await order_engine.place_order(
                1, ADDRESS, "PayPal",
                [SnapshotLine(lamp, 2, Decimal("10.00")), SnapshotLine(missing_product_id, 1, Decimal("5.00"))],
            )

        # Driver text is not part of the public message
        assert "sqlite" not in exc_info.value.message.lower()
        assert await read_stock(lamp) == 10
        assert await _count(session_factory, Order) == 0
        assert await _count(session_factory, OrderItem) == 0


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_no_oversell_under_concurrent_orders(self, order_engine, make_product, read_stock, session_factory):
        lamp = await make_product("Lamp", "10.00", stock=3)
        snapshot = (SnapshotLine(lamp, 1, Decimal("10.00")),)

        results = await asyncio.gather(
            *(order_engine.place_order(user_id, ADDRESS, "PayPal", snapshot) for user_id in range(1, 9)),
            return_exceptions=True,
        )

        placed = [r for r in results if not isinstance(r, Exception)]
        refused = [r for r in results if isinstance(r, Exception)]

        assert len(placed) == 3
        assert len(refused) == 5
        assert all(isinstance(r, OutOfStockError) and r.product_id == lamp for r in refused)
        assert await read_stock(lamp) == 0
        assert await _count(session_factory, Order) == 3
        assert await _count(session_factory, OrderItem) == 3

    @pytest.mark.asyncio
    async def test_multi_unit_requests_never_exceed_stock(self, order_engine, make_product, read_stock):
        lamp = await make_product("Lamp", "10.00", stock=5)

        results = await asyncio.gather(
            order_engine.place_order(1, ADDRESS, "PayPal", [SnapshotLine(lamp, 3, Decimal("10.00"))]),
            order_engine.place_order(2, ADDRESS, "PayPal", [SnapshotLine(lamp, 3, Decimal("10.00"))]),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        assert len(succeeded) == 1
        assert await read_stock(lamp) == 2
