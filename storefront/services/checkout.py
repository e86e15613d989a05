"""
CheckoutService - turns a user's cart into an order

Flow:
1. validate shipping address and payment method (nothing touched yet)
2. read the cart; reject an empty one
3. advisory stock pre-check for friendlier messages
4. snapshot the cart and charge the snapshot total (simulated)
5. hand the same snapshot to the order transaction engine
6. clear the cart, only after the order committed

The pre-check can pass and the engine still refuse a line if another
checkout took the stock in between; the engine's OutOfStockError is
surfaced unchanged and the cart is left as it was.
"""
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.exceptions import CheckoutValidationError, OutOfStockError, PaymentError
from storefront.services.cart_service import CartService
from storefront.services.order_engine import (
    OrderTransactionEngine,
    order_engine,
    snapshot_from_cart,
    snapshot_total,
)
from storefront.services.payment import (
    PAYMENT_METHODS,
    SimulatedPaymentGateway,
    normalize_method_key,
    payment_gateway,
)
from storefront.services.product_store import ProductStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order_id: int
    total_amount: Decimal
    payment_method: str
    transaction_id: Optional[str] = None


def validate_shipping_address(address: Optional[str]) -> str:
    """Return the trimmed address or raise CheckoutValidationError."""
    if not isinstance(address, str) or not address.strip():
        raise CheckoutValidationError("Shipping address is required", field="shipping_address")

    address = address.strip()
    if len(address) < settings.SHIPPING_ADDRESS_MIN_LENGTH:
        raise CheckoutValidationError(
            f"Shipping address must be at least {settings.SHIPPING_ADDRESS_MIN_LENGTH} characters",
            field="shipping_address",
        )
    if len(address) > settings.SHIPPING_ADDRESS_MAX_LENGTH:
        raise CheckoutValidationError(
            f"Shipping address must be at most {settings.SHIPPING_ADDRESS_MAX_LENGTH} characters",
            field="shipping_address",
        )
    if not any(ch.isalnum() for ch in address):
        raise CheckoutValidationError(
            "Shipping address must contain letters or digits",
            field="shipping_address",
        )
    return address


def validate_payment_method(method: Optional[str]) -> Tuple[str, str]:
    """Return (key, display label) or raise CheckoutValidationError."""
    key = normalize_method_key(method)
    if not key:
        raise CheckoutValidationError("Payment method is required", field="payment_method")
    if key not in PAYMENT_METHODS:
        raise CheckoutValidationError(
            f"Unsupported payment method: {method}",
            field="payment_method",
            details={"allowed": sorted(PAYMENT_METHODS)},
        )
    return key, PAYMENT_METHODS[key]


class CheckoutService:
    def __init__(
        self,
        engine: Optional[OrderTransactionEngine] = None,
        gateway: Optional[SimulatedPaymentGateway] = None,
    ):
        self.engine = engine or order_engine
        self.gateway = gateway or payment_gateway

    @staticmethod
    async def precheck_stock(db: AsyncSession, items) -> None:
        """Advisory check; the engine's conditional decrement is authoritative."""
        for item in items:
            status = await ProductStore.check_stock(db, item.product_id)
            if not status.available:
                raise OutOfStockError(
                    f"{item.product_name} is sold out",
                    product_id=item.product_id,
                    requested_qty=item.quantity,
                    available_qty=0,
                )
            if status.stock < item.quantity:
                raise OutOfStockError(
                    f"Not enough stock for {item.product_name} (current stock: {status.stock})",
                    product_id=item.product_id,
                    requested_qty=item.quantity,
                    available_qty=status.stock,
                )

    async def checkout(
        self,
        db: AsyncSession,
        user_id: int,
        shipping_address: Optional[str],
        payment_method: Optional[str],
    ) -> CheckoutResult:
        started = time.monotonic()

        address = validate_shipping_address(shipping_address)
        method_key, method_label = validate_payment_method(payment_method)

        items = await CartService.get_items(db, user_id)
        if not items:
            raise CheckoutValidationError("Cart is empty", field="cart")

        await self.precheck_stock(db, items)

        snapshot = snapshot_from_cart(items)
        amount = snapshot_total(snapshot)
        if amount <= 0:
            raise CheckoutValidationError("Order amount must be positive", field="total_amount")

        payment = await self.gateway.process_payment(amount, method_key, user_id)
        if not payment.success:
            raise PaymentError(payment.message or "Payment failed", details={"method": method_key})

        placed = await self.engine.place_order(
            user_id=user_id,
            shipping_address=address,
            payment_method=method_label,
            snapshot=snapshot,
            payment_id=payment.transaction_id,
        )

        try:
            await CartService.clear(db, user_id)
            await db.commit()
        except SQLAlchemyError as e:
            # The order is already committed; a stale cart is recoverable
            await db.rollback()
            logger.error(
                "Order %s placed but cart for user %s was not cleared: %s",
                placed.order_id, user_id, e,
            )

        duration_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"CHECKOUT_METRIC: order_created "
            f"user_id={user_id} "
            f"order_id={placed.order_id} "
            f"total={placed.total_amount} "
            f"item_count={len(snapshot)} "
            f"duration_ms={duration_ms:.2f}"
        )

        return CheckoutResult(
            order_id=placed.order_id,
            total_amount=placed.total_amount,
            payment_method=method_label,
            transaction_id=payment.transaction_id,
        )


checkout_service = CheckoutService()
