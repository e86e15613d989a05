# Services layer for business logic
from storefront.services.product_store import ProductStore, ProductPage, StockStatus
from storefront.services.cart_service import CartService, CartLine, CartTotal
from storefront.services.order_engine import (
    OrderTransactionEngine,
    PlacedOrder,
    SnapshotLine,
    order_engine,
    snapshot_from_cart,
)
from storefront.services.order_store import OrderStore, OrderPage, OrderLine, change_order_status
from storefront.services.payment import SimulatedPaymentGateway, payment_gateway
from storefront.services.checkout import CheckoutService, CheckoutResult, checkout_service
