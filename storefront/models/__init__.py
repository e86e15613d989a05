from storefront.models.product import Product
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem, OrderStatus

__all__ = ["Product", "CartItem", "Order", "OrderItem", "OrderStatus"]
