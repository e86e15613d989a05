from storefront.schemas.product import ProductResponse, ProductList, StockResponse
from storefront.schemas.cart import CartItemCreate, CartItemUpdate, CartItemResponse, CartResponse, CartMutationResponse
from storefront.schemas.order import (
    OrderCreate,
    CheckoutResponse,
    OrderItemResponse,
    OrderResponse,
    OrderDetailResponse,
    OrderList,
    OrderStatusUpdate,
)
