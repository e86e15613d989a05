"""
Order schemas

Checkout input is deliberately loose here; address and payment method rules
live in the checkout service so every client gets the same 400 messages.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class OrderCreate(BaseModel):
    shipping_address: Optional[str] = None
    payment_method: Optional[str] = None


class CheckoutResponse(BaseModel):
    message: str = "Order placed"
    order_id: int
    total_amount: float
    payment_method: str
    transaction_id: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    image_url: Optional[str] = None
    quantity: int
    price: float
    subtotal: float

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    user_id: int
    status: str
    total_amount: float
    shipping_address: str
    payment_method: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderDetailResponse(OrderResponse):
    items: List[OrderItemResponse]


class OrderList(BaseModel):
    orders: List[OrderResponse]
    total: int
    page: int
    total_pages: int


class OrderStatusUpdate(BaseModel):
    status: str
