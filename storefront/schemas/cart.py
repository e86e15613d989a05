"""
Cart schemas
"""
from typing import Optional, List
from pydantic import BaseModel, Field


class CartItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    unit_price: float
    quantity: int
    stock: int
    image_url: Optional[str] = None
    subtotal: float

    class Config:
        from_attributes = True


class CartResponse(BaseModel):
    items: List[CartItemResponse]
    total_amount: float
    item_count: int


class CartMutationResponse(BaseModel):
    message: str
    cart_item_id: Optional[int] = None
