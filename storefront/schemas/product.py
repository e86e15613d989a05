"""
Product schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    category: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductList(BaseModel):
    products: List[ProductResponse]
    total: int
    page: int
    total_pages: int


class StockResponse(BaseModel):
    product_id: int
    available: bool
    stock: int
