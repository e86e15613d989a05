"""
Product model

Stock is only ever reduced through the conditional decrement in
ProductStore.decrement_stock; the check constraint is the last line of
defence against a negative count.
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, CheckConstraint, Index
from sqlalchemy.orm import relationship

from storefront.core.database import Base
from storefront.core.utils import utcnow


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    category = Column(String(100), index=True)
    image_url = Column(String(500))

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    cart_items = relationship("CartItem", back_populates="product", passive_deletes=True)

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        Index('ix_products_category_created', 'category', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"
