"""
ProductStore - catalog reads and the conditional stock decrement

decrement_stock is the only write path for Product.stock during order
placement. It is a single UPDATE guarded by ``stock >= :quantity`` so the
database serialises competing decrements on the same row; there is no
read-modify-write in application code.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.utils import utcnow, total_pages
from storefront.models import Product

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockStatus:
    available: bool
    stock: int


@dataclass
class ProductPage:
    products: List[Product]
    total: int
    page: int
    total_pages: int


class ProductStore:
    """Catalog access."""

    @staticmethod
    async def get_by_id(db: AsyncSession, product_id: int) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def check_stock(db: AsyncSession, product_id: int) -> StockStatus:
        """
        Report current stock. A missing product is reported as unavailable
        with zero stock rather than raising; callers that need to tell
        "not found" apart must call get_by_id.
        """
        result = await db.execute(select(Product.stock).where(Product.id == product_id))
        stock = result.scalar_one_or_none()
        if stock is None:
            return StockStatus(available=False, stock=0)
        return StockStatus(available=stock > 0, stock=stock)

    @staticmethod
    async def decrement_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        """
        Subtract ``quantity`` from stock only if at least that much remains.

        Returns True when the row was updated, False when stock was
        insufficient (or the product does not exist). Stock is left
        unchanged on False.
        """
        if quantity < 1:
            raise ValueError(f"quantity must be positive, got {quantity}")

        result = await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        decremented = result.rowcount == 1
        if not decremented:
            logger.info(
                "Conditional decrement refused: product_id=%s quantity=%s", product_id, quantity
            )
        return decremented

    @staticmethod
    async def list_products(
        db: AsyncSession,
        page: int = 1,
        limit: int = 12,
        category: Optional[str] = None,
    ) -> ProductPage:
        """Newest products first, optionally restricted to one category."""
        query = select(Product)
        count_query = select(func.count(Product.id))
        if category:
            query = query.where(Product.category == category)
            count_query = count_query.where(Product.category == category)

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return ProductPage(
            products=list(result.scalars().all()),
            total=total,
            page=page,
            total_pages=total_pages(total, limit),
        )

    @staticmethod
    async def search_products(
        db: AsyncSession,
        keyword: str,
        page: int = 1,
        limit: int = 12,
    ) -> ProductPage:
        """Case-insensitive substring match on name or description."""
        needle = keyword.strip().lower()
        condition = or_(
            func.lower(Product.name).contains(needle, autoescape=True),
            func.lower(Product.description).contains(needle, autoescape=True),
        )

        total = (await db.execute(select(func.count(Product.id)).where(condition))).scalar() or 0
        result = await db.execute(
            select(Product)
            .where(condition)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return ProductPage(
            products=list(result.scalars().all()),
            total=total,
            page=page,
            total_pages=total_pages(total, limit),
        )

    @staticmethod
    async def get_categories(db: AsyncSession) -> List[str]:
        result = await db.execute(
            select(Product.category)
            .where(Product.category.isnot(None))
            .distinct()
            .order_by(Product.category)
        )
        return [row[0] for row in result.all()]

