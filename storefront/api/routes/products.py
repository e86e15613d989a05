"""
Product catalog routes (public)
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.schemas.product import ProductList, ProductResponse, StockResponse
from storefront.services.product_store import ProductPage, ProductStore

router = APIRouter()


def _page_response(page: ProductPage) -> ProductList:
    return ProductList(
        products=[ProductResponse.model_validate(p) for p in page.products],
        total=page.total,
        page=page.page,
        total_pages=page.total_pages,
    )


@router.get("", response_model=ProductList)
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.PRODUCT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """List products, newest first, optionally filtered by category."""
    return _page_response(await ProductStore.list_products(db, page, limit, category))


@router.get("/search", response_model=ProductList)
async def search_products(
    q: str = Query(..., min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.PRODUCT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    if not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Search keyword is required"
        )
    return _page_response(await ProductStore.search_products(db, q, page, limit))


@router.get("/categories")
async def list_categories(db: AsyncSession = Depends(get_db)):
    return {"categories": await ProductStore.get_categories(db)}


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await ProductStore.get_by_id(db, product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    return product


@router.get("/{product_id}/stock", response_model=StockResponse)
async def get_product_stock(product_id: int, db: AsyncSession = Depends(get_db)):
    """Stock availability. Unknown products are a 404 here, unlike check_stock."""
    if not await ProductStore.get_by_id(db, product_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    stock = await ProductStore.check_stock(db, product_id)
    return StockResponse(product_id=product_id, available=stock.available, stock=stock.stock)
