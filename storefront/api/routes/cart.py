"""
Cart routes
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import CurrentUser, get_current_user
from storefront.core.database import get_db
from storefront.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemResponse,
    CartMutationResponse,
    CartResponse,
)
from storefront.services.cart_service import CartService
from storefront.services.product_store import ProductStore

router = APIRouter()


def _ensure_stock(product_name: str, stock: int, quantity: int) -> None:
    if stock <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{product_name} is sold out"
        )
    if stock < quantity:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Not enough stock for {product_name} (current stock: {stock})"
        )


@router.get("", response_model=CartResponse)
async def get_cart(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = await CartService.get_items(db, current_user.id)
    total = await CartService.get_total(db, current_user.id)
    return CartResponse(
        items=[CartItemResponse.model_validate(item) for item in items],
        total_amount=total.total_amount,
        item_count=total.item_count,
    )


@router.post("", response_model=CartMutationResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item: CartItemCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    product = await ProductStore.get_by_id(db, item.product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    _ensure_stock(product.name, product.stock, item.quantity)

    line_id = await CartService.add_item(db, current_user.id, item.product_id, item.quantity)
    await db.commit()
    return CartMutationResponse(message="Added to cart", cart_item_id=line_id)


@router.put("/{item_id}", response_model=CartMutationResponse)
async def update_cart_item(
    item_id: int,
    item_update: CartItemUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    line = await CartService.get_item(db, current_user.id, item_id)
    if not line:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart item not found"
        )
    _ensure_stock(line.product_name, line.stock, item_update.quantity)

    if not await CartService.update_quantity(db, current_user.id, item_id, item_update.quantity):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart item not found"
        )
    await db.commit()
    return CartMutationResponse(message="Cart updated", cart_item_id=item_id)


@router.delete("/{item_id}", response_model=CartMutationResponse)
async def remove_from_cart(
    item_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await CartService.remove_item(db, current_user.id, item_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart item not found"
        )
    await db.commit()
    return CartMutationResponse(message="Removed from cart", cart_item_id=item_id)


@router.delete("", response_model=CartMutationResponse)
async def clear_cart(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await CartService.clear(db, current_user.id)
    await db.commit()
    return CartMutationResponse(message="Cart cleared")
