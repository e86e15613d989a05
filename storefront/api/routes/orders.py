"""
Order routes: checkout and order history
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import CurrentUser, get_current_user, get_checkout_service
from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.rate_limit import checkout_limit
from storefront.schemas.order import (
    CheckoutResponse,
    OrderCreate,
    OrderDetailResponse,
    OrderItemResponse,
    OrderList,
    OrderResponse,
)
from storefront.services.checkout import CheckoutService
from storefront.services.order_store import OrderPage, OrderStore

logger = logging.getLogger(__name__)

router = APIRouter()


def order_page_response(page: OrderPage) -> OrderList:
    return OrderList(
        orders=[OrderResponse.model_validate(order) for order in page.orders],
        total=page.total,
        page=page.page,
        total_pages=page.total_pages,
    )


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@checkout_limit()
async def create_order(
    request: Request,
    order_data: OrderCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Check out the current cart.

    Not idempotent: submitting twice places two orders. A client that times
    out should list its orders before retrying.
    """
    result = await service.checkout(
        db,
        current_user.id,
        order_data.shipping_address,
        order_data.payment_method,
    )
    return CheckoutResponse(
        order_id=result.order_id,
        total_amount=result.total_amount,
        payment_method=result.payment_method,
        transaction_id=result.transaction_id,
    )


@router.get("", response_model=OrderList)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.ORDER_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return order_page_response(await OrderStore.list_by_user(db, current_user.id, page, limit))


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    details = await OrderStore.get_details(db, order_id, current_user.id)
    if not details:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    order, lines = details
    return OrderDetailResponse(
        **OrderResponse.model_validate(order).model_dump(),
        items=[OrderItemResponse.model_validate(line) for line in lines],
    )


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete one of the user's orders. Only cancelled orders qualify."""
    await OrderStore.delete(db, order_id, current_user.id)
    await db.commit()
    return {"message": "Order deleted", "order_id": order_id}
