"""
Admin order management
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import CurrentUser, get_current_admin
from storefront.api.routes.orders import order_page_response
from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.schemas.order import OrderList, OrderResponse, OrderStatusUpdate
from storefront.services.order_store import OrderStore, change_order_status

router = APIRouter()


@router.get("", response_model=OrderList)
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.ADMIN_ORDER_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[str] = None,
    admin: CurrentUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return order_page_response(await OrderStore.list_all(db, page, limit, status))


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    admin: CurrentUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Advance an order through pending -> processing -> shipped -> delivered, or cancel it."""
    order = await change_order_status(db, order_id, payload.status)
    await db.commit()
    return order
