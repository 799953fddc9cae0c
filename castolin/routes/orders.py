"""Order API routes."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from castolin.config import get_settings
from castolin.orders.errors import (
    ConcurrentModificationError,
    LineItemNotFoundError,
    OrderValidationError,
    ReconcileError,
)
from castolin.orders.models import (
    BatchCreateResponse,
    NextOrderNumber,
    OrderCreateIn,
    OrderLineIn,
    ReconcileResponse,
)
from castolin.orders.reconciler import OrderReconciler
from castolin.orders.service import OrderService
from castolin.orders.store import OrderLineStore
from castolin.responses import ItemResponse, ListResponse
from castolin.routes.deps import get_session

router = APIRouter(tags=["Orders"])
logger = logging.getLogger(__name__)


async def get_order_service(session: AsyncSession = Depends(get_session)) -> OrderService:
    """Dependency to get order service."""
    return OrderService(session)


async def get_reconciler(session: AsyncSession = Depends(get_session)) -> OrderReconciler:
    """Dependency to get the order reconciler."""
    settings = get_settings()
    return OrderReconciler(OrderLineStore(session), use_advisory_lock=settings.order_advisory_lock)


def _status_for(error: ReconcileError) -> int:
    if isinstance(error, OrderValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, LineItemNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ConcurrentModificationError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# =============================================================================
# Reads
# =============================================================================


@router.get("/orders", response_model=ListResponse)
async def list_orders(service: OrderService = Depends(get_order_service)):
    """List all order rows."""
    return ListResponse.of(await service.list_orders())


@router.get("/orders/{order_id}", response_model=ItemResponse)
async def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    """Get a single order row by id."""
    order = await service.get_order(order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return ItemResponse(data=order)


@router.get("/orders-by-number/{order_no}", response_model=ListResponse)
async def get_orders_by_number(
    order_no: str,
    created_at: Optional[datetime] = Query(default=None, description="Only rows created at this timestamp"),
    service: OrderService = Depends(get_order_service),
):
    """Get all rows of an order by order number."""
    try:
        rows = await service.get_order_by_number(order_no, created_at=created_at)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No orders found")
    return ListResponse.of(rows)


@router.get("/api/orders/next-order-number", response_model=NextOrderNumber)
async def get_next_order_number(service: OrderService = Depends(get_order_service)):
    """Next order number in today's SQ-DD-MM-YY-NNNN series."""
    settings = get_settings()
    return NextOrderNumber(orderNumber=await service.next_order_number(prefix=settings.order_number_prefix))


# =============================================================================
# Writes
# =============================================================================


@router.post("/orders", response_model=BatchCreateResponse)
async def create_orders(
    items: list[OrderCreateIn],
    service: OrderService = Depends(get_order_service),
):
    """
    Insert order rows in a single transaction.

    Each row needs an `order_no`. Missing values default to a pending
    distributor web order dated today; `delivery_date` defaults to the order date.
    """
    try:
        ids = await service.create_orders(items)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return BatchCreateResponse(insertedCount=len(ids), insertedIds=ids)


@router.put("/orders-by-number/{order_no}", response_model=ReconcileResponse)
async def reconcile_order(
    order_no: str,
    items: list[OrderLineIn],
    reconciler: OrderReconciler = Depends(get_reconciler),
):
    """
    Reconcile an order's line items against the submitted list.

    - items without `id` are inserted
    - items with `id` are updated (only changed, updatable fields)
    - items with `id` and `"_deleted": true` are removed

    The order-level fields (customer, status, totals, remarks) of the first
    existing item, or of the first new item, are written to every row of the
    order. All changes are applied in one transaction.

    Example:
    ```json
    [
      {"id": 1, "quantity": 7},
      {"id": 2, "_deleted": true},
      {"item_name": "New", "quantity": 2}
    ]
    ```
    """
    try:
        result = await reconciler.reconcile(order_no, items)
    except ReconcileError as e:
        raise HTTPException(status_code=_status_for(e), detail=e.to_detail())
    return ReconcileResponse.from_result(result)
