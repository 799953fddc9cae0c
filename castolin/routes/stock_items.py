"""Stock item routes."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from castolin.responses import ItemResponse, ListResponse
from castolin.routes.deps import get_session
from castolin.stock.service import StockItemService

router = APIRouter(tags=["Stock Items"])


async def get_stock_item_service(session: AsyncSession = Depends(get_session)) -> StockItemService:
    """Dependency to get stock item service."""
    return StockItemService(session)


@router.get("/stock_item", response_model=ListResponse)
async def list_stock_items(service: StockItemService = Depends(get_stock_item_service)):
    """List stock items ordered by name."""
    return ListResponse.of(await service.list_stock_items())


@router.get("/stock_item/{item_code}", response_model=ItemResponse)
async def get_stock_item(item_code: str, service: StockItemService = Depends(get_stock_item_service)):
    """Get a stock item by code."""
    try:
        item = await service.get_stock_item(item_code)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stock item not found")
    return ItemResponse(data=item)
