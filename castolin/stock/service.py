"""Stock item catalogue queries."""

from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


class StockItemService:
    """Read access to the stock_item table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_stock_items(self) -> list[dict[str, Any]]:
        """All stock items ordered by name."""
        result = await self.session.execute(text("SELECT * FROM stock_item ORDER BY stock_item_name"))
        return [dict(row._mapping) for row in result.fetchall()]

    async def get_stock_item(self, item_code: str) -> Optional[dict[str, Any]]:
        """A stock item by its code."""
        if not item_code or not item_code.strip():
            raise ValueError("Stock Item Code is required")
        result = await self.session.execute(
            text("SELECT * FROM stock_item WHERE item_code = :item_code"),
            {"item_code": item_code.strip()},
        )
        row = result.fetchone()
        return dict(row._mapping) if row else None
