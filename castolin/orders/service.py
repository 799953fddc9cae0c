"""Order service for reads, batch creation and order numbering."""

import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from castolin.orders.fields import (
    COMMON_FIELDS,
    coerce_fields,
    coerce_value,
    default_common_fields,
    line_values,
)
from castolin.orders.models import OrderCreateIn
from castolin.orders.store import OrderLineStore

logger = logging.getLogger(__name__)

# Rows created through the batch endpoint come from the distributor web form
BATCH_DEFAULTS = {
    "voucher_type": "Distributor Order-Web Based",
    "role": "distributor",
}


def next_order_number(last_order_no: Optional[str], today: date, prefix: str = "SQ") -> str:
    """Next order number in the ``PREFIX-DD-MM-YY-NNNN`` series.

    The sequence continues from ``last_order_no`` when it was issued today and
    restarts at 0001 otherwise.
    """
    current_date = today.strftime("%d-%m-%y")
    sequence = 1

    if last_order_no:
        parts = last_order_no.split("-")
        if len(parts) >= 5 and "-".join(parts[1:4]) == current_date:
            try:
                sequence = int(parts[4]) + 1
            except ValueError:
                sequence = 1

    return f"{prefix}-{current_date}-{sequence:04d}"


def build_batch_row(index: int, item: OrderCreateIn) -> tuple[str, dict[str, Any]]:
    """Resolve the order number and full column values for a batch-created row.

    Raises:
        ValueError: If the order number is blank or a value cannot be coerced
    """
    order_no = (item.order_no or "").strip()
    if not order_no:
        raise ValueError(f"Order number is required for item at index {index}")

    fields = coerce_fields(item.business_fields())

    values = default_common_fields()
    values.update(BATCH_DEFAULTS)
    values.update({k: v for k, v in fields.items() if k in COMMON_FIELDS and v is not None})

    order_date = coerce_value("order_date", item.order_date) if item.order_date else date.today()
    values["order_date"] = order_date

    values.update(line_values(fields))
    if values["delivery_date"] is None:
        values["delivery_date"] = order_date

    return order_no, values


class OrderService:
    """Service for order row queries and batch inserts."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = OrderLineStore(session)

    async def list_orders(self) -> list[dict[str, Any]]:
        """All order rows."""
        result = await self.session.execute(text("SELECT * FROM orders ORDER BY id"))
        return [dict(row._mapping) for row in result.fetchall()]

    async def get_order(self, line_id: int) -> Optional[dict[str, Any]]:
        """A single order row by id."""
        result = await self.session.execute(
            text("SELECT * FROM orders WHERE id = :id"),
            {"id": line_id},
        )
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def get_order_by_number(self, order_no: str, created_at: Optional[Any] = None) -> list[dict[str, Any]]:
        """Rows of an order, optionally narrowed to one creation timestamp."""
        if not order_no or not order_no.strip():
            raise ValueError("Order Number is required")
        return await self.store.list_rows(order_no.strip(), created_at=created_at)

    async def next_order_number(self, prefix: str = "SQ", today: Optional[date] = None) -> str:
        """Generate the next order number from the most recently created one."""
        result = await self.session.execute(
            text("""
                SELECT order_no
                FROM orders
                WHERE order_no LIKE :pattern
                ORDER BY created_at DESC
                LIMIT 1
            """),
            {"pattern": f"{prefix}-%"},
        )
        row = result.fetchone()
        return next_order_number(row.order_no if row else None, today or date.today(), prefix)

    async def create_orders(self, items: list[OrderCreateIn]) -> list[int]:
        """Insert order rows in a single transaction.

        Returns:
            Generated ids in input order

        Raises:
            ValueError: If no rows are given or a row is invalid
        """
        if not items:
            raise ValueError("No orders provided")

        rows = [build_batch_row(index, item) for index, item in enumerate(items)]

        inserted_ids = []
        async with self.store.transaction():
            for order_no, values in rows:
                inserted_ids.append(await self.store.insert_row(order_no, values))

        logger.info(f"➕ [BATCH CREATE] Inserted {len(inserted_ids)} order row(s)")
        return inserted_ids
