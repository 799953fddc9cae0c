"""SQL access to the denormalized ``orders`` table."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from castolin.orders.fields import COMMON_FIELDS, WRITABLE_COLUMNS

logger = logging.getLogger(__name__)


def _check_columns(columns: Iterable[str]) -> list[str]:
    """Reject column names outside the schema before they reach SQL text."""
    columns = list(columns)
    unknown = [c for c in columns if c not in WRITABLE_COLUMNS]
    if unknown:
        raise ValueError(f"Unknown order columns: {', '.join(sorted(unknown))}")
    return columns


class OrderLineStore:
    """Statements used by the order reconciler and the order service.

    All methods run on the session they were given; transaction boundaries
    are opened with :meth:`transaction`.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Begin a transaction that commits on success and rolls back on error."""
        async with self.session.begin():
            yield

    async def lock_order(self, order_no: str) -> None:
        """Hold a transaction-scoped advisory lock for ``order_no``."""
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:order_no))"),
            {"order_no": order_no},
        )

    async def fetch_header(self, order_no: str) -> Optional[dict[str, Any]]:
        """Return the order-level fields of the order, or None if it has no rows."""
        columns = ", ".join(COMMON_FIELDS)
        result = await self.session.execute(
            text(f"""
                SELECT {columns}
                FROM orders
                WHERE order_no = :order_no
                ORDER BY id
                LIMIT 1
            """),
            {"order_no": order_no},
        )
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def list_rows(self, order_no: str, created_at: Optional[Any] = None) -> list[dict[str, Any]]:
        """All rows of an order ordered by ascending id."""
        query = "SELECT * FROM orders WHERE order_no = :order_no"
        params: dict[str, Any] = {"order_no": order_no}
        if created_at is not None:
            query += " AND created_at = :created_at"
            params["created_at"] = created_at
        query += " ORDER BY id"

        result = await self.session.execute(text(query), params)
        return [dict(row._mapping) for row in result.fetchall()]

    async def find_row_ids(self, ids: list[int], order_no: str) -> list[int]:
        """Ids from ``ids`` that exist and belong to ``order_no``."""
        if not ids:
            return []
        result = await self.session.execute(
            text("SELECT id FROM orders WHERE id = ANY(:ids) AND order_no = :order_no"),
            {"ids": list(ids), "order_no": order_no},
        )
        return [row.id for row in result.fetchall()]

    async def get_row_order_no(self, line_id: int) -> Optional[str]:
        """Order number owning the row, or None if the row does not exist."""
        result = await self.session.execute(
            text("SELECT order_no FROM orders WHERE id = :id"),
            {"id": line_id},
        )
        row = result.fetchone()
        return row.order_no if row else None

    async def delete_rows(self, ids: list[int], order_no: str) -> int:
        """Delete the given rows of an order in one statement."""
        if not ids:
            return 0
        result = await self.session.execute(
            text("DELETE FROM orders WHERE id = ANY(:ids) AND order_no = :order_no"),
            {"ids": list(ids), "order_no": order_no},
        )
        return result.rowcount

    async def update_row(self, line_id: int, order_no: str, fields: dict[str, Any]) -> int:
        """Update a subset of columns of one row, scoped to its order."""
        columns = _check_columns(fields)
        if not columns:
            return 0
        set_clause = ", ".join(f"{col} = :{col}" for col in columns)
        params = dict(fields)
        params["row_id"] = line_id
        params["key_order_no"] = order_no

        result = await self.session.execute(
            text(f"UPDATE orders SET {set_clause} WHERE id = :row_id AND order_no = :key_order_no"),
            params,
        )
        return result.rowcount

    async def insert_row(self, order_no: str, values: dict[str, Any]) -> int:
        """Insert one row and return its generated id."""
        columns = _check_columns(values)
        params = dict(values)
        params["order_no"] = order_no
        column_list = ", ".join(["order_no", *columns])
        placeholders = ", ".join(f":{col}" for col in ["order_no", *columns])

        result = await self.session.execute(
            text(f"INSERT INTO orders ({column_list}) VALUES ({placeholders}) RETURNING id"),
            params,
        )
        return result.scalar_one()

    async def update_header(self, order_no: str, common: dict[str, Any]) -> int:
        """Write the order-level fields to every row of the order."""
        columns = [c for c in COMMON_FIELDS if c in common]
        if not columns:
            return 0
        set_clause = ", ".join(f"{col} = :{col}" for col in columns)
        params = {col: common[col] for col in columns}
        params["key_order_no"] = order_no

        result = await self.session.execute(
            text(f"UPDATE orders SET {set_clause} WHERE order_no = :key_order_no"),
            params,
        )
        return result.rowcount
