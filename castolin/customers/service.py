"""Customer, distributor, corporate and admin profile queries."""

import logging
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# customer_type values stored for each profile kind
DISTRIBUTOR = "distributor"
CORPORATE = "direct"

# Columns a profile update may change
PROFILE_FIELDS = (
    "customer_name",
    "mobile_number",
    "email",
    "customer_type",
    "role",
    "status",
)


class CustomerService:
    """Service for customer and admin records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fetch_all(self, query: str, params: Optional[dict] = None) -> list[dict[str, Any]]:
        result = await self.session.execute(text(query), params or {})
        return [dict(row._mapping) for row in result.fetchall()]

    async def _fetch_one(self, query: str, params: dict) -> Optional[dict[str, Any]]:
        result = await self.session.execute(text(query), params)
        row = result.fetchone()
        return dict(row._mapping) if row else None

    # =========================================================================
    # Customers
    # =========================================================================

    async def list_customers(self) -> list[dict[str, Any]]:
        """All customers ordered by name."""
        return await self._fetch_all("SELECT * FROM customer ORDER BY customer_name")

    async def list_by_type(self, customer_type: str) -> list[dict[str, Any]]:
        """Customers of one type (distributor or direct/corporate)."""
        return await self._fetch_all(
            "SELECT * FROM customer WHERE customer_type = :customer_type ORDER BY customer_name",
            {"customer_type": customer_type},
        )

    async def get_customer(self, customer_code: str) -> Optional[dict[str, Any]]:
        """A customer by code."""
        if not customer_code or not customer_code.strip():
            raise ValueError("Customer code is required")
        return await self._fetch_one(
            "SELECT * FROM customer WHERE customer_code = :customer_code",
            {"customer_code": customer_code.strip()},
        )

    async def update_profile(self, customer_code: str, updates: dict[str, Any]) -> int:
        """Update allow-listed profile columns of a customer.

        Args:
            customer_code: Customer to update
            updates: Submitted fields; keys outside the allow-list are ignored

        Returns:
            Number of rows updated (0 if the customer does not exist)

        Raises:
            ValueError: If the code is blank or the update carries no writable field
        """
        if not customer_code or not customer_code.strip():
            raise ValueError("Customer code is required")
        customer_code = customer_code.strip()
        if not updates:
            raise ValueError("No update data provided")

        filtered = {k: updates[k] for k in PROFILE_FIELDS if k in updates}
        if not filtered:
            raise ValueError("No valid fields to update")

        set_clause = ", ".join(f"{col} = :{col}" for col in filtered)
        params = dict(filtered)
        params["key_customer_code"] = customer_code

        result = await self.session.execute(
            text(f"UPDATE customer SET {set_clause} WHERE customer_code = :key_customer_code"),
            params,
        )
        logger.info(f"📝 [PROFILE UPDATE] {customer_code}: {', '.join(filtered)} ({result.rowcount} row(s))")
        return result.rowcount

    # =========================================================================
    # Admins
    # =========================================================================

    async def list_admins(self) -> list[dict[str, Any]]:
        """All admins."""
        return await self._fetch_all("SELECT * FROM admins ORDER BY id")

    async def get_admin(self, admin_id: int) -> Optional[dict[str, Any]]:
        """An admin by id."""
        return await self._fetch_one("SELECT * FROM admins WHERE id = :id", {"id": admin_id})
