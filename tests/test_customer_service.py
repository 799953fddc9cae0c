"""Unit tests for CustomerService and StockItemService."""

import pytest

from castolin.customers.service import CORPORATE, DISTRIBUTOR, CustomerService
from castolin.stock.service import StockItemService
from tests.conftest import make_result


@pytest.fixture
def service(mock_session):
    """Create CustomerService with mock session."""
    return CustomerService(mock_session)


class TestCustomerReads:
    """Tests for customer queries."""

    @pytest.mark.asyncio
    async def test_list_by_type_filters_on_customer_type(self, service, mock_session):
        mock_session.execute.return_value = make_result([{"customer_code": "D1"}])

        rows = await service.list_by_type(DISTRIBUTOR)

        assert rows == [{"customer_code": "D1"}]
        assert mock_session.execute.call_args[0][1] == {"customer_type": "distributor"}

    def test_corporates_are_direct_customers(self):
        assert CORPORATE == "direct"

    @pytest.mark.asyncio
    async def test_get_customer_requires_code(self, service, mock_session):
        with pytest.raises(ValueError, match="Customer code is required"):
            await service.get_customer("  ")

        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_customer_missing(self, service, mock_session):
        mock_session.execute.return_value = make_result([])

        assert await service.get_customer("C404") is None


class TestUpdateProfile:
    """Tests for profile updates."""

    @pytest.mark.asyncio
    async def test_rejects_empty_update(self, service):
        with pytest.raises(ValueError, match="No update data provided"):
            await service.update_profile("D1", {})

    @pytest.mark.asyncio
    async def test_rejects_only_protected_fields(self, service, mock_session):
        """Credentials and identity columns are not writable."""
        with pytest.raises(ValueError, match="No valid fields to update"):
            await service.update_profile("D1", {"password": "x", "firebase_uid": "abc", "customer_code": "D2"})

        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_updates_allow_listed_fields(self, service, mock_session):
        mock_session.execute.return_value = make_result(rowcount=1)

        affected = await service.update_profile("D1", {"email": "a@b.c", "status": "active", "password": "x"})

        assert affected == 1
        sql = str(mock_session.execute.call_args[0][0])
        assert "SET email = :email, status = :status" in sql
        assert "password" not in sql
        assert mock_session.execute.call_args[0][1] == {
            "email": "a@b.c",
            "status": "active",
            "key_customer_code": "D1",
        }

    @pytest.mark.asyncio
    async def test_customer_code_is_trimmed(self, service, mock_session):
        """The update targets the same customer a lookup of the code would find."""
        mock_session.execute.return_value = make_result(rowcount=1)

        await service.update_profile("  D1 ", {"email": "a@b.c"})

        assert mock_session.execute.call_args[0][1]["key_customer_code"] == "D1"

    @pytest.mark.asyncio
    async def test_rejects_blank_customer_code(self, service, mock_session):
        with pytest.raises(ValueError, match="Customer code is required"):
            await service.update_profile("   ", {"email": "a@b.c"})

        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_customer_updates_nothing(self, service, mock_session):
        mock_session.execute.return_value = make_result(rowcount=0)

        assert await service.update_profile("D404", {"email": "a@b.c"}) == 0


class TestStockItems:
    """Tests for StockItemService."""

    @pytest.mark.asyncio
    async def test_list_ordered_by_name(self, mock_session):
        mock_session.execute.return_value = make_result([{"item_code": "B1"}])

        rows = await StockItemService(mock_session).list_stock_items()

        assert rows == [{"item_code": "B1"}]
        assert "ORDER BY stock_item_name" in str(mock_session.execute.call_args[0][0])

    @pytest.mark.asyncio
    async def test_get_requires_code(self, mock_session):
        with pytest.raises(ValueError, match="Stock Item Code is required"):
            await StockItemService(mock_session).get_stock_item("")
