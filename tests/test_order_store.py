"""Unit tests for OrderLineStore SQL generation."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from castolin.orders.store import OrderLineStore
from tests.conftest import make_result


@pytest.fixture
def store(mock_session):
    """Create OrderLineStore with mock session."""
    return OrderLineStore(mock_session)


def executed_sql(mock_session, call_index: int = 0) -> str:
    """SQL text of the n-th execute call."""
    return str(mock_session.execute.call_args_list[call_index][0][0])


def executed_params(mock_session, call_index: int = 0) -> dict:
    return mock_session.execute.call_args_list[call_index][0][1]


class TestTransaction:
    """Tests for transaction scoping."""

    @pytest.mark.asyncio
    async def test_transaction_uses_session_begin(self, mock_session):
        """transaction() delegates to session.begin()."""
        begin_ctx = MagicMock()
        begin_ctx.__aexit__.return_value = False
        mock_session.begin = MagicMock(return_value=begin_ctx)
        store = OrderLineStore(mock_session)

        async with store.transaction():
            pass

        mock_session.begin.assert_called_once()
        begin_ctx.__aenter__.assert_awaited_once()
        begin_ctx.__aexit__.assert_awaited_once()


class TestReads:
    """Tests for read statements."""

    @pytest.mark.asyncio
    async def test_lock_order_uses_advisory_lock(self, store, mock_session):
        await store.lock_order("SQ-01")

        assert "pg_advisory_xact_lock(hashtext(:order_no))" in executed_sql(mock_session)
        assert executed_params(mock_session) == {"order_no": "SQ-01"}

    @pytest.mark.asyncio
    async def test_fetch_header_returns_none_for_unknown_order(self, store, mock_session):
        mock_session.execute.return_value = make_result([])

        assert await store.fetch_header("SQ-99") is None

    @pytest.mark.asyncio
    async def test_fetch_header_reads_first_row(self, store, mock_session):
        mock_session.execute.return_value = make_result([{"customer_name": "Acme", "status": "pending"}])

        header = await store.fetch_header("SQ-01")

        assert header == {"customer_name": "Acme", "status": "pending"}
        sql = executed_sql(mock_session)
        assert "ORDER BY id" in sql
        assert "LIMIT 1" in sql
        assert "customer_name" in sql

    @pytest.mark.asyncio
    async def test_list_rows_orders_by_id(self, store, mock_session):
        mock_session.execute.return_value = make_result([{"id": 1}, {"id": 2}])

        rows = await store.list_rows("SQ-01")

        assert rows == [{"id": 1}, {"id": 2}]
        assert executed_sql(mock_session).endswith("ORDER BY id")
        assert executed_params(mock_session) == {"order_no": "SQ-01"}

    @pytest.mark.asyncio
    async def test_list_rows_with_created_at(self, store, mock_session):
        mock_session.execute.return_value = make_result([])

        await store.list_rows("SQ-01", created_at="2024-03-01T10:00:00")

        assert "created_at = :created_at" in executed_sql(mock_session)
        assert executed_params(mock_session)["created_at"] == "2024-03-01T10:00:00"

    @pytest.mark.asyncio
    async def test_find_row_ids_scoped_to_order(self, store, mock_session):
        mock_session.execute.return_value = make_result([{"id": 1}, {"id": 2}])

        found = await store.find_row_ids([1, 2, 3], "SQ-01")

        assert found == [1, 2]
        sql = executed_sql(mock_session)
        assert "id = ANY(:ids)" in sql
        assert "order_no = :order_no" in sql

    @pytest.mark.asyncio
    async def test_find_row_ids_empty_skips_query(self, store, mock_session):
        assert await store.find_row_ids([], "SQ-01") == []
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_row_order_no(self, store, mock_session):
        mock_session.execute.return_value = make_result([{"order_no": "SQ-02"}])

        assert await store.get_row_order_no(3) == "SQ-02"

    @pytest.mark.asyncio
    async def test_get_row_order_no_missing(self, store, mock_session):
        mock_session.execute.return_value = make_result([])

        assert await store.get_row_order_no(3) is None


class TestWrites:
    """Tests for write statements."""

    @pytest.mark.asyncio
    async def test_delete_rows_single_statement(self, store, mock_session):
        mock_session.execute.return_value = make_result(rowcount=2)

        deleted = await store.delete_rows([1, 2], "SQ-01")

        assert deleted == 2
        assert mock_session.execute.call_count == 1
        assert "DELETE FROM orders WHERE id = ANY(:ids) AND order_no = :order_no" in executed_sql(mock_session)
        assert executed_params(mock_session) == {"ids": [1, 2], "order_no": "SQ-01"}

    @pytest.mark.asyncio
    async def test_delete_rows_empty_skips_query(self, store, mock_session):
        assert await store.delete_rows([], "SQ-01") == 0
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_row_sets_only_given_columns(self, store, mock_session):
        mock_session.execute.return_value = make_result(rowcount=1)

        affected = await store.update_row(1, "SQ-01", {"quantity": Decimal("7"), "status": "approved"})

        assert affected == 1
        sql = executed_sql(mock_session)
        assert "SET quantity = :quantity, status = :status" in sql
        assert "WHERE id = :row_id AND order_no = :key_order_no" in sql
        assert executed_params(mock_session) == {
            "quantity": Decimal("7"),
            "status": "approved",
            "row_id": 1,
            "key_order_no": "SQ-01",
        }

    @pytest.mark.asyncio
    async def test_update_row_rejects_unknown_columns(self, store, mock_session):
        """Column names outside the schema never reach SQL text."""
        with pytest.raises(ValueError, match="Unknown order columns: id; DROP TABLE"):
            await store.update_row(1, "SQ-01", {"id; DROP TABLE": 1})

        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_row_without_fields(self, store, mock_session):
        assert await store.update_row(1, "SQ-01", {}) == 0
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_row_returns_generated_id(self, store, mock_session):
        mock_session.execute.return_value = make_result(scalar=17)

        new_id = await store.insert_row("SQ-01", {"item_name": "Bolt", "quantity": Decimal("2")})

        assert new_id == 17
        sql = executed_sql(mock_session)
        assert "INSERT INTO orders (order_no, item_name, quantity)" in sql
        assert "VALUES (:order_no, :item_name, :quantity)" in sql
        assert "RETURNING id" in sql
        assert executed_params(mock_session)["order_no"] == "SQ-01"

    @pytest.mark.asyncio
    async def test_update_header_writes_all_rows_of_order(self, store, mock_session):
        mock_session.execute.return_value = make_result(rowcount=3)

        affected = await store.update_header("SQ-01", {"customer_name": "Acme", "status": "approved", "quantity": 1})

        assert affected == 3
        sql = executed_sql(mock_session)
        assert "SET customer_name = :customer_name, status = :status" in sql
        assert "quantity" not in sql
        assert sql.endswith("WHERE order_no = :key_order_no")
