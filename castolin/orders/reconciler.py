"""Reconcile the submitted line items of an order against storage.

A call receives the complete desired list of line items for one order
number. Items without an id are inserted, items with an id are updated,
items with an id and ``_deleted`` are removed. The order-level header is
taken from one "priority" item and written to every row of the order so the
denormalized copy stays consistent. Everything runs in one transaction.
"""

import logging
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from castolin.orders.errors import (
    ConcurrentModificationError,
    CrossOrderMutationError,
    LineItemNotFoundError,
    OrderStorageError,
    OrderValidationError,
    ReconcileError,
)
from castolin.orders.fields import (
    COMMON_FIELDS,
    FieldCoercionError,
    coerce_fields,
    default_common_fields,
    filter_updatable,
    line_values,
    values_equal,
)
from castolin.orders.models import OrderLineIn, ReconcileResult
from castolin.orders.store import OrderLineStore

logger = logging.getLogger(__name__)


def partition_items(
    items: list[OrderLineIn],
) -> tuple[list[OrderLineIn], list[OrderLineIn], list[OrderLineIn]]:
    """Split items into (to_insert, to_update, to_delete).

    A deletion request without an id has nothing to delete and lands in no
    group.
    """
    to_insert = [item for item in items if item.id is None and not item.deleted]
    to_update = [item for item in items if item.id is not None and not item.deleted]
    to_delete = [item for item in items if item.id is not None and item.deleted]
    return to_insert, to_update, to_delete


def select_priority_item(items: list[OrderLineIn]) -> Optional[OrderLineIn]:
    """First non-deleted item that already exists, else the first non-deleted item."""
    active = [item for item in items if not item.deleted]
    if not active:
        return None
    for item in active:
        if item.id is not None:
            return item
    return active[0]


def compute_common_fields(
    items: list[OrderLineIn],
    persisted: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Resolve the order-level header for this call.

    Defaults are overlaid with the header currently stored for the order
    (if any) and then with the order-level fields present on the priority
    item. A key present on the priority item wins even when its value is
    null, so a client can clear a header field such as ``remarks``.
    """
    common = default_common_fields()
    if persisted:
        common.update({k: v for k, v in persisted.items() if k in COMMON_FIELDS and v is not None})

    priority = select_priority_item(items)
    if priority is not None:
        submitted = priority.business_fields()
        overrides = {k: v for k, v in submitted.items() if k in COMMON_FIELDS}
        common.update(coerce_fields(overrides))
    return common


def _normalize_items(items: Optional[Iterable[Union[OrderLineIn, dict]]]) -> list[OrderLineIn]:
    if items is None:
        return []
    if isinstance(items, (str, bytes, dict)):
        raise OrderValidationError("Line items must be a list")
    return [item if isinstance(item, OrderLineIn) else OrderLineIn.model_validate(item) for item in items]


class OrderReconciler:
    """Apply a desired list of line items to one order, atomically."""

    def __init__(self, store: OrderLineStore, use_advisory_lock: bool = True):
        self.store = store
        self.use_advisory_lock = use_advisory_lock

    async def reconcile(
        self,
        order_no: Optional[str],
        items: Optional[Iterable[Union[OrderLineIn, dict]]],
    ) -> ReconcileResult:
        """Insert, update and delete line items so the order matches ``items``.

        Args:
            order_no: Order number (business key); surrounding whitespace is ignored
            items: Desired line items; new ones without ``id``, removals flagged ``_deleted``

        Returns:
            The order's rows read back after commit, with operation counts

        Raises:
            OrderValidationError: Blank order number, bad values, or nothing to do
            LineItemNotFoundError: A referenced id is missing or belongs to another order
            ConcurrentModificationError: A verified row could not be updated
            OrderStorageError: The database rejected a statement
        """
        order_no = (order_no or "").strip()
        if not order_no:
            raise OrderValidationError("Order Number is required")

        try:
            all_items = _normalize_items(items)
        except ValidationError as e:
            raise OrderValidationError(f"Invalid line items: {e}", order_no) from e

        to_insert, to_update, to_delete = partition_items(all_items)

        conflicting = {i.id for i in to_update} & {i.id for i in to_delete}
        if conflicting:
            ids = ", ".join(str(i) for i in sorted(conflicting))
            raise OrderValidationError(f"Items {ids} are marked for both update and deletion", order_no)

        try:
            submitted = {id(item): coerce_fields(item.business_fields()) for item in to_insert + to_update}
        except FieldCoercionError as e:
            raise OrderValidationError(str(e), order_no) from e

        logger.info(
            f"🔧 [RECONCILE] {order_no}: {len(all_items)} item(s) received - "
            f"{len(to_insert)} insert, {len(to_update)} update, {len(to_delete)} delete"
        )

        result = ReconcileResult(order_no=order_no)
        try:
            async with self.store.transaction():
                await self._apply(order_no, all_items, to_insert, to_update, to_delete, submitted, result)
            result.rows = await self.store.list_rows(order_no)
        except ReconcileError as e:
            logger.error(f"❌ [RECONCILE] {order_no} rolled back: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"❌ [RECONCILE] {order_no} rolled back on database error: {e}")
            raise OrderStorageError(f"Database operation failed: {e}", order_no) from e

        logger.info(
            f"✅ [RECONCILE] {order_no}: inserted={result.inserted} updated={result.updated} "
            f"deleted={result.deleted} skipped={result.skipped}, {len(result.rows)} row(s) now"
        )
        return result

    async def _apply(
        self,
        order_no: str,
        all_items: list[OrderLineIn],
        to_insert: list[OrderLineIn],
        to_update: list[OrderLineIn],
        to_delete: list[OrderLineIn],
        submitted: dict[int, dict[str, Any]],
        result: ReconcileResult,
    ) -> None:
        if self.use_advisory_lock:
            await self.store.lock_order(order_no)

        header = await self.store.fetch_header(order_no)
        order_exists = header is not None
        if not order_exists and not to_insert:
            raise OrderValidationError(f"Order {order_no} does not exist and no new items provided", order_no)

        common = compute_common_fields(all_items, header)
        result.common = common

        current: dict[int, dict[str, Any]] = {}
        if order_exists:
            current = {row["id"]: row for row in await self.store.list_rows(order_no)}

        if to_delete:
            result.deleted = await self._delete(order_no, [item.id for item in to_delete])

        for index, item in enumerate(to_update):
            outcome = await self._update(order_no, index, item, submitted[id(item)], current)
            if outcome == "updated":
                result.updated += 1
            elif outcome == "skipped":
                result.skipped += 1

        for item in to_insert:
            values = {**common, **line_values(submitted[id(item)])}
            new_id = await self.store.insert_row(order_no, values)
            result.inserted_ids.append(new_id)
            logger.info(f"  ➕ Inserted item {values.get('item_name') or '<unnamed>'} (ID: {new_id})")
        result.inserted = len(result.inserted_ids)

        if order_exists or result.inserted:
            affected = await self.store.update_header(order_no, common)
            logger.info(f"  📊 Header written to {affected} row(s) of {order_no}")

    async def _delete(self, order_no: str, ids: list[int]) -> int:
        ids = list(dict.fromkeys(ids))
        found = set(await self.store.find_row_ids(ids, order_no))
        missing = [i for i in ids if i not in found]
        if missing:
            raise LineItemNotFoundError(
                f"Cannot delete items: {', '.join(str(i) for i in missing)} - "
                f"they do not belong to order {order_no}",
                order_no,
                missing,
            )
        deleted = await self.store.delete_rows(ids, order_no)
        logger.info(f"  🗑️ Deleted {deleted} item(s)")
        return deleted

    async def _update(
        self,
        order_no: str,
        index: int,
        item: OrderLineIn,
        fields: dict[str, Any],
        current: dict[int, dict[str, Any]],
    ) -> str:
        line_id = item.id
        if line_id not in current:
            owner = await self.store.get_row_order_no(line_id)
            if owner is None:
                raise LineItemNotFoundError(f"Item with ID {line_id} does not exist", order_no, [line_id])
            if owner != order_no:
                raise CrossOrderMutationError(line_id, owner, order_no)

        fields = filter_updatable(fields)
        if not fields:
            logger.warning(f"⚠️ Skipping update {index} for ID {line_id}: No valid fields")
            return "skipped"

        existing = current.get(line_id)
        if existing is not None:
            fields = {k: v for k, v in fields.items() if not values_equal(k, existing.get(k), v)}
            if not fields:
                logger.debug(f"  Item {line_id} unchanged")
                return "unchanged"

        affected = await self.store.update_row(line_id, order_no, fields)
        if affected == 0:
            raise ConcurrentModificationError(f"No record found for id {line_id} in order {order_no}", order_no)
        if existing is not None:
            # Later items in the same call compare against the row as just written
            current[line_id] = {**existing, **fields}
        logger.info(f"  📝 Updated item {line_id}: {', '.join(sorted(fields))}")
        return "updated"
