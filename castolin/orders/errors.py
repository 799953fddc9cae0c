"""Exceptions raised while reconciling an order's line items."""

from typing import Iterable, Optional


class ReconcileError(Exception):
    """Base class for failures that abort a reconciliation."""

    def __init__(self, message: str, order_no: Optional[str] = None):
        self.message = message
        self.order_no = order_no
        super().__init__(message)

    def to_detail(self) -> dict:
        """Error body for API responses."""
        return {"message": self.message, "order_no": self.order_no}


class OrderValidationError(ReconcileError):
    """The request itself is unusable (blank order number, nothing to do)."""


class LineItemNotFoundError(ReconcileError):
    """One or more referenced line item ids do not exist for the order."""

    def __init__(self, message: str, order_no: str, ids: Iterable[int]):
        self.ids = list(ids)
        super().__init__(message, order_no)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["ids"] = self.ids
        return detail


class CrossOrderMutationError(LineItemNotFoundError):
    """A line item id belongs to a different order than the one requested."""

    def __init__(self, line_id: int, found_order_no: str, order_no: str):
        self.found_order_no = found_order_no
        super().__init__(
            f"Item {line_id} belongs to order {found_order_no}, not {order_no}",
            order_no,
            [line_id],
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["found_order_no"] = self.found_order_no
        return detail


class ConcurrentModificationError(ReconcileError):
    """A verified row vanished before it could be written."""


class OrderStorageError(ReconcileError):
    """The database rejected a statement."""
