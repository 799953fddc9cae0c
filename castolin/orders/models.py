"""Request and response models for order endpoints."""

from datetime import date
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class OrderLineIn(BaseModel):
    """A line item as submitted for reconciliation.

    Only ``id`` and ``_deleted`` are structural; every other key is kept as a
    business field and checked against the column schema later.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[int] = Field(None, description="Persisted row id; omit for new items")
    deleted: bool = Field(False, alias="_deleted", description="Remove this (persisted) item")

    def business_fields(self) -> dict[str, Any]:
        """Submitted business attributes, excluding the structural keys."""
        return dict(self.model_extra or {})


class OrderCreateIn(BaseModel):
    """A row for the batch create endpoint."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    order_no: Optional[str] = Field(None, description="Order number the row belongs to")
    order_date: Optional[Union[date, str]] = Field(
        None,
        validation_alias=AliasChoices("order_date", "date"),
        description="Order date; today when omitted",
    )

    def business_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class ReconcileResult(BaseModel):
    """Outcome of reconciling one order."""

    order_no: str
    rows: list[dict] = Field(default_factory=list, description="Rows of the order ordered by id")
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    inserted_ids: list[int] = Field(default_factory=list)
    common: dict = Field(default_factory=dict, description="Header written to every row")


class OperationCounts(BaseModel):
    inserted: int
    updated: int
    deleted: int
    skipped: int
    total: int


class OrderDetails(BaseModel):
    order_no: str
    customer_name: Optional[str] = None
    total_amount: Optional[Any] = None
    status: Optional[str] = None


class ReconcileResponse(BaseModel):
    """Response body of PUT /orders-by-number/{order_no}."""

    success: bool = True
    message: str
    data: list[dict]
    operations: OperationCounts
    order_details: OrderDetails

    @classmethod
    def from_result(cls, result: ReconcileResult) -> "ReconcileResponse":
        return cls(
            message=f"Order {result.order_no} updated successfully",
            data=result.rows,
            operations=OperationCounts(
                inserted=result.inserted,
                updated=result.updated,
                deleted=result.deleted,
                skipped=result.skipped,
                total=len(result.rows),
            ),
            order_details=OrderDetails(
                order_no=result.order_no,
                customer_name=result.common.get("customer_name"),
                total_amount=result.common.get("total_amount"),
                status=result.common.get("status"),
            ),
        )


class BatchCreateResponse(BaseModel):
    success: bool = True
    message: str = "Orders inserted successfully"
    insertedCount: int
    insertedIds: list[int]


class NextOrderNumber(BaseModel):
    success: bool = True
    orderNumber: str
