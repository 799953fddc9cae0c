"""Declarative schema for columns of the denormalized ``orders`` table.

Every line item row carries its own item attributes plus a copy of the
order-level (header) attributes. One table describes both kinds so that the
update allow-list, the header defaults, the insert defaults and value
coercion all come from the same place.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

TEXT = "text"
NUMBER = "number"
DATE = "date"


class FieldCoercionError(ValueError):
    """Raised when a submitted value cannot be converted to its column type."""

    def __init__(self, field_name: str, value: Any, reason: str):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid value for {field_name}: {value!r} ({reason})")


@dataclass(frozen=True)
class FieldSpec:
    """A single column of the orders table."""

    name: str
    kind: str
    default: Any = None
    updatable: bool = True
    order_level: bool = False

    def default_value(self) -> Any:
        """Default for a missing value, evaluated at call time."""
        if callable(self.default):
            return self.default()
        return self.default

    def coerce(self, value: Any) -> Any:
        """Convert a submitted value to the Python type stored in the column."""
        if value is None:
            return None
        try:
            return _COERCERS[self.kind](self.name, value)
        except (InvalidOperation, TypeError, ValueError) as e:
            if isinstance(e, FieldCoercionError):
                raise
            raise FieldCoercionError(self.name, value, str(e) or type(e).__name__) from e


def _coerce_text(name: str, value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _coerce_number(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise FieldCoercionError(name, value, "boolean is not a number")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str):
        # Tax rates arrive from the UI as "18 %"
        value = value.replace("%", "").strip()
        if not value:
            return Decimal(0)
    return Decimal(str(value))


def _coerce_date(name: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text_value = value.strip()
        if "T" in text_value or " " in text_value:
            return datetime.fromisoformat(text_value.replace("Z", "+00:00")).date()
        return date.fromisoformat(text_value)
    raise FieldCoercionError(name, value, "expected an ISO date string")


_COERCERS: dict[str, Callable[[str, Any], Any]] = {
    TEXT: _coerce_text,
    NUMBER: _coerce_number,
    DATE: _coerce_date,
}


def _today() -> date:
    return date.today()


ZERO = Decimal(0)

ORDER_FIELDS: tuple[FieldSpec, ...] = (
    # Order-level header, replicated onto every row of an order
    FieldSpec("voucher_type", TEXT, "Sales Order", updatable=False, order_level=True),
    FieldSpec("order_date", DATE, _today, order_level=True),
    FieldSpec("customer_code", TEXT, "", updatable=False, order_level=True),
    FieldSpec("customer_name", TEXT, "", updatable=False, order_level=True),
    FieldSpec("executive", TEXT, "", updatable=False, order_level=True),
    FieldSpec("role", TEXT, "", updatable=False, order_level=True),
    FieldSpec("status", TEXT, "pending", order_level=True),
    FieldSpec("total_quantity", NUMBER, ZERO, order_level=True),
    FieldSpec("total_amount", NUMBER, ZERO, order_level=True),
    FieldSpec("total_amount_without_tax", NUMBER, ZERO, order_level=True),
    FieldSpec("total_sgst_amount", NUMBER, ZERO, order_level=True),
    FieldSpec("total_cgst_amount", NUMBER, ZERO, order_level=True),
    FieldSpec("total_igst_amount", NUMBER, ZERO, order_level=True),
    FieldSpec("remarks", TEXT, "", order_level=True),
    # Per-row item attributes
    FieldSpec("item_code", TEXT, ""),
    FieldSpec("item_name", TEXT, ""),
    FieldSpec("hsn", TEXT, ""),
    FieldSpec("gst", NUMBER, ZERO),
    FieldSpec("sgst", NUMBER, ZERO),
    FieldSpec("cgst", NUMBER, ZERO),
    FieldSpec("igst", NUMBER, ZERO),
    FieldSpec("delivery_date", DATE, None),
    FieldSpec("delivery_mode", TEXT, ""),
    FieldSpec("transporter_name", TEXT, ""),
    FieldSpec("quantity", NUMBER, ZERO),
    FieldSpec("uom", TEXT, ""),
    FieldSpec("rate", NUMBER, ZERO),
    FieldSpec("amount", NUMBER, ZERO),
    FieldSpec("net_rate", NUMBER, ZERO),
    FieldSpec("gross_amount", NUMBER, ZERO),
    FieldSpec("disc_percentage", NUMBER, ZERO),
    FieldSpec("disc_amount", NUMBER, ZERO),
    FieldSpec("spl_disc_percentage", NUMBER, ZERO),
    FieldSpec("spl_disc_amount", NUMBER, ZERO),
)

FIELDS_BY_NAME: dict[str, FieldSpec] = {spec.name: spec for spec in ORDER_FIELDS}

COMMON_FIELDS: tuple[str, ...] = tuple(spec.name for spec in ORDER_FIELDS if spec.order_level)
LINE_FIELDS: tuple[str, ...] = tuple(spec.name for spec in ORDER_FIELDS if not spec.order_level)
UPDATABLE_FIELDS: frozenset[str] = frozenset(spec.name for spec in ORDER_FIELDS if spec.updatable)

# Columns the store may write; identity columns are handled separately
WRITABLE_COLUMNS: frozenset[str] = frozenset(FIELDS_BY_NAME)


def default_common_fields() -> dict[str, Any]:
    """Fresh copy of the default order header."""
    return {name: FIELDS_BY_NAME[name].default_value() for name in COMMON_FIELDS}


def coerce_value(name: str, value: Any) -> Any:
    """Coerce a single value using its column's spec."""
    return FIELDS_BY_NAME[name].coerce(value)


def coerce_fields(values: dict[str, Any]) -> dict[str, Any]:
    """Coerce every known column in ``values``; unknown keys are dropped."""
    return {name: coerce_value(name, value) for name, value in values.items() if name in FIELDS_BY_NAME}


def filter_updatable(values: dict[str, Any]) -> dict[str, Any]:
    """Keep only fields that may be changed on an existing row."""
    return {name: value for name, value in values.items() if name in UPDATABLE_FIELDS}


def line_values(values: dict[str, Any]) -> dict[str, Any]:
    """Per-row item fields for a new row, defaulted when absent or null."""
    result = {}
    for name in LINE_FIELDS:
        value = values.get(name)
        result[name] = coerce_value(name, value) if value is not None else FIELDS_BY_NAME[name].default_value()
    return result


def values_equal(name: str, left: Any, right: Any) -> bool:
    """Compare two values of a column after coercion.

    Numbers compare by value (``Decimal("5.00") == 5``), so a persisted row
    and a resubmitted copy of it are recognised as unchanged.
    """
    spec: Optional[FieldSpec] = FIELDS_BY_NAME.get(name)
    if spec is None:
        return left == right
    return spec.coerce(left) == spec.coerce(right)
