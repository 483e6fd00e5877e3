"""Source record definitions and the customer/order/line-item join.

The record store owns customers, orders and order line items. This module
gives them a canonical in-memory shape, validates the fields the
segmentation relies on, and flattens the three record sets into
:class:`PurchaseLine` rows, the read contract consumed by the spend
aggregator.

Quick Start
-----------
>>> from datetime import datetime
>>> from decimal import Decimal
>>> customers = [Customer("C1", "Ada", "ada@example.com", datetime(2022, 1, 1))]
>>> orders = [Order("O1", "C1", OrderStatus.COMPLETED, datetime(2023, 5, 1))]
>>> items = [OrderLineItem("I1", "O1", "SKU-1", 2, Decimal("12.50"))]
>>> lines = join_purchase_lines(customers, orders, items)
>>> lines[0].line_total
Decimal('25.00')
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping

from high_value_lapsed.foundation.errors import DataIntegrityError


class OrderStatus(str, Enum):
    """Lifecycle states an order can be in."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def parse(cls, value: object, *, order_id: str | None = None) -> "OrderStatus":
        """Return the status matching ``value`` (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise DataIntegrityError(
                f"Unknown order status {value!r} (order_id={order_id})",
                identifier=order_id,
                context={"status": value},
            ) from exc


@dataclass(frozen=True)
class Customer:
    """Customer identity as held by the record store.

    Attributes
    ----------
    customer_id:
        Unique customer identifier.
    name:
        Display name used in the re-engagement list.
    email:
        Contact email; unique across customers.
    registered_at:
        Registration timestamp.
    """

    customer_id: str
    name: str
    email: str
    registered_at: datetime

    def __post_init__(self) -> None:
        if not self.customer_id:
            raise DataIntegrityError("Customer record is missing customer_id")
        if not self.email:
            raise DataIntegrityError(
                f"Customer email is required (customer_id={self.customer_id})",
                identifier=self.customer_id,
            )


@dataclass(frozen=True)
class CustomerContact:
    """Name and email for a customer, keyed by id in the customer mapping."""

    name: str
    email: str


@dataclass(frozen=True)
class Order:
    """Order header: owning customer, status and creation timestamp."""

    order_id: str
    customer_id: str
    status: OrderStatus
    created_at: datetime

    def __post_init__(self) -> None:
        if not self.order_id:
            raise DataIntegrityError("Order record is missing order_id")
        if not self.customer_id:
            raise DataIntegrityError(
                f"Order has no owning customer (order_id={self.order_id})",
                identifier=self.order_id,
            )
        if not isinstance(self.status, OrderStatus):
            object.__setattr__(
                self, "status", OrderStatus.parse(self.status, order_id=self.order_id)
            )


@dataclass(frozen=True)
class OrderLineItem:
    """A product line within an order.

    ``unit_price`` is the price actually paid per unit at purchase time,
    not the current catalogue price.
    """

    item_id: str
    order_id: str
    product_id: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        check_line_amounts(
            self.quantity, self.unit_price, identifier=self.item_id, order_id=self.order_id
        )


@dataclass(frozen=True)
class PurchaseLine:
    """One line item joined to its order and owning customer."""

    customer_id: str
    order_id: str
    order_status: OrderStatus
    order_created_at: datetime
    quantity: int
    unit_price: Decimal

    @property
    def is_completed(self) -> bool:
        return self.order_status is OrderStatus.COMPLETED

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def check_line_amounts(
    quantity: object, unit_price: object, *, identifier: str | None, order_id: str | None
) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise DataIntegrityError(
            f"Line item quantity must be a positive integer: {quantity!r} "
            f"(order_id={order_id})",
            identifier=identifier or order_id,
            context={"order_id": order_id, "quantity": quantity},
        )
    if not isinstance(unit_price, Decimal) or not unit_price.is_finite() or unit_price <= 0:
        raise DataIntegrityError(
            f"Line item price must be positive: {unit_price!r} (order_id={order_id})",
            identifier=identifier or order_id,
            context={"order_id": order_id, "unit_price": unit_price},
        )


def parse_timestamp(value: object) -> datetime:
    """Return ``value`` as a datetime, parsing ISO-8601 strings.

    A trailing ``Z`` is accepted as UTC. Raises ``ValueError`` for anything
    else.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    raise ValueError(f"Expected datetime or ISO-8601 string, got {type(value).__name__}")


def to_quantity(value: object, *, order_id: str | None = None) -> int:
    """Coerce a raw quantity to ``int`` without truncating fractions."""
    if isinstance(value, bool):
        raise DataIntegrityError(
            f"Line item quantity must be an integer: {value!r} (order_id={order_id})",
            identifier=order_id,
            context={"quantity": value},
        )
    if isinstance(value, int):
        return value
    try:
        as_decimal = Decimal(str(value))
    except InvalidOperation as exc:
        raise DataIntegrityError(
            f"Line item quantity must be an integer: {value!r} (order_id={order_id})",
            identifier=order_id,
            context={"quantity": value},
        ) from exc
    if not as_decimal.is_finite() or as_decimal != as_decimal.to_integral_value():
        raise DataIntegrityError(
            f"Line item quantity must be an integer: {value!r} (order_id={order_id})",
            identifier=order_id,
            context={"quantity": value},
        )
    return int(as_decimal)


def to_price(value: object, *, order_id: str | None = None) -> Decimal:
    """Coerce a raw price to ``Decimal`` via its string form."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise DataIntegrityError(
            f"Line item price is not numeric: {value!r} (order_id={order_id})",
            identifier=order_id,
            context={"unit_price": value},
        )
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise DataIntegrityError(
            f"Line item price is not numeric: {value!r} (order_id={order_id})",
            identifier=order_id,
            context={"unit_price": value},
        ) from exc


def _require(record: Mapping[str, Any], keys: Iterable[str], *, kind: str, idx: int) -> None:
    missing = [key for key in keys if record.get(key) in (None, "")]
    if missing:
        raise DataIntegrityError(
            f"{kind} record at index {idx} missing required fields: {missing}",
            context={"record_index": idx, "missing_fields": missing},
        )


def _timestamp_field(record: Mapping[str, Any], key: str, *, kind: str, idx: int) -> datetime:
    try:
        return parse_timestamp(record[key])
    except ValueError as exc:
        raise DataIntegrityError(
            f"{kind} record at index {idx} has invalid {key}: {record[key]!r}",
            context={"record_index": idx, "value": record[key]},
        ) from exc


def customers_from_mappings(records: Iterable[Mapping[str, Any]]) -> list[Customer]:
    """Validate raw customer dictionaries and return :class:`Customer` records."""
    customers: list[Customer] = []
    for idx, record in enumerate(records):
        _require(record, ("customer_id", "email", "registered_at"), kind="Customer", idx=idx)
        customers.append(
            Customer(
                customer_id=str(record["customer_id"]),
                name=str(record.get("name") or ""),
                email=str(record["email"]),
                registered_at=_timestamp_field(record, "registered_at", kind="Customer", idx=idx),
            )
        )
    return customers


def orders_from_mappings(records: Iterable[Mapping[str, Any]]) -> list[Order]:
    """Validate raw order dictionaries and return :class:`Order` records."""
    orders: list[Order] = []
    for idx, record in enumerate(records):
        _require(record, ("order_id", "customer_id", "status", "created_at"), kind="Order", idx=idx)
        order_id = str(record["order_id"])
        orders.append(
            Order(
                order_id=order_id,
                customer_id=str(record["customer_id"]),
                status=OrderStatus.parse(record["status"], order_id=order_id),
                created_at=_timestamp_field(record, "created_at", kind="Order", idx=idx),
            )
        )
    return orders


def line_items_from_mappings(records: Iterable[Mapping[str, Any]]) -> list[OrderLineItem]:
    """Validate raw line-item dictionaries and return :class:`OrderLineItem` records.

    Missing ``item_id`` values are replaced by ``"<order_id>#<index>"`` so
    error messages can still point at the row.
    """
    items: list[OrderLineItem] = []
    for idx, record in enumerate(records):
        _require(record, ("order_id", "quantity", "unit_price"), kind="Order item", idx=idx)
        order_id = str(record["order_id"])
        items.append(
            OrderLineItem(
                item_id=str(record.get("item_id") or f"{order_id}#{idx}"),
                order_id=order_id,
                product_id=str(record.get("product_id") or ""),
                quantity=to_quantity(record["quantity"], order_id=order_id),
                unit_price=to_price(record["unit_price"], order_id=order_id),
            )
        )
    return items


def index_customers(customers: Iterable[Customer]) -> dict[str, Customer]:
    """Map customer ids to records, rejecting duplicate ids and emails."""
    by_id: dict[str, Customer] = {}
    seen_emails: dict[str, str] = {}
    for customer in customers:
        if customer.customer_id in by_id:
            raise DataIntegrityError(
                f"Duplicate customer_id: {customer.customer_id}",
                identifier=customer.customer_id,
            )
        email_key = customer.email.strip().lower()
        if email_key in seen_emails:
            raise DataIntegrityError(
                f"Duplicate customer email {customer.email!r} "
                f"(customer_id={customer.customer_id}, "
                f"already used by customer_id={seen_emails[email_key]})",
                identifier=customer.customer_id,
                context={"email": customer.email},
            )
        seen_emails[email_key] = customer.customer_id
        by_id[customer.customer_id] = customer
    return by_id


def customer_contacts(customers: Iterable[Customer]) -> dict[str, CustomerContact]:
    """Return the ``customer_id -> (name, email)`` mapping used by the report."""
    return {
        customer_id: CustomerContact(name=customer.name, email=customer.email)
        for customer_id, customer in index_customers(customers).items()
    }


def join_purchase_lines(
    customers: Iterable[Customer],
    orders: Iterable[Order],
    line_items: Iterable[OrderLineItem],
) -> list[PurchaseLine]:
    """Join line items to their orders and owning customers.

    Lookups go through dictionaries keyed by identifier, so the join is
    linear in the number of line items. Lines of every status are
    returned; the aggregator decides which ones count.

    Raises
    ------
    DataIntegrityError
        If a line item references an unknown order, an order references an
        unknown customer, or any identifier is duplicated.
    """
    customer_index = index_customers(customers)

    order_index: dict[str, Order] = {}
    for order in orders:
        if order.order_id in order_index:
            raise DataIntegrityError(
                f"Duplicate order_id: {order.order_id}", identifier=order.order_id
            )
        if order.customer_id not in customer_index:
            raise DataIntegrityError(
                f"Order {order.order_id} references unknown customer_id={order.customer_id}",
                identifier=order.order_id,
                context={"customer_id": order.customer_id},
            )
        order_index[order.order_id] = order

    lines: list[PurchaseLine] = []
    seen_items: set[str] = set()
    for item in line_items:
        if item.item_id in seen_items:
            raise DataIntegrityError(
                f"Duplicate line item id: {item.item_id}", identifier=item.item_id
            )
        seen_items.add(item.item_id)

        order = order_index.get(item.order_id)
        if order is None:
            raise DataIntegrityError(
                f"Line item {item.item_id} references unknown order_id={item.order_id}",
                identifier=item.item_id,
                context={"order_id": item.order_id},
            )
        lines.append(
            PurchaseLine(
                customer_id=order.customer_id,
                order_id=order.order_id,
                order_status=order.status,
                order_created_at=order.created_at,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
        )
    return lines
