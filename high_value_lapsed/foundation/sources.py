"""Record sources feeding the segmentation pipeline.

A record source is the read-only boundary with the record store. It hands
over fully materialised snapshots: the joined purchase lines and the
customer contact mapping. Nothing is streamed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence, runtime_checkable

from high_value_lapsed.foundation.errors import DataIntegrityError
from high_value_lapsed.foundation.records import (
    Customer,
    CustomerContact,
    Order,
    OrderLineItem,
    PurchaseLine,
    customer_contacts,
    customers_from_mappings,
    join_purchase_lines,
    line_items_from_mappings,
    orders_from_mappings,
)

logger = logging.getLogger(__name__)

MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


@runtime_checkable
class RecordSource(Protocol):
    """Read contract with the record store."""

    def fetch_completed_order_line_items(self) -> Sequence[PurchaseLine]:
        """Return every line item joined to its order status and customer."""
        ...

    def fetch_customers(self) -> Mapping[str, CustomerContact]:
        """Return ``customer_id -> (name, email)``."""
        ...


class InMemoryRecordSource:
    """Record source over already loaded customer, order and line-item records.

    The join runs once, at construction, so integrity errors surface before
    any pipeline stage starts.
    """

    def __init__(
        self,
        customers: Iterable[Customer],
        orders: Iterable[Order],
        line_items: Iterable[OrderLineItem],
    ) -> None:
        customers = list(customers)
        self._lines = tuple(join_purchase_lines(customers, orders, line_items))
        self._contacts = customer_contacts(customers)

    @classmethod
    def from_mappings(
        cls,
        customers: Iterable[Mapping[str, Any]],
        orders: Iterable[Mapping[str, Any]],
        line_items: Iterable[Mapping[str, Any]],
    ) -> "InMemoryRecordSource":
        """Build a source from raw dictionaries (e.g. parsed JSON rows)."""
        return cls(
            customers_from_mappings(customers),
            orders_from_mappings(orders),
            line_items_from_mappings(line_items),
        )

    def fetch_completed_order_line_items(self) -> Sequence[PurchaseLine]:
        return self._lines

    def fetch_customers(self) -> Mapping[str, CustomerContact]:
        return dict(self._contacts)


class JsonRecordSource(InMemoryRecordSource):
    """Record source backed by a JSON export of the record store.

    The document is an object with ``customers``, ``orders`` and
    ``order_items`` arrays. Timestamps are ISO-8601 strings.
    """

    SECTIONS = ("customers", "orders", "order_items")

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        payload = _load_export(self.path)
        logger.info(
            "Loaded %d customers, %d orders, %d order items from %s",
            len(payload["customers"]),
            len(payload["orders"]),
            len(payload["order_items"]),
            self.path,
        )
        super().__init__(
            customers_from_mappings(payload["customers"]),
            orders_from_mappings(payload["orders"]),
            line_items_from_mappings(payload["order_items"]),
        )


def _load_export(path: Path) -> dict[str, list[Mapping[str, Any]]]:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    with resolved.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise DataIntegrityError(
            f"Expected a JSON object with {list(JsonRecordSource.SECTIONS)} in {resolved}"
        )

    sections: dict[str, list[Mapping[str, Any]]] = {}
    for name in JsonRecordSource.SECTIONS:
        rows = payload.get(name, [])
        if not isinstance(rows, list):
            raise DataIntegrityError(
                f"Section {name!r} in {resolved} must be a list", context={"section": name}
            )
        for idx, row in enumerate(rows):
            if not isinstance(row, dict):
                raise DataIntegrityError(
                    f"Section {name!r} row {idx} must be an object",
                    context={"section": name, "record_index": idx},
                )
        sections[name] = rows
    return sections
