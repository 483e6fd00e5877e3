"""Foundational building blocks for the segmentation.

This package exposes the source record definitions, the record source
contract, run configuration, and the completed-order spend aggregator.
"""

from .config import RecencyWindow, SegmentationConfig, parse_reference_date
from .errors import ConfigurationError, DataIntegrityError
from .records import (
    Customer,
    CustomerContact,
    Order,
    OrderLineItem,
    OrderStatus,
    PurchaseLine,
    customer_contacts,
    join_purchase_lines,
)
from .sources import InMemoryRecordSource, JsonRecordSource, RecordSource
from .spend import CustomerSpendSummary, aggregate_customer_spend

__all__ = [
    "ConfigurationError",
    "Customer",
    "CustomerContact",
    "CustomerSpendSummary",
    "DataIntegrityError",
    "InMemoryRecordSource",
    "JsonRecordSource",
    "Order",
    "OrderLineItem",
    "OrderStatus",
    "PurchaseLine",
    "RecencyWindow",
    "RecordSource",
    "SegmentationConfig",
    "aggregate_customer_spend",
    "customer_contacts",
    "join_purchase_lines",
    "parse_reference_date",
]
