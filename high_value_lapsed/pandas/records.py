"""Pandas DataFrame adapters for source records."""

from typing import List

import pandas as pd  # type: ignore

from high_value_lapsed.foundation.records import (
    Customer,
    Order,
    OrderLineItem,
    customers_from_mappings,
    line_items_from_mappings,
    orders_from_mappings,
)
from ._utils import renamed_records, to_pydatetime, validate_columns


def dataframe_to_customers(
    customers_df: pd.DataFrame,
    customer_id_col: str = "customer_id",
    name_col: str = "name",
    email_col: str = "email",
    registered_at_col: str = "registered_at",
) -> List[Customer]:
    """Convert a customers DataFrame to :class:`Customer` records.

    Raises:
        ValueError: If required columns are missing or contain nulls.
        DataIntegrityError: If a row fails record validation.
    """
    mapping = {
        "customer_id": customer_id_col,
        "name": name_col,
        "email": email_col,
        "registered_at": registered_at_col,
    }
    validate_columns(customers_df, list(mapping.values()), frame_name="customers")
    if customers_df.empty:
        return []

    rows = renamed_records(customers_df, mapping)
    for row in rows:
        row["registered_at"] = to_pydatetime(row["registered_at"])
    return customers_from_mappings(rows)


def dataframe_to_orders(
    orders_df: pd.DataFrame,
    order_id_col: str = "order_id",
    customer_id_col: str = "customer_id",
    status_col: str = "status",
    created_at_col: str = "created_at",
) -> List[Order]:
    """Convert an orders DataFrame to :class:`Order` records."""
    mapping = {
        "order_id": order_id_col,
        "customer_id": customer_id_col,
        "status": status_col,
        "created_at": created_at_col,
    }
    validate_columns(orders_df, list(mapping.values()), frame_name="orders")
    if orders_df.empty:
        return []

    rows = renamed_records(orders_df, mapping)
    for row in rows:
        row["created_at"] = to_pydatetime(row["created_at"])
    return orders_from_mappings(rows)


def dataframe_to_line_items(
    items_df: pd.DataFrame,
    item_id_col: str = "item_id",
    order_id_col: str = "order_id",
    product_id_col: str = "product_id",
    quantity_col: str = "quantity",
    unit_price_col: str = "unit_price",
) -> List[OrderLineItem]:
    """Convert an order-items DataFrame to :class:`OrderLineItem` records.

    ``item_id`` and ``product_id`` columns are optional.
    """
    mapping = {
        "order_id": order_id_col,
        "quantity": quantity_col,
        "unit_price": unit_price_col,
    }
    validate_columns(items_df, list(mapping.values()), frame_name="order items")
    if items_df.empty:
        return []

    if item_id_col in items_df.columns:
        mapping["item_id"] = item_id_col
    if product_id_col in items_df.columns:
        mapping["product_id"] = product_id_col

    rows = renamed_records(items_df, mapping)
    for row in rows:
        for optional in ("item_id", "product_id"):
            if optional in row and pd.isna(row[optional]):
                row[optional] = None
    return line_items_from_mappings(rows)
