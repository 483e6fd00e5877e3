"""Pandas DataFrame adapters for the segmentation."""

from .records import (
    dataframe_to_customers,
    dataframe_to_line_items,
    dataframe_to_orders,
)
from .report import (
    find_high_value_lapsed_df,
    report_to_dataframe,
    summaries_to_dataframe,
)

__all__ = [
    # Source record adapters
    "dataframe_to_customers",
    "dataframe_to_orders",
    "dataframe_to_line_items",
    # Output adapters
    "summaries_to_dataframe",
    "report_to_dataframe",
    "find_high_value_lapsed_df",
]
