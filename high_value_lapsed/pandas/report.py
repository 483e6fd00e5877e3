"""Pandas DataFrame adapters for segmentation output."""

from datetime import datetime
from typing import Optional, Sequence

import pandas as pd  # type: ignore

from high_value_lapsed.foundation.config import RecencyWindow, SegmentationConfig
from high_value_lapsed.foundation.sources import InMemoryRecordSource
from high_value_lapsed.foundation.spend import CustomerSpendSummary
from high_value_lapsed.segmentation.pipeline import run_segmentation
from high_value_lapsed.segmentation.report import REPORT_COLUMNS, HighValueLapsedRecord
from ._utils import decimal_to_float
from .records import dataframe_to_customers, dataframe_to_line_items, dataframe_to_orders

SUMMARY_COLUMNS = [
    "customer_id",
    "total_spend",
    "last_completed_order_ts",
    "completed_orders",
]


def summaries_to_dataframe(summaries: Sequence[CustomerSpendSummary]) -> pd.DataFrame:
    """Convert spend summaries to a DataFrame sorted by customer_id."""
    if not summaries:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    rows = [
        {
            "customer_id": s.customer_id,
            "total_spend": decimal_to_float(s.total_spend),
            "last_completed_order_ts": s.last_completed_order_ts,
            "completed_orders": s.completed_orders,
        }
        for s in summaries
    ]
    df = pd.DataFrame(rows)
    return df.sort_values("customer_id").reset_index(drop=True)


def report_to_dataframe(records: Sequence[HighValueLapsedRecord]) -> pd.DataFrame:
    """Convert report rows to a DataFrame.

    Row order is the ranking order (highest spend first) and is kept as is.
    """
    if not records:
        return pd.DataFrame(columns=list(REPORT_COLUMNS))

    rows = [
        {
            "customer_id": r.customer_id,
            "name": r.name,
            "email": r.email,
            "total_spend": decimal_to_float(r.total_spend),
            "last_completed_order_ts": r.last_completed_order_ts,
            "spend_rank": r.spend_rank,
            "days_since_last_order": r.days_since_last_order,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=list(REPORT_COLUMNS))


def find_high_value_lapsed_df(
    customers_df: pd.DataFrame,
    orders_df: pd.DataFrame,
    items_df: pd.DataFrame,
    reference_date: datetime | str,
    recency_window: RecencyWindow | str | None = None,
    top_percent: Optional[int] = None,
) -> pd.DataFrame:
    """Run the segmentation over DataFrames with default column names.

    Example:
        >>> report_df = find_high_value_lapsed_df(
        ...     customers_df, orders_df, items_df, reference_date="2024-06-30"
        ... )
        >>> report_df[["email", "total_spend"]].head()
    """
    config = SegmentationConfig.build(
        reference_date=reference_date,
        recency_window=recency_window,
        top_percent=top_percent,
    )
    source = InMemoryRecordSource(
        dataframe_to_customers(customers_df),
        dataframe_to_orders(orders_df),
        dataframe_to_line_items(items_df),
    )
    result = run_segmentation(source, config)
    return report_to_dataframe(result.records)
