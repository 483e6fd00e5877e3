"""Shared utilities for pandas conversion operations."""

from datetime import datetime
from decimal import Decimal
from typing import Mapping, Sequence

import pandas as pd  # type: ignore


def decimal_to_float(value: Decimal) -> float:
    """Convert Decimal to float for pandas compatibility."""
    return float(value)


def to_pydatetime(value: object) -> datetime:
    """Convert a pandas/numpy timestamp (or ISO string) to ``datetime``."""
    return pd.to_datetime(value).to_pydatetime()


def validate_columns(
    df: pd.DataFrame, columns: Sequence[str], *, frame_name: str
) -> None:
    """Raise ValueError if ``df`` lacks ``columns`` or has nulls in them."""
    missing_cols = set(columns) - set(df.columns)
    if missing_cols:
        raise ValueError(f"{frame_name} DataFrame missing required columns: {missing_cols}")

    if df.empty:
        return

    null_cols = df[list(columns)].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(
            f"Null/NaN values found in {frame_name} columns: {null_col_names}. "
            "Segmentation requires complete data."
        )


def renamed_records(
    df: pd.DataFrame, mapping: Mapping[str, str]
) -> list[dict[str, object]]:
    """Return rows as dicts keyed by canonical names (``mapping`` is canonical -> column)."""
    return [
        {canonical: record[column] for canonical, column in mapping.items()}
        for record in df.to_dict("records")
    ]
