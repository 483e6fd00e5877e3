"""Recency filter for high-value customers."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from high_value_lapsed.foundation.config import RecencyWindow
from high_value_lapsed.foundation.errors import ConfigurationError
from high_value_lapsed.segmentation.ranking import RankedCustomer

logger = logging.getLogger(__name__)


def calculate_recency_cutoff(
    reference_date: datetime, recency_window: RecencyWindow | str = RecencyWindow()
) -> datetime:
    """Return ``reference_date - recency_window``.

    >>> calculate_recency_cutoff(datetime(2024, 8, 31), "6M")
    datetime.datetime(2024, 2, 29, 0, 0)
    """
    return RecencyWindow.parse(recency_window).subtract_from(reference_date)


def is_lapsed(last_order_ts: datetime, cutoff: datetime) -> bool:
    """A customer is lapsed when the last completed order is at or before ``cutoff``."""
    return last_order_ts <= cutoff


def filter_lapsed_customers(
    ranked: Sequence[RankedCustomer],
    reference_date: datetime,
    recency_window: RecencyWindow | str = RecencyWindow(),
) -> list[RankedCustomer]:
    """Keep ranked customers whose last completed order is at or before the cutoff.

    The boundary is inclusive: an order placed exactly at
    ``reference_date - recency_window`` counts as lapsed, one placed a day
    later does not. Input order is preserved.

    Raises
    ------
    ConfigurationError
        If the reference date and the order timestamps disagree on
        timezone awareness.
    """
    cutoff = calculate_recency_cutoff(reference_date, recency_window)

    lapsed: list[RankedCustomer] = []
    for customer in ranked:
        last_ts = customer.last_completed_order_ts
        if (last_ts.tzinfo is None) != (cutoff.tzinfo is None):
            raise ConfigurationError(
                "Reference date and order timestamps must both be timezone-aware or both naive "
                f"(reference_date={reference_date.isoformat()}, customer_id={customer.customer_id})",
                field="reference_date",
            )
        if is_lapsed(last_ts, cutoff):
            lapsed.append(customer)
        else:
            logger.debug(
                "Customer %s still active: last order %s after cutoff %s",
                customer.customer_id,
                last_ts.isoformat(),
                cutoff.isoformat(),
            )

    logger.info(
        "%d of %d high-value customers lapsed (cutoff %s)",
        len(lapsed),
        len(ranked),
        cutoff.isoformat(),
    )
    return lapsed
