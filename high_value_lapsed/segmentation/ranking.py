"""High-value ranking of paying customers.

Customers are ordered by completed spend, highest first, and the top
``ceil(N × top_percent / 100)`` are admitted as high value, where ``N``
counts only customers with at least one completed order. With the default
``top_percent=10`` this is the top decile.

Admission is count-based (not NTILE buckets or interpolated percentiles),
so at least one customer is admitted whenever anyone has paid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from high_value_lapsed.foundation.config import DEFAULT_TOP_PERCENT
from high_value_lapsed.foundation.errors import ConfigurationError, DataIntegrityError
from high_value_lapsed.foundation.spend import CustomerSpendSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedCustomer:
    """A spend summary with its 1-based position in the spend ranking."""

    rank: int
    summary: CustomerSpendSummary

    @property
    def customer_id(self) -> str:
        return self.summary.customer_id

    @property
    def total_spend(self) -> Decimal:
        return self.summary.total_spend

    @property
    def last_completed_order_ts(self) -> datetime:
        return self.summary.last_completed_order_ts


@dataclass(frozen=True)
class ValueRanking:
    """Result of ranking paying customers by spend.

    Attributes
    ----------
    ranked:
        All paying customers, highest spend first
    top_customers:
        The admitted prefix of ``ranked``
    qualifying_customers:
        Number of customers with completed spend (the decile denominator)
    top_percent:
        Share of qualifying customers admitted
    """

    ranked: tuple[RankedCustomer, ...]
    top_customers: tuple[RankedCustomer, ...]
    qualifying_customers: int
    top_percent: int

    @property
    def spend_threshold(self) -> Decimal | None:
        """Lowest spend among admitted customers, or None when nobody qualifies."""
        if not self.top_customers:
            return None
        return self.top_customers[-1].total_spend


def top_decile_size(qualifying_customers: int, top_percent: int = DEFAULT_TOP_PERCENT) -> int:
    """Number of customers admitted from ``qualifying_customers``.

    Computes ``ceil(qualifying_customers × top_percent / 100)`` in integer
    arithmetic.

    Examples
    --------
    >>> top_decile_size(0)
    0
    >>> top_decile_size(3)
    1
    >>> top_decile_size(10)
    1
    >>> top_decile_size(11)
    2
    """
    if qualifying_customers < 0:
        raise ValueError(f"Customer count cannot be negative: {qualifying_customers}")
    if not 0 < top_percent <= 100:
        raise ConfigurationError(
            f"top_percent must be in (0, 100]: {top_percent}", field="top_percent"
        )
    return -(-qualifying_customers * top_percent // 100)


def spend_sort_key(summary: CustomerSpendSummary) -> tuple[Decimal, str]:
    """Sort key giving spend descending, then customer_id ascending."""
    return (-summary.total_spend, summary.customer_id)


def rank_customers_by_spend(
    summaries: Sequence[CustomerSpendSummary],
    top_percent: int = DEFAULT_TOP_PERCENT,
) -> ValueRanking:
    """Rank paying customers and admit the top share.

    Ties on spend are broken by ``customer_id`` ascending (plain string
    order, so ``"C10"`` sorts before ``"C2"``), which makes the ranking
    reproducible across runs. Customers tied with the last admitted one
    are not pulled in: exactly ``top_decile_size(N)`` are admitted.

    Parameters
    ----------
    summaries:
        Output of :func:`aggregate_customer_spend`.
    top_percent:
        Share of customers to admit (default: 10 for the top decile).

    Returns
    -------
    ValueRanking

    Raises
    ------
    DataIntegrityError
        If a summary has non-positive spend or a customer appears twice.
    ConfigurationError
        If ``top_percent`` is outside (0, 100].
    """
    seen: set[str] = set()
    for summary in summaries:
        if summary.total_spend <= 0:
            raise DataIntegrityError(
                f"Customer without completed spend reached ranking (customer_id={summary.customer_id})",
                identifier=summary.customer_id,
            )
        if summary.customer_id in seen:
            raise DataIntegrityError(
                f"Customer ranked twice (customer_id={summary.customer_id})",
                identifier=summary.customer_id,
            )
        seen.add(summary.customer_id)

    admitted = top_decile_size(len(summaries), top_percent)
    ordered = sorted(summaries, key=spend_sort_key)
    ranked = tuple(
        RankedCustomer(rank=position, summary=summary)
        for position, summary in enumerate(ordered, start=1)
    )

    ranking = ValueRanking(
        ranked=ranked,
        top_customers=ranked[:admitted],
        qualifying_customers=len(summaries),
        top_percent=top_percent,
    )
    logger.info(
        "Admitted %d of %d paying customers as top %d%% (spend threshold %s)",
        admitted,
        len(summaries),
        top_percent,
        ranking.spend_threshold,
    )
    return ranking
