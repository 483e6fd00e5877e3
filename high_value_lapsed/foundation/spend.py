"""Lifetime spend aggregation over completed orders.

Reduces joined purchase lines to one :class:`CustomerSpendSummary` per
customer who has at least one completed order. Lines from pending,
cancelled, refunded or otherwise non-completed orders are validated but
never counted.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from high_value_lapsed.foundation.errors import DataIntegrityError
from high_value_lapsed.foundation.records import (
    OrderStatus,
    PurchaseLine,
    check_line_amounts,
)

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CustomerSpendSummary:
    """Completed-order spend for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    total_spend:
        Exact sum of quantity × unit price over completed-order line items
    last_completed_order_ts:
        Creation timestamp of the customer's most recent completed order
    completed_orders:
        Number of distinct completed orders contributing to the total
    """

    customer_id: str
    total_spend: Decimal
    last_completed_order_ts: datetime
    completed_orders: int

    def __post_init__(self) -> None:
        if self.completed_orders <= 0:
            raise ValueError(
                f"Summary requires at least one completed order (customer_id={self.customer_id})"
            )
        if self.total_spend < 0:
            raise ValueError(
                f"Total spend cannot be negative: {self.total_spend} (customer_id={self.customer_id})"
            )


def _validate_line(line: object, idx: int) -> PurchaseLine:
    if not isinstance(line, PurchaseLine):
        raise DataIntegrityError(
            f"Purchase line at index {idx} has unexpected type {type(line).__name__}",
            context={"record_index": idx},
        )
    if not isinstance(line.order_status, OrderStatus):
        raise DataIntegrityError(
            f"Purchase line at index {idx} has invalid status {line.order_status!r} "
            f"(order_id={line.order_id})",
            identifier=line.order_id,
            context={"record_index": idx},
        )
    if not isinstance(line.order_created_at, datetime):
        raise DataIntegrityError(
            f"Purchase line at index {idx} has no order timestamp (order_id={line.order_id})",
            identifier=line.order_id,
            context={"record_index": idx, "value": line.order_created_at},
        )
    try:
        check_line_amounts(
            line.quantity, line.unit_price, identifier=line.order_id, order_id=line.order_id
        )
    except DataIntegrityError as exc:
        exc.context.setdefault("record_index", idx)
        raise
    return line


def _summarise_groups(
    groups: dict[str, list[PurchaseLine]],
) -> list[CustomerSpendSummary]:
    """Reduce pre-grouped completed lines to summaries.

    Runs in multiprocessing workers for large inputs, so it only touches
    its own chunk.
    """
    summaries: list[CustomerSpendSummary] = []
    for customer_id, lines in groups.items():
        total = Decimal("0")
        last_ts = lines[0].order_created_at
        order_ids: set[str] = set()
        for line in lines:
            total += line.line_total
            if line.order_created_at > last_ts:
                last_ts = line.order_created_at
            order_ids.add(line.order_id)

        if total <= 0:
            continue

        summaries.append(
            CustomerSpendSummary(
                customer_id=customer_id,
                total_spend=total,
                last_completed_order_ts=last_ts,
                completed_orders=len(order_ids),
            )
        )
    return summaries


def aggregate_customer_spend(
    lines: Iterable[PurchaseLine],
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> list[CustomerSpendSummary]:
    """Aggregate lifetime completed-order spend per customer.

    Every line is validated, whatever its order status, so corrupt
    records abort the run instead of silently disappearing with a
    cancelled order. Only ``completed`` lines contribute to spend and to
    the last-order timestamp.

    **Exclusions**: customers without a completed order are not emitted,
    so they stay out of the decile denominator. Totals are exact sums and
    are never rounded here.

    **Timezone Assumptions**: order timestamps must be either all
    timezone-aware or all naive. Mixing them raises
    :class:`DataIntegrityError`.

    **Parallel Processing**: groups are disjoint, so once the number of
    paying customers reaches ``parallel_threshold`` they are split into
    chunks and reduced by a process pool. Output is identical to the
    serial path.

    Parameters
    ----------
    lines:
        Joined purchase lines for all order statuses.
    parallel:
        Enable parallel processing (default: True).
    parallel_threshold:
        Number of paying customers above which to use the process pool
        (default: 1,000,000).
    n_workers:
        Number of worker processes. If None (default), uses CPU count.

    Returns
    -------
    list[CustomerSpendSummary]
        One summary per paying customer, sorted by customer_id

    Raises
    ------
    DataIntegrityError
        If any line has a non-positive quantity or price, an invalid
        status or timestamp, or timezone awareness differs across lines.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> lines = [
    ...     PurchaseLine("C1", "O1", OrderStatus.COMPLETED, datetime(2024, 1, 5), 1, Decimal("50")),
    ...     PurchaseLine("C1", "O2", OrderStatus.CANCELLED, datetime(2024, 2, 5), 1, Decimal("500")),
    ... ]
    >>> summary = aggregate_customer_spend(lines)[0]
    >>> summary.total_spend
    Decimal('50.00')
    """
    groups: dict[str, list[PurchaseLine]] = defaultdict(list)
    seen_customers: set[str] = set()
    tz_aware: bool | None = None

    for idx, raw_line in enumerate(lines):
        line = _validate_line(raw_line, idx)
        aware = line.order_created_at.tzinfo is not None
        if tz_aware is None:
            tz_aware = aware
        elif aware != tz_aware:
            raise DataIntegrityError(
                "Order timestamps mix timezone-aware and naive values "
                f"(order_id={line.order_id})",
                identifier=line.order_id,
                context={"record_index": idx},
            )

        seen_customers.add(line.customer_id)
        if line.is_completed:
            groups[line.customer_id].append(line)

    if not groups:
        logger.info(
            "No completed orders among %d customers with orders", len(seen_customers)
        )
        return []

    num_customers = len(groups)
    use_parallel = parallel and num_customers >= parallel_threshold

    if use_parallel:
        if n_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, n_workers)

        group_items = list(groups.items())
        chunk_size = max(1, num_customers // workers)
        chunks = [
            (dict(group_items[i : i + chunk_size]),)
            for i in range(0, num_customers, chunk_size)
        ]
        logger.info(
            "Aggregating %d customers across %d workers (%d chunks)",
            num_customers,
            workers,
            len(chunks),
        )
        with multiprocessing.Pool(processes=workers) as pool:
            chunk_results = pool.starmap(_summarise_groups, chunks)

        summaries: list[CustomerSpendSummary] = []
        for chunk_result in chunk_results:
            summaries.extend(chunk_result)
    else:
        summaries = _summarise_groups(dict(groups))

    dropped = len(seen_customers) - len(summaries)
    if dropped:
        logger.debug(
            "Excluded %d customers without completed spend from aggregation", dropped
        )

    summaries.sort(key=lambda s: s.customer_id)
    logger.info("Aggregated completed spend for %d customers", len(summaries))
    return summaries

