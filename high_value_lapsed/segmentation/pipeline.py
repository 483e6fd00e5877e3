"""End-to-end high-value lapsed segmentation.

Data flows strictly aggregator → ranker → lapsed filter → assembler.
Every stage is a pure function of the previous stage's output, so a run
either returns the full result or raises; partial lists are never
produced.

Quick Start
-----------
>>> from datetime import datetime
>>> from decimal import Decimal
>>> from high_value_lapsed.foundation.records import (
...     CustomerContact, OrderStatus, PurchaseLine,
... )
>>> lines = [
...     PurchaseLine("C1", "O1", OrderStatus.COMPLETED, datetime(2023, 1, 10), 2, Decimal("40")),
...     PurchaseLine("C2", "O2", OrderStatus.COMPLETED, datetime(2023, 11, 2), 1, Decimal("15")),
... ]
>>> contacts = {
...     "C1": CustomerContact("Ada", "ada@example.com"),
...     "C2": CustomerContact("Bo", "bo@example.com"),
... }
>>> result = find_high_value_lapsed(lines, contacts, datetime(2024, 1, 1))
>>> [record.customer_id for record in result.records]
['C1']
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional

from high_value_lapsed.foundation.config import RecencyWindow, SegmentationConfig
from high_value_lapsed.foundation.records import CustomerContact, PurchaseLine
from high_value_lapsed.foundation.sources import RecordSource
from high_value_lapsed.foundation.spend import aggregate_customer_spend
from high_value_lapsed.segmentation.lapsed import filter_lapsed_customers
from high_value_lapsed.segmentation.ranking import rank_customers_by_spend
from high_value_lapsed.segmentation.report import HighValueLapsedRecord, assemble_report

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentationResult:
    """Re-engagement list plus the figures needed to audit a run."""

    records: tuple[HighValueLapsedRecord, ...]
    reference_date: datetime
    recency_window: RecencyWindow
    cutoff: datetime
    top_percent: int
    qualifying_customers: int
    top_decile_count: int

    @property
    def lapsed_count(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the run.

        Contains no wall-clock values, so identical input gives identical
        output.
        """
        return {
            "reference_date": self.reference_date.isoformat(),
            "recency_window": str(self.recency_window),
            "cutoff": self.cutoff.isoformat(),
            "top_percent": self.top_percent,
            "qualifying_customers": self.qualifying_customers,
            "top_decile_count": self.top_decile_count,
            "lapsed_count": self.lapsed_count,
            "records": [record.as_dict() for record in self.records],
        }

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), indent=2, sort_keys=True)


def segment_customers(
    lines: Iterable[PurchaseLine],
    customers: Mapping[str, CustomerContact],
    config: SegmentationConfig,
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> SegmentationResult:
    """Run all four stages with an already validated configuration."""
    summaries = aggregate_customer_spend(
        lines,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
    if summaries:
        data_is_aware = summaries[0].last_completed_order_ts.tzinfo is not None
        aligned = config.aligned_to_data(data_is_aware)
        if aligned is not config:
            logger.info(
                "Naive reference date %s read as UTC to match timezone-aware orders",
                config.reference_date.isoformat(),
            )
            config = aligned

    ranking = rank_customers_by_spend(summaries, top_percent=config.top_percent)
    lapsed = filter_lapsed_customers(
        ranking.top_customers, config.reference_date, config.recency_window
    )
    records = assemble_report(lapsed, customers, config.reference_date)

    if not summaries:
        logger.info("No customers with completed orders; returning empty report")

    return SegmentationResult(
        records=tuple(records),
        reference_date=config.reference_date,
        recency_window=config.recency_window,
        cutoff=config.cutoff,
        top_percent=config.top_percent,
        qualifying_customers=ranking.qualifying_customers,
        top_decile_count=len(ranking.top_customers),
    )


def find_high_value_lapsed(
    lines: Iterable[PurchaseLine],
    customers: Mapping[str, CustomerContact],
    reference_date: datetime | str,
    recency_window: RecencyWindow | str | None = None,
    top_percent: int | None = None,
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> SegmentationResult:
    """Identify high-value customers whose last completed order has lapsed.

    Parameters
    ----------
    lines:
        Purchase lines joined to order status and customer, all statuses.
    customers:
        ``customer_id -> CustomerContact`` mapping.
    reference_date:
        Datetime (or ISO-8601 string) the recency window is measured from.
    recency_window:
        Window such as ``"6M"`` or ``"180D"`` (default: 6 months).
    top_percent:
        Share of paying customers treated as high value (default: 10).
    parallel, parallel_threshold, n_workers:
        Forwarded to :func:`aggregate_customer_spend`.

    Raises
    ------
    ConfigurationError
        If the reference date, recency window or top_percent is invalid.
    DataIntegrityError
        If the records violate a value or referential constraint.
    """
    config = SegmentationConfig.build(
        reference_date=reference_date,
        recency_window=recency_window,
        top_percent=top_percent,
    )
    return segment_customers(
        lines,
        customers,
        config,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )


def run_segmentation(
    source: RecordSource,
    config: SegmentationConfig,
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> SegmentationResult:
    """Read a snapshot from ``source`` and run the segmentation."""
    lines = source.fetch_completed_order_line_items()
    customers = source.fetch_customers()
    logger.info(
        "Running segmentation over %d purchase lines and %d customers "
        "(reference_date=%s, recency_window=%s, top_percent=%d)",
        len(lines),
        len(customers),
        config.reference_date.isoformat(),
        config.recency_window,
        config.top_percent,
    )
    return segment_customers(
        lines,
        customers,
        config,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
