"""High-value lapsed segmentation stages.

1. Value ranking - top decile of paying customers by completed spend
2. Lapsed filter - last completed order at or before the recency cutoff
3. Report assembly - join to customer name and email
"""

from .lapsed import calculate_recency_cutoff, filter_lapsed_customers, is_lapsed
from .pipeline import (
    SegmentationResult,
    find_high_value_lapsed,
    run_segmentation,
    segment_customers,
)
from .ranking import (
    RankedCustomer,
    ValueRanking,
    rank_customers_by_spend,
    top_decile_size,
)
from .report import REPORT_COLUMNS, HighValueLapsedRecord, assemble_report

__all__ = [
    # Ranking
    "RankedCustomer",
    "ValueRanking",
    "rank_customers_by_spend",
    "top_decile_size",
    # Lapsed filter
    "calculate_recency_cutoff",
    "filter_lapsed_customers",
    "is_lapsed",
    # Report
    "REPORT_COLUMNS",
    "HighValueLapsedRecord",
    "assemble_report",
    # Pipeline
    "SegmentationResult",
    "find_high_value_lapsed",
    "run_segmentation",
    "segment_customers",
]
