"""Identify high-value lapsed customers for re-engagement campaigns.

A customer is *high value* when their lifetime completed-order spend ranks
in the top decile of paying customers, and *lapsed* when their most recent
completed order is at or before ``reference_date - recency_window``.
"""

from .foundation import (
    ConfigurationError,
    DataIntegrityError,
    RecencyWindow,
    SegmentationConfig,
)
from .segmentation import (
    HighValueLapsedRecord,
    SegmentationResult,
    find_high_value_lapsed,
    run_segmentation,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DataIntegrityError",
    "HighValueLapsedRecord",
    "RecencyWindow",
    "SegmentationConfig",
    "SegmentationResult",
    "find_high_value_lapsed",
    "run_segmentation",
]
