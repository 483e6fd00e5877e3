"""Tests for high-value ranking."""

from datetime import datetime
from decimal import Decimal

import pytest

from high_value_lapsed.foundation.errors import ConfigurationError, DataIntegrityError
from high_value_lapsed.foundation.spend import CustomerSpendSummary
from high_value_lapsed.segmentation.ranking import (
    rank_customers_by_spend,
    top_decile_size,
)


def summary(customer_id, spend, ts=datetime(2023, 1, 1)):
    return CustomerSpendSummary(
        customer_id=customer_id,
        total_spend=Decimal(str(spend)),
        last_completed_order_ts=ts,
        completed_orders=1,
    )


class TestTopDecileSize:
    """Test the ceil(N/10) admission count."""

    @pytest.mark.parametrize(
        "count, expected",
        [(0, 0), (1, 1), (9, 1), (10, 1), (11, 2), (19, 2), (20, 2), (21, 3), (100, 10), (101, 11)],
    )
    def test_ceiling_of_tenth(self, count, expected):
        assert top_decile_size(count) == expected

    def test_never_zero_when_anyone_qualifies(self):
        for count in range(1, 50):
            assert top_decile_size(count) >= 1

    def test_custom_percent(self):
        assert top_decile_size(10, top_percent=25) == 3
        assert top_decile_size(7, top_percent=100) == 7

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError):
            top_decile_size(-1)

    @pytest.mark.parametrize("top_percent", [0, 101])
    def test_percent_out_of_range(self, top_percent):
        with pytest.raises(ConfigurationError):
            top_decile_size(10, top_percent=top_percent)


class TestRankCustomersBySpend:
    """Test rank_customers_by_spend."""

    def test_empty_input(self):
        ranking = rank_customers_by_spend([])
        assert ranking.ranked == ()
        assert ranking.top_customers == ()
        assert ranking.qualifying_customers == 0
        assert ranking.spend_threshold is None

    def test_ten_customers_admit_highest_only(self):
        summaries = [summary(f"C{i:02d}", 10 * i) for i in range(1, 11)]
        ranking = rank_customers_by_spend(summaries)

        assert len(ranking.top_customers) == 1
        assert ranking.top_customers[0].customer_id == "C10"
        assert ranking.top_customers[0].total_spend == Decimal("100")
        assert ranking.spend_threshold == Decimal("100")

    def test_ranks_are_one_based_and_spend_descending(self):
        summaries = [summary("A", 5), summary("B", 50), summary("C", 20)]
        ranking = rank_customers_by_spend(summaries)

        assert [(r.rank, r.customer_id) for r in ranking.ranked] == [
            (1, "B"),
            (2, "C"),
            (3, "A"),
        ]
        spends = [r.total_spend for r in ranking.ranked]
        assert spends == sorted(spends, reverse=True)

    def test_ties_broken_by_customer_id(self):
        summaries = [summary("C3", 100), summary("C1", 100), summary("C2", 100)]
        ranking = rank_customers_by_spend(summaries)
        assert [r.customer_id for r in ranking.ranked] == ["C1", "C2", "C3"]
        assert ranking.top_customers[0].customer_id == "C1"

    def test_tie_at_boundary_not_expanded(self):
        """Exactly ceil(N/10) are admitted even when the next customer ties."""
        summaries = [summary(f"C{i:02d}", 100 if i < 3 else 1) for i in range(11)]
        ranking = rank_customers_by_spend(summaries)

        assert ranking.qualifying_customers == 11
        assert [r.customer_id for r in ranking.top_customers] == ["C00", "C01"]

    def test_identifier_order_is_lexicographic(self):
        summaries = [summary("C2", 10), summary("C10", 10)]
        ranking = rank_customers_by_spend(summaries)
        assert ranking.ranked[0].customer_id == "C10"

    def test_order_of_input_does_not_matter(self):
        summaries = [summary(f"C{i}", (i * 37) % 11 + 1) for i in range(30)]
        forward = rank_customers_by_spend(summaries)
        backward = rank_customers_by_spend(list(reversed(summaries)))
        assert forward == backward

    def test_zero_spend_summary_rejected(self):
        with pytest.raises(DataIntegrityError, match="without completed spend"):
            rank_customers_by_spend([summary("C1", 0)])

    def test_duplicate_customer_rejected(self):
        with pytest.raises(DataIntegrityError, match="ranked twice"):
            rank_customers_by_spend([summary("C1", 10), summary("C1", 20)])
