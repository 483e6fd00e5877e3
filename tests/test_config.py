"""Tests for run configuration and recency windows."""

from datetime import date, datetime, timedelta, timezone

import pytest

from high_value_lapsed.foundation.config import (
    RecencyWindow,
    SegmentationConfig,
    parse_reference_date,
)
from high_value_lapsed.foundation.errors import ConfigurationError


class TestRecencyWindow:
    """Test RecencyWindow parsing and arithmetic."""

    def test_default_is_six_months(self):
        window = RecencyWindow()
        assert window.months == 6
        assert window.offset == timedelta(0)
        assert str(window) == "6M"

    @pytest.mark.parametrize(
        "text, months, days",
        [
            ("6M", 6, 0),
            ("6 months", 6, 0),
            ("1 month", 1, 0),
            ("3mo", 3, 0),
            ("1Y", 12, 0),
            ("180D", 0, 180),
            ("26W", 0, 182),
        ],
    )
    def test_parse_strings(self, text, months, days):
        window = RecencyWindow.parse(text)
        assert window.months == months
        assert window.offset == timedelta(days=days)

    def test_parse_timedelta(self):
        window = RecencyWindow.parse(timedelta(days=90))
        assert window.months == 0
        assert str(window) == "90D"

    @pytest.mark.parametrize("text", ["", "six months", "6", "-6M", "6 fortnights"])
    def test_unparseable_window_rejected(self, text):
        with pytest.raises(ConfigurationError, match="Cannot parse recency window"):
            RecencyWindow.parse(text)

    @pytest.mark.parametrize("value", ["0M", "0D", timedelta(0)])
    def test_zero_window_rejected(self, value):
        with pytest.raises(ConfigurationError, match="positive duration"):
            RecencyWindow.parse(value)

    def test_negative_window_rejected(self):
        with pytest.raises(ConfigurationError, match="cannot be negative"):
            RecencyWindow.parse(timedelta(days=-1))

    def test_subtract_months_clamps_to_month_end(self):
        window = RecencyWindow(months=6)
        assert window.subtract_from(datetime(2023, 8, 31)) == datetime(2023, 2, 28)
        assert window.subtract_from(datetime(2024, 8, 31)) == datetime(2024, 2, 29)

    def test_subtract_keeps_time_and_timezone(self):
        window = RecencyWindow(months=6)
        reference = datetime(2024, 7, 15, 13, 30, tzinfo=timezone.utc)
        assert window.subtract_from(reference) == datetime(
            2024, 1, 15, 13, 30, tzinfo=timezone.utc
        )

    def test_subtract_days(self):
        window = RecencyWindow.parse("30D")
        assert window.subtract_from(datetime(2024, 3, 1)) == datetime(2024, 1, 31)


class TestParseReferenceDate:
    """Test reference date coercion."""

    def test_date_becomes_midnight(self):
        assert parse_reference_date(date(2024, 6, 30)) == datetime(2024, 6, 30)

    def test_iso_string(self):
        assert parse_reference_date("2024-06-30T12:00:00") == datetime(2024, 6, 30, 12)

    @pytest.mark.parametrize("value", ["yesterday", "2024-13-01", 20240630])
    def test_unparseable_reference_date(self, value):
        with pytest.raises(ConfigurationError, match="Cannot parse reference date"):
            parse_reference_date(value)


class TestSegmentationConfig:
    """Test SegmentationConfig validation."""

    def test_defaults(self):
        config = SegmentationConfig.build(reference_date="2024-06-30")
        assert config.reference_date == datetime(2024, 6, 30)
        assert config.recency_window == RecencyWindow(months=6)
        assert config.top_percent == 10
        assert config.cutoff == datetime(2023, 12, 30)

    def test_none_values_use_defaults(self):
        config = SegmentationConfig.build(
            reference_date=datetime(2024, 6, 30), recency_window=None, top_percent=None
        )
        assert config.top_percent == 10

    def test_bad_window_becomes_configuration_error(self):
        with pytest.raises(ConfigurationError) as excinfo:
            SegmentationConfig.build(reference_date="2024-06-30", recency_window="-1M")
        assert excinfo.value.field == "recency_window"

    def test_bad_reference_date_becomes_configuration_error(self):
        with pytest.raises(ConfigurationError) as excinfo:
            SegmentationConfig.build(reference_date="not a date")
        assert excinfo.value.field == "reference_date"

    @pytest.mark.parametrize("top_percent", [0, -5, 101])
    def test_top_percent_range(self, top_percent):
        with pytest.raises(ConfigurationError) as excinfo:
            SegmentationConfig.build(reference_date="2024-06-30", top_percent=top_percent)
        assert excinfo.value.field == "top_percent"

    def test_missing_reference_date(self):
        with pytest.raises(ConfigurationError):
            SegmentationConfig.build()

    def test_config_is_frozen(self):
        config = SegmentationConfig.build(reference_date="2024-06-30")
        with pytest.raises(Exception):
            config.top_percent = 20

    def test_from_env(self):
        config = SegmentationConfig.from_env(
            {
                "HVL_REFERENCE_DATE": "2024-06-30",
                "HVL_RECENCY_WINDOW": "90D",
                "HVL_TOP_PERCENT": "5",
            }
        )
        assert config.reference_date == datetime(2024, 6, 30)
        assert config.recency_window == RecencyWindow(months=0, offset=timedelta(days=90))
        assert config.top_percent == 5

    def test_from_env_requires_reference_date(self):
        with pytest.raises(ConfigurationError, match="HVL_REFERENCE_DATE"):
            SegmentationConfig.from_env({})

    def test_naive_reference_date_read_as_utc_for_aware_data(self):
        config = SegmentationConfig.build(reference_date="2024-06-30")
        aligned = config.aligned_to_data(data_is_aware=True)

        assert aligned.reference_date == datetime(2024, 6, 30, tzinfo=timezone.utc)
        assert aligned.cutoff == datetime(2023, 12, 30, tzinfo=timezone.utc)
        assert aligned.recency_window == config.recency_window
        assert config.reference_date.tzinfo is None

    def test_alignment_leaves_matching_configs_alone(self):
        naive = SegmentationConfig.build(reference_date="2024-06-30")
        aware = SegmentationConfig.build(reference_date="2024-06-30T00:00:00+02:00")

        assert naive.aligned_to_data(data_is_aware=False) is naive
        assert aware.aligned_to_data(data_is_aware=True) is aware
        assert aware.aligned_to_data(data_is_aware=False) is aware
