"""Run configuration: reference date, recency window and decile size."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Mapping

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from high_value_lapsed.foundation.errors import ConfigurationError
from high_value_lapsed.foundation.records import parse_timestamp

DEFAULT_RECENCY_MONTHS = 6

# Top decile
DEFAULT_TOP_PERCENT = 10

ENV_REFERENCE_DATE = "HVL_REFERENCE_DATE"
ENV_RECENCY_WINDOW = "HVL_RECENCY_WINDOW"
ENV_TOP_PERCENT = "HVL_TOP_PERCENT"

_WINDOW_PATTERN = re.compile(
    r"^\s*(?P<count>\d+)\s*(?P<unit>d|days?|w|weeks?|m|mo|months?|y|years?)\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class RecencyWindow:
    """How far back from the reference date a purchase still counts as recent.

    A window combines a calendar part (``months``) with a fixed-length part
    (``offset``). Calendar months are subtracted first using
    :class:`pandas.DateOffset`, which clamps to the last valid day of the
    target month (Aug 31 minus 6 months is Feb 28/29).

    Examples
    --------
    >>> RecencyWindow.parse("6M")
    RecencyWindow(months=6, offset=datetime.timedelta(0))
    >>> RecencyWindow.parse("180 days").offset.days
    180
    """

    months: int = DEFAULT_RECENCY_MONTHS
    offset: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.months < 0 or self.offset < timedelta(0):
            raise ConfigurationError(
                f"Recency window cannot be negative: months={self.months}, offset={self.offset}",
                field="recency_window",
            )
        if self.months == 0 and self.offset == timedelta(0):
            raise ConfigurationError(
                "Recency window must be a positive duration", field="recency_window"
            )

    @classmethod
    def parse(cls, value: object) -> "RecencyWindow":
        """Build a window from ``"6M"``, ``"26W"``, ``"180D"``, ``"1Y"`` or a timedelta."""
        if isinstance(value, RecencyWindow):
            return value
        if isinstance(value, timedelta):
            return cls(months=0, offset=value)
        if isinstance(value, str):
            match = _WINDOW_PATTERN.match(value)
            if match is None:
                raise ConfigurationError(
                    f"Cannot parse recency window {value!r}; expected e.g. '6M', '180D', '26W', '1Y'",
                    field="recency_window",
                )
            count = int(match.group("count"))
            unit = match.group("unit").lower()[0]
            if unit == "d":
                return cls(months=0, offset=timedelta(days=count))
            if unit == "w":
                return cls(months=0, offset=timedelta(weeks=count))
            if unit == "y":
                return cls(months=12 * count)
            return cls(months=count)
        raise ConfigurationError(
            f"Unsupported recency window type: {type(value).__name__}",
            field="recency_window",
        )

    def subtract_from(self, reference: datetime) -> datetime:
        """Return ``reference`` moved back by this window."""
        moved = reference
        if self.months:
            moved = (pd.Timestamp(reference) - pd.DateOffset(months=self.months)).to_pydatetime()
        return moved - self.offset

    def __str__(self) -> str:
        parts: list[str] = []
        if self.months:
            parts.append(f"{self.months}M")
        if self.offset:
            if self.offset % timedelta(days=1) == timedelta(0):
                parts.append(f"{self.offset.days}D")
            else:
                parts.append(f"{self.offset.total_seconds():g}S")
        return "".join(parts)


def parse_reference_date(value: object) -> datetime:
    """Return the reference date as a datetime.

    Plain dates are taken at midnight. Strings must be ISO-8601.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"Cannot parse reference date {value!r}", field="reference_date"
        ) from exc


class SegmentationConfig(BaseModel):
    """Caller-supplied parameters for one segmentation run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    reference_date: datetime = Field(
        description="Point in time the recency window is measured back from"
    )
    recency_window: RecencyWindow = Field(
        default_factory=RecencyWindow,
        description="Minimum time since the last completed order (default 6 months)",
    )
    top_percent: int = Field(
        default=DEFAULT_TOP_PERCENT,
        gt=0,
        le=100,
        description="Share of paying customers admitted as high value (default 10)",
    )

    @field_validator("reference_date", mode="before")
    @classmethod
    def _coerce_reference_date(cls, value: Any) -> datetime:
        return parse_reference_date(value)

    @field_validator("recency_window", mode="plain")
    @classmethod
    def _coerce_recency_window(cls, value: Any) -> RecencyWindow:
        return RecencyWindow.parse(value)

    @classmethod
    def build(cls, **values: Any) -> "SegmentationConfig":
        """Validate ``values``, raising :class:`ConfigurationError` on failure.

        ``None`` values are dropped so field defaults apply.
        """
        cleaned = {key: value for key, value in values.items() if value is not None}
        try:
            return cls(**cleaned)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            message = str(first.get("msg", exc)).removeprefix("Value error, ")
            raise ConfigurationError(
                f"Invalid configuration for {field}: {message}", field=field
            ) from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SegmentationConfig":
        """Read configuration from ``HVL_*`` environment variables."""
        env = os.environ if environ is None else environ
        reference_date = env.get(ENV_REFERENCE_DATE)
        if not reference_date:
            raise ConfigurationError(
                f"{ENV_REFERENCE_DATE} must be set", field="reference_date"
            )
        top_percent = env.get(ENV_TOP_PERCENT)
        return cls.build(
            reference_date=reference_date,
            recency_window=env.get(ENV_RECENCY_WINDOW),
            top_percent=top_percent,
        )

    def aligned_to_data(self, data_is_aware: bool) -> "SegmentationConfig":
        """Return a config whose reference date can be compared with the data.

        A naive reference date (such as a plain ``YYYY-MM-DD``) used against
        timezone-aware order timestamps is read as UTC. Every other
        combination is returned unchanged.
        """
        if data_is_aware and self.reference_date.tzinfo is None:
            return self.model_copy(
                update={"reference_date": self.reference_date.replace(tzinfo=timezone.utc)}
            )
        return self

    @property
    def cutoff(self) -> datetime:
        """Last-order timestamps at or before this instant count as lapsed."""
        return self.recency_window.subtract_from(self.reference_date)
