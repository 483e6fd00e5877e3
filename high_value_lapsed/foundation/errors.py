"""Error types raised by the segmentation pipeline.

Both errors subclass :class:`ValueError` so callers that already guard
against bad input with ``except ValueError`` keep working.
"""

from __future__ import annotations

from typing import Any, Mapping


class DataIntegrityError(ValueError):
    """Source records violate a referential or value constraint.

    Attributes
    ----------
    identifier:
        Identifier of the offending record (customer, order or line item),
        when one is available.
    context:
        Extra diagnostic values (record index, offending value, ...).
    """

    def __init__(
        self,
        message: str,
        *,
        identifier: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.context = dict(context or {})


class ConfigurationError(ValueError):
    """Caller-supplied configuration cannot be used for a run."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
