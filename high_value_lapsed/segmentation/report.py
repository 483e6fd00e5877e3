"""Assemble the high-value lapsed re-engagement list."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Sequence

from high_value_lapsed.foundation.errors import DataIntegrityError
from high_value_lapsed.foundation.records import CustomerContact
from high_value_lapsed.segmentation.ranking import RankedCustomer

REPORT_COLUMNS = (
    "customer_id",
    "name",
    "email",
    "total_spend",
    "last_completed_order_ts",
    "spend_rank",
    "days_since_last_order",
)

MONEY_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class HighValueLapsedRecord:
    """One row of the re-engagement list.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    name:
        Customer display name
    email:
        Customer email
    total_spend:
        Lifetime completed-order spend
    last_completed_order_ts:
        Timestamp of the most recent completed order
    spend_rank:
        1-based position in the spend ranking of all paying customers
    days_since_last_order:
        Whole days between the last completed order and the reference date
    """

    customer_id: str
    name: str
    email: str
    total_spend: Decimal
    last_completed_order_ts: datetime
    spend_rank: int
    days_since_last_order: int

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable row; money is a string rounded to cents."""
        return {
            "customer_id": self.customer_id,
            "name": self.name,
            "email": self.email,
            "total_spend": str(
                self.total_spend.quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)
            ),
            "last_completed_order_ts": self.last_completed_order_ts.isoformat(),
            "spend_rank": self.spend_rank,
            "days_since_last_order": self.days_since_last_order,
        }


def assemble_report(
    lapsed: Sequence[RankedCustomer],
    customers: Mapping[str, CustomerContact],
    reference_date: datetime,
) -> list[HighValueLapsedRecord]:
    """Join lapsed high-value customers to their name and email.

    Rows keep the ranking order of ``lapsed``.

    Raises
    ------
    DataIntegrityError
        If a customer id has no entry in ``customers``. The whole report is
        rejected; no partial list is returned.
    """
    records: list[HighValueLapsedRecord] = []
    for customer in lapsed:
        contact = customers.get(customer.customer_id)
        if contact is None:
            raise DataIntegrityError(
                f"Spend summary references unknown customer_id={customer.customer_id}",
                identifier=customer.customer_id,
            )
        records.append(
            HighValueLapsedRecord(
                customer_id=customer.customer_id,
                name=contact.name,
                email=contact.email,
                total_spend=customer.total_spend,
                last_completed_order_ts=customer.last_completed_order_ts,
                spend_rank=customer.rank,
                days_since_last_order=(reference_date - customer.last_completed_order_ts).days,
            )
        )
    return records
