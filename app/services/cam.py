"""Credit appraisal arithmetic.

ROI is a per-day percentage: a loan of 10,000 at roi=1 for 30 days repays
10,000 + 10,000 * 30 * 1 / 100 = 13,000.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

REQUIRED_KEYS = (
    "loanRecommended",
    "roi",
    "eligibleTenure",
    "disbursalDate",
    "repaymentDate",
)

_CENTS = Decimal("0.01")


def as_datetime(value: date | datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def tenure_days(disbursal_date: date | datetime | str, repayment_date: date | datetime | str) -> int:
    delta = as_datetime(repayment_date) - as_datetime(disbursal_date)
    return math.ceil(delta.total_seconds() / 86400)


def repayment_amount(loan_recommended: Any, roi: Any, tenure: Any) -> Decimal:
    loan = Decimal(str(loan_recommended))
    interest = loan * Decimal(str(tenure)) * Decimal(str(roi)) / Decimal(100)
    return (loan + interest).quantize(_CENTS, rounding=ROUND_HALF_UP)


def missing_keys(details: dict[str, Any] | None) -> list[str]:
    details = details or {}
    return [key for key in REQUIRED_KEYS if details.get(key) in (None, "")]


def reschedule(details: dict[str, Any], actual_disbursal_date: date | datetime | str) -> dict[str, Any] | None:
    """Recompute tenure and repayment when the money went out on a different day than planned."""
    actual = as_datetime(actual_disbursal_date)
    planned = details.get("disbursalDate")
    if planned and as_datetime(planned).date() == actual.date():
        return None
    tenure = tenure_days(actual, details["repaymentDate"])
    amount = repayment_amount(details["loanRecommended"], details["roi"], tenure)
    return {
        **details,
        "eligibleTenure": tenure,
        "disbursalDate": actual.isoformat(),
        "repaymentAmount": float(amount),
    }
