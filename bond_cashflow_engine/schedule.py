from __future__ import annotations

import logging
import pandas as pd
from dataclasses import dataclass
from typing import List

from .errors import ValidationError
from .terms import BondTerms, GraceKind, validate_terms
from .utils import coupon_dates, months_between, period_months


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodSlot:
    index: int
    date: pd.Timestamp
    grace: GraceKind


def count_periods(terms: BondTerms) -> int:
    """
    Number of coupon periods between issue and maturity.
    The tenor must be a whole number of coupon periods; anything else is rejected.
    """
    months, exact = months_between(terms.issue_date, terms.maturity_date)
    step = period_months(terms.frequency)
    if not exact or months % step != 0 or months == 0:
        raise ValidationError(
            f"tenor {terms.issue_date.date()} -> {terms.maturity_date.date()} is not a whole "
            f"number of {step}-month periods",
            bond_id=terms.bond_id,
        )
    return months // step


def build_schedule(terms: BondTerms) -> List[PeriodSlot]:
    """
    Period 0 (issuance) followed by periods 1..N with their grace classification.
    Validates the terms first, so nothing downstream runs on a bad record.
    """
    validate_terms(terms)
    n = count_periods(terms)

    for k, _ in terms.grace:
        if not (1 <= k <= n):
            raise ValidationError(f"grace period index outside [1, {n}]", bond_id=terms.bond_id, period=k)

    dates = coupon_dates(terms.issue_date, n, terms.frequency)
    slots = [PeriodSlot(0, dates[0], GraceKind.NONE)]
    slots.extend(PeriodSlot(k, dates[k], terms.grace_kind(k)) for k in range(1, n + 1))

    logger.debug("bond %s: %d periods from %s", terms.bond_id, n, dates[0].date())
    return slots
