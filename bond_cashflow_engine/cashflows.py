from __future__ import annotations

import logging
import numpy as np
import pandas as pd
from dataclasses import dataclass, asdict
from typing import List, Sequence, Tuple

from .discount import discount_factors
from .errors import DataError
from .inflation import index_balance
from .schedule import PeriodSlot
from .terms import AmortizationPolicy, BondTerms, GraceKind, RateType
from .utils import compound_to_period, period_fraction, periodic_coupon_rate


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CashFlowPeriod:
    """
    One row of the schedule. Signs: issuer flows are negative when the issuer pays,
    investor flows positive when the investor receives. Period 0 is issuance.
    """
    period: int
    date: pd.Timestamp
    annual_inflation: float
    period_inflation: float
    grace: GraceKind
    principal: float            # outstanding balance carried into the period
    indexed_principal: float    # principal after this period's inflation step
    capitalized: float          # unpaid coupon rolled into the balance
    coupon: float
    amortization: float
    installment: float
    premium: float
    tax_shield: float
    issuer_flow: float          # gross, before tax shield
    issuer_flow_net: float
    investor_flow: float
    discounted_flow: float
    time_weighted: float
    convexity_weighted: float


def coupon_rate_path(terms: BondTerms, n_periods: int) -> np.ndarray:
    """
    Periodic coupon rate for each period 1..n_periods. Floating-rate bonds
    re-derive the rate every period from their annual rate series.
    """
    def _periodic(rate: float) -> float:
        return periodic_coupon_rate(
            rate,
            terms.rate_convention.value,
            terms.frequency,
            terms.days_per_year,
            terms.compounding_per_year,
        )

    if terms.rate_type == RateType.FIXED:
        return np.full(n_periods, _periodic(terms.coupon_rate), dtype=float)

    rates = terms.floating_rates or ()
    if len(rates) < n_periods:
        raise DataError(
            f"floating rate series has {len(rates)} entries, {n_periods} periods need a rate",
            bond_id=terms.bond_id,
            period=len(rates) + 1,
        )
    return np.array([_periodic(r) for r in rates[:n_periods]], dtype=float)


def periodic_discount_rate(terms: BondTerms) -> float:
    return compound_to_period(terms.discount_rate, period_fraction(terms.frequency, terms.days_per_year))


def _scheduled_amortization(policy: AmortizationPolicy, balance: float, rate: float, remaining: int) -> float:
    if policy == AmortizationPolicy.BULLET:
        return 0.0
    if policy == AmortizationPolicy.LEVEL_PRINCIPAL or rate == 0.0:
        return balance / remaining
    installment = balance * rate / (1.0 - (1.0 + rate) ** -remaining)
    return installment - balance * rate


def assemble_cashflows(
    terms: BondTerms,
    slots: Sequence[PeriodSlot],
    inflation_rates: Sequence[float],
    annual_inflation: Sequence[float],
) -> Tuple[CashFlowPeriod, ...]:
    """
    Fold over periods 1..N carrying the outstanding balance.

    Each period: index the carried balance, accrue the coupon, apply the grace kind
    and amortization policy, then derive issuer/investor flows and the investor-side
    discounting columns. The final period always redeems the full balance.
    """
    n = len(slots) - 1
    coupon_rates = coupon_rate_path(terms, n)
    disc_rate = periodic_discount_rate(terms)
    factors = discount_factors(disc_rate, n)

    rows: List[CashFlowPeriod] = [
        CashFlowPeriod(
            period=0,
            date=slots[0].date,
            annual_inflation=0.0,
            period_inflation=0.0,
            grace=GraceKind.NONE,
            principal=terms.nominal_value,
            indexed_principal=terms.nominal_value,
            capitalized=0.0,
            coupon=0.0,
            amortization=0.0,
            installment=0.0,
            premium=0.0,
            tax_shield=0.0,
            issuer_flow=terms.nominal_value - terms.issuer_costs,
            issuer_flow_net=terms.nominal_value - terms.issuer_costs,
            investor_flow=-terms.commercial_price,
            discounted_flow=-terms.commercial_price,
            time_weighted=0.0,
            convexity_weighted=0.0,
        )
    ]

    outstanding = float(terms.nominal_value)
    for slot in slots[1:]:
        k = slot.index
        infl = float(inflation_rates[k - 1])
        rate = float(coupon_rates[k - 1])

        principal = outstanding
        indexed = index_balance(principal, infl)
        accrued = indexed * rate
        capitalized = 0.0

        if slot.grace == GraceKind.TOTAL:
            coupon = 0.0
            if terms.capitalize_grace:
                capitalized = accrued
        else:
            coupon = accrued

        if k == n:
            amortization = indexed + capitalized
        elif slot.grace == GraceKind.NONE:
            amortization = _scheduled_amortization(terms.amortization, indexed, rate, n - k + 1)
        else:
            amortization = 0.0

        outstanding = indexed + capitalized - amortization

        premium = terms.premium_pct * terms.nominal_value if k == n else 0.0
        installment = coupon + amortization
        shield = coupon * terms.tax_rate
        investor = installment + premium
        discounted = investor * factors[k]

        rows.append(
            CashFlowPeriod(
                period=k,
                date=slot.date,
                annual_inflation=float(annual_inflation[k - 1]),
                period_inflation=infl,
                grace=slot.grace,
                principal=principal,
                indexed_principal=indexed,
                capitalized=capitalized,
                coupon=coupon,
                amortization=amortization,
                installment=installment,
                premium=premium,
                tax_shield=shield,
                issuer_flow=-investor,
                issuer_flow_net=-investor + shield,
                investor_flow=investor,
                discounted_flow=discounted,
                time_weighted=k * discounted,
                convexity_weighted=k * (k + 1) * discounted,
            )
        )

    logger.debug("bond %s: assembled %d periods, outstanding after N = %.10f", terms.bond_id, n, outstanding)
    return tuple(rows)


def column(periods: Sequence[CashFlowPeriod], name: str) -> np.ndarray:
    return np.array([getattr(p, name) for p in periods], dtype=float)


def to_frame(periods: Sequence[CashFlowPeriod]) -> pd.DataFrame:
    """Schedule as a DataFrame, one row per period, grace as its string value."""
    df = pd.DataFrame([asdict(p) for p in periods])
    if not df.empty:
        df["grace"] = df["grace"].map(lambda g: GraceKind(g).value)
    return df
