from __future__ import annotations

import logging
import pandas as pd
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .cashflows import CashFlowPeriod, assemble_cashflows, column, coupon_rate_path, periodic_discount_rate
from .config import DEFAULT_CONFIG, EngineConfig
from .consistency import check_mirrored_flows, check_principal_repaid
from .discount import RiskMetrics, present_value, risk_measures
from .errors import ConsistencyWarning, ConvergenceError
from .inflation import annual_inflation_rates, period_inflation_rates
from .schedule import build_schedule
from .terms import BondTerms
from .utils import annualize, period_days, period_fraction
from .yields import solve_periodic_yield


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Intermediates:
    """Derived inputs shared by every period of one computation."""
    n_periods: int
    periods_per_year: int
    period_days: int
    period_years: float
    periodic_coupon_rate: float     # period 1 rate; floating bonds vary per period
    effective_annual_rate: float
    periodic_discount_rate: float
    issuer_costs: float
    investor_costs: float


@dataclass(frozen=True)
class FinancialMetrics:
    """
    Aggregate figures for both parties, always produced together.

    tcea: issuer effective annual cost, net of costs and tax shield
    tcea_gross: issuer effective annual cost before the tax shield
    trea: investor effective annual return
    present_value: investor flows 1..N discounted at the bond's discount rate
    profit_loss: investor period-0 flow + present_value
    """
    investor: RiskMetrics
    issuer: RiskMetrics
    tcea: float
    tcea_gross: float
    trea: float
    present_value: float
    profit_loss: float

    @property
    def duration(self) -> float:
        return self.investor.duration

    @property
    def modified_duration(self) -> float:
        return self.investor.modified_duration

    @property
    def convexity(self) -> float:
        return self.investor.convexity


@dataclass(frozen=True)
class ValuationResult:
    terms: BondTerms
    intermediates: Intermediates
    schedule: Tuple[CashFlowPeriod, ...]
    metrics: Optional[FinancialMetrics]
    warnings: Tuple[ConsistencyWarning, ...] = ()
    errors: Tuple[str, ...] = ()
    computed_at: pd.Timestamp = field(default_factory=lambda: pd.Timestamp.now(tz="UTC"))

    @property
    def is_partial(self) -> bool:
        """True when the schedule is present but the metrics could not be produced."""
        return self.metrics is None

    @property
    def status(self) -> str:
        return "partial" if self.is_partial else "complete"


def compute_intermediates(terms: BondTerms, n_periods: int) -> Intermediates:
    periodic = float(coupon_rate_path(terms, n_periods)[0])
    frac = period_fraction(terms.frequency, terms.days_per_year)
    return Intermediates(
        n_periods=n_periods,
        periods_per_year=terms.frequency,
        period_days=period_days(terms.frequency),
        period_years=frac,
        periodic_coupon_rate=periodic,
        effective_annual_rate=(1.0 + periodic) ** (1.0 / frac) - 1.0,
        periodic_discount_rate=periodic_discount_rate(terms),
        issuer_costs=terms.issuer_costs,
        investor_costs=terms.investor_costs,
    )


def compute_schedule(terms: BondTerms) -> Tuple[Intermediates, Tuple[CashFlowPeriod, ...]]:
    """
    Validate the terms and build the full period schedule.
    Raises ValidationError or DataError; nothing is computed on failure.
    """
    slots = build_schedule(terms)
    n = len(slots) - 1
    rates = period_inflation_rates(terms, n)
    annual = annual_inflation_rates(terms, n)
    intermediates = compute_intermediates(terms, n)
    periods = assemble_cashflows(terms, slots, rates, annual)
    return intermediates, periods


def compute_metrics(
    terms: BondTerms,
    periods: Tuple[CashFlowPeriod, ...],
    config: EngineConfig = DEFAULT_CONFIG,
) -> FinancialMetrics:
    """
    Yields and risk figures for both views. Issuer and investor sums are kept
    separate. Raises ConvergenceError when any yield cannot be solved.
    """
    investor_flows = column(periods, "investor_flow")
    issuer_flows = column(periods, "issuer_flow")
    issuer_net_flows = column(periods, "issuer_flow_net")

    r_investor = solve_periodic_yield(investor_flows, config, terms.bond_id)
    r_issuer_net = solve_periodic_yield(issuer_net_flows, config, terms.bond_id)
    r_issuer = solve_periodic_yield(issuer_flows, config, terms.bond_id)

    disc = periodic_discount_rate(terms)
    if config.metrics_discount_source == "solved_yield":
        investor_rate, issuer_rate = r_investor, r_issuer
    else:
        investor_rate = issuer_rate = disc

    frac = period_fraction(terms.frequency, terms.days_per_year)
    pv = present_value(investor_flows, disc)

    return FinancialMetrics(
        investor=risk_measures(investor_flows, investor_rate, frac),
        issuer=risk_measures(issuer_flows, issuer_rate, frac),
        tcea=annualize(r_issuer_net, terms.frequency),
        tcea_gross=annualize(r_issuer, terms.frequency),
        trea=annualize(r_investor, terms.frequency),
        present_value=pv,
        profit_loss=float(investor_flows[0]) + pv,
    )


def compute_bond(terms: BondTerms, config: EngineConfig = DEFAULT_CONFIG) -> ValuationResult:
    """
    Full pipeline: schedule -> metrics -> consistency check.

    A root-finder failure degrades the result to a partial one (schedule without
    metrics, error recorded); validation and data errors propagate.
    """
    intermediates, periods = compute_schedule(terms)

    errors: List[str] = []
    metrics: Optional[FinancialMetrics] = None
    try:
        metrics = compute_metrics(terms, periods, config)
    except ConvergenceError as exc:
        logger.warning("bond %s: metrics unavailable, returning partial result: %s", terms.bond_id, exc)
        errors.append(str(exc))

    warnings = check_mirrored_flows(periods, config, terms.bond_id)
    if not check_principal_repaid(periods, config, terms.bond_id):
        errors.append("principal not fully repaid by maturity")

    logger.debug("bond %s: %d periods, %d warnings", terms.bond_id, intermediates.n_periods, len(warnings))
    return ValuationResult(
        terms=terms,
        intermediates=intermediates,
        schedule=periods,
        metrics=metrics,
        warnings=tuple(warnings),
        errors=tuple(errors),
    )
