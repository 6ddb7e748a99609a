from __future__ import annotations

import pandas as pd
from dataclasses import dataclass, asdict, fields
from typing import List, Optional, Sequence, Tuple, Type, Union

from .cashflows import CashFlowPeriod
from .terms import GraceKind, Role


@dataclass(frozen=True)
class PeriodCore:
    period: int
    date: pd.Timestamp
    annual_inflation: float
    period_inflation: float
    grace: GraceKind
    principal: float
    indexed_principal: float
    coupon: float
    amortization: float
    installment: float
    premium: float


@dataclass(frozen=True)
class IssuerView(PeriodCore):
    tax_shield: float
    issuer_flow: float
    issuer_flow_net: float


@dataclass(frozen=True)
class InvestorView(PeriodCore):
    investor_flow: float
    discounted_flow: float
    time_weighted: float
    convexity_weighted: float


PeriodView = Union[IssuerView, InvestorView]

_VIEW_TYPES = {Role.ISSUER: IssuerView, Role.INVESTOR: InvestorView}


def view_type(role: Union[Role, str]) -> Type[PeriodCore]:
    return _VIEW_TYPES[Role(role)]


def view_columns(role: Union[Role, str]) -> Tuple[str, ...]:
    return tuple(f.name for f in fields(view_type(role)))


def project(periods: Sequence[CashFlowPeriod], role: Union[Role, str]) -> List[PeriodView]:
    """Role-shaped rows: each view only carries the fields meaningful to that party."""
    cls = view_type(role)
    names = view_columns(role)
    return [cls(**{name: getattr(p, name) for name in names}) for p in periods]


def filter_periods(periods: Sequence, period_from: Optional[int] = None, period_to: Optional[int] = None) -> list:
    """Inclusive [period_from, period_to] filter; open bounds when None."""
    lo = 0 if period_from is None else period_from
    hi = None if period_to is None else period_to
    if hi is not None and hi < lo:
        raise ValueError(f"period_to ({hi}) < period_from ({lo})")
    return [p for p in periods if p.period >= lo and (hi is None or p.period <= hi)]


@dataclass(frozen=True)
class FlowSummary:
    total_periods: int
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    issuer_total: float
    investor_total: float
    last_updated: pd.Timestamp


def summarize(periods: Sequence[CashFlowPeriod], last_updated: pd.Timestamp) -> FlowSummary:
    """Totals over the full schedule (never the filtered subset)."""
    return FlowSummary(
        total_periods=periods[-1].period,
        start_date=periods[0].date,
        end_date=periods[-1].date,
        issuer_total=float(sum(p.issuer_flow for p in periods)),
        investor_total=float(sum(p.investor_flow for p in periods)),
        last_updated=pd.Timestamp(last_updated),
    )


def views_frame(rows: Sequence[PeriodView], role: Union[Role, str]) -> pd.DataFrame:
    """DataFrame with the role's columns in declaration order (empty frame keeps headers)."""
    columns = list(view_columns(role))
    df = pd.DataFrame([asdict(r) for r in rows], columns=columns)
    if not df.empty:
        df["grace"] = df["grace"].map(lambda g: GraceKind(g).value)
    return df
