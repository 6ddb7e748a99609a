from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from typing import Sequence

from .errors import DataError


@dataclass(frozen=True)
class RiskMetrics:
    """Duration and convexity of one view (issuer or investor), in years."""
    rate: float                 # periodic rate the flows were discounted at
    present_value: float        # sum of discounted flows over periods 1..N
    duration: float
    modified_duration: float
    convexity: float

    @property
    def total_ratio(self) -> float:
        """Duration + convexity, the combined decision ratio."""
        return self.duration + self.convexity


def discount_factors(rate: float, n_periods: int) -> np.ndarray:
    """(1 + rate)^-k for k = 0..n_periods."""
    k = np.arange(n_periods + 1, dtype=float)
    return (1.0 + rate) ** -k


def discounted_flows(flows: Sequence[float], rate: float) -> np.ndarray:
    cfs = np.asarray(flows, dtype=float)
    return cfs * discount_factors(rate, len(cfs) - 1)


def time_weighted_flows(flows: Sequence[float], rate: float) -> np.ndarray:
    disc = discounted_flows(flows, rate)
    return np.arange(len(disc), dtype=float) * disc


def convexity_weighted_flows(flows: Sequence[float], rate: float) -> np.ndarray:
    disc = discounted_flows(flows, rate)
    k = np.arange(len(disc), dtype=float)
    return k * (k + 1.0) * disc


def present_value(flows: Sequence[float], rate: float) -> float:
    """NPV of periods 1..N (the initial outlay at period 0 is excluded)."""
    return float(discounted_flows(flows, rate)[1:].sum())


def risk_measures(flows: Sequence[float], rate: float, period_years: float) -> RiskMetrics:
    """
    Macaulay duration, modified duration and convexity of a flow series.

    Sums run over k >= 1. Period-based figures are converted to years with
    period_years (one coupon period in years): duration scales by period_years,
    convexity by period_years ** 2.
    """
    cfs = np.asarray(flows, dtype=float)
    if len(cfs) < 2:
        raise DataError("flow series needs at least one period after issuance")

    disc = discounted_flows(cfs, rate)[1:]
    k = np.arange(1, len(cfs), dtype=float)
    pv = float(disc.sum())
    if pv == 0.0:
        raise DataError("discounted flows sum to zero; duration is undefined")

    duration_periods = float((k * disc).sum()) / pv
    convexity_periods = float((k * (k + 1.0) * disc).sum()) / (pv * (1.0 + rate) ** 2)

    duration = duration_periods * period_years
    return RiskMetrics(
        rate=rate,
        present_value=pv,
        duration=duration,
        modified_duration=duration / (1.0 + rate),
        convexity=convexity_periods * period_years ** 2,
    )
