from __future__ import annotations

import numpy as np
from typing import Sequence

from .errors import DataError
from .terms import BondTerms
from .utils import compound_to_period, period_fraction


def period_inflation_rates(terms: BondTerms, n_periods: int) -> np.ndarray:
    """
    Inflation applied to the principal in each period 1..n_periods (entry k-1 is
    period k). Zero everywhere when the bond is not indexed.
    """
    if not terms.inflation_indexed:
        return np.zeros(n_periods, dtype=float)

    series = terms.inflation
    if series is None or len(series) < n_periods:
        have = 0 if series is None else len(series)
        raise DataError(
            f"inflation series has {have} entries, {n_periods} periods need indexing",
            bond_id=terms.bond_id,
            period=have + 1,
        )

    raw = np.asarray(series.rates[:n_periods], dtype=float)
    if series.basis == "periodic":
        return raw

    frac = period_fraction(terms.frequency, terms.days_per_year)
    return compound_to_period(raw, frac)


def annual_inflation_rates(terms: BondTerms, n_periods: int) -> np.ndarray:
    """Annual-equivalent inflation per period, for reporting alongside the period rate."""
    if not terms.inflation_indexed or terms.inflation is None:
        return np.zeros(n_periods, dtype=float)
    raw = np.asarray(terms.inflation.rates[:n_periods], dtype=float)
    if terms.inflation.basis == "annual":
        return raw
    frac = period_fraction(terms.frequency, terms.days_per_year)
    return (1.0 + raw) ** (1.0 / frac) - 1.0


def index_balance(balance: float, rate: float) -> float:
    return balance * (1.0 + rate)


def indexed_principal_path(nominal: float, rates: Sequence[float]) -> np.ndarray:
    """
    Gross indexed principal: balance(0) = nominal,
    balance(k) = balance(k-1) * (1 + rate(k)). Returns n_periods + 1 values.
    """
    growth = np.cumprod(1.0 + np.asarray(rates, dtype=float))
    return nominal * np.r_[1.0, growth]
