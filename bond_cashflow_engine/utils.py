from __future__ import annotations

import pandas as pd
from typing import List, Optional, Tuple
from functools import lru_cache


SUPPORTED_FREQUENCIES = (1, 2, 3, 4, 6, 12)
SUPPORTED_DAYS_PER_YEAR = (360, 365)


def period_months(frequency: int) -> int:
    """Calendar months between two coupon dates."""
    if frequency <= 0 or 12 % frequency != 0:
        raise ValueError(f"Unsupported frequency: {frequency}")
    return 12 // frequency


def period_days(frequency: int) -> int:
    """
    Commercial coupon-period length in days (30/60/90/120/180/360).
    Coupon periods are always counted on a 360-day commercial year; the bond's
    days_per_year only enters through period_fraction.
    """
    return 30 * period_months(frequency)


def period_fraction(frequency: int, days_per_year: int) -> float:
    """Length of one coupon period expressed in years of the bond's day count."""
    if days_per_year not in SUPPORTED_DAYS_PER_YEAR:
        raise ValueError(f"Unsupported days per year: {days_per_year}")
    return period_days(frequency) / float(days_per_year)


def compound_to_period(annual_rate: float, fraction: float) -> float:
    """Scale an annual effective rate to a sub-period by compounding, never linearly."""
    return (1.0 + annual_rate) ** fraction - 1.0


def effective_annual_rate(
    rate: float,
    convention: str,
    days_per_year: int,
    compounding_per_year: Optional[int] = None,
) -> float:
    """
    Effective annual rate from a quoted rate.

    - effective: returned unchanged
    - nominal with compounding m: (1 + rate/m')^m' - 1, m' = days_per_year / (360/m)
    """
    convention = convention.lower()
    if convention == "effective":
        return rate
    if convention != "nominal":
        raise ValueError(f"Unsupported rate convention: {convention}")
    if compounding_per_year is None:
        raise ValueError("Nominal-to-effective conversion needs a compounding frequency.")

    capitalization_days = 360.0 / compounding_per_year
    m = days_per_year / capitalization_days
    return (1.0 + rate / m) ** m - 1.0


def periodic_coupon_rate(
    rate: float,
    convention: str,
    frequency: int,
    days_per_year: int,
    compounding_per_year: Optional[int] = None,
) -> float:
    """
    Coupon rate applied to the indexed balance in one period.

    A nominal rate without an explicit compounding frequency is split pro rata over
    the period (5% semiannual on a 360-day year -> 2.5%).
    """
    frac = period_fraction(frequency, days_per_year)
    if convention.lower() == "nominal" and compounding_per_year is None:
        return rate * frac
    tea = effective_annual_rate(rate, convention, days_per_year, compounding_per_year)
    return compound_to_period(tea, frac)


def annualize(periodic_rate: float, frequency: int) -> float:
    """(1 + r)^frequency - 1."""
    return (1.0 + periodic_rate) ** frequency - 1.0


def months_between(start: pd.Timestamp, end: pd.Timestamp) -> Tuple[int, bool]:
    """
    Whole calendar months from start to end, and whether stepping start by that
    many months lands exactly on end.
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if start + pd.DateOffset(months=months) > end:
        months -= 1
    exact = start + pd.DateOffset(months=months) == end
    return months, exact


@lru_cache(maxsize=10_000)
def coupon_dates(issue: pd.Timestamp, n_periods: int, frequency: int) -> Tuple[pd.Timestamp, ...]:
    """
    Issue date followed by n_periods coupon dates, anchored at the issue date
    (each date is issue + k * 12/frequency months, so month-end issues do not drift).
    """
    issue = pd.Timestamp(issue)
    months = period_months(frequency)
    dates: List[pd.Timestamp] = [issue]
    for k in range(1, n_periods + 1):
        dates.append(issue + pd.DateOffset(months=k * months))
    return tuple(dates)
