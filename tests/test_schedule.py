import numpy as np
import pandas as pd
import pytest
from dataclasses import replace

from bond_cashflow_engine.errors import DataError, ValidationError
from bond_cashflow_engine.inflation import indexed_principal_path, period_inflation_rates
from bond_cashflow_engine.schedule import build_schedule, count_periods
from bond_cashflow_engine.terms import BondTerms, GraceKind, InflationSeries, grace_from_yearly
from bond_cashflow_engine.utils import coupon_dates, months_between, periodic_coupon_rate


@pytest.fixture(scope="module")
def terms():
    return BondTerms(
        bond_id="TWO_YEAR",
        nominal_value=1000.0,
        commercial_price=1000.0,
        issue_date=pd.Timestamp("2024-01-15"),
        maturity_date=pd.Timestamp("2026-01-15"),
        coupon_rate=0.05,
        frequency=2,
    )


def test_period_count_and_dates(terms):
    slots = build_schedule(terms)
    assert count_periods(terms) == 4
    assert [s.index for s in slots] == [0, 1, 2, 3, 4]
    assert slots[0].date == terms.issue_date
    assert slots[-1].date == terms.maturity_date
    assert slots[1].date == pd.Timestamp("2024-07-15")
    assert all(s.grace == GraceKind.NONE for s in slots)


def test_month_end_issue_does_not_drift():
    dates = coupon_dates(pd.Timestamp("2024-01-31"), 4, 4)
    assert dates[1] == pd.Timestamp("2024-04-30")
    assert dates[4] == pd.Timestamp("2025-01-31"), "dates are anchored at issue, not chained"


def test_months_between_flags_broken_tenor():
    assert months_between(pd.Timestamp("2024-01-15"), pd.Timestamp("2026-01-15")) == (24, True)
    months, exact = months_between(pd.Timestamp("2024-01-15"), pd.Timestamp("2025-03-01"))
    assert months == 13 and not exact


def test_non_whole_tenor_rejected(terms):
    bad = replace(terms, maturity_date=pd.Timestamp("2025-03-01"))
    with pytest.raises(ValidationError):
        build_schedule(bad)


def test_grace_classification(terms):
    graced = replace(terms, grace={1: "T", 2: "partial"})
    slots = build_schedule(graced)
    assert slots[1].grace == GraceKind.TOTAL
    assert slots[2].grace == GraceKind.PARTIAL
    assert slots[3].grace == GraceKind.NONE


def test_grace_index_outside_schedule(terms):
    graced = replace(terms, grace={5: "total"})
    with pytest.raises(ValidationError) as exc:
        build_schedule(graced)
    assert exc.value.period == 5


def test_periodic_rate_conventions():
    assert abs(periodic_coupon_rate(0.05, "nominal", 2, 360) - 0.025) < 1e-12
    assert abs(periodic_coupon_rate(0.08, "effective", 2, 360) - (1.08 ** 0.5 - 1.0)) < 1e-12
    # nominal 12% compounded monthly -> effective (1.01)^12 - 1, then half a year of it
    expected = (1.01 ** 12) ** 0.5 - 1.0
    assert abs(periodic_coupon_rate(0.12, "nominal", 2, 360, compounding_per_year=12) - expected) < 1e-12


def test_inflation_compounded_to_period(terms):
    indexed = replace(terms, inflation_indexed=True, inflation=InflationSeries.from_yearly([0.10, 0.10], 2))
    rates = period_inflation_rates(indexed, 4)
    assert rates.shape == (4,)
    assert np.allclose(rates, 1.1 ** 0.5 - 1.0)

    path = indexed_principal_path(1000.0, rates)
    assert abs(path[0] - 1000.0) < 1e-12
    assert abs(path[-1] - 1210.0) < 1e-9, "two years of 10% compounds to 1210"


def test_periodic_inflation_basis_used_as_given(terms):
    indexed = replace(terms, inflation_indexed=True, inflation=InflationSeries((0.01, 0.02, 0.03, 0.04), "periodic"))
    assert np.allclose(period_inflation_rates(indexed, 4), [0.01, 0.02, 0.03, 0.04])


def test_missing_inflation_series_is_data_error(terms):
    short = replace(terms, inflation_indexed=True, inflation=InflationSeries((0.1, 0.1)))
    with pytest.raises(DataError) as exc:
        period_inflation_rates(short, 4)
    assert exc.value.period == 3

    with pytest.raises(DataError):
        period_inflation_rates(replace(terms, inflation_indexed=True), 4)


def test_not_indexed_means_zero_inflation(terms):
    assert np.all(period_inflation_rates(terms, 4) == 0.0)


def test_float_frequency_from_tabular_input(terms):
    floaty = replace(terms, frequency=2.0, days_per_year=360.0)
    assert floaty.frequency == 2 and isinstance(floaty.frequency, int)
    assert isinstance(floaty.days_per_year, int)
    assert len(build_schedule(floaty)) == 5


@pytest.mark.parametrize("frequency", [0, -2, 2.5])
def test_bad_frequency_rejected(terms, frequency):
    with pytest.raises(ValidationError):
        build_schedule(replace(terms, frequency=frequency))


def test_duplicate_grace_period_rejected(terms):
    with pytest.raises(ValidationError) as exc:
        replace(terms, grace=[(1, "total"), (1, "partial")])
    assert exc.value.period == 1


def test_yearly_grace_series(terms):
    grace = grace_from_yearly(["T", "S"], 2)
    assert grace == ((1, GraceKind.TOTAL), (2, GraceKind.TOTAL))
    slots = build_schedule(replace(terms, grace=grace))
    assert [s.grace for s in slots[1:]] == [GraceKind.TOTAL, GraceKind.TOTAL, GraceKind.NONE, GraceKind.NONE]
