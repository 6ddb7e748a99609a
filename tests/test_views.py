import numpy as np
import pandas as pd
import pytest

from bond_cashflow_engine.engine import compute_bond
from bond_cashflow_engine.export import expected_columns, from_delimited, to_delimited
from bond_cashflow_engine.terms import BondTerms, Role
from bond_cashflow_engine.views import (
    InvestorView,
    IssuerView,
    filter_periods,
    project,
    summarize,
    view_columns,
    views_frame,
)


@pytest.fixture(scope="module")
def result():
    terms = BondTerms(
        bond_id="VIEWS_3Y",
        nominal_value=1000.0,
        commercial_price=990.0,
        issue_date=pd.Timestamp("2024-03-01"),
        maturity_date=pd.Timestamp("2027-03-01"),
        coupon_rate=0.06,
        frequency=4,
        discount_rate=0.05,
        tax_rate=0.25,
        premium_pct=0.005,
        grace={1: "total", 2: "partial"},
        amortization="level_principal",
    )
    return compute_bond(terms)


def test_role_projection_shapes(result):
    issuer = project(result.schedule, "issuer")
    investor = project(result.schedule, Role.INVESTOR)

    assert all(isinstance(r, IssuerView) for r in issuer)
    assert all(isinstance(r, InvestorView) for r in investor)
    assert hasattr(issuer[1], "tax_shield") and not hasattr(issuer[1], "discounted_flow")
    assert hasattr(investor[1], "discounted_flow") and not hasattr(investor[1], "tax_shield")

    core = {"period", "date", "coupon", "amortization", "installment", "premium"}
    assert core.issubset(view_columns("issuer"))
    assert core.issubset(view_columns("investor"))
    assert "issuer_flow_net" in view_columns("issuer")
    assert "convexity_weighted" in view_columns("investor")


def test_unknown_role_rejected(result):
    with pytest.raises(ValueError):
        project(result.schedule, "auditor")


def test_period_filter_is_inclusive(result):
    rows = filter_periods(result.schedule, 2, 4)
    assert [r.period for r in rows] == [2, 3, 4]
    assert [r.period for r in filter_periods(result.schedule, period_to=1)] == [0, 1]
    assert len(filter_periods(result.schedule)) == 13
    with pytest.raises(ValueError):
        filter_periods(result.schedule, 5, 3)


def test_summary_covers_full_schedule(result):
    s = summarize(result.schedule, result.computed_at)
    assert s.total_periods == 12
    assert s.start_date == pd.Timestamp("2024-03-01")
    assert s.end_date == pd.Timestamp("2027-03-01")
    investor_sum = sum(p.investor_flow for p in result.schedule)
    assert abs(s.investor_total - investor_sum) < 1e-9
    assert s.issuer_total < 0.0 < s.investor_total


def test_views_frame_keeps_headers_when_empty():
    df = views_frame([], "issuer")
    assert df.empty
    assert list(df.columns) == list(view_columns("issuer"))


def test_delimited_round_trip(result):
    rows = project(result.schedule, "investor")
    text = to_delimited(rows, "investor")
    lines = text.splitlines()
    assert lines[0] == ",".join(expected_columns("investor"))
    assert len(lines) == len(rows) + 1

    back = from_delimited(text)
    assert len(back) == len(rows)
    assert list(back["period"]) == [r.period for r in rows]
    assert back["date"].iloc[-1] == pd.Timestamp("2027-03-01")
    for name in ("coupon", "amortization", "investor_flow", "discounted_flow"):
        original = np.array([getattr(r, name) for r in rows])
        assert np.allclose(back[name].to_numpy(), original, atol=1e-2), name


def test_delimited_separator_and_grace_text(result):
    text = to_delimited(project(result.schedule, "issuer"), "issuer", sep=";")
    back = from_delimited(text, sep=";")
    assert list(back.columns) == expected_columns("issuer")
    assert list(back["grace"].iloc[:3]) == ["none", "total", "partial"]


def test_empty_export_is_header_only():
    text = to_delimited([], "investor")
    assert text.strip() == ",".join(expected_columns("investor"))
