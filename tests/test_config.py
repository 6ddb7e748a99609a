import pandas as pd
import pytest
from dataclasses import replace

from bond_cashflow_engine.config import DEFAULT_CONFIG, EngineConfig
from bond_cashflow_engine.errors import (
    BondNotFoundError,
    ConsistencyWarning,
    ConvergenceError,
    DataError,
    ValidationError,
)
from bond_cashflow_engine.terms import AmortizationPolicy, BondTerms, GraceKind, InflationSeries, validate_terms


@pytest.fixture(scope="module")
def terms():
    return BondTerms(
        bond_id="CFG",
        nominal_value=1000.0,
        commercial_price=1000.0,
        issue_date="2024-01-15",
        maturity_date="2026-01-15",
        coupon_rate=0.05,
    )


def test_defaults():
    assert DEFAULT_CONFIG.npv_tolerance == 1e-6
    assert DEFAULT_CONFIG.rate_bracket == (-0.99, 10.0)
    assert DEFAULT_CONFIG.max_iterations == 100
    assert DEFAULT_CONFIG.consistency_tolerance == 0.01


def test_from_env(monkeypatch):
    monkeypatch.setenv("BOND_ENGINE_NPV_TOLERANCE", "1e-8")
    monkeypatch.setenv("BOND_ENGINE_RATE_BRACKET", "-0.5,5")
    monkeypatch.setenv("BOND_ENGINE_MAX_WORKERS", "2")
    monkeypatch.setenv("BOND_ENGINE_METRICS_DISCOUNT_SOURCE", "solved_yield")
    cfg = EngineConfig.from_env()
    assert cfg.npv_tolerance == 1e-8
    assert cfg.rate_bracket == (-0.5, 5.0)
    assert cfg.max_workers == 2
    assert cfg.metrics_discount_source == "solved_yield"
    assert cfg.max_iterations == 100


def test_invalid_config():
    with pytest.raises(ValueError):
        EngineConfig(rate_bracket=(1.0, 0.5))
    with pytest.raises(ValueError):
        EngineConfig(metrics_discount_source="market")
    with pytest.raises(ValueError):
        EngineConfig(npv_tolerance=0.0)


def test_terms_normalized(terms):
    assert terms.issue_date == pd.Timestamp("2024-01-15")
    assert terms.amortization == AmortizationPolicy.BULLET
    assert terms.grace_kind(1) == GraceKind.NONE
    assert GraceKind.parse("T") == GraceKind.TOTAL
    assert GraceKind.parse("S") == GraceKind.NONE


def test_validation_collects_all_errors(terms):
    bad = replace(terms, nominal_value=-5.0, commercial_price=0.0, tax_rate=1.5)
    with pytest.raises(ValidationError) as exc:
        validate_terms(bad)
    msg = str(exc.value)
    assert "nominal_value" in msg and "commercial_price" in msg and "tax_rate" in msg
    assert exc.value.bond_id == "CFG"
    assert isinstance(exc.value, ValueError)


def test_validation_rejects_bad_dates_and_frequency(terms):
    with pytest.raises(ValidationError):
        validate_terms(replace(terms, maturity_date=pd.Timestamp("2023-01-15")))
    with pytest.raises(ValidationError):
        validate_terms(replace(terms, frequency=5))
    with pytest.raises(ValidationError):
        validate_terms(replace(terms, coupon_rate=float("nan")))


def test_unknown_grace_kind(terms):
    with pytest.raises(ValidationError):
        replace(terms, grace={1: "sometimes"})


def test_content_hash_tracks_changes(terms):
    same = replace(terms)
    assert same.content_hash() == terms.content_hash()
    assert replace(terms, coupon_rate=0.051).content_hash() != terms.content_hash()
    indexed = replace(terms, inflation_indexed=True, inflation=InflationSeries((0.01,) * 4))
    assert indexed.content_hash() != terms.content_hash()


def test_error_context_rendering():
    err = DataError("inflation series too short", bond_id="B1", period=3)
    assert str(err) == "bond B1, period 3: inflation series too short"
    assert isinstance(ConvergenceError("x"), ArithmeticError)
    assert str(BondNotFoundError("bond not found", bond_id="B2")) == "bond B2: bond not found"

    w = ConsistencyWarning(2, -25.0, 25.5, bond_id="B1")
    assert isinstance(w, UserWarning)
    assert abs(w.mismatch - 0.5) < 1e-12
