import numpy as np
import pandas as pd
import pytest
from dataclasses import replace

from bond_cashflow_engine.config import EngineConfig
from bond_cashflow_engine.engine import compute_bond
from bond_cashflow_engine.errors import ValidationError
from bond_cashflow_engine.portfolio import make_sample_terms, metrics_table, value_portfolio


@pytest.fixture(scope="module")
def sample():
    return make_sample_terms(n=12, issue_date=pd.Timestamp("2024-02-15"), seed=3)


@pytest.fixture(scope="module")
def results(sample):
    return value_portfolio(sample, max_workers=4)


def test_sample_is_deterministic(sample):
    again = make_sample_terms(n=12, issue_date=pd.Timestamp("2024-02-15"), seed=3)
    assert [t.content_hash() for t in again] == [t.content_hash() for t in sample]


def test_results_in_input_order(sample, results):
    assert [r.terms.bond_id for r in results] == [t.bond_id for t in sample]
    assert all(r.status == "complete" for r in results)


def test_parallel_matches_sequential(sample, results):
    for terms, r in zip(sample[:3], results[:3]):
        seq = compute_bond(terms)
        assert abs(seq.metrics.trea - r.metrics.trea) < 1e-12
        assert abs(seq.metrics.duration - r.metrics.duration) < 1e-12


def test_metrics_table(results):
    table = metrics_table(results)
    assert len(table) == 12
    assert {"bond_id", "status", "duration", "convexity", "tcea", "trea"}.issubset(table.columns)
    assert np.isfinite(table["duration"]).all()
    assert (table["convexity"] > 0.0).all(), "long-only flows should have positive convexity"


def test_partial_rows_are_nan(sample):
    results = value_portfolio(sample[:2], EngineConfig(rate_bracket=(5.0, 10.0)))
    table = metrics_table(results)
    assert (table["status"] == "partial").all()
    assert table["trea"].isna().all()


def test_invalid_bond_propagates(sample):
    bad = replace(sample[0], nominal_value=-1.0)
    with pytest.raises(ValidationError):
        value_portfolio([sample[1], bad])


def test_empty_portfolio():
    assert value_portfolio([]) == []
