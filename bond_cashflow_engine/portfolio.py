from __future__ import annotations

import logging
import numpy as np
import pandas as pd
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .config import DEFAULT_CONFIG, EngineConfig
from .engine import ValuationResult, compute_bond
from .terms import AmortizationPolicy, BondTerms


logger = logging.getLogger(__name__)


def value_portfolio(
    terms_list: Sequence[BondTerms],
    config: EngineConfig = DEFAULT_CONFIG,
    max_workers: Optional[int] = None,
) -> List[ValuationResult]:
    """
    Value many bonds in parallel. Results come back in input order; the first
    ValidationError/DataError raised by any bond propagates.
    """
    workers = max_workers or config.max_workers
    if not terms_list:
        return []

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda t: compute_bond(t, config), terms_list))

    partial = sum(r.is_partial for r in results)
    logger.info("valued %d bonds (%d partial) with %d workers", len(results), partial, workers)
    return results


def metrics_table(results: Sequence[ValuationResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        m = r.metrics
        rows.append({
            "bond_id": r.terms.bond_id,
            "status": r.status,
            "n_periods": r.intermediates.n_periods,
            "currency": r.terms.currency,
            "present_value": np.nan if m is None else m.present_value,
            "profit_loss": np.nan if m is None else m.profit_loss,
            "duration": np.nan if m is None else m.duration,
            "modified_duration": np.nan if m is None else m.modified_duration,
            "convexity": np.nan if m is None else m.convexity,
            "tcea": np.nan if m is None else m.tcea,
            "tcea_gross": np.nan if m is None else m.tcea_gross,
            "trea": np.nan if m is None else m.trea,
            "warnings": len(r.warnings),
        })

    return pd.DataFrame(
        rows,
        columns=[
            "bond_id", "status", "n_periods", "currency", "present_value", "profit_loss",
            "duration", "modified_duration", "convexity", "tcea", "tcea_gross", "trea", "warnings",
        ],
    )


def make_sample_terms(
    n: int = 20,
    issue_date: pd.Timestamp | None = None,
    seed: int = 7,
) -> List[BondTerms]:
    """
    Synthetic bonds for demos and tests.

    - Tenors: whole years 1..10 from issue_date
    - Coupons: uniform in [3%, 10%], effective annual
    - Frequency: semiannual or quarterly
    - Prices: nominal 1000, price within +/-5% of par
    - Amortization: mostly bullet, some level principal
    """
    if issue_date is None:
        issue_date = pd.Timestamp.today().normalize()
    issue_date = pd.Timestamp(issue_date)

    rng = np.random.default_rng(seed)

    years = rng.integers(1, 11, size=n)
    coupons = rng.uniform(0.03, 0.10, size=n)
    freqs = rng.choice([2, 4], size=n)
    prices = 1000.0 * rng.uniform(0.95, 1.05, size=n)
    policies = rng.choice(
        [AmortizationPolicy.BULLET.value, AmortizationPolicy.LEVEL_PRINCIPAL.value], size=n, p=[0.8, 0.2]
    )

    return [
        BondTerms(
            bond_id=f"BOND_{i:03d}",
            nominal_value=1000.0,
            commercial_price=float(prices[i]),
            issue_date=issue_date,
            maturity_date=issue_date + pd.DateOffset(years=int(years[i])),
            coupon_rate=float(coupons[i]),
            frequency=int(freqs[i]),
            rate_convention="effective",
            amortization=str(policies[i]),
            discount_rate=float(coupons[i]),
        )
        for i in range(n)
    ]
