from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Tuple


DISCOUNT_SOURCES = ("discount_rate", "solved_yield")


@dataclass(frozen=True)
class EngineConfig:
    """
    Numerical knobs shared by the solver, the checker and the batch runner.

    - npv_tolerance: |NPV| accepted at the solved rate (currency units)
    - rate_bracket: search interval for the periodic IRR
    - max_iterations: iteration cap handed to brentq
    - bracket_points: grid resolution used to find a sign change inside rate_bracket
    - consistency_tolerance: absolute issuer/investor mismatch tolerated per period
    - amortization_epsilon: relative tolerance on the principal repayment invariant
    - metrics_discount_source: rate used for duration/convexity
      ("discount_rate" = the bond's discount rate, "solved_yield" = the view's own IRR)
    """
    npv_tolerance: float = 1e-6
    rate_bracket: Tuple[float, float] = (-0.99, 10.0)
    max_iterations: int = 100
    bracket_points: int = 400
    consistency_tolerance: float = 0.01
    amortization_epsilon: float = 1e-6
    metrics_discount_source: str = "discount_rate"
    max_workers: int = 4

    def __post_init__(self):
        lo, hi = self.rate_bracket
        if not (-1.0 < lo < hi):
            raise ValueError(f"Invalid rate bracket: {self.rate_bracket}")
        if self.npv_tolerance <= 0 or self.consistency_tolerance <= 0:
            raise ValueError("Tolerances must be positive.")
        if self.max_iterations < 1 or self.bracket_points < 2:
            raise ValueError("max_iterations must be >= 1 and bracket_points >= 2.")
        if self.metrics_discount_source not in DISCOUNT_SOURCES:
            raise ValueError(f"metrics_discount_source must be one of {DISCOUNT_SOURCES}")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @classmethod
    def from_env(cls, prefix: str = "BOND_ENGINE_") -> "EngineConfig":
        """
        Build a config from environment overrides, e.g.
        BOND_ENGINE_NPV_TOLERANCE=1e-8, BOND_ENGINE_RATE_BRACKET="-0.5,5".
        """
        base = cls()
        overrides = {}
        for f in fields(cls):
            raw = os.environ.get(prefix + f.name.upper())
            if raw is None:
                continue
            current = getattr(base, f.name)
            if isinstance(current, tuple):
                lo, hi = (float(x) for x in raw.split(","))
                overrides[f.name] = (lo, hi)
            elif isinstance(current, int):
                overrides[f.name] = int(raw)
            elif isinstance(current, float):
                overrides[f.name] = float(raw)
            else:
                overrides[f.name] = raw
        return replace(base, **overrides)


DEFAULT_CONFIG = EngineConfig()
