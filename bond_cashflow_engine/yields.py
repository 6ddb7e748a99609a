from __future__ import annotations

import logging
import numpy as np
from typing import Optional, Sequence, Tuple

from scipy.optimize import brentq

from .config import DEFAULT_CONFIG, EngineConfig
from .errors import ConvergenceError
from .utils import annualize


logger = logging.getLogger(__name__)


def npv(flows: Sequence[float], rate: float) -> float:
    """Sum of flow(k) * (1 + rate)^-k over k = 0..N."""
    cfs = np.asarray(flows, dtype=float)
    k = np.arange(len(cfs), dtype=float)
    with np.errstate(over="ignore", invalid="ignore"):
        return float(np.sum(cfs * (1.0 + rate) ** -k))


def has_sign_change(flows: Sequence[float]) -> bool:
    cfs = np.asarray(flows, dtype=float)
    nz = cfs[cfs != 0.0]
    return bool(np.any(nz > 0) and np.any(nz < 0))


def npv_tolerance(flows: Sequence[float], config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Accepted |NPV| at a solved rate: config.npv_tolerance, widened to the
    floating-point resolution of the flows for very large nominals.
    """
    cfs = np.asarray(flows, dtype=float)
    noise = 8.0 * len(cfs) * np.finfo(float).eps * float(np.abs(cfs).sum())
    return max(config.npv_tolerance, noise)


def find_bracket(flows: Sequence[float], config: EngineConfig = DEFAULT_CONFIG) -> Optional[Tuple[float, float]]:
    """
    Scan the configured rate bracket for an interval where the NPV changes sign.
    Non-finite NPVs (overflow near -100%) are skipped. When several intervals
    qualify, the one closest to a zero rate wins.
    """
    lo, hi = config.rate_bracket
    grid = np.linspace(lo, hi, config.bracket_points)
    if lo < 0.0 < hi:
        grid = np.unique(np.r_[grid, 0.0])
    values = np.array([npv(flows, r) for r in grid])

    candidates = []
    for i in range(len(grid) - 1):
        a, b = values[i], values[i + 1]
        if not (np.isfinite(a) and np.isfinite(b)):
            continue
        if a == 0.0:
            return grid[i], grid[i]
        if a * b < 0:
            candidates.append((grid[i], grid[i + 1]))
    if np.isfinite(values[-1]) and values[-1] == 0.0:
        return grid[-1], grid[-1]

    if not candidates:
        return None
    return min(candidates, key=lambda ab: abs(0.5 * (ab[0] + ab[1])))


def solve_periodic_yield(
    flows: Sequence[float],
    config: EngineConfig = DEFAULT_CONFIG,
    bond_id: Optional[str] = None,
) -> float:
    """
    Periodic IRR of a flow series (flow(0) is the initial outlay or proceeds).

    Brackets a sign change on a grid, then refines with Brent's method.
    Raises ConvergenceError when the series has no sign change, no bracket exists,
    brentq hits the iteration cap, or |NPV| at the root exceeds npv_tolerance.
    """
    if not has_sign_change(flows):
        raise ConvergenceError("flow series has no sign change; IRR is undefined", bond_id=bond_id)

    bracket = find_bracket(flows, config)
    if bracket is None:
        raise ConvergenceError(f"no NPV sign change inside rate bracket {config.rate_bracket}", bond_id=bond_id)

    a, b = bracket
    if a == b:
        root = a
    else:
        root, result = brentq(
            lambda r: npv(flows, r),
            a,
            b,
            xtol=1e-15,
            maxiter=config.max_iterations,
            full_output=True,
            disp=False,
        )
        if not result.converged:
            raise ConvergenceError(
                f"brentq did not converge in {config.max_iterations} iterations ({result.flag})",
                bond_id=bond_id,
            )

    residual = npv(flows, root)
    if not abs(residual) < npv_tolerance(flows, config):
        raise ConvergenceError(f"NPV {residual:.3e} at solved rate exceeds tolerance", bond_id=bond_id)

    logger.debug("IRR solved: %.12f (bracket %.4f..%.4f, residual %.2e)", root, a, b, residual)
    return float(root)


def effective_annual_yield(
    flows: Sequence[float],
    frequency: int,
    config: EngineConfig = DEFAULT_CONFIG,
    bond_id: Optional[str] = None,
) -> float:
    """Annualized IRR: (1 + r)^frequency - 1 (TCEA for issuer flows, TREA for investor flows)."""
    return annualize(solve_periodic_yield(flows, config, bond_id), frequency)
