from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .cashflows import CashFlowPeriod
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import ConsistencyWarning


logger = logging.getLogger(__name__)


def check_mirrored_flows(
    periods: Sequence[CashFlowPeriod],
    config: EngineConfig = DEFAULT_CONFIG,
    bond_id: Optional[str] = None,
) -> List[ConsistencyWarning]:
    """
    Issuer gross flow and investor flow must cancel in every period
    (|issuer + investor| < consistency_tolerance). At period 0 this flags any gap
    between net issuance proceeds and the purchase price.
    """
    found: List[ConsistencyWarning] = []
    for p in periods:
        if abs(p.issuer_flow + p.investor_flow) >= config.consistency_tolerance:
            w = ConsistencyWarning(p.period, p.issuer_flow, p.investor_flow, bond_id=bond_id)
            logger.warning("bond %s: flows not mirrored, %s", bond_id, w)
            found.append(w)
    return found


def principal_residual(periods: Sequence[CashFlowPeriod]) -> float:
    """
    Σ amortization minus everything that entered the balance: the nominal,
    each period's inflation step and any capitalized coupon.
    """
    owed = periods[0].principal
    repaid = 0.0
    for p in periods[1:]:
        owed += (p.indexed_principal - p.principal) + p.capitalized
        repaid += p.amortization
    return repaid - owed


def check_principal_repaid(
    periods: Sequence[CashFlowPeriod],
    config: EngineConfig = DEFAULT_CONFIG,
    bond_id: Optional[str] = None,
) -> bool:
    residual = principal_residual(periods)
    scale = max(abs(periods[0].principal), 1.0)
    if abs(residual) > config.amortization_epsilon * scale:
        logger.warning("bond %s: principal not fully repaid, residual %.8f", bond_id, residual)
        return False
    return True
