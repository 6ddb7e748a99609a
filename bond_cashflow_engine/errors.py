from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """
    Base class for engine failures.

    Carries the bond identifier and, when the failure is tied to one period,
    its index so callers can render a message without re-deriving context.
    """

    def __init__(self, message: str, bond_id: Optional[str] = None, period: Optional[int] = None):
        self.message = message
        self.bond_id = bond_id
        self.period = period
        super().__init__(self._render())

    def _render(self) -> str:
        prefix = []
        if self.bond_id is not None:
            prefix.append(f"bond {self.bond_id}")
        if self.period is not None:
            prefix.append(f"period {self.period}")
        if not prefix:
            return self.message
        return f"{', '.join(prefix)}: {self.message}"


class ValidationError(EngineError, ValueError):
    """Malformed or internally inconsistent bond terms. No schedule is produced."""


class DataError(EngineError, ValueError):
    """A required time series (inflation, floating rates) is missing or too short."""


class ConvergenceError(EngineError, ArithmeticError):
    """The IRR root finder could not produce a rate within tolerance."""


class BondNotFoundError(EngineError, KeyError):
    """Unknown bond identifier in a terms repository."""

    def __str__(self) -> str:
        return self._render()


class ConsistencyWarning(UserWarning):
    """
    Issuer and investor flows are not sign mirrors in one period.

    Collected and returned, never raised.
    """

    def __init__(self, period: int, issuer_flow: float, investor_flow: float, bond_id: Optional[str] = None):
        self.period = period
        self.issuer_flow = issuer_flow
        self.investor_flow = investor_flow
        self.bond_id = bond_id
        super().__init__(
            f"period {period}: issuer {issuer_flow:.6f} + investor {investor_flow:.6f} "
            f"= {self.mismatch:.6f}"
        )

    @property
    def mismatch(self) -> float:
        return self.issuer_flow + self.investor_flow
