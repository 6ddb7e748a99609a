from __future__ import annotations

import hashlib
import json
import math
import pandas as pd
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from .errors import ValidationError
from .utils import SUPPORTED_FREQUENCIES, SUPPORTED_DAYS_PER_YEAR


class RateType(str, Enum):
    FIXED = "fixed"
    FLOATING = "floating"


class RateConvention(str, Enum):
    NOMINAL = "nominal"
    EFFECTIVE = "effective"


class GraceKind(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    TOTAL = "total"

    @classmethod
    def parse(cls, value: Union[str, "GraceKind"]) -> "GraceKind":
        """Accepts enum values and the single-letter codes S (sin), P, T."""
        if isinstance(value, cls):
            return value
        code = str(value).strip().lower()
        aliases = {"s": cls.NONE, "n": cls.NONE, "p": cls.PARTIAL, "t": cls.TOTAL}
        if code in aliases:
            return aliases[code]
        return cls(code)


class AmortizationPolicy(str, Enum):
    BULLET = "bullet"
    LEVEL_PRINCIPAL = "level_principal"
    LEVEL_INSTALLMENT = "level_installment"


class Role(str, Enum):
    ISSUER = "issuer"
    INVESTOR = "investor"


@dataclass(frozen=True)
class InflationSeries:
    """
    Per-period inflation inputs keyed by period (entry 0 applies to period 1).

    basis:
      - "annual": annual rates, compounded down to the coupon period
      - "periodic": rates already expressed per coupon period (e.g. semester rates)
    """
    rates: Tuple[float, ...]
    basis: str = "annual"

    def __post_init__(self):
        object.__setattr__(self, "rates", tuple(float(r) for r in self.rates))
        if self.basis not in ("annual", "periodic"):
            raise ValueError(f"Unsupported inflation basis: {self.basis}")

    def __len__(self) -> int:
        return len(self.rates)

    @classmethod
    def from_yearly(cls, yearly_rates: Sequence[float], frequency: int, basis: str = "annual") -> "InflationSeries":
        """One rate per year, shared by every coupon period falling in that year."""
        expanded: List[float] = []
        for r in yearly_rates:
            expanded.extend([float(r)] * int(frequency))
        return cls(tuple(expanded), basis)


def grace_from_yearly(yearly_kinds: Sequence[Union[str, GraceKind]], frequency: int) -> Tuple[Tuple[int, GraceKind], ...]:
    """
    One grace kind per year, shared by every coupon period falling in that year.
    Years without grace are left out of the result.
    """
    out: List[Tuple[int, GraceKind]] = []
    for year, raw in enumerate(yearly_kinds):
        kind = GraceKind.parse(raw)
        if kind == GraceKind.NONE:
            continue
        first = year * int(frequency) + 1
        out.extend((k, kind) for k in range(first, first + int(frequency)))
    return tuple(out)


def _integral(value):
    """Whole-valued floats (2.0 from JSON or DataFrame rows) become ints; anything else is left for validation."""
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        return value
    return int(as_float) if as_float.is_integer() else value


def _normalize_grace(grace) -> Tuple[Tuple[int, GraceKind], ...]:
    if grace is None:
        return ()
    items = grace.items() if isinstance(grace, Mapping) else grace
    out = {}
    for k, kind in items:
        if int(k) in out:
            raise ValidationError(f"grace period {int(k)} given more than once", period=int(k))
        try:
            out[int(k)] = GraceKind.parse(kind)
        except ValueError:
            raise ValidationError(f"unknown grace kind {kind!r} for period {k}") from None
    return tuple(sorted(out.items()))


@dataclass(frozen=True)
class BondTerms:
    """
    Static terms of one bond. Rates and percentages are decimals (0.05 = 5%).
    Cost percentages apply to the nominal value; premium_pct is paid at maturity.
    """
    nominal_value: float
    commercial_price: float
    issue_date: pd.Timestamp
    maturity_date: pd.Timestamp
    coupon_rate: float
    frequency: int = 2
    bond_id: str = "BOND"
    rate_type: RateType = RateType.FIXED
    rate_convention: RateConvention = RateConvention.NOMINAL
    compounding_per_year: Optional[int] = None
    floating_rates: Optional[Tuple[float, ...]] = None
    amortization: AmortizationPolicy = AmortizationPolicy.BULLET
    inflation_indexed: bool = False
    inflation: Optional[InflationSeries] = None
    grace: Tuple[Tuple[int, GraceKind], ...] = field(default_factory=tuple)
    capitalize_grace: bool = False
    premium_pct: float = 0.0
    structuring_pct: float = 0.0
    placement_pct: float = 0.0
    flotation_pct: float = 0.0
    settlement_pct: float = 0.0
    discount_rate: float = 0.0
    days_per_year: int = 360
    tax_rate: float = 0.0
    currency: str = "USD"

    def __post_init__(self):
        object.__setattr__(self, "issue_date", pd.Timestamp(self.issue_date))
        object.__setattr__(self, "maturity_date", pd.Timestamp(self.maturity_date))
        for name in ("frequency", "days_per_year", "compounding_per_year"):
            if getattr(self, name) is not None:
                object.__setattr__(self, name, _integral(getattr(self, name)))
        object.__setattr__(self, "rate_type", RateType(self.rate_type))
        object.__setattr__(self, "rate_convention", RateConvention(self.rate_convention))
        object.__setattr__(self, "amortization", AmortizationPolicy(self.amortization))
        object.__setattr__(self, "grace", _normalize_grace(self.grace))
        if self.floating_rates is not None:
            object.__setattr__(self, "floating_rates", tuple(float(r) for r in self.floating_rates))
        if self.inflation is not None and not isinstance(self.inflation, InflationSeries):
            object.__setattr__(self, "inflation", InflationSeries(tuple(self.inflation)))

    def grace_kind(self, period: int) -> GraceKind:
        return dict(self.grace).get(period, GraceKind.NONE)

    @property
    def issuer_costs(self) -> float:
        """Structuring, placement, flotation and settlement costs borne by the issuer."""
        pct = self.structuring_pct + self.placement_pct + self.flotation_pct + self.settlement_pct
        return pct * self.nominal_value

    @property
    def investor_costs(self) -> float:
        """Flotation and settlement costs attributable to the investor (reported only)."""
        return (self.flotation_pct + self.settlement_pct) * self.commercial_price

    def content_hash(self) -> str:
        """Stable digest of every term; changes whenever any input changes."""
        payload = asdict(self)
        blob = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()


def _is_finite(x) -> bool:
    try:
        return math.isfinite(float(x))
    except (TypeError, ValueError):
        return False


def validate_terms(terms: BondTerms) -> None:
    """
    Check every static invariant of the terms and raise a single ValidationError
    listing all violations. Grace indices are checked by the schedule builder,
    which knows the period count.
    """
    errors: List[str] = []

    numeric = {
        "nominal_value": terms.nominal_value,
        "commercial_price": terms.commercial_price,
        "coupon_rate": terms.coupon_rate,
        "discount_rate": terms.discount_rate,
        "tax_rate": terms.tax_rate,
        "premium_pct": terms.premium_pct,
        "structuring_pct": terms.structuring_pct,
        "placement_pct": terms.placement_pct,
        "flotation_pct": terms.flotation_pct,
        "settlement_pct": terms.settlement_pct,
    }
    bad = [name for name, v in numeric.items() if not _is_finite(v)]
    errors.extend(f"{name} must be a finite number" for name in bad)

    if "nominal_value" not in bad and terms.nominal_value <= 0:
        errors.append("nominal_value must be > 0")
    if "commercial_price" not in bad and terms.commercial_price <= 0:
        errors.append("commercial_price must be > 0")
    if terms.maturity_date <= terms.issue_date:
        errors.append("maturity_date must be after issue_date")
    if terms.frequency not in SUPPORTED_FREQUENCIES:
        errors.append(f"frequency must be one of {SUPPORTED_FREQUENCIES}")
    if terms.days_per_year not in SUPPORTED_DAYS_PER_YEAR:
        errors.append(f"days_per_year must be one of {SUPPORTED_DAYS_PER_YEAR}")
    if terms.compounding_per_year is not None and terms.compounding_per_year not in (1, 2, 3, 4, 6, 12, 24, 360):
        errors.append("compounding_per_year must be one of 1, 2, 3, 4, 6, 12, 24, 360")

    for name in ("coupon_rate", "discount_rate"):
        if name not in bad and numeric[name] <= -1.0:
            errors.append(f"{name} must be > -100%")
    for name in ("tax_rate", "structuring_pct", "placement_pct", "flotation_pct", "settlement_pct"):
        if name not in bad and not (0.0 <= numeric[name] < 1.0):
            errors.append(f"{name} must be in [0, 1)")
    if "premium_pct" not in bad and terms.premium_pct < 0:
        errors.append("premium_pct must be >= 0")

    if terms.floating_rates is not None and not all(_is_finite(r) for r in terms.floating_rates):
        errors.append("floating_rates must be finite")
    if terms.inflation is not None and not all(_is_finite(r) and r > -1.0 for r in terms.inflation.rates):
        errors.append("inflation rates must be finite and > -100%")

    if errors:
        raise ValidationError("; ".join(errors), bond_id=terms.bond_id)
