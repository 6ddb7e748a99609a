from __future__ import annotations

import logging
import threading
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Union

from .config import DEFAULT_CONFIG, EngineConfig
from .engine import FinancialMetrics, ValuationResult, compute_bond
from .errors import BondNotFoundError
from .export import to_delimited
from .terms import BondTerms, Role
from .views import FlowSummary, PeriodView, filter_periods, project, summarize, view_columns


logger = logging.getLogger(__name__)

FORMATS = ("structured", "delimited")


class TermsRepository(Protocol):
    def get(self, bond_id: str) -> BondTerms:
        ...


class InMemoryTermsRepository:
    """Dict-backed repository, mostly for tests and demos."""

    def __init__(self, terms: Optional[List[BondTerms]] = None):
        self._terms: Dict[str, BondTerms] = {}
        for t in terms or []:
            self.put(t)

    def put(self, terms: BondTerms) -> None:
        self._terms[terms.bond_id] = terms

    def get(self, bond_id: str) -> BondTerms:
        try:
            return self._terms[bond_id]
        except KeyError:
            raise BondNotFoundError("bond not found", bond_id=bond_id) from None


@dataclass(frozen=True)
class _CacheEntry:
    content_hash: str
    result: ValuationResult


@dataclass(frozen=True)
class FlowsResponse:
    bond_id: str
    role: Role
    flows: List[PeriodView]
    summary: Optional[FlowSummary]
    metadata: Dict[str, object]
    status: str                             # "complete", "partial" or "empty"
    period_from: Optional[int] = None
    period_to: Optional[int] = None
    text: Optional[str] = None              # set when the delimited format is requested
    errors: List[str] = field(default_factory=list)

    @property
    def filtered(self) -> bool:
        return self.summary is not None and len(self.flows) != self.summary.total_periods + 1


class FlowService:
    """
    Caches one valuation per bond, keyed by the terms' content hash, and serializes
    recomputes per bond so at most one is in flight for a given id.
    """

    def __init__(self, repository: TermsRepository, config: EngineConfig = DEFAULT_CONFIG):
        self.repository = repository
        self.config = config
        self._cache: Dict[str, _CacheEntry] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, bond_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(bond_id)
            if lock is None:
                lock = self._locks[bond_id] = threading.Lock()
            return lock

    def cached(self, bond_id: str) -> Optional[ValuationResult]:
        """Cached result if it still matches the repository's current terms."""
        entry = self._cache.get(bond_id)
        if entry is None:
            return None
        if entry.content_hash != self.repository.get(bond_id).content_hash():
            return None
        return entry.result

    def invalidate(self, bond_id: str) -> None:
        self._cache.pop(bond_id, None)

    def _compute(self, bond_id: str, force: bool) -> ValuationResult:
        with self._lock_for(bond_id):
            terms = self.repository.get(bond_id)
            digest = terms.content_hash()
            entry = self._cache.get(bond_id)
            if not force and entry is not None and entry.content_hash == digest:
                return entry.result

            logger.info("bond %s: computing cash flows (force=%s)", bond_id, force)
            result = compute_bond(terms, self.config)
            self._cache[bond_id] = _CacheEntry(digest, result)
            return result

    def valuation(self, bond_id: str) -> ValuationResult:
        return self._compute(bond_id, force=False)

    def recalculate(self, bond_id: str) -> ValuationResult:
        """Discard any cached schedule and recompute from the current terms."""
        self.invalidate(bond_id)
        return self._compute(bond_id, force=True)

    def get_metrics(self, bond_id: str) -> Optional[FinancialMetrics]:
        return self.valuation(bond_id).metrics

    def get_flows(
        self,
        bond_id: str,
        role: Union[Role, str] = Role.INVESTOR,
        period_from: Optional[int] = None,
        period_to: Optional[int] = None,
        auto_calculate: bool = True,
        fmt: str = "structured",
    ) -> FlowsResponse:
        """
        Role-projected flows for one bond.

        With auto_calculate=False and nothing cached the response is empty
        (status "empty", no rows, no summary).
        """
        role = Role(role)
        if fmt not in FORMATS:
            raise ValueError(f"format must be one of {FORMATS}")

        result = self.cached(bond_id)
        if result is None and auto_calculate:
            result = self.valuation(bond_id)

        now = pd.Timestamp.now(tz="UTC")
        columns = list(view_columns(role))

        if result is None:
            terms = self.repository.get(bond_id)
            metadata = {"row_count": 0, "currency": terms.currency, "generated_at": now, "columns": columns}
            text = to_delimited([], role) if fmt == "delimited" else None
            return FlowsResponse(bond_id, role, [], None, metadata, "empty", period_from, period_to, text)

        rows = project(filter_periods(result.schedule, period_from, period_to), role)
        metadata = {
            "row_count": len(rows),
            "currency": result.terms.currency,
            "generated_at": now,
            "columns": columns,
        }
        return FlowsResponse(
            bond_id=bond_id,
            role=role,
            flows=rows,
            summary=summarize(result.schedule, result.computed_at),
            metadata=metadata,
            status=result.status,
            period_from=period_from,
            period_to=period_to,
            text=to_delimited(rows, role) if fmt == "delimited" else None,
            errors=list(result.errors),
        )
