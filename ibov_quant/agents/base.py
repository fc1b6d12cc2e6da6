"""
IBOV Quant Structured Query Provider Interface

### ARCHITECTURAL CONTEXT
Every backend that can answer the two UI operations implements
StructuredQueryProvider. Today the only implementation is the LLM-backed
QueryOrchestrator; a real statistics engine can be substituted behind the
same interface without touching the view controller.

### DESIGN DECISIONS
- ABC enforces the scan()/analyze() contract on all providers
- Both methods are async: one request-response exchange per call
- Failures are QueryError subclasses, never raw transport/parse exceptions
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ibov_quant.core.models import DetailedAnalysis, ScannedPair


class StructuredQueryProvider(ABC):
    """
    Abstract source of pairs-trading results.

    Subclasses must implement:
        - provider_id: str property
        - scan(period, watchlist=None) -> list[ScannedPair]
        - analyze(asset_y, asset_x, period) -> DetailedAnalysis
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g., 'gemini')."""
        ...

    @abstractmethod
    async def scan(self, period: str, watchlist: str | None = None) -> list[ScannedPair]:
        """
        Find candidate pairs over `period`, optionally restricted to a
        watch-list. Raises QueryError on failure.
        """
        ...

    @abstractmethod
    async def analyze(self, asset_y: str, asset_x: str, period: str) -> DetailedAnalysis:
        """Full analysis of Long `asset_y` x Short `asset_x`. Raises QueryError on failure."""
        ...
