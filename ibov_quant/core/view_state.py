"""
IBOV Quant View Controller

### ARCHITECTURAL CONTEXT
Node ID: core.view_state
Three-state presentation controller driving a StructuredQueryProvider:

    SCANNER ──select_pair──▶ RESULTS
    MANUAL  ──submit_manual─▶ RESULTS
    RESULTS ──close_results─▶ SCANNER

### CRITICAL INVARIANTS
1. SCANNER is the initial state.
2. One provider call per user action; `loading` is set for its duration.
3. Failures set `error` to the QueryError message; the state does not change.
4. A successful scan replaces the displayed pair list; a failed one clears it.
"""

from __future__ import annotations

from enum import Enum

from ibov_quant.agents.base import StructuredQueryProvider
from ibov_quant.core.errors import QueryError
from ibov_quant.core.models import DetailedAnalysis, ScannedPair
from ibov_quant.core.universe import DEFAULT_PERIOD
from ibov_quant.utils.query_logger import get_query_logger

logger = get_query_logger(__name__)

SAME_ASSET_MESSAGE = "Select different assets for Y and X."


class ViewState(str, Enum):
    SCANNER = "SCANNER"
    MANUAL = "MANUAL"
    RESULTS = "RESULTS"


class ViewController:
    """
    UI state machine. Holds the last scan list and the last analysis; both are
    lost when the process exits.
    """

    def __init__(self, provider: StructuredQueryProvider, period: str = DEFAULT_PERIOD) -> None:
        self._provider = provider
        self.state = ViewState.SCANNER
        self.period = period
        self.pairs: list[ScannedPair] = []
        self.analysis: DetailedAnalysis | None = None
        self.loading = False
        self.error: str | None = None
        self.analyzing_id: str | None = None

    # ── Navigation ───────────────────────────────────────────────

    def show_scanner(self) -> None:
        self.state = ViewState.SCANNER
        self.error = None

    def show_manual(self) -> None:
        self.state = ViewState.MANUAL
        self.error = None

    def close_results(self) -> None:
        self.state = ViewState.SCANNER

    # ── Actions ──────────────────────────────────────────────────

    async def run_scan(self, period: str | None = None, watchlist: str | None = None) -> bool:
        if period:
            self.period = period
        self.loading = True
        self.error = None
        self.pairs = []
        try:
            self.pairs = await self._provider.scan(self.period, watchlist)
            return True
        except QueryError as e:
            self.error = e.message
            return False
        finally:
            self.loading = False

    async def select_pair(self, pair: ScannedPair) -> bool:
        self.analyzing_id = pair.id
        try:
            return await self._open_analysis(pair.asset_y, pair.asset_x, self.period)
        finally:
            self.analyzing_id = None

    async def submit_manual(self, asset_y: str, asset_x: str, period: str | None = None) -> bool:
        self.error = None
        if asset_y.strip().upper() == asset_x.strip().upper():
            self.error = SAME_ASSET_MESSAGE
            return False
        return await self._open_analysis(asset_y, asset_x, period or self.period)

    async def _open_analysis(self, asset_y: str, asset_x: str, period: str) -> bool:
        self.loading = True
        self.error = None
        try:
            self.analysis = await self._provider.analyze(asset_y, asset_x, period)
        except QueryError as e:
            logger.info("Analysis of %s x %s failed: %s", asset_y, asset_x, e.kind)
            self.error = e.message
            return False
        finally:
            self.loading = False

        self.state = ViewState.RESULTS
        return True
