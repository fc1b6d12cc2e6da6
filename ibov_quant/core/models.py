"""
IBOV Quant Domain Models

### ARCHITECTURAL CONTEXT
Immutable data contracts shared by the composer, the recovery/validation
chain, the orchestrator and the view controller.

### DESIGN DECISIONS
- Pydantic models for runtime validation + serialization
- Frozen=True for immutability (results are never mutated after creation)
- snake_case attributes, camelCase aliases: engine payloads validate directly
  and model_dump(by_alias=True) reproduces the wire shape
- Numeric fields accept pydantic's lax coercion ("96" -> 96); the engine's
  numbers are opaque data, not re-derived here
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with the engine (camelCase on the wire)."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ─── Operations ──────────────────────────────────────────────────────

class ScanMarket(BaseModel, frozen=True):
    """Ask the engine for candidate pairs over a period."""

    kind: Literal["scan"] = "scan"
    period: str
    watchlist: str | None = None


class AnalyzePair(BaseModel, frozen=True):
    """Ask the engine for one pair's full series and interpretation."""

    kind: Literal["analyze"] = "analyze"
    asset_y: str
    asset_x: str
    period: str

    @property
    def label(self) -> str:
        return f"{self.asset_y} x {self.asset_x}"


Operation = Union[ScanMarket, AnalyzePair]


# ─── Engine Boundary ─────────────────────────────────────────────────

class RawEngineResponse(BaseModel, frozen=True):
    """Opaque engine output: free-form text plus grounding chunk records."""

    text: str = ""
    grounding: list[dict[str, Any]] = Field(default_factory=list)


# ─── Results ─────────────────────────────────────────────────────────

class Source(WireModel):
    """A web citation attached by search grounding."""

    title: str
    uri: str


class ChartPoint(WireModel):
    date: str
    value: float
    upper: float | None = None
    lower: float | None = None
    mean: float | None = None


def _round_half_life(value: Any) -> Any:
    if isinstance(value, float):
        return int(round(value))
    return value


class ScannedPair(WireModel):
    """
    One scan candidate. `id` is synthesized locally; it is unique within a
    single scan result set only.
    """

    id: str
    asset_y: str = Field(alias="assetY")
    asset_x: str = Field(alias="assetX")
    adf_confidence: float = Field(ge=0.0, le=100.0)
    current_z_score: float = Field(alias="currentZScore")
    half_life: int
    sources: list[Source] = Field(default_factory=list)

    normalize_half_life = field_validator("half_life", mode="before")(_round_half_life)

    @model_validator(mode="after")
    def check_distinct_assets(self) -> ScannedPair:
        if self.asset_y.strip().upper() == self.asset_x.strip().upper():
            raise ValueError(f"assetY and assetX must differ (got {self.asset_y})")
        return self

    @property
    def is_stretched(self) -> bool:
        """|Z| beyond the 2σ bands drawn on the residual chart."""
        return abs(self.current_z_score) > 2.0


class DetailedAnalysis(WireModel):
    """Full drill-down for one pair, stamped by the orchestrator."""

    pair: str
    residuals: list[ChartPoint] = Field(min_length=1)
    beta_rotation: list[ChartPoint] = Field(min_length=1)
    half_life: int
    hurst_exponent: float
    adf_confidence: float = Field(ge=0.0, le=100.0)
    current_z_score: float = Field(alias="currentZScore")
    last_updated: str
    interpretation: str = ""
    sources: list[Source] = Field(default_factory=list)

    normalize_half_life = field_validator("half_life", mode="before")(_round_half_life)

    @property
    def is_stretched(self) -> bool:
        return abs(self.current_z_score) > 2.0

    @property
    def is_mean_reverting(self) -> bool:
        """Hurst below 0.5 reads as mean-reverting."""
        return self.hurst_exponent < 0.5

    @property
    def is_strongly_cointegrated(self) -> bool:
        return self.adf_confidence >= 95.0
