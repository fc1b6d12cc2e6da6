"""
IBOV Quant Schema Validation

### ARCHITECTURAL CONTEXT
Node ID: extraction.validation
Minimum structural contract a recovered value must meet before the
orchestrator trusts it. The check is shallow: downstream entity
construction (pydantic) handles per-field types, this step only rejects a
wrong top-level shape.

### CRITICAL INVARIANTS
1. ScanMarket: value is a list (a dict or any other iterable is rejected).
2. AnalyzePair: value is a dict and value["residuals"] is a list.
3. Failures raise ValidationFailure, never RecoveryFailure.
"""

from __future__ import annotations

from typing import Any

from ibov_quant.core.errors import ValidationFailure
from ibov_quant.core.models import AnalyzePair, Operation, ScanMarket


def validate_scan_payload(value: Any) -> list[Any]:
    if not isinstance(value, list):
        raise ValidationFailure(
            "Scan payload is not an array",
            detail=f"expected list, got {type(value).__name__}",
            operation="scan",
        )
    return value


def validate_analysis_payload(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValidationFailure(
            "Analysis payload is not an object",
            detail=f"expected dict, got {type(value).__name__}",
            operation="analyze",
        )
    if not isinstance(value.get("residuals"), list):
        raise ValidationFailure(
            "Analysis payload has no residuals series",
            detail=f"residuals is {type(value.get('residuals')).__name__}",
            operation="analyze",
        )
    return value


def validate_payload(operation: Operation, value: Any) -> Any:
    """Dispatch on the operation that requested the value."""
    if isinstance(operation, ScanMarket):
        return validate_scan_payload(value)
    if isinstance(operation, AnalyzePair):
        return validate_analysis_payload(value)
    raise TypeError(f"Unknown operation: {operation!r}")
