"""
IBOV Quant Error Taxonomy

### ARCHITECTURAL CONTEXT
Node ID: core.errors
Four caller-actionable failure kinds. All are non-fatal to the process and
all carry a human-readable `message` for the UI plus a diagnostic `detail`
that is logged but never displayed.

### CRITICAL INVARIANTS
1. ConfigurationError is raised before any network call.
2. RecoveryFailure and ValidationFailure stay distinct kinds even though
   both currently surface the same message to the user.
3. No kind is retried automatically.
"""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal["configuration", "transport", "recovery", "validation"]


class QueryError(Exception):
    """Base class for every failure that crosses the orchestrator boundary."""

    kind: ErrorKind = "transport"

    def __init__(
        self,
        message: str,
        detail: str = "",
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.operation = operation

    def with_message(self, message: str, operation: str) -> QueryError:
        """Same kind and detail, user-facing message replaced."""
        return type(self)(message, detail=self.detail, operation=operation)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, message={self.message!r})"


class ConfigurationError(QueryError):
    """Credential missing or rejected by the engine."""

    kind: ErrorKind = "configuration"


class TransportError(QueryError):
    """The engine call itself failed (network, timeout, rate limit)."""

    kind: ErrorKind = "transport"


class RecoveryFailure(QueryError):
    """No step of the recovery chain produced a structured value."""

    kind: ErrorKind = "recovery"


class ValidationFailure(QueryError):
    """A value was recovered but does not have the shape the operation needs."""

    kind: ErrorKind = "validation"
