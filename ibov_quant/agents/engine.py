"""
IBOV Quant Reasoning Engine Client

### ARCHITECTURAL CONTEXT
Node ID: agents.engine
The only code that talks to the external text-generation service. One call
in, one RawEngineResponse out: text plus grounding chunk records.

### DESIGN DECISIONS
- litellm over the raw Google SDK for model-agnostic switching
- Google Search grounding passed as a litellm `googleSearch` tool
- Declared output schemas passed through `response_format.response_schema`
- Grounding metadata read from the litellm response (attribute or hidden
  params, depending on litellm version)
- No retry and no timeout of our own beyond the transport timeout

### CRITICAL INVARIANTS
1. Missing credential raises ConfigurationError in __init__, before any call.
2. Authentication rejections map to ConfigurationError.
3. Every other engine exception maps to TransportError.
"""

from __future__ import annotations

import time
from typing import Any

import litellm

from config.settings import EngineConfig
from ibov_quant.agents.composer import EngineRequest
from ibov_quant.core.errors import ConfigurationError, TransportError
from ibov_quant.core.models import RawEngineResponse
from ibov_quant.utils.query_logger import get_query_logger

logger = get_query_logger(__name__)

# Suppress litellm's verbose logging
litellm.suppress_debug_info = True

GOOGLE_SEARCH_TOOL: dict[str, Any] = {"googleSearch": {}}


def _grounding_chunks(response: Any) -> list[dict[str, Any]]:
    """Grounding chunks of the first candidate, [] when absent."""
    metadata = getattr(response, "vertex_ai_grounding_metadata", None)
    if not isinstance(metadata, (list, dict)):
        hidden = getattr(response, "_hidden_params", None)
        metadata = hidden.get("vertex_ai_grounding_metadata") if isinstance(hidden, dict) else None

    if isinstance(metadata, list):
        metadata = metadata[0] if metadata else None
    if not isinstance(metadata, dict):
        return []

    chunks = metadata.get("groundingChunks") or metadata.get("grounding_chunks") or []
    return [c for c in chunks if isinstance(c, dict)] if isinstance(chunks, list) else []


def _response_text(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class ReasoningEngine:
    """
    litellm-backed engine client.

    Usage:
        engine = ReasoningEngine(settings.engine)
        raw = await engine.generate(request)
    """

    def __init__(self, config: EngineConfig) -> None:
        if not config.has_credential:
            raise ConfigurationError(
                "Engine API key is not configured",
                detail="GEMINI_API_KEY is empty",
            )
        self.model = config.model
        self.max_tokens = config.max_tokens
        self.timeout = config.timeout_seconds
        self._api_key = config.api_key

    def _completion_kwargs(self, request: EngineRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "temperature": request.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
            "api_key": self._api_key,
        }
        if request.search_grounding:
            kwargs["tools"] = [GOOGLE_SEARCH_TOOL]
        if request.response_schema is not None:
            kwargs["response_format"] = {
                "type": "json_object",
                "response_schema": request.response_schema,
            }
        return kwargs

    async def generate(self, request: EngineRequest) -> RawEngineResponse:
        start_time = time.monotonic()
        try:
            response = await litellm.acompletion(**self._completion_kwargs(request))
        except litellm.AuthenticationError as e:
            raise ConfigurationError("Engine rejected the API key", detail=str(e)) from e
        except Exception as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "Engine call failed: %s (%.0fms)", str(e), latency_ms,
                extra={"latency_ms": latency_ms, "error_type": type(e).__name__},
            )
            raise TransportError("Engine call failed", detail=str(e)) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        text = _response_text(response)
        grounding = _grounding_chunks(response)
        logger.info(
            "Engine responded: %d chars, %d grounding chunks (%.0fms)",
            len(text), len(grounding), latency_ms,
            extra={"latency_ms": latency_ms, "model_id": self.model},
        )
        logger.debug("Engine text: %s", text[:500])
        return RawEngineResponse(text=text, grounding=grounding)
