"""
IBOV Quant Tests: Reasoning Engine Client

Node ID: tests.unit.test_engine
litellm is patched; no network.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import litellm
import pytest

from config.settings import EngineConfig
from ibov_quant.agents.composer import EngineRequest
from ibov_quant.agents.engine import GOOGLE_SEARCH_TOOL, ReasoningEngine, _grounding_chunks
from ibov_quant.core.errors import ConfigurationError, TransportError


def make_response(content: str | None, grounding=None, hidden=None) -> SimpleNamespace:
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
    )
    if grounding is not None:
        response.vertex_ai_grounding_metadata = grounding
    if hidden is not None:
        response._hidden_params = hidden
    return response


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(api_key="test-key", model="gemini/gemini-2.5-flash", timeout_seconds=30)


class TestConstruction:

    def test_missing_key_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            ReasoningEngine(EngineConfig(api_key=""))

    def test_blank_key_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            ReasoningEngine(EngineConfig(api_key="   "))


class TestCompletionCall:

    @pytest.mark.asyncio
    async def test_grounding_and_schema_forwarded(self, config):
        engine = ReasoningEngine(config)
        request = EngineRequest(
            prompt="scan", search_grounding=True, temperature=0.4,
            response_schema={"type": "array"},
        )
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = make_response("[]")
            await engine.generate(request)

        kwargs = mock_llm.call_args.kwargs
        assert kwargs["model"] == "gemini/gemini-2.5-flash"
        assert kwargs["messages"] == [{"role": "user", "content": "scan"}]
        assert kwargs["temperature"] == 0.4
        assert kwargs["timeout"] == 30
        assert kwargs["api_key"] == "test-key"
        assert kwargs["tools"] == [GOOGLE_SEARCH_TOOL]
        assert kwargs["response_format"]["response_schema"] == {"type": "array"}

    @pytest.mark.asyncio
    async def test_plain_request_omits_tools_and_schema(self, config):
        engine = ReasoningEngine(config)
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = make_response("{}")
            await engine.generate(EngineRequest(prompt="p", search_grounding=False))

        kwargs = mock_llm.call_args.kwargs
        assert "tools" not in kwargs
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_text_and_grounding_returned(self, config):
        engine = ReasoningEngine(config)
        grounding = [{"groundingChunks": [{"web": {"uri": "https://a", "title": "A"}}]}]
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = make_response('{"residuals": []}', grounding=grounding)
            raw = await engine.generate(EngineRequest(prompt="p"))

        assert raw.text == '{"residuals": []}'
        assert raw.grounding == [{"web": {"uri": "https://a", "title": "A"}}]

    @pytest.mark.asyncio
    async def test_none_content_becomes_empty_text(self, config):
        engine = ReasoningEngine(config)
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = make_response(None)
            raw = await engine.generate(EngineRequest(prompt="p"))
        assert raw.text == ""
        assert raw.grounding == []


class TestFailureMapping:

    @pytest.mark.asyncio
    async def test_network_error_becomes_transport_error(self, config):
        engine = ReasoningEngine(config)
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_llm:
            mock_llm.side_effect = ConnectionError("connection reset")
            with pytest.raises(TransportError) as exc_info:
                await engine.generate(EngineRequest(prompt="p"))
        assert "connection reset" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_auth_rejection_becomes_configuration_error(self, config):
        engine = ReasoningEngine(config)
        auth_error = litellm.AuthenticationError(
            message="API key not valid", llm_provider="gemini", model="gemini-2.5-flash",
        )
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_llm:
            mock_llm.side_effect = auth_error
            with pytest.raises(ConfigurationError):
                await engine.generate(EngineRequest(prompt="p"))


class TestGroundingChunks:

    def test_hidden_params_fallback(self):
        hidden = {"vertex_ai_grounding_metadata": [{"groundingChunks": [{"web": {"uri": "u"}}]}]}
        assert _grounding_chunks(make_response("", hidden=hidden)) == [{"web": {"uri": "u"}}]

    def test_single_dict_metadata(self):
        response = make_response("", grounding={"groundingChunks": [{"web": {"uri": "u"}}]})
        assert _grounding_chunks(response) == [{"web": {"uri": "u"}}]

    def test_absent_metadata(self):
        assert _grounding_chunks(make_response("")) == []
        assert _grounding_chunks(make_response("", grounding=[])) == []
        assert _grounding_chunks(make_response("", grounding=[{"webSearchQueries": ["x"]}])) == []
