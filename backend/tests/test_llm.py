"""
Unit tests for the LLM module.
Tests LLMMessage, LLMResponse, the OpenAI-compatible provider, and factory.
"""

import pytest
import httpx
from unittest.mock import AsyncMock, patch, MagicMock

from titan.llm.base import LLMMessage, LLMResponse
from titan.llm.openai_provider import OpenAIProvider
from titan.llm.factory import create_llm_provider


def _mock_client(mock_client, response=None, error=None):
    mock_instance = AsyncMock()
    if error is not None:
        mock_instance.post.side_effect = error
    else:
        mock_instance.post.return_value = response
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=False)
    mock_client.return_value = mock_instance
    return mock_instance


def _completion(content):
    mock_response = MagicMock()
    mock_response.json.return_value = {
        "choices": [{"message": {"content": content}}],
        "model": "gpt-4o",
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
    }
    mock_response.raise_for_status = MagicMock()
    return mock_response


class TestLLMMessage:
    """Tests for LLMMessage dataclass."""

    def test_text_message(self):
        msg = LLMMessage.text("user", "I drank a glass of water")
        assert msg.role == "user"
        assert msg.content == "I drank a glass of water"

    def test_system_message(self):
        msg = LLMMessage.text("system", "Return ONLY a valid JSON object.")
        assert msg.role == "system"

    def test_with_image(self):
        msg = LLMMessage.with_image("user", "Analyze this food image.", "abc123")
        assert isinstance(msg.content, list)
        assert len(msg.content) == 2
        assert msg.content[0] == {"type": "text", "text": "Analyze this food image."}
        assert msg.content[1]["type"] == "image_url"
        assert msg.content[1]["image_url"]["url"] == "data:image/jpeg;base64,abc123"

    def test_with_image_media_type(self):
        msg = LLMMessage.with_image("user", "Analyze", "abc123", media_type="image/png")
        assert msg.content[1]["image_url"]["url"] == "data:image/png;base64,abc123"


class TestLLMResponse:
    """Tests for LLMResponse dataclass."""

    def test_basic_response(self):
        resp = LLMResponse(content='{"action": "add_water"}', model="gpt-4o")
        assert resp.content == '{"action": "add_water"}'
        assert resp.model == "gpt-4o"
        assert resp.usage == {}
        assert resp.raw is None


class TestOpenAIProvider:
    """Tests for OpenAI-compatible provider."""

    def test_init_defaults(self):
        provider = OpenAIProvider(api_key="test-key")
        assert provider.api_key == "test-key"
        assert provider.model == "gpt-4o"
        assert provider.base_url == "https://api.openai.com/v1"
        assert provider.timeout == 60.0

    def test_init_custom(self):
        provider = OpenAIProvider(
            api_key="key",
            model="gpt-4o-mini",
            base_url="https://proxy.example.com/v1/",
            timeout=10
        )
        assert provider.model == "gpt-4o-mini"
        assert provider.base_url == "https://proxy.example.com/v1"
        assert provider.timeout == 10

    def test_format_messages(self):
        provider = OpenAIProvider(api_key="test")
        messages = [
            LLMMessage.text("system", "sys prompt"),
            LLMMessage.text("user", "hello")
        ]
        formatted = provider._format_messages(messages)
        assert formatted == [
            {"role": "system", "content": "sys prompt"},
            {"role": "user", "content": "hello"},
        ]

    def test_headers(self):
        provider = OpenAIProvider(api_key="sk-test123")
        headers = provider._get_headers()
        assert headers["Authorization"] == "Bearer sk-test123"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_chat_completion_success(self):
        provider = OpenAIProvider(api_key="test-key")

        with patch("httpx.AsyncClient") as mock_client:
            mock_instance = _mock_client(mock_client, _completion('{"action": "add_water"}'))

            result = await provider.chat_completion(
                [LLMMessage.text("user", "Hello")], temperature=0.3
            )

            assert result.content == '{"action": "add_water"}'
            assert result.model == "gpt-4o"
            assert result.usage["total_tokens"] == 15

            args, kwargs = mock_instance.post.call_args
            assert args[0] == "https://api.openai.com/v1/chat/completions"
            assert kwargs["json"]["temperature"] == 0.3
            assert "max_tokens" not in kwargs["json"]

    @pytest.mark.asyncio
    async def test_max_tokens_sent_when_set(self):
        provider = OpenAIProvider(api_key="test-key", default_max_tokens=300)

        with patch("httpx.AsyncClient") as mock_client:
            mock_instance = _mock_client(mock_client, _completion("{}"))

            await provider.chat_completion([LLMMessage.text("user", "Hello")])

            payload = mock_instance.post.call_args.kwargs["json"]
            assert payload["max_tokens"] == 300
            assert payload["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_null_content_becomes_empty(self):
        provider = OpenAIProvider(api_key="test-key")

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, _completion(None))
            result = await provider.chat_completion([LLMMessage.text("user", "Hello")])

        assert result.content == ""

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        provider = OpenAIProvider(api_key="test-key")

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, error=httpx.ConnectError("connection refused"))

            with pytest.raises(httpx.ConnectError):
                await provider.chat_completion([LLMMessage.text("user", "Hello")])


class TestLLMFactory:
    """Tests for LLM provider factory."""

    def test_create_openai_provider(self):
        provider = create_llm_provider(
            provider="openai",
            api_key="test-key",
            model="gpt-4o"
        )
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o"

    def test_default_model(self):
        provider = create_llm_provider(provider="openai", api_key="test-key", model=None)
        assert provider.model == "gpt-4o"

    def test_no_api_key_returns_none(self):
        assert create_llm_provider(provider="openai", api_key="") is None
        assert create_llm_provider(provider="openai", api_key=None) is None

    def test_unsupported_provider_raises(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_llm_provider(provider="unsupported", api_key="key")

    def test_custom_base_url(self):
        provider = create_llm_provider(
            provider="openai",
            api_key="key",
            base_url="https://custom.api.com/v1"
        )
        assert provider.base_url == "https://custom.api.com/v1"

    def test_timeout_passed_through(self):
        provider = create_llm_provider(provider="openai", api_key="key", timeout=15.0)
        assert provider.timeout == 15.0
