"""Tests for AI client."""

import os
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from src.ai.client import AIClient, _get_debug_dir, _repair_json, ai_available, set_debug_dir


def _response(text: str, stop_reason: str = "end_turn") -> Mock:
    mock_content = Mock()
    mock_content.text = text
    mock_response = Mock()
    mock_response.content = [mock_content]
    mock_response.stop_reason = stop_reason
    return mock_response


@pytest.fixture(autouse=True)
def debug_dir(tmp_path: Path) -> Path:
    """Keep exchange logs out of the working directory."""
    path = tmp_path / "debug"
    set_debug_dir(path)
    return path


class TestAIClient:
    """Tests for AIClient class."""

    def test_init_requires_api_key(self):
        """Test AIClient raises error when API key is missing."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(EnvironmentError, match="ANTHROPIC_API_KEY"):
                AIClient()

    @patch("anthropic.AsyncAnthropic")
    def test_init_with_api_key(self, mock_anthropic):
        """Test AIClient initializes with valid API key."""
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            client = AIClient()
            assert client.model == "claude-sonnet-4-20250514"
            assert client.max_tokens == 4000
            assert client.call_count == 0
            mock_anthropic.assert_called_once()

    def test_ai_available(self):
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            assert ai_available() is True
        with patch.dict(os.environ, {}, clear=True):
            assert ai_available() is False


@pytest.mark.asyncio
class TestAIClientCalls:
    """Tests for completion requests."""

    @patch("anthropic.AsyncAnthropic")
    async def test_complete_success(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create = AsyncMock(return_value=_response("AI response text"))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            client = AIClient()
            response = await client.complete("You are a helpful assistant", "Hello")

        assert response == "AI response text"
        assert client.call_count == 1
        call_args = mock_client.messages.create.await_args
        assert call_args.kwargs["system"] == "You are a helpful assistant"
        assert call_args.kwargs["messages"] == [{"role": "user", "content": "Hello"}]

    @patch("anthropic.AsyncAnthropic")
    async def test_complete_uses_custom_max_tokens_and_temperature(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create = AsyncMock(return_value=_response("Response"))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            client = AIClient(max_tokens=8000)
            await client.complete("system", "user", max_tokens=1000, temperature=0.7)

        call_args = mock_client.messages.create.await_args
        assert call_args.kwargs["max_tokens"] == 1000
        assert call_args.kwargs["temperature"] == 0.7

    @patch("anthropic.AsyncAnthropic")
    @patch("src.ai.client.logger")
    async def test_complete_warns_on_truncation(self, mock_logger, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create = AsyncMock(return_value=_response("{\"plan\": [", "max_tokens"))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            client = AIClient()
            await client.complete("system", "user")

        mock_logger.warning.assert_called()
        assert "truncated" in mock_logger.warning.call_args[0][0].lower()

    @patch("anthropic.AsyncAnthropic")
    async def test_exchange_is_logged(self, mock_anthropic_class, debug_dir):
        mock_client = Mock()
        mock_client.messages.create = AsyncMock(return_value=_response("hello"))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            await AIClient().complete("system", "user")

        logs = list(debug_dir.glob("ai_call_*.log"))
        assert len(logs) == 1
        assert "=== RESPONSE (5 chars) ===" in logs[0].read_text()

    @patch("anthropic.AsyncAnthropic")
    async def test_complete_json_strips_markdown_fences(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create = AsyncMock(
            return_value=_response('```json\n{"plan": [{"skill": "CLICK", "target": "Add"}]}\n```'))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            result = await AIClient().complete_json("system", "user")

        assert result == {"plan": [{"skill": "CLICK", "target": "Add"}]}

    @patch("anthropic.AsyncAnthropic")
    async def test_complete_json_raises_on_invalid_json(self, mock_anthropic_class, debug_dir):
        mock_client = Mock()
        mock_client.messages.create = AsyncMock(return_value=_response("This is not JSON"))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            with pytest.raises(ValueError, match="invalid JSON"):
                await AIClient().complete_json("system", "user")

        assert list(debug_dir.glob("parse_failure_*.log"))

    @patch("anthropic.AsyncAnthropic")
    async def test_api_error_propagates(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create = AsyncMock(side_effect=Exception("API Error"))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            with pytest.raises(Exception, match="API Error"):
                await AIClient().complete("system", "user")

    @patch("anthropic.AsyncAnthropic")
    async def test_timeout_error_propagates(self, mock_anthropic_class):
        import anthropic

        mock_client = Mock()
        mock_client.messages.create = AsyncMock(side_effect=anthropic.APITimeoutError(request=Mock()))
        mock_anthropic_class.return_value = mock_client

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            with pytest.raises(anthropic.APITimeoutError):
                await AIClient().complete("system", "user")


class TestParseJsonResponse:
    """Tests for LLM quirk handling in JSON parsing."""

    def test_plain_object(self):
        assert AIClient._parse_json_response('{"a": 1}') == {"a": 1}

    def test_fence_without_language(self):
        assert AIClient._parse_json_response('```\n{"a": 1}\n```') == {"a": 1}

    def test_trailing_commas_and_comments(self):
        text = '{\n  "plan": [\n    {"skill": "CLICK"}, // open the form\n  ],\n}'
        assert AIClient._parse_json_response(text) == {"plan": [{"skill": "CLICK"}]}

    def test_prose_around_object(self):
        text = 'Here is the plan:\n{"plan": []}\nLet me know!'
        assert AIClient._parse_json_response(text) == {"plan": []}

    def test_array_is_rejected(self):
        with pytest.raises(ValueError, match="expected an object"):
            AIClient._parse_json_response('[{"skill": "CLICK"}]')

    def test_repair_keeps_urls(self):
        assert _repair_json('{"url": "https://example.com"}') == '{"url": "https://example.com"}'


class TestDebugDirectory:
    """Tests for debug directory functions."""

    def test_set_debug_dir_creates_directory(self, tmp_path: Path):
        debug_dir = tmp_path / "other-debug"
        set_debug_dir(debug_dir)
        assert debug_dir.is_dir()

    def test_get_debug_dir_returns_configured_path(self, debug_dir):
        assert _get_debug_dir() == debug_dir
        assert debug_dir.exists()
