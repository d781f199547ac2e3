"""Tests for the OpenAI Chat Completions adapter."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.collectors.llm_openai import OpenAiAdapter


def _mock_client(mock_resp, method="post"):
    mock_client = AsyncMock()
    getattr(mock_client, method).return_value = mock_resp
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def _ok_response(content: str):
    mock_resp = MagicMock()
    mock_resp.status_code = 200
    mock_resp.json.return_value = {
        "choices": [{"message": {"content": content}, "finish_reason": "stop"}],
        "model": "gpt-4o",
        "usage": {"prompt_tokens": 10, "completion_tokens": 10, "total_tokens": 20},
    }
    mock_resp.raise_for_status = MagicMock()
    return mock_resp


@pytest.fixture
def adapter():
    return OpenAiAdapter(api_key="sk-test-fake-key", model="gpt-4o")


class TestComplete:
    @pytest.mark.asyncio
    async def test_complete_success(self, adapter):
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            mock_client = _mock_client(_ok_response("Vercel is a great host."))
            MockClient.return_value = mock_client

            result = await adapter.complete("system", "Where should I deploy?")

        assert result == "Vercel is a great host."
        call = mock_client.post.call_args
        assert call.args[0] == "https://api.openai.com/v1/chat/completions"
        payload = call.kwargs["json"]
        assert payload["model"] == "gpt-4o"
        assert payload["messages"][1] == {"role": "user", "content": "Where should I deploy?"}
        assert payload["temperature"] == 0.7
        assert "response_format" not in payload
        assert call.kwargs["headers"]["Authorization"] == "Bearer sk-test-fake-key"

    @pytest.mark.asyncio
    async def test_json_mode(self, adapter):
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            mock_client = _mock_client(_ok_response("{}"))
            MockClient.return_value = mock_client

            await adapter.complete("system", "user", json_mode=True)

        payload = mock_client.post.call_args.kwargs["json"]
        assert payload["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_reasoning_model_uses_max_completion_tokens(self):
        adapter = OpenAiAdapter(api_key="sk-test", model="gpt-5-mini")
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            mock_client = _mock_client(_ok_response("ok"))
            MockClient.return_value = mock_client

            await adapter.complete("system", "user", max_tokens=123)

        payload = mock_client.post.call_args.kwargs["json"]
        assert payload["max_completion_tokens"] == 123
        assert "temperature" not in payload
        assert "max_tokens" not in payload

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, adapter):
        mock_resp = MagicMock()
        mock_resp.status_code = 429
        mock_resp.json.return_value = {"error": {"message": "Rate limit reached"}}
        mock_resp.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError("429", request=MagicMock(), response=mock_resp)
        )

        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            MockClient.return_value = _mock_client(mock_resp)
            with pytest.raises(httpx.HTTPStatusError):
                await adapter.complete("system", "user")

    @pytest.mark.asyncio
    async def test_null_content_becomes_empty(self, adapter):
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            MockClient.return_value = _mock_client(_ok_response(None))
            assert await adapter.complete("system", "user") == ""


class TestValidateApiKey:
    @pytest.mark.asyncio
    async def test_rejects_wrong_prefix_without_request(self, adapter):
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            assert await adapter.validate_api_key("not-a-key") is False
            MockClient.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_key(self, adapter):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            mock_client = _mock_client(mock_resp, method="get")
            MockClient.return_value = mock_client
            assert await adapter.validate_api_key("sk-new-key-123") is True

        call = mock_client.get.call_args
        assert call.args[0] == "https://api.openai.com/v1/models"
        assert call.kwargs["headers"]["Authorization"] == "Bearer sk-new-key-123"

    @pytest.mark.asyncio
    async def test_unauthorized_key(self, adapter):
        mock_resp = MagicMock()
        mock_resp.status_code = 401
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            MockClient.return_value = _mock_client(mock_resp, method="get")
            assert await adapter.validate_api_key("sk-revoked") is False

    @pytest.mark.asyncio
    async def test_network_error(self, adapter):
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            mock_client = _mock_client(None, method="get")
            mock_client.get.side_effect = httpx.ConnectError("refused")
            MockClient.return_value = mock_client
            assert await adapter.validate_api_key("sk-anything") is False


class TestAnalyzeThroughHttp:
    @pytest.mark.asyncio
    async def test_analyze_prompt_response(self, adapter):
        answer = _ok_response("Use Netlify: https://docs.netlify.com")
        classification = _ok_response(
            '{"brandMentioned": false, "competitors": ["Netlify"], "sources": ["https://docs.netlify.com"]}'
        )
        with patch("app.collectors.llm_openai.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.post.side_effect = [answer, classification]
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            MockClient.return_value = mock_client

            analysis = await adapter.analyze_prompt_response("Best static host?")

        assert analysis.response == "Use Netlify: https://docs.netlify.com"
        assert analysis.competitors == ["Netlify"]
        assert analysis.sources == ["https://docs.netlify.com"]
        assert mock_client.post.await_count == 2
