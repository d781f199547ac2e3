"""OpenAI (ChatGPT) adapter over the Chat Completions API."""

import logging

import httpx

from app.collectors.llm_base import BaseLlmAdapter

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
DEFAULT_API_URL = "https://api.openai.com/v1"

# GPT-5 / o-series reject temperature and max_tokens; they take max_completion_tokens.
_REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def _is_reasoning_model(model: str) -> bool:
    return any(model.startswith(p) for p in _REASONING_MODEL_PREFIXES)


class OpenAiAdapter(BaseLlmAdapter):
    """Talks to OpenAI Chat Completions with bearer auth."""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        api_url: str = DEFAULT_API_URL,
        request_timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(api_key=api_key, **kwargs)
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.request_timeout = request_timeout

    def _headers(self, api_key: str | None = None) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key or self.api_key}",
            "Content-Type": "application/json",
        }

    async def complete(
        self,
        system: str,
        user: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        json_mode: bool = False,
    ) -> str:
        payload: dict = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }

        if _is_reasoning_model(self.model):
            payload["max_completion_tokens"] = max_tokens
        else:
            payload["temperature"] = temperature
            payload["max_tokens"] = max_tokens

        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        async with httpx.AsyncClient(timeout=self.request_timeout) as client:
            resp = await client.post(f"{self.api_url}/chat/completions", json=payload, headers=self._headers())

            if resp.status_code >= 400:
                try:
                    error_body = resp.json()
                    error_msg = error_body.get("error", {}).get("message", resp.text[:500])
                except Exception:
                    error_msg = resp.text[:500]
                logger.error(
                    "OpenAI API %d for model=%s: %s",
                    resp.status_code,
                    self.model,
                    error_msg,
                )
            resp.raise_for_status()
            data = resp.json()

        choice = data["choices"][0]
        return choice["message"]["content"] or ""

    async def validate_api_key(self, api_key: str) -> bool:
        """Check *api_key* against the models endpoint."""
        if not api_key or not api_key.startswith("sk-"):
            return False
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.get(f"{self.api_url}/models", headers=self._headers(api_key))
        except httpx.HTTPError as e:
            logger.warning("OpenAI key validation request failed: %s", e)
            return False
        return resp.status_code == 200
