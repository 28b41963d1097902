"""OpenAI-compatible chat completions client (DashScope/Qwen by default)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import Settings
from .errors import ProviderError

logger = logging.getLogger("socia.llm")


class LLMClient:
    """Single-prompt completion over ``POST {base_url}/chat/completions``.

    Every failure (network, timeout, non-200, malformed body) is raised as
    ProviderError.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 15.0,
        temperature: float = 0.8,
        max_tokens: int = 1000,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> LLMClient | None:
        """Build a client, or None when no API key is configured."""
        if not settings.llm_api_key:
            logger.info("LLM_API_KEY not set; suggestions will use fallbacks")
            return None
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    async def complete(self, prompt: str) -> str:
        """Send one user prompt and return the first choice's content."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        try:
            response = await self._client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"LLM request failed: {type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise ProviderError(f"LLM API returned status {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Malformed LLM response: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise ProviderError("Empty LLM response")
        return content

    async def aclose(self) -> None:
        await self._client.aclose()
