from __future__ import annotations

from typing import Protocol

import httpx
import structlog

from helpdesk.core.config import settings

logger = structlog.get_logger(__name__)


class LLMError(Exception):
    pass


class EmptyCompletion(LLMError):
    pass


class CompletionClient(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str: ...


class EmbeddingClient(Protocol):
    async def embed(self, text: str) -> list[float] | None: ...


def _truncate_content(content: str, limit: int) -> str:
    if limit <= 0 or len(content) <= limit:
        return content
    return content[:limit].rstrip()


class OpenAIClient:
    """OpenAI-compatible chat completion and embedding client."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        embedding_model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self.embedding_model = embedding_model or settings.OPENAI_EMBEDDING_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT_SEC

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict) -> dict:
        if not self.api_key:
            raise LLMError("Missing API key for completion provider")
        url = f"{self.base_url}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=self._headers())
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMError(f"{path} request failed: {exc}") from exc

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        payload = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": _truncate_content(user_message, 8000)},
            ],
            "temperature": settings.LLM_TEMPERATURE if temperature is None else temperature,
            "presence_penalty": 0.1,
            "frequency_penalty": 0.1,
        }
        tokens = settings.LLM_MAX_TOKENS if max_tokens is None else max_tokens
        if tokens > 0:
            payload["max_tokens"] = tokens
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post("chat/completions", payload)
        choices = data.get("choices") or []
        if not choices:
            raise EmptyCompletion("completion returned no choices")
        content = (choices[0].get("message", {}).get("content") or "").strip()
        if not content:
            raise EmptyCompletion("completion returned empty content")
        return content

    async def embed(self, text: str) -> list[float] | None:
        if not self.api_key:
            return None
        try:
            data = await self._post(
                "embeddings", {"model": self.embedding_model, "input": text}
            )
        except LLMError as exc:
            logger.warning("embedding_failed", error=str(exc))
            return None
        items = data.get("data") or []
        if not items:
            return None
        embedding = items[0].get("embedding")
        if not isinstance(embedding, list):
            return None
        return [float(value) for value in embedding]
