"""
OpenAI-compatible LLM provider.

Works with any API that speaks the OpenAI Chat Completions protocol:
  - OpenAI      (base_url=https://api.openai.com/v1)
  - Groq        (base_url=https://api.groq.com/openai/v1)         -- free tier
  - OpenRouter  (base_url=https://openrouter.ai/api/v1)           -- free models

The SDK's own retry loop is disabled (max_retries=0): retries belong to the
interface's retry controller so the attempt budget is the caller's.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from llm_interface.cache import CacheBackend
from llm_interface.config import ConfigStore
from llm_interface.errors import ProviderError
from llm_interface.models import CanonicalRequest, ResponseFormat
from llm_interface.providers.base import LLMProvider, wire_sampling

_SAMPLING_FIELDS = {
    name: name
    for name in ("temperature", "top_p", "frequency_penalty", "presence_penalty", "seed")
}


class OpenAIProvider(LLMProvider):
    """
    OpenAI Chat Completions adapter.

    One class serves every OpenAI-compatible backend; provider_name selects
    the base URL, credential variable and alias table from the config store.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        provider_name: str = "openai",
        base_url: str | None = None,
        store: ConfigStore | None = None,
        cache: CacheBackend | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(api_key, provider_name=provider_name, store=store, cache=cache)

        self.base_url = base_url or self._store.url(self.name)
        timeout = timeout or float(os.environ.get("LLM_REQUEST_TIMEOUT", "120"))
        self._client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    def convert_request(self, request: CanonicalRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in request.messages
            ],
            "max_tokens": request.max_tokens,
            **wire_sampling(request.sampling, _SAMPLING_FIELDS),
        }
        if request.response_format is ResponseFormat.JSON_OBJECT:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    def _provider_error(self, exc: openai.APIError) -> ProviderError:
        return ProviderError(
            f"{self.name} request failed: {exc}",
            provider=self.name,
            status_code=getattr(exc, "status_code", None),
            response_data=exc.body,
        )

    async def _invoke(self, request: CanonicalRequest) -> str:
        try:
            response = await self._client.chat.completions.create(**self.convert_request(request))
        except openai.APIError as exc:
            raise self._provider_error(exc) from exc

        if not response.choices:
            raise ProviderError(
                f"{self.name} returned no choices",
                provider=self.name,
                response_data=response.model_dump(),
            )
        return response.choices[0].message.content or ""

    async def _stream(self, request: CanonicalRequest) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                **self.convert_request(request), stream=True
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APIError as exc:
            raise self._provider_error(exc) from exc

    async def aclose(self) -> None:
        await self._client.close()
