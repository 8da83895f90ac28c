"""
Writer (Palmyra) chat adapter.

Writer rejects conversations that open with a system turn or do not
alternate user/assistant, so messages go through STRICT_ALTERNATION before
being sent.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from llm_interface.errors import ProviderError
from llm_interface.messages import STRICT_ALTERNATION
from llm_interface.models import CanonicalRequest
from llm_interface.providers.base import HTTPProvider, wire_sampling

_SAMPLING_FIELDS = {"temperature": "temperature", "top_p": "top_p"}


class Writer(HTTPProvider):
    name = "writer"
    message_policy = STRICT_ALTERNATION

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def convert_request(self, request: CanonicalRequest, stream: bool = False) -> dict[str, Any]:
        return {
            "model": request.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in request.messages
            ],
            "max_tokens": request.max_tokens,
            **wire_sampling(request.sampling, _SAMPLING_FIELDS),
            "stream": stream,
        }

    async def _invoke(self, request: CanonicalRequest) -> str:
        data = await self._post_json(self.base_url, self.convert_request(request))
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                "writer response has no message content",
                provider=self.name,
                response_data=data,
            ) from exc

    async def _stream(self, request: CanonicalRequest) -> AsyncIterator[str]:
        async for event in self._stream_sse(
            self.base_url, self.convert_request(request, stream=True)
        ):
            choices = event.get("choices") or [{}]
            content = (choices[0].get("delta") or {}).get("content")
            if content:
                yield content
