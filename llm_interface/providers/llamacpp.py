"""
llama.cpp server adapter (`/completion` endpoint).

The server has no API key; the credential slot carries the server URL
instead, so `LlamaCPP("http://gpu-box:8080/completion")` and the facade
selector `("llamacpp", "http://gpu-box:8080/completion")` both work.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from llm_interface.errors import ProviderError
from llm_interface.models import CanonicalRequest
from llm_interface.providers.base import HTTPProvider, wire_sampling

_SAMPLING_FIELDS = {
    name: name
    for name in ("temperature", "top_p", "top_k", "min_p", "repeat_penalty", "presence_penalty")
}


class LlamaCPP(HTTPProvider):
    name = "llamacpp"

    def __init__(self, url: str | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", url)
        super().__init__(None, **kwargs)

    @staticmethod
    def build_prompt(request: CanonicalRequest) -> str:
        turns = [f"{msg.role.value}: {msg.content}" for msg in request.messages]
        return "\n".join([*turns, "assistant:"])

    def convert_request(self, request: CanonicalRequest, stream: bool = False) -> dict[str, Any]:
        return {
            "prompt": self.build_prompt(request),
            "n_predict": request.max_tokens,
            **wire_sampling(request.sampling, _SAMPLING_FIELDS),
            "stop": ["\nuser:"],
            "stream": stream,
        }

    async def _invoke(self, request: CanonicalRequest) -> str:
        data = await self._post_json(self.base_url, self.convert_request(request))
        if not isinstance(data, dict) or "content" not in data:
            raise ProviderError(
                "llamacpp response has no content", provider=self.name, response_data=data
            )
        return data["content"].strip()

    async def _stream(self, request: CanonicalRequest) -> AsyncIterator[str]:
        async for event in self._stream_sse(
            self.base_url, self.convert_request(request, stream=True)
        ):
            content = event.get("content")
            if content:
                yield content
