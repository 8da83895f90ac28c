"""
Deterministic mock LLM provider for testing and development.

Always returns the same output for the same prompt hash, making the whole
pipeline reproducible without network calls or API keys.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import AsyncIterator

from llm_interface.models import CanonicalRequest, ResponseFormat
from llm_interface.providers.base import LLMProvider

_MOCK_PREFIX = "[MOCK] "


class MockProvider(LLMProvider):
    name = "mock"

    @staticmethod
    def _prompt_hash(request: CanonicalRequest) -> str:
        transcript = "\n".join(f"{m.role.value}:{m.content}" for m in request.messages)
        return hashlib.sha256(transcript.encode()).hexdigest()

    def _render(self, request: CanonicalRequest) -> str:
        prompt_hash = self._prompt_hash(request)
        if request.response_format is ResponseFormat.JSON_OBJECT:
            return json.dumps({"mock": True, "model": request.model, "prompt_hash": prompt_hash[:12]})
        return f"{_MOCK_PREFIX}Deterministic response for prompt hash {prompt_hash[:12]}."

    async def _invoke(self, request: CanonicalRequest) -> str:
        return self._render(request)

    async def _stream(self, request: CanonicalRequest) -> AsyncIterator[str]:
        for word in self._render(request).split(" "):
            yield word + " "
