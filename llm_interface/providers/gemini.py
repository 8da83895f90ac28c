"""
Google Gemini adapter (Generative Language REST API).

The conversation becomes `contents`: every turn but the last is chat
history, the last turn is the prompt and is always sent as a user turn.
Gemini calls the assistant role "model" and requires history to open with a
user turn, hence the FIRST_TURN_USER policy.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from llm_interface.errors import ProviderError
from llm_interface.messages import DEFAULT_SAMPLING, FIRST_TURN_USER
from llm_interface.models import CanonicalRequest, ResponseFormat, Role
from llm_interface.providers.base import HTTPProvider, wire_sampling

_ROLE_NAMES = {Role.USER: "user", Role.ASSISTANT: "model", Role.SYSTEM: "user"}

_SAMPLING_FIELDS = {"temperature": "temperature", "top_p": "topP", "top_k": "topK"}


class Gemini(HTTPProvider):
    name = "gemini"
    message_policy = FIRST_TURN_USER
    default_sampling = {**DEFAULT_SAMPLING, "top_p": 1, "top_k": 1}

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self.api_key or ""}

    def convert_request(self, request: CanonicalRequest) -> dict[str, Any]:
        """Build the generateContent body for a canonical request."""
        history = [
            {"role": _ROLE_NAMES[msg.role], "parts": [{"text": msg.content}]}
            for msg in request.messages[:-1]
        ]
        prompt = {"role": "user", "parts": [{"text": request.prompt}]}

        mime_type = (
            "application/json"
            if request.response_format is ResponseFormat.JSON_OBJECT
            else "text/plain"
        )
        generation_config = {
            **wire_sampling(request.sampling, _SAMPLING_FIELDS),
            "maxOutputTokens": request.max_tokens,
            "responseMimeType": mime_type,
        }
        return {"contents": [*history, prompt], "generationConfig": generation_config}

    def _model_url(self, model: str, method: str) -> str:
        return f"{self.base_url.rstrip('/')}/models/{model}:{method}"

    async def _invoke(self, request: CanonicalRequest) -> str:
        data = await self._post_json(
            self._model_url(request.model, "generateContent"),
            self.convert_request(request),
        )
        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderError(
                "gemini returned no candidates",
                provider=self.name,
                response_data=data.get("promptFeedback", data),
            )
        return _candidate_text(candidates[0])

    async def _stream(self, request: CanonicalRequest) -> AsyncIterator[str]:
        async for event in self._stream_sse(
            self._model_url(request.model, "streamGenerateContent"),
            self.convert_request(request),
            params={"alt": "sse"},
        ):
            for candidate in event.get("candidates") or []:
                text = _candidate_text(candidate)
                if text:
                    yield text


def _candidate_text(candidate: dict[str, Any]) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)
