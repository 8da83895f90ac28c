"""Data models for the LLM interface layer."""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from llm_interface.errors import ConfigurationError


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ResponseFormat(str, Enum):
    TEXT = "text"
    JSON_OBJECT = "json_object"

    @classmethod
    def coerce(cls, value: Any) -> ResponseFormat:
        """Accept "text", "text/plain", "json_object" or {"type": ...}."""
        if value is None:
            return cls.TEXT
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            value = value.get("type")
        if value in ("text", "text/plain"):
            return cls.TEXT
        if value in ("json_object", "application/json"):
            return cls.JSON_OBJECT
        raise ConfigurationError(f"Unsupported response_format: {value!r}")


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class Conversation(BaseModel):
    """Structured caller input: an ordered message list and an optional model."""

    model: str | None = None
    messages: list[Message]


class CanonicalRequest(BaseModel):
    """
    Provider-agnostic request, built fresh for every call.

    Frozen: adapters read it, nobody mutates it.
    """

    model_config = ConfigDict(frozen=True)

    model: str
    messages: tuple[Message, ...]
    max_tokens: int = Field(gt=0)
    response_format: ResponseFormat = ResponseFormat.TEXT
    sampling: dict[str, int | float] = Field(default_factory=dict)

    @property
    def prompt(self) -> str:
        """Content of the last message."""
        return self.messages[-1].content

    def cache_key(self, provider: str) -> str:
        raw = json.dumps(
            {"provider": provider, **self.model_dump(mode="json")},
            sort_keys=True,
            separators=(",", ":"),
        )
        return f"llm_cache:{hashlib.sha256(raw.encode()).hexdigest()}"


class InterfaceOptions(BaseModel):
    """Per-call knobs for caching and retries."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    cache_timeout_seconds: float | None = Field(
        default=None, ge=0, alias="cacheTimeoutSeconds"
    )
    retry_attempts: int = Field(default=0, ge=0, alias="retryAttempts")
    retry_multiplier: float = Field(default=0.3, gt=0, alias="retryMultiplier")

    @classmethod
    def coerce(cls, value: Any) -> InterfaceOptions:
        """A bare number is shorthand for {cache_timeout_seconds: number}."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ConfigurationError(f"Invalid interface options: {value!r}")
        if isinstance(value, (int, float)):
            value = {"cache_timeout_seconds": value}
        if not isinstance(value, dict):
            raise ConfigurationError(f"Invalid interface options: {value!r}")
        cleaned = {k: v for k, v in value.items() if v is not None}
        try:
            return cls.model_validate(cleaned)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid interface options: {exc}") from exc
