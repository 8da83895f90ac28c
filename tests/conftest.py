"""
Shared fixtures for LLM interface tests.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from llm_interface.cache import ResponseCache, reset_response_cache
from llm_interface.config import DEFAULT_PROVIDERS, ConfigStore, ProviderConfig, reset_config_store
from llm_interface.errors import ProviderError
from llm_interface.interface import reset_interface
from llm_interface.models import CanonicalRequest
from llm_interface.providers.base import LLMProvider

TEST_ENV = {
    "GEMINI_API_KEY": "gemini-test-key",
    "WRITER_API_KEY": "writer-test-key",
    "OPENAI_API_KEY": "sk-test-openai",
    "GROQ_API_KEY": "gsk-test-groq",
    "OPENROUTER_API_KEY": "sk-or-test",
}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider(LLMProvider):
    """
    Provider double that records every invocation.

    `responder` is called with the canonical request; it may return text
    or raise to simulate a provider failure.
    """

    name = "stub"

    def __init__(self, api_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(api_key, **kwargs)
        self.calls = 0
        self.requests: list[CanonicalRequest] = []
        self.responder: Callable[[CanonicalRequest], str] = lambda request: "stub response"
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True

    async def _invoke(self, request: CanonicalRequest) -> str:
        self.calls += 1
        self.requests.append(request)
        return self.responder(request)

    async def _stream(self, request: CanonicalRequest) -> AsyncIterator[str]:
        self.calls += 1
        self.requests.append(request)
        for word in self.responder(request).split():
            yield word


class StubFactory:
    """Builds StubProviders and keeps every instance it hands out."""

    def __init__(self) -> None:
        self.created: list[StubProvider] = []

    def __call__(self, api_key: str | None = None, **kwargs: Any) -> StubProvider:
        adapter = StubProvider(api_key, **kwargs)
        self.created.append(adapter)
        return adapter

    def with_key(self, api_key: str) -> list[StubProvider]:
        return [adapter for adapter in self.created if adapter.api_key == api_key]


def always_fail(request: CanonicalRequest) -> str:
    raise ProviderError(
        "upstream unavailable",
        provider="stub",
        status_code=503,
        response_data={"error": "overloaded"},
    )


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_interface()
    reset_config_store()
    reset_response_cache()
    yield
    reset_interface()
    reset_config_store()
    reset_response_cache()


@pytest.fixture
def store() -> ConfigStore:
    providers = {
        **DEFAULT_PROVIDERS,
        "stub": ProviderConfig(
            name="stub",
            models={"default": "stub-model", "large": "stub-large"},
            requires_api_key=False,
        ),
    }
    return ConfigStore(providers=providers, env=dict(TEST_ENV))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(clock=clock)
