"""
Interface facade -- single entry point for callers.

Resolves a provider selector to an adapter and delegates:

    from llm_interface import send_message

    text = await send_message("gemini", "Explain gravity", {"max_tokens": 100})
    data = await send_message(
        ("openai", "sk-..."),                       # ad-hoc credential
        {"messages": [{"role": "user", "content": "List 2 reasons as JSON"}]},
        {"response_format": "json_object"},
        {"cacheTimeoutSeconds": 60, "retryAttempts": 2},
    )

Supported providers:

  gemini      Google Generative Language API   -- GEMINI_API_KEY
  writer      Writer Palmyra chat API          -- WRITER_API_KEY
  llamacpp    llama.cpp server /completion     -- LLAMACPP_URL (no key)
  openai      OpenAI API                       -- OPENAI_API_KEY
  groq        Groq API                         -- GROQ_API_KEY
  openrouter  OpenRouter                       -- OPENROUTER_API_KEY
  mock        Built-in deterministic mock, no API key needed

Entries added through LLM_PROVIDERS_FILE are callable by name too; their
`adapter` field picks the class that speaks their wire format.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from types import MappingProxyType
from typing import Any, Union

from llm_interface.cache import CacheBackend, get_response_cache
from llm_interface.config import ConfigStore, get_config_store
from llm_interface.errors import ConfigurationError
from llm_interface.providers import (
    Gemini,
    LlamaCPP,
    LLMProvider,
    MockProvider,
    OpenAIProvider,
    Writer,
)

logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., LLMProvider]
ProviderSelector = Union[str, tuple[str, str], list[str]]


def _openai_compatible(name: str) -> ProviderFactory:
    return functools.partial(OpenAIProvider, provider_name=name)


# Built once at import; read-only afterwards.
PROVIDERS: Mapping[str, ProviderFactory] = MappingProxyType(
    {
        "gemini": Gemini,
        "writer": Writer,
        "llamacpp": LlamaCPP,
        "openai": _openai_compatible("openai"),
        "groq": _openai_compatible("groq"),
        "openrouter": _openai_compatible("openrouter"),
        "mock": MockProvider,
    }
)


def parse_selector(selector: ProviderSelector) -> tuple[str, str | None]:
    """Split a selector into (provider name, credential override)."""
    if isinstance(selector, str):
        return selector.lower(), None
    if (
        isinstance(selector, (tuple, list))
        and len(selector) == 2
        and isinstance(selector[0], str)
    ):
        return selector[0].lower(), selector[1] or None
    raise ConfigurationError(
        f"Provider selector must be a name or a [name, api_key] pair, got {selector!r}"
    )


class LLMInterface:
    """
    Resolves providers by name, constructs them lazily and delegates calls.

    Default-credential adapters are built once and reused. A `(name, key)`
    selector gets a fresh adapter for that one call, closed when the call
    ends, so arbitrary caller keys never accumulate here.
    """

    def __init__(
        self,
        store: ConfigStore | None = None,
        cache: CacheBackend | None = None,
        providers: Mapping[str, ProviderFactory] | None = None,
    ) -> None:
        self._store = store or get_config_store()
        self._cache = cache or get_response_cache()
        self._providers = PROVIDERS if providers is None else MappingProxyType(dict(providers))
        self._instances: dict[str, LLMProvider] = {}
        # replaced by set_api_key; may still be serving a call, closed by aclose()
        self._retired: list[LLMProvider] = []

    def _configured_adapter(self, name: str) -> str | None:
        if name not in self._store.names():
            return None
        adapter = self._store.provider(name).adapter
        return adapter if adapter in self._providers else None

    def _factory(self, name: str) -> ProviderFactory:
        factory = self._providers.get(name)
        if factory is not None:
            return factory
        adapter = self._configured_adapter(name)
        if adapter is None:
            raise ConfigurationError(
                f"Unknown LLM provider '{name}'. "
                f"Available: {', '.join(self.get_all_model_names())}"
            )
        return functools.partial(self._providers[adapter], provider_name=name)

    def _build(self, name: str, credential: str | None) -> LLMProvider:
        adapter = self._factory(name)(credential, store=self._store, cache=self._cache)
        logger.info(
            "LLM provider initialized: %s (ad-hoc credential=%s)",
            name,
            credential is not None,
        )
        return adapter

    def get_provider(self, selector: ProviderSelector) -> LLMProvider:
        """
        Return the adapter for a selector.

        A bare name returns the shared adapter. A `(name, key)` pair returns
        a new adapter owned by the caller, who should close it.
        """
        name, credential = parse_selector(selector)
        if credential is not None:
            return self._build(name, credential)

        adapter = self._instances.get(name)
        if adapter is None:
            adapter = self._instances[name] = self._build(name, None)
        return adapter

    async def send_message(
        self,
        selector: ProviderSelector,
        message: Any,
        options: Mapping[str, Any] | None = None,
        interface_options: Any = None,
    ) -> Any:
        name, credential = parse_selector(selector)
        if credential is None:
            adapter = self.get_provider(name)
            return await adapter.send_message(message, options, interface_options)

        async with self._build(name, credential) as adapter:
            return await adapter.send_message(message, options, interface_options)

    def stream_message(
        self,
        selector: ProviderSelector,
        message: Any,
        options: Mapping[str, Any] | None = None,
        interface_options: Any = None,
    ) -> AsyncIterator[str]:
        """Return the provider's chunk stream; unknown providers fail here, not on iteration."""
        name, credential = parse_selector(selector)
        if credential is None:
            adapter = self.get_provider(name)
            return adapter.stream_message(message, options, interface_options)

        adapter = self._build(name, credential)
        chunks = adapter.stream_message(message, options, interface_options)
        return _closing_stream(adapter, chunks)

    # --- configuration accessors ---

    def get_all_model_names(self) -> list[str]:
        configured = {name for name in self._store.names() if self._configured_adapter(name)}
        return sorted(set(self._providers) | configured)

    def get_model_config_value(self, provider: str, key: str) -> Any:
        return self._store.get_model_config_value(provider.lower(), key)

    def resolve_model_alias(self, provider: str, model: str | None) -> str | None:
        return self._store.resolve_model_alias(provider.lower(), model)

    def set_api_key(self, provider: str, api_key: str) -> None:
        name = provider.lower()
        self._store.set_api_key(name, api_key)
        # The next call builds an adapter with the new key.
        previous = self._instances.pop(name, None)
        if previous is not None:
            self._retired.append(previous)

    def set_model_alias(self, provider: str, alias: str, model: str) -> None:
        self._store.set_model_alias(provider.lower(), alias, model)

    async def aclose(self) -> None:
        adapters = [*self._instances.values(), *self._retired]
        self._instances.clear()
        self._retired.clear()
        for adapter in adapters:
            await adapter.aclose()


async def _closing_stream(adapter: LLMProvider, chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    async with adapter:
        async for chunk in chunks:
            yield chunk


_instance: LLMInterface | None = None


def get_interface() -> LLMInterface:
    """Return the process-wide interface."""
    global _instance
    if _instance is None:
        _instance = LLMInterface()
    return _instance


def reset_interface() -> None:
    """Reset the singleton (for testing)."""
    global _instance
    _instance = None


async def send_message(
    selector: ProviderSelector,
    message: Any,
    options: Mapping[str, Any] | None = None,
    interface_options: Any = None,
) -> Any:
    return await get_interface().send_message(selector, message, options, interface_options)


def stream_message(
    selector: ProviderSelector,
    message: Any,
    options: Mapping[str, Any] | None = None,
    interface_options: Any = None,
) -> AsyncIterator[str]:
    return get_interface().stream_message(selector, message, options, interface_options)
