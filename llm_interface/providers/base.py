"""Abstract base classes that all LLM providers must implement."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx

from llm_interface.cache import CacheBackend, get_response_cache, is_cacheable
from llm_interface.config import ConfigStore, get_config_store
from llm_interface.errors import ConfigurationError, ProviderError
from llm_interface.messages import DEFAULT_SAMPLING, PASSTHROUGH, MessagePolicy, normalize
from llm_interface.models import CanonicalRequest, InterfaceOptions, ResponseFormat
from llm_interface.observability.metrics import (
    llm_cache_lookups,
    llm_request_latency,
    llm_requests,
)
from llm_interface.retry import with_retry

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[\w-]*\s*\n?(.*?)\n?```$", re.DOTALL)
_END_OF_STREAM = object()


def shape_response(raw: Any, response_format: ResponseFormat) -> Any:
    """
    Turn raw provider text into the caller-facing result.

    json_object responses are parsed; malformed JSON yields None instead of
    raising so callers can detect bad model output without a try/except.
    """
    if response_format is not ResponseFormat.JSON_OBJECT:
        return raw
    text = raw.strip() if isinstance(raw, str) else raw
    if isinstance(text, str):
        fenced = _CODE_FENCE.match(text)
        if fenced:
            text = fenced.group(1).strip()
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        logger.warning("Provider returned malformed JSON; returning None")
        return None


def wire_sampling(
    sampling: Mapping[str, int | float], names: Mapping[str, str]
) -> dict[str, int | float]:
    """Rename canonical sampling knobs to a provider's field names; drop the rest."""
    return {names[key]: value for key, value in sampling.items() if key in names}


class LLMProvider(ABC):
    """
    Contract for LLM providers.

    Subclasses only translate: CanonicalRequest -> provider payload in
    _invoke/_stream, provider payload -> text on the way back. Normalization,
    caching, retries and response shaping live here.

    Instances hold a credential, a config store, a cache and (for HTTP
    providers) a client handle. No per-call state is kept on the instance,
    so one adapter can serve overlapping calls.
    """

    name: str
    message_policy: MessagePolicy = PASSTHROUGH
    default_sampling: Mapping[str, int | float] = DEFAULT_SAMPLING

    def __init__(
        self,
        api_key: str | None = None,
        *,
        provider_name: str | None = None,
        store: ConfigStore | None = None,
        cache: CacheBackend | None = None,
    ) -> None:
        # provider_name lets one adapter class serve a configured provider entry
        if provider_name:
            self.name = provider_name
        self._store = store or get_config_store()
        self._cache = cache or get_response_cache()
        self.api_key = api_key or self._store.api_key(self.name)
        if self._store.provider(self.name).requires_api_key and not self.api_key:
            raise ConfigurationError(f"An API key is required for provider '{self.name}'.")

    def build_request(
        self, message: Any, options: Mapping[str, Any] | None = None
    ) -> CanonicalRequest:
        return normalize(
            message,
            options,
            default_model=self._store.default_model(self.name),
            model_aliases=self._store.aliases(self.name),
            policy=self.message_policy,
            default_sampling=self.default_sampling,
        )

    async def send_message(
        self,
        message: Any,
        options: Mapping[str, Any] | None = None,
        interface_options: InterfaceOptions | Mapping[str, Any] | float | None = None,
    ) -> Any:
        """
        Send one message and return the shaped response.

        Returns a str for text responses, the parsed value (or None) for
        json_object responses.
        """
        opts = InterfaceOptions.coerce(interface_options)
        request = self.build_request(message, options)
        cache_key = request.cache_key(self.name)
        ttl = opts.cache_timeout_seconds

        if ttl:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                logger.debug("LLM cache HIT for key %s", cache_key[:24])
                llm_cache_lookups.labels(provider=self.name, result="hit").inc()
                llm_requests.labels(provider=self.name, outcome="cache_hit").inc()
                return cached
            logger.debug("LLM cache MISS for key %s", cache_key[:24])
            llm_cache_lookups.labels(provider=self.name, result="miss").inc()

        started = time.monotonic()
        try:
            with llm_request_latency.labels(provider=self.name).time():
                raw = await with_retry(
                    lambda: self._invoke(request),
                    retry_attempts=opts.retry_attempts,
                    retry_multiplier=opts.retry_multiplier,
                    provider=self.name,
                )
        except Exception:
            llm_requests.labels(provider=self.name, outcome="error").inc()
            raise
        llm_requests.labels(provider=self.name, outcome="success").inc()

        result = shape_response(raw, request.response_format)
        logger.info(
            "Provider %s answered in %.2fs",
            self.name,
            time.monotonic() - started,
            extra={"_extra": {"provider": self.name, "model": request.model}},
        )

        if ttl and is_cacheable(result):
            await self._cache.put(cache_key, result, ttl)
        return result

    async def stream_message(
        self,
        message: Any,
        options: Mapping[str, Any] | None = None,
        interface_options: InterfaceOptions | Mapping[str, Any] | float | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream the provider's text chunks.

        Retries cover opening the stream (up to the first chunk); a stream
        that fails midway propagates. Streams are never cached and cannot be
        restarted: call again to re-stream.
        """
        opts = InterfaceOptions.coerce(interface_options)
        request = self.build_request(message, options)
        stream: AsyncIterator[str] | None = None

        async def _open() -> Any:
            nonlocal stream
            stream = self._stream(request)
            try:
                return await stream.__anext__()
            except StopAsyncIteration:
                return _END_OF_STREAM

        first = await with_retry(
            _open,
            retry_attempts=opts.retry_attempts,
            retry_multiplier=opts.retry_multiplier,
            provider=self.name,
        )
        if first is _END_OF_STREAM:
            return
        yield first
        async for chunk in stream:
            yield chunk

    @abstractmethod
    async def _invoke(self, request: CanonicalRequest) -> str:
        """Perform one provider call and return the raw response text."""

    @abstractmethod
    def _stream(self, request: CanonicalRequest) -> AsyncIterator[str]:
        """Open a provider stream and yield text chunks."""

    async def aclose(self) -> None:
        pass

    async def __aenter__(self) -> LLMProvider:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


class HTTPProvider(LLMProvider):
    """Base for providers spoken to directly over HTTP with httpx."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        provider_name: str | None = None,
        store: ConfigStore | None = None,
        cache: CacheBackend | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(api_key, provider_name=provider_name, store=store, cache=cache)
        self.base_url = base_url or self._store.url(self.name)
        if not self.base_url:
            raise ConfigurationError(f"No base URL configured for provider '{self.name}'.")

        timeout = timeout or float(os.environ.get("LLM_REQUEST_TIMEOUT", "120"))
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _status_error(self, response: httpx.Response) -> ProviderError:
        try:
            data = response.json()
        except ValueError:
            data = response.text
        return ProviderError(
            f"{self.name} returned HTTP {response.status_code}",
            provider=self.name,
            status_code=response.status_code,
            response_data=data,
        )

    async def _post_json(
        self, url: str, payload: dict[str, Any], *, params: dict[str, str] | None = None
    ) -> Any:
        try:
            response = await self._client.post(
                url, json=payload, headers=self._headers(), params=params
            )
        except httpx.RequestError as exc:
            raise ProviderError(f"{self.name} request failed: {exc}", provider=self.name) from exc

        if response.is_error:
            raise self._status_error(response)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"{self.name} returned a non-JSON body",
                provider=self.name,
                status_code=response.status_code,
                response_data=response.text,
            ) from exc

    async def _stream_sse(
        self, url: str, payload: dict[str, Any], *, params: dict[str, str] | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield each decoded `data:` event of a server-sent-event stream."""
        try:
            async with self._client.stream(
                "POST", url, json=payload, headers=self._headers(), params=params
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise self._status_error(response)
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[5:].strip()
                    if not data or data == "[DONE]":
                        continue
                    try:
                        event = json.loads(data)
                    except ValueError as exc:
                        raise ProviderError(
                            f"{self.name} sent a malformed stream event",
                            provider=self.name,
                            response_data=data,
                        ) from exc
                    yield event
        except httpx.RequestError as exc:
            raise ProviderError(f"{self.name} stream failed: {exc}", provider=self.name) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
