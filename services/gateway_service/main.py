"""
Gateway Service -- HTTP front door to the LLM interface.

Responsibilities:
1. POST /api/messages        -- send one message to a provider, return the result
2. POST /api/messages/stream -- same, streamed back as plain text chunks
3. GET  /api/providers       -- registered provider names and the default one
4. GET  /api/providers/{name}/config/{key} -- one configuration value
5. GET  /health, GET /metrics

Error mapping: configuration and message-format errors are the caller's
fault (400); provider failures that survived the retry budget are 502.
Service-wide cache/retry defaults come from the environment and are
overridden per request by interface_options.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from llm_interface.errors import LLMInterfaceError, ProviderError
from llm_interface.interface import LLMInterface, get_interface
from llm_interface.logging.logger import setup_logging
from llm_interface.models import InterfaceOptions
from llm_interface.observability.metrics import metrics_response
from services.gateway_service.config import GatewayConfig

SERVICE_NAME = "gateway_service"
cfg: GatewayConfig | None = None


class MessageRequest(BaseModel):
    provider: str | None = None
    api_key: str | None = None
    message: str | dict[str, Any]
    options: dict[str, Any] | None = None
    interface_options: dict[str, Any] | float | None = None


@asynccontextmanager
async def lifespan(application: FastAPI):
    global cfg
    cfg = GatewayConfig.from_env()
    logger = setup_logging(SERVICE_NAME, cfg.log_level)

    interface = get_interface()
    logger.info(
        "Gateway Service ready",
        extra={
            "_extra": {
                "default_provider": cfg.default_provider,
                "providers": interface.get_all_model_names(),
            }
        },
    )
    yield

    logger.info("Shutting down")
    await interface.aclose()


app = FastAPI(
    title="LLM Interface - Gateway Service",
    version="0.1.0",
    description="Single HTTP entry point for every configured LLM provider",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(SERVICE_NAME)


def _config() -> GatewayConfig:
    return cfg or GatewayConfig.from_env()


def _error_response(exc: LLMInterfaceError) -> JSONResponse:
    if isinstance(exc, ProviderError):
        return JSONResponse(content={"error": str(exc), **exc.to_dict()}, status_code=502)
    return JSONResponse(
        content={"error": str(exc), "error_type": type(exc).__name__},
        status_code=400,
    )


def _parse_request(request_body: dict[str, Any]) -> MessageRequest | JSONResponse:
    try:
        return MessageRequest.model_validate(request_body)
    except ValidationError as exc:
        return JSONResponse(
            content={"error": f"Invalid message request: {exc}"},
            status_code=400,
        )


def _selector(body: MessageRequest) -> str | tuple[str, str]:
    provider = body.provider or _config().default_provider
    if body.api_key:
        return provider, body.api_key
    return provider


def _interface_options(body: MessageRequest) -> InterfaceOptions:
    """Service defaults, overridden by whatever the caller set explicitly."""
    requested = InterfaceOptions.coerce(body.interface_options)
    overrides = requested.model_dump(exclude_unset=True)
    return InterfaceOptions.coerce({**_config().interface_defaults(), **overrides})


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "default_provider": _config().default_provider,
    }


@app.get("/metrics")
async def metrics():
    return metrics_response()


@app.get("/api/providers")
async def list_providers():
    interface: LLMInterface = get_interface()
    return {
        "providers": interface.get_all_model_names(),
        "default": _config().default_provider,
    }


@app.get("/api/providers/{name}/config/{key}")
async def get_provider_config(name: str, key: str):
    """Return one configuration value; credentials are masked."""
    try:
        value = get_interface().get_model_config_value(name, key)
    except LLMInterfaceError as exc:
        return _error_response(exc)

    if key == "api_key" and value:
        value = f"****{value[-4:]}"
    return {"provider": name.lower(), "key": key, "value": value}


@app.post("/api/messages")
async def send_message(request_body: dict[str, Any]):
    body = _parse_request(request_body)
    if isinstance(body, JSONResponse):
        return body

    selector = _selector(body)
    try:
        result = await get_interface().send_message(
            selector, body.message, body.options, _interface_options(body)
        )
    except LLMInterfaceError as exc:
        logger.warning("Message request failed: %s", exc)
        return _error_response(exc)

    provider = selector if isinstance(selector, str) else selector[0]
    return {"provider": provider.lower(), "result": result}


@app.post("/api/messages/stream")
async def stream_message(request_body: dict[str, Any]):
    """
    Stream the response as text/plain.

    The first chunk is awaited before the response starts so that failures
    to open the stream still map to a proper status code. A failure after
    that point ends the body early.
    """
    body = _parse_request(request_body)
    if isinstance(body, JSONResponse):
        return body

    try:
        stream = get_interface().stream_message(
            _selector(body), body.message, body.options, _interface_options(body)
        )
        first: str | None = await stream.__anext__()
    except StopAsyncIteration:
        first = None
    except LLMInterfaceError as exc:
        logger.warning("Stream request failed: %s", exc)
        return _error_response(exc)

    async def _body():
        if first is None:
            return
        yield first
        async for chunk in stream:
            yield chunk

    return StreamingResponse(_body(), media_type="text/plain")
