"""
Provider configuration and credentials.

Every provider has a ProviderConfig entry: base URL, a model alias table
(must contain "default") and the environment variables that supply its
credential. The built-in table can be extended or overridden with a JSON
file named by LLM_PROVIDERS_FILE:

    {
      "writer": {"models": {"default": "palmyra-x-004", "fast": "palmyra-x-003-instruct"}},
      "my-llama": {"adapter": "llamacpp", "url": "http://gpu-box:8080/completion",
                   "models": {"default": "llama3"}, "requires_api_key": false}
    }

A new entry names the adapter that speaks its wire format: gemini, writer,
llamacpp, openai (any OpenAI-compatible API) or mock.

Credentials come from the environment (GEMINI_API_KEY, WRITER_API_KEY,
LLAMACPP_URL, OPENAI_API_KEY, GROQ_API_KEY, OPENROUTER_API_KEY) and can be
overridden at runtime with ConfigStore.set_api_key.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from llm_interface.errors import ConfigurationError

logger = logging.getLogger(__name__)


AdapterType = Literal["gemini", "writer", "llamacpp", "openai", "mock"]


class ProviderConfig(BaseModel):
    name: str
    adapter: AdapterType | None = None
    url: str = ""
    models: dict[str, str] = Field(default_factory=dict)
    api_key_env: str | None = None
    url_env: str | None = None
    requires_api_key: bool = True

    @field_validator("models")
    @classmethod
    def _has_default(cls, value: dict[str, str]) -> dict[str, str]:
        if "default" not in value:
            raise ValueError("models must define a 'default' entry")
        return value

    @property
    def default_model(self) -> str:
        return self.models["default"]


DEFAULT_PROVIDERS: dict[str, ProviderConfig] = {
    cfg.name: cfg
    for cfg in (
        ProviderConfig(
            name="gemini",
            adapter="gemini",
            url="https://generativelanguage.googleapis.com/v1beta",
            models={
                "default": "gemini-1.5-flash",
                "large": "gemini-1.5-pro",
                "small": "gemini-1.5-flash-8b",
            },
            api_key_env="GEMINI_API_KEY",
        ),
        ProviderConfig(
            name="writer",
            adapter="writer",
            url="https://api.writer.com/v1/chat",
            models={
                "default": "palmyra-x-004",
                "large": "palmyra-x-004",
                "small": "palmyra-x-003-instruct",
            },
            api_key_env="WRITER_API_KEY",
        ),
        ProviderConfig(
            name="llamacpp",
            adapter="llamacpp",
            url="http://localhost:8080/completion",
            models={"default": "llama.cpp", "large": "llama.cpp", "small": "llama.cpp"},
            url_env="LLAMACPP_URL",
            requires_api_key=False,
        ),
        ProviderConfig(
            name="openai",
            adapter="openai",
            url="https://api.openai.com/v1",
            models={"default": "gpt-4o-mini", "large": "gpt-4o", "small": "gpt-4o-mini"},
            api_key_env="OPENAI_API_KEY",
        ),
        ProviderConfig(
            name="groq",
            adapter="openai",
            url="https://api.groq.com/openai/v1",
            models={
                "default": "llama-3.3-70b-versatile",
                "large": "llama-3.3-70b-versatile",
                "small": "llama-3.1-8b-instant",
            },
            api_key_env="GROQ_API_KEY",
        ),
        ProviderConfig(
            name="openrouter",
            adapter="openai",
            url="https://openrouter.ai/api/v1",
            models={
                "default": "meta-llama/llama-3.3-70b-instruct:free",
                "large": "meta-llama/llama-3.3-70b-instruct:free",
                "small": "meta-llama/llama-3.2-3b-instruct:free",
            },
            api_key_env="OPENROUTER_API_KEY",
        ),
        ProviderConfig(
            name="mock",
            adapter="mock",
            models={"default": "mock-deterministic"},
            requires_api_key=False,
        ),
    )
}


class ConfigStore:
    """
    Read-mostly view over provider configuration and credentials.

    Reads are pure. set_api_key / set_model_alias exist for process start-up
    and interactive use; they only touch override dicts.
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderConfig] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._providers = dict(DEFAULT_PROVIDERS if providers is None else providers)
        self._env = os.environ if env is None else env
        self._api_keys: dict[str, str] = {}
        self._aliases: dict[str, dict[str, str]] = {}

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ConfigStore:
        env = os.environ if env is None else env
        providers = dict(DEFAULT_PROVIDERS)
        path = env.get("LLM_PROVIDERS_FILE")
        if path:
            providers.update(load_provider_file(Path(path), providers))
        return cls(providers=providers, env=env)

    # --- reads ---

    def names(self) -> list[str]:
        return sorted(self._providers)

    def provider(self, name: str) -> ProviderConfig:
        try:
            return self._providers[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown LLM provider '{name}'. Available: {', '.join(self.names())}"
            ) from None

    def aliases(self, name: str) -> dict[str, str]:
        return {**self.provider(name).models, **self._aliases.get(name, {})}

    def default_model(self, name: str) -> str:
        return self.aliases(name)["default"]

    def resolve_model_alias(self, name: str, model: str | None) -> str | None:
        if not model:
            return model
        return self.aliases(name).get(model, model)

    def api_key(self, name: str) -> str | None:
        if name in self._api_keys:
            return self._api_keys[name]
        cfg = self.provider(name)
        if cfg.api_key_env:
            return self._env.get(cfg.api_key_env) or None
        return None

    def url(self, name: str) -> str:
        cfg = self.provider(name)
        if cfg.url_env and self._env.get(cfg.url_env):
            return self._env[cfg.url_env]
        return cfg.url

    def get_model_config_value(self, name: str, key: str) -> Any:
        """
        Look up one configuration value.

        Keys: "url", "api_key", "model.<alias>" (e.g. "model.default").
        Unknown keys return None.
        """
        if key == "url":
            return self.url(name)
        if key == "api_key":
            return self.api_key(name)
        if key.startswith("model."):
            return self.aliases(name).get(key.split(".", 1)[1])
        return None

    # --- writes ---

    def set_api_key(self, name: str, api_key: str) -> None:
        self.provider(name)
        self._api_keys[name] = api_key

    def set_model_alias(self, name: str, alias: str, model: str) -> None:
        self.provider(name)
        self._aliases.setdefault(name, {})[alias] = model


def load_provider_file(
    path: Path, base: Mapping[str, ProviderConfig]
) -> dict[str, ProviderConfig]:
    """Parse a provider JSON file, merging each entry over any existing one."""
    try:
        raw = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read provider file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Provider file {path} must contain a JSON object")

    merged: dict[str, ProviderConfig] = {}
    for name, entry in raw.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Config for provider '{name}' must be an object")
        if name not in base and "adapter" not in entry:
            raise ConfigurationError(
                f"New provider '{name}' must name an adapter: gemini, writer, llamacpp, openai or mock"
            )
        current = base[name].model_dump() if name in base else {"name": name}
        models = {**current.get("models", {}), **entry.get("models", {})}
        try:
            merged[name] = ProviderConfig.model_validate(
                {**current, **entry, "name": name, "models": models}
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid config for provider '{name}': {exc}") from exc

    logger.info("Loaded %d provider entries from %s", len(merged), path)
    return merged


_store: ConfigStore | None = None


def get_config_store() -> ConfigStore:
    """Return the process-wide configuration store."""
    global _store
    if _store is None:
        _store = ConfigStore.from_env()
    return _store


def reset_config_store() -> None:
    """Reset the singleton (for testing)."""
    global _store
    _store = None
