"""
Tests for provider configuration and credentials.
"""

from __future__ import annotations

import json

import pytest

from llm_interface.config import (
    DEFAULT_PROVIDERS,
    ConfigStore,
    ProviderConfig,
    get_config_store,
    load_provider_file,
)
from llm_interface.errors import ConfigurationError
from llm_interface.models import InterfaceOptions


class TestConfigStore:

    def test_every_provider_has_default_model(self) -> None:
        store = ConfigStore(env={})
        for name in store.names():
            assert store.default_model(name)

    def test_unknown_provider(self) -> None:
        store = ConfigStore(env={})
        with pytest.raises(ConfigurationError, match="Available"):
            store.provider("nope")

    def test_api_key_from_env(self) -> None:
        store = ConfigStore(env={"GEMINI_API_KEY": "g-key"})

        assert store.api_key("gemini") == "g-key"
        assert store.api_key("writer") is None

    def test_api_key_override_wins(self) -> None:
        store = ConfigStore(env={"GEMINI_API_KEY": "g-key"})
        store.set_api_key("gemini", "override")

        assert store.api_key("gemini") == "override"

    def test_llamacpp_url_from_env(self) -> None:
        store = ConfigStore(env={"LLAMACPP_URL": "http://gpu-box:8080/completion"})

        assert store.url("llamacpp") == "http://gpu-box:8080/completion"
        assert store.get_model_config_value("llamacpp", "url") == "http://gpu-box:8080/completion"

    def test_llamacpp_url_default(self) -> None:
        assert ConfigStore(env={}).url("llamacpp") == DEFAULT_PROVIDERS["llamacpp"].url

    def test_model_alias(self) -> None:
        store = ConfigStore(env={})
        store.set_model_alias("openai", "large", "gpt-4.1")

        assert store.resolve_model_alias("openai", "large") == "gpt-4.1"
        assert store.resolve_model_alias("openai", "gpt-4o") == "gpt-4o"
        assert store.get_model_config_value("openai", "model.large") == "gpt-4.1"
        assert DEFAULT_PROVIDERS["openai"].models["large"] == "gpt-4o"

    def test_set_alias_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError):
            ConfigStore(env={}).set_model_alias("nope", "large", "x")

    def test_unknown_config_key(self) -> None:
        assert ConfigStore(env={}).get_model_config_value("openai", "colour") is None


class TestProviderFile:

    def test_from_env_merges_file(self, tmp_path) -> None:
        path = tmp_path / "providers.json"
        path.write_text(
            json.dumps(
                {
                    "writer": {"models": {"fast": "palmyra-fast"}},
                    "my-llama": {
                        "adapter": "llamacpp",
                        "url": "http://gpu-box:8080/completion",
                        "models": {"default": "llama3"},
                        "requires_api_key": False,
                    },
                }
            )
        )
        store = ConfigStore.from_env({"LLM_PROVIDERS_FILE": str(path)})

        assert "my-llama" in store.names()
        assert store.default_model("my-llama") == "llama3"
        assert store.provider("my-llama").adapter == "llamacpp"
        assert store.resolve_model_alias("writer", "fast") == "palmyra-fast"
        assert store.default_model("writer") == DEFAULT_PROVIDERS["writer"].default_model

    def test_new_entry_without_default_rejected(self, tmp_path) -> None:
        path = tmp_path / "providers.json"
        path.write_text(json.dumps({"other": {"adapter": "mock", "models": {"large": "x"}}}))

        with pytest.raises(ConfigurationError, match="other"):
            load_provider_file(path, DEFAULT_PROVIDERS)

    def test_new_entry_without_adapter_rejected(self, tmp_path) -> None:
        path = tmp_path / "providers.json"
        path.write_text(json.dumps({"my-llama": {"models": {"default": "llama3"}}}))

        with pytest.raises(ConfigurationError, match="must name an adapter"):
            load_provider_file(path, DEFAULT_PROVIDERS)

    def test_unknown_adapter_rejected(self, tmp_path) -> None:
        path = tmp_path / "providers.json"
        path.write_text(
            json.dumps({"my-llama": {"adapter": "ollama", "models": {"default": "llama3"}}})
        )

        with pytest.raises(ConfigurationError, match="my-llama"):
            load_provider_file(path, DEFAULT_PROVIDERS)

    def test_builtin_entries_name_their_adapter(self) -> None:
        assert DEFAULT_PROVIDERS["groq"].adapter == "openai"
        assert DEFAULT_PROVIDERS["llamacpp"].adapter == "llamacpp"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError):
            load_provider_file(tmp_path / "absent.json", DEFAULT_PROVIDERS)

    def test_non_object_entry(self, tmp_path) -> None:
        path = tmp_path / "providers.json"
        path.write_text(json.dumps({"writer": ["not", "an", "object"]}))

        with pytest.raises(ConfigurationError):
            load_provider_file(path, DEFAULT_PROVIDERS)


def test_provider_config_requires_default() -> None:
    with pytest.raises(ValueError):
        ProviderConfig(name="x", models={"large": "y"})


def test_config_store_singleton(monkeypatch) -> None:
    monkeypatch.delenv("LLM_PROVIDERS_FILE", raising=False)
    assert get_config_store() is get_config_store()


class TestInterfaceOptions:

    def test_defaults(self) -> None:
        opts = InterfaceOptions.coerce(None)

        assert opts.cache_timeout_seconds is None
        assert opts.retry_attempts == 0
        assert opts.retry_multiplier == pytest.approx(0.3)

    def test_number_is_cache_timeout(self) -> None:
        assert InterfaceOptions.coerce(60).cache_timeout_seconds == 60

    def test_camel_case_keys(self) -> None:
        opts = InterfaceOptions.coerce(
            {"cacheTimeoutSeconds": 30, "retryAttempts": 2, "retryMultiplier": 0.1}
        )
        assert (opts.cache_timeout_seconds, opts.retry_attempts, opts.retry_multiplier) == (
            30,
            2,
            pytest.approx(0.1),
        )

    def test_snake_case_keys(self) -> None:
        assert InterfaceOptions.coerce({"retry_attempts": 4}).retry_attempts == 4

    @pytest.mark.parametrize(
        "value",
        [-1, True, "60", {"retryAttempts": -1}, {"retryMultiplier": 0}],
    )
    def test_invalid_values(self, value) -> None:
        with pytest.raises(ConfigurationError):
            InterfaceOptions.coerce(value)
