"""Unit tests for ProviderFactory construction, validation and catalog queries."""

from __future__ import annotations

import pytest

from memo_llm.config.provider_catalog import get_descriptor
from memo_llm.models.provider import CloudProviderConfig, LocalProviderConfig, ProviderType
from memo_llm.providers.llm import (
    AnthropicProvider,
    GeminiProvider,
    OllamaProvider,
    OpenAIProvider,
)
from memo_llm.services.provider_factory import ProviderFactory, is_valid_host
from memo_llm.utils.errors import ConfigurationError, UnknownProviderTypeError


class TestCreateProvider:
    @pytest.mark.parametrize(
        "provider_type, expected_cls",
        [
            ("anthropic", AnthropicProvider),
            ("openai", OpenAIProvider),
            ("gemini", GeminiProvider),
            ("ollama", OllamaProvider),
        ],
    )
    def test_dispatch(self, factory: ProviderFactory, provider_type, expected_cls) -> None:
        provider = factory.create_provider(provider_type)
        assert isinstance(provider, expected_cls)
        assert provider.initialized is False

    def test_unknown_type_names_the_type(self, factory: ProviderFactory) -> None:
        with pytest.raises(UnknownProviderTypeError, match="unknown-type"):
            factory.create_provider("unknown-type")

    def test_mapping_config_gets_type(self, factory: ProviderFactory) -> None:
        provider = factory.create_provider("openai", {"apiKey": "sk-x", "model": "gpt-4.1"})
        assert provider.model == "gpt-4.1"

    def test_cloud_default_model(self, factory: ProviderFactory) -> None:
        assert factory.create_provider("gemini").model == "gemini-2.5-pro"

    def test_mismatched_config(self, factory: ProviderFactory, anthropic_config) -> None:
        with pytest.raises(ConfigurationError, match="not 'openai'"):
            factory.create_provider("openai", anthropic_config)


class TestValidateConfig:
    def test_valid_cloud(self, factory: ProviderFactory, anthropic_config) -> None:
        assert factory.validate_config("anthropic", anthropic_config) is True

    @pytest.mark.parametrize(
        "provider_type, key",
        [
            ("anthropic", "sk-wrong"),
            ("openai", "pk-123"),
            ("gemini", "sk-ant-123"),
            ("anthropic", ""),
            ("openai", "   "),
        ],
    )
    def test_bad_key_shapes(self, factory: ProviderFactory, provider_type, key) -> None:
        with pytest.raises(ConfigurationError):
            factory.validate_config(provider_type, {"apiKey": key})

    def test_prefix_in_message(self, factory: ProviderFactory) -> None:
        with pytest.raises(ConfigurationError, match='"AIza"'):
            factory.validate_config("gemini", {"apiKey": "bogus"})

    def test_model_outside_catalog(self, factory: ProviderFactory) -> None:
        with pytest.raises(ConfigurationError, match="gpt-2"):
            factory.validate_config("openai", {"apiKey": "sk-x", "model": "gpt-2"})

    def test_ollama_any_model(self, factory: ProviderFactory) -> None:
        config = LocalProviderConfig(model="some-custom-model:latest")
        assert factory.validate_config("ollama", config) is True

    def test_ollama_default_endpoint(self, factory: ProviderFactory) -> None:
        assert factory.validate_config("ollama", {"host": "localhost", "port": 11434}) is True

    @pytest.mark.parametrize("port", [-1, 0, 70000])
    def test_ollama_bad_port(self, factory: ProviderFactory, port: int) -> None:
        with pytest.raises(ConfigurationError, match="port"):
            factory.validate_config("ollama", {"host": "localhost", "port": port})

    @pytest.mark.parametrize("host", ["", "bad host", "http://x", "300.1.1.1"])
    def test_ollama_bad_host(self, factory: ProviderFactory, host: str) -> None:
        with pytest.raises(ConfigurationError, match="host"):
            factory.validate_config("ollama", {"host": host, "port": 11434})

    def test_unknown_type(self, factory: ProviderFactory) -> None:
        with pytest.raises(UnknownProviderTypeError):
            factory.validate_config("unknown-type", {})


class TestHostValidation:
    @pytest.mark.parametrize("host", ["localhost", "127.0.0.1", "192.168.1.20", "ollama.lan"])
    def test_valid(self, host: str) -> None:
        assert is_valid_host(host)

    @pytest.mark.parametrize("host", ["", "a b", "256.0.0.1", "host:1234"])
    def test_invalid(self, host: str) -> None:
        assert not is_valid_host(host)


class TestCatalogQueries:
    def test_available_providers_in_order(self) -> None:
        ids = [d.id for d in ProviderFactory.get_available_providers()]
        assert ids == [ProviderType.ANTHROPIC, ProviderType.OPENAI, ProviderType.GEMINI, ProviderType.OLLAMA]

    def test_only_ollama_has_empty_model_list(self) -> None:
        for descriptor in ProviderFactory.get_available_providers():
            if descriptor.id is ProviderType.OLLAMA:
                assert descriptor.models == ()
            else:
                assert descriptor.models
                assert set(descriptor.vision_models) <= set(descriptor.models)

    def test_vision_capability(self) -> None:
        assert ProviderFactory.has_vision_capability("gemini", "gemini-1.5-flash")
        assert not ProviderFactory.has_vision_capability("gemini", "gemini-pro")
        assert ProviderFactory.has_vision_capability("ollama", "llava:13b")
        assert not ProviderFactory.has_vision_capability("ollama", "llama3.1")
        assert not ProviderFactory.has_vision_capability("openai", None)

    def test_vision_models_include_ollama_families(self) -> None:
        vision = ProviderFactory.get_vision_models()
        assert "llava" in vision["ollama"]
        assert "gpt-4o" in vision["openai"]


class TestDefaultConfig:
    def test_cloud(self, factory: ProviderFactory) -> None:
        config = factory.default_config("anthropic")
        assert isinstance(config, CloudProviderConfig)
        assert config.api_key == ""
        assert config.model == "claude-opus-4-20250514"

    def test_ollama_from_settings(self, factory: ProviderFactory) -> None:
        config = factory.default_config(ProviderType.OLLAMA)
        assert isinstance(config, LocalProviderConfig)
        assert (config.host, config.port, config.model) == ("localhost", 11434, "llama2")

    def test_ollama_model_comes_from_catalog(self, settings) -> None:
        assert settings.ollama_default_model == ""
        config = ProviderFactory(settings).default_config(ProviderType.OLLAMA)
        assert config.model == get_descriptor(ProviderType.OLLAMA).default_model

    def test_ollama_model_override(self, settings) -> None:
        custom = settings.model_copy(update={"ollama_default_model": "phi3"})
        config = ProviderFactory(custom).default_config(ProviderType.OLLAMA)
        assert config.model == "phi3"
