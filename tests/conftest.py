"""Shared pytest fixtures for the memo-llm test suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from memo_llm.config.settings import Settings
from memo_llm.models.provider import CloudProviderConfig, LocalProviderConfig
from memo_llm.providers.storage.memory_store import MemoryKeyValueStore
from memo_llm.services.provider_config import ProviderConfigManager
from memo_llm.services.provider_factory import ProviderFactory

# ---------------------------------------------------------------------------
# Settings & storage
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with retries that never sleep and a throwaway DB path."""
    return Settings(
        _env_file=None,
        storage_db_path="unused.db",
        openai_base_url="",
        ollama_max_retries=3,
        ollama_retry_delay=0.0,
    )


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def factory(settings: Settings) -> ProviderFactory:
    return ProviderFactory(settings)


@pytest.fixture
def config_manager(
    memory_store: MemoryKeyValueStore, factory: ProviderFactory, settings: Settings
) -> ProviderConfigManager:
    return ProviderConfigManager(memory_store, factory=factory, settings=settings)


# ---------------------------------------------------------------------------
# Sample configurations
# ---------------------------------------------------------------------------


@pytest.fixture
def anthropic_config() -> CloudProviderConfig:
    return CloudProviderConfig(
        type="anthropic",
        api_key="sk-ant-validshape",
        model="claude-3-5-haiku-20241022",
    )


@pytest.fixture
def openai_config() -> CloudProviderConfig:
    return CloudProviderConfig(type="openai", api_key="sk-test-openai", model="gpt-4o")


@pytest.fixture
def gemini_config() -> CloudProviderConfig:
    return CloudProviderConfig(type="gemini", api_key="AIzaTestKey", model="gemini-2.5-pro")


@pytest.fixture
def ollama_config() -> LocalProviderConfig:
    return LocalProviderConfig(host="localhost", port=11434, model="llama3.1")


# ---------------------------------------------------------------------------
# httpx mocking helpers
# ---------------------------------------------------------------------------


def make_http_response(status_code: int = 200, payload: Any = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = ""
    return response


def make_http_client(
    get: Any = None,
    post: Any = None,
) -> AsyncMock:
    """Build an ``httpx.AsyncClient`` stand-in usable as an async context manager.

    *get* / *post* are either a response, a list of responses/exceptions
    (consumed in order), or an exception instance.
    """
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    for name, value in (("get", get), ("post", post)):
        if value is None:
            continue
        if isinstance(value, list) or isinstance(value, BaseException):
            setattr(mock_client, name, AsyncMock(side_effect=value))
        else:
            setattr(mock_client, name, AsyncMock(return_value=value))
    return mock_client


@pytest.fixture
def http_response():
    """Factory fixture: ``http_response(status, payload)`` -> mocked httpx response."""
    return make_http_response


@pytest.fixture
def http_client():
    """Factory fixture: ``http_client(get=..., post=...)`` -> mocked ``httpx.AsyncClient``."""
    return make_http_client
