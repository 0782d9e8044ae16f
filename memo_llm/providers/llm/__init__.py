"""LLM provider adapters.

Four concrete implementations of ILLMProvider (memo_llm/interfaces/llm_provider.py):
    - AnthropicProvider  Claude models via the Messages API
    - OpenAIProvider     GPT / o-series models (also OpenAI-compatible gateways)
    - GeminiProvider     Gemini models via google-genai
    - OllamaProvider     local models via an Ollama daemon

ProviderFactory (memo_llm/services/provider_factory.py) picks the class for a
persisted provider configuration.
"""

from memo_llm.providers.llm.anthropic_provider import AnthropicProvider
from memo_llm.providers.llm.base import BaseLLMProvider
from memo_llm.providers.llm.gemini_provider import GeminiProvider
from memo_llm.providers.llm.ollama_provider import OllamaProvider
from memo_llm.providers.llm.openai_provider import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "BaseLLMProvider",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAIProvider",
]
