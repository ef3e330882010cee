from .base import BaseLLMProvider
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider
from .gemini_provider import GeminiProvider
from .registry import ProviderFamily, ModelRoute, ProviderRegistry
from .instructions import (
    build_language_instruction,
    build_system_prompt,
    language_display_name,
)

__all__ = [
    "BaseLLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "ProviderFamily",
    "ModelRoute",
    "ProviderRegistry",
    "build_language_instruction",
    "build_system_prompt",
    "language_display_name",
]
