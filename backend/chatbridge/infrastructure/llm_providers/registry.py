"""Model identifier -> provider family routing.

Routes are resolved from configuration when the registry is built. Anything
that matches no alias or prefix resolves to ``ProviderFamily.UNSUPPORTED``,
which fails with UnsupportedModelError when used.
"""
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, AsyncIterator, Iterable, Optional

from ...config import Settings
from ...domain.errors import UnsupportedModelError
from ...domain.repositories import LLMProviderInterface
from .anthropic_provider import AnthropicProvider
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


class ProviderFamily(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ModelRoute:
    model: str
    family: ProviderFamily
    upstream_model: str

    @property
    def supported(self) -> bool:
        return self.family is not ProviderFamily.UNSUPPORTED


class ProviderRegistry:
    """Resolves models to providers and delegates completion calls."""

    def __init__(
        self,
        providers: dict[ProviderFamily, LLMProviderInterface],
        aliases: Optional[dict[str, str]] = None,
        prefixes: Optional[Iterable[tuple[str, str]]] = None,
        known_models: Iterable[str] = (),
    ):
        self._providers = dict(providers)
        self._aliases: dict[str, tuple[ProviderFamily, str]] = {}
        for model, target in (aliases or {}).items():
            family, _, upstream = target.partition(":")
            self._aliases[model] = (ProviderFamily(family), upstream or model)
        self._prefixes = [(prefix, ProviderFamily(family)) for prefix, family in (prefixes or [])]
        self._routes: dict[str, ModelRoute] = {}
        for model in known_models:
            self._routes[model] = self._match(model)

    @classmethod
    def from_settings(cls, settings: Settings, known_models: Iterable[str] = ()) -> "ProviderRegistry":
        providers: dict[ProviderFamily, LLMProviderInterface] = {
            ProviderFamily.OPENAI: OpenAIProvider(
                settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.provider_timeout,
                max_tokens=settings.max_output_tokens,
            ),
            ProviderFamily.ANTHROPIC: AnthropicProvider(
                settings.anthropic_api_key,
                base_url=settings.anthropic_base_url,
                api_version=settings.anthropic_version,
                timeout=settings.provider_timeout,
                max_tokens=settings.max_output_tokens,
            ),
            ProviderFamily.GEMINI: GeminiProvider(
                settings.google_api_key,
                base_url=settings.gemini_base_url,
                timeout=settings.provider_timeout,
                max_tokens=settings.max_output_tokens,
            ),
        }
        return cls(
            providers,
            aliases=settings.model_aliases,
            prefixes=settings.model_prefixes,
            known_models=known_models,
        )

    def _match(self, model: str) -> ModelRoute:
        if model in self._aliases:
            family, upstream = self._aliases[model]
            return ModelRoute(model=model, family=family, upstream_model=upstream)
        for prefix, family in self._prefixes:
            if model.startswith(prefix):
                return ModelRoute(model=model, family=family, upstream_model=model)
        return ModelRoute(model=model, family=ProviderFamily.UNSUPPORTED, upstream_model=model)

    def resolve(self, model: str) -> ModelRoute:
        route = self._routes.get(model)
        if route is None:
            route = self._match(model)
        return route

    def provider_for(self, model: str) -> tuple[ModelRoute, LLMProviderInterface]:
        route = self.resolve(model)
        provider = self._providers.get(route.family)
        if not route.supported or provider is None:
            raise UnsupportedModelError(model)
        return route, provider

    async def stream_completion(
        self,
        model: str,
        system_instruction: str,
        user_text: str,
        trace: Optional[Any] = None,
    ) -> AsyncIterator[str]:
        route, provider = self.provider_for(model)
        logger.debug("Streaming %s via %s (%s)", model, route.family.value, route.upstream_model)
        async with aclosing(
            provider.stream_completion(route.upstream_model, system_instruction, user_text, trace=trace)
        ) as fragments:
            async for fragment in fragments:
                yield fragment

    async def complete(self, model: str, prompt: str, trace: Optional[Any] = None) -> str:
        route, provider = self.provider_for(model)
        return await provider.complete(route.upstream_model, prompt, trace=trace)

    async def availability(self) -> dict[str, bool]:
        return {
            family.value: await provider.is_available()
            for family, provider in self._providers.items()
        }
