"""Provider manager: one call, N interchangeable backends."""

import random
from collections.abc import Sequence
from typing import Any

from prometheus_client import Counter

from sarcasm_wiki.core.config import Settings, split_api_keys
from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.errors import NoProvidersConfiguredError, ProviderError
from sarcasm_wiki.llm.providers.base import BaseLLMProvider
from sarcasm_wiki.llm.providers.openai import (
    GeminiProvider,
    OpenAIProvider,
    OpenRouterProvider,
)
from sarcasm_wiki.llm.providers.types import GenerateConfig, GenerationOutcome

logger = get_logger().bind(module="provider_manager")

PROVIDER_CALLS = Counter(
    "sarcasm_wiki_provider_calls_total",
    "Generation calls per backend",
    labelnames=["provider", "outcome"],
)


class ProviderManager:
    """Spreads generation calls over backends with a single fallback.

    Each call goes to a backend chosen uniformly at random. If it fails and
    another backend exists, exactly one different backend is tried; its
    failure is the one that propagates.
    """

    def __init__(
        self, providers: Sequence[BaseLLMProvider], rng: random.Random | None = None
    ) -> None:
        """Initialize the manager.

        Args:
            providers: Configured backends
            rng: Random source, injectable for tests

        Raises:
            NoProvidersConfiguredError: If no backend is given
        """
        if not providers:
            raise NoProvidersConfiguredError(
                "No AI providers available. Please set GEMINI_API_KEY, "
                "OPENROUTER_API_KEY, or OPENAI_API_KEY"
            )
        self.providers = list(providers)
        self._rng = rng or random.Random()
        logger.info(
            "Initialized providers",
            count=len(self.providers),
            providers=[p.name for p in self.providers],
        )

    async def _call(
        self, provider: BaseLLMProvider, prompt: str, system_prompt: str | None
    ) -> GenerationOutcome:
        try:
            outcome = await provider.generate(prompt, system_prompt)
        except ProviderError:
            PROVIDER_CALLS.labels(provider=provider.name, outcome="failure").inc()
            raise
        PROVIDER_CALLS.labels(provider=provider.name, outcome="success").inc()
        return outcome

    async def generate_content(
        self, prompt: str, system_prompt: str | None = None
    ) -> GenerationOutcome:
        """Generate text through a random backend.

        Args:
            prompt: User prompt
            system_prompt: Optional system instruction

        Returns:
            Outcome of the first successful call

        Raises:
            ProviderError: When the chosen backend and its fallback both fail
        """
        provider = self._rng.choice(self.providers)
        try:
            return await self._call(provider, prompt, system_prompt)
        except ProviderError as e:
            logger.error("Provider failed", provider=provider.name, error=str(e))
            if len(self.providers) < 2:
                raise

        others = [p for p in self.providers if p is not provider]
        fallback = self._rng.choice(others)
        logger.info("Single fallback attempt", provider=fallback.name)
        try:
            outcome = await self._call(fallback, prompt, system_prompt)
        except ProviderError as e:
            logger.error("Fallback failed", provider=fallback.name, error=str(e))
            raise
        logger.info("Fallback success", provider=fallback.name)
        return outcome

    def get_stats(self) -> dict[str, Any]:
        """Summarize the configured backends."""
        return {
            "total_providers": len(self.providers),
            "providers": [
                {"name": p.name, "models": len(p.models)} for p in self.providers
            ],
        }


def build_providers(
    settings: Settings, rng: random.Random | None = None
) -> list[BaseLLMProvider]:
    """Create a backend for every provider that has API keys.

    Args:
        settings: Application settings
        rng: Random source shared by the backends

    Returns:
        Backends in a fixed order: Gemini, OpenRouter, OpenAI
    """
    config = GenerateConfig(
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT,
        min_length=settings.MIN_RESPONSE_LENGTH,
    )
    gemini_keys = split_api_keys(settings.GEMINI_API_KEY)
    openrouter_keys = split_api_keys(settings.OPENROUTER_API_KEY)
    openai_keys = split_api_keys(settings.OPENAI_API_KEY)
    logger.info(
        "Collected API keys",
        gemini=len(gemini_keys),
        openrouter=len(openrouter_keys),
        openai=len(openai_keys),
    )

    providers: list[BaseLLMProvider] = []
    if gemini_keys:
        providers.append(GeminiProvider(gemini_keys, config=config, rng=rng))
    if openrouter_keys:
        providers.append(
            OpenRouterProvider(
                openrouter_keys,
                site_url=settings.SITE_URL,
                site_name=settings.app_name,
                config=config,
                rng=rng,
            )
        )
    if openai_keys:
        providers.append(OpenAIProvider(openai_keys, config=config, rng=rng))
    return providers


def build_provider_manager(
    settings: Settings, rng: random.Random | None = None
) -> ProviderManager:
    """Wire a ProviderManager from settings.

    Raises:
        NoProvidersConfiguredError: If no provider has an API key
    """
    return ProviderManager(build_providers(settings, rng), rng=rng)
