"""Base classes for generation backends."""

import random
from abc import ABC, abstractmethod
from collections.abc import Sequence

from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.errors import ProviderEmptyError
from sarcasm_wiki.llm.providers.types import (
    ChatMessages,
    GenerateConfig,
    GenerationOutcome,
    build_messages,
)

logger = get_logger().bind(module="provider")


class BaseLLMProvider(ABC):
    """Base class for generation backends.

    A backend owns one or more API keys and a list of models. Every call picks
    a key and a model at random, sends the prompt, and checks that the answer
    is long enough to be an article.
    """

    name: str = "base"
    default_models: tuple[str, ...] = ()

    def __init__(
        self,
        api_keys: Sequence[str],
        models: Sequence[str] | None = None,
        config: GenerateConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_keys: Credentials to rotate between
            models: Models to choose from, defaults to ``default_models``
            config: Generation parameters
            rng: Random source, injectable for tests
        """
        self.api_keys = [key for key in api_keys if key]
        self.models = list(models) if models else list(self.default_models)
        self.config = config or GenerateConfig()
        self._rng = rng or random.Random()

        if not self.api_keys:
            raise ValueError(f"No {self.name} API keys available")
        if not self.models:
            raise ValueError(f"No {self.name} models configured")

    def pick_key(self) -> str:
        return self._rng.choice(self.api_keys)

    def pick_model(self) -> str:
        return self._rng.choice(self.models)

    @abstractmethod
    async def _complete(self, api_key: str, model: str, messages: ChatMessages) -> str | None:
        """Send one request to the backend.

        Args:
            api_key: Credential chosen for this call
            model: Model chosen for this call
            messages: Chat messages to send

        Returns:
            Raw text of the answer, None when the answer had no content

        Raises:
            ProviderTransientError: Transport, timeout or HTTP failure
        """
        raise NotImplementedError

    async def generate(self, prompt: str, system_prompt: str | None = None) -> GenerationOutcome:
        """Generate text for a prompt.

        Args:
            prompt: User prompt
            system_prompt: Optional system instruction

        Returns:
            Generated text with the backend and model that produced it

        Raises:
            ProviderTransientError: The backend could not be reached or failed
            ProviderEmptyError: The answer was empty or too short
        """
        api_key = self.pick_key()
        model = self.pick_model()
        logger.info("Calling provider", provider=self.name, model=model)

        text = await self._complete(api_key, model, build_messages(prompt, system_prompt))

        if not text:
            logger.error("Provider returned no content", provider=self.name, model=model)
            raise ProviderEmptyError(f"No content in {self.name} API response", provider=self.name)

        if len(text.strip()) < self.config.min_length:
            logger.error(
                "Provider returned too short content",
                provider=self.name,
                model=model,
                length=len(text),
            )
            raise ProviderEmptyError(
                f"{self.name} returned too short response: {len(text)} chars",
                provider=self.name,
            )

        logger.info("Provider success", provider=self.name, model=model, length=len(text))
        return GenerationOutcome(text=text, provider_name=self.name, model_name=model)

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"{self.__class__.__name__}(models={len(self.models)}, keys={len(self.api_keys)})"
