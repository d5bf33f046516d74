"""Backends speaking the OpenAI chat-completions protocol."""

import json
from collections.abc import Sequence
from typing import Any

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
)
from openai.types.chat.chat_completion import ChatCompletion

from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.errors import ProviderTransientError
from sarcasm_wiki.llm.providers.base import BaseLLMProvider
from sarcasm_wiki.llm.providers.types import ChatMessages

logger = get_logger().bind(module="openai_provider")


def _extract_openrouter_error(error_dict: dict[str, Any]) -> str:
    """Extract error message from OpenRouter error format.

    Args:
        error_dict: Dictionary containing error data

    Returns:
        str: Error message
    """
    if "metadata" not in error_dict or "raw" not in error_dict["metadata"]:
        return str(error_dict)

    try:
        raw = json.loads(error_dict["metadata"]["raw"])
        if "error" in raw and "message" in raw["error"]:
            return raw["error"]["message"]
    except (json.JSONDecodeError, KeyError, TypeError):
        return str(error_dict)
    return str(error_dict)


def _extract_direct_error(error_dict: dict[str, Any]) -> str:
    """Extract direct error message from dictionary."""
    return str(error_dict["message"]) if "message" in error_dict else str(error_dict)


def _extract_error_message(error: Any) -> str:
    """Extract a readable message from an API error payload.

    OpenRouter wraps upstream failures in ``metadata.raw``; direct APIs put
    the text in ``message``.

    Args:
        error: Error payload (dict, pydantic model or string)

    Returns:
        str: Error message
    """
    if hasattr(error, "model_dump"):
        error = error.model_dump()
    if not isinstance(error, dict):
        return str(error)

    if "metadata" in error:
        message = _extract_openrouter_error(error)
        if message != str(error):
            return message
    return _extract_direct_error(error)


class OpenAICompatibleProvider(BaseLLMProvider):
    """Backend reached through the ``openai`` SDK at a configurable base URL."""

    base_url: str | None = None

    def __init__(
        self,
        api_keys: Sequence[str],
        models: Sequence[str] | None = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api_keys, models, **kwargs)
        self.headers = headers or {}
        self._clients: dict[str, AsyncOpenAI] = {}

    def client(self, api_key: str) -> AsyncOpenAI:
        """Get or create the client for one API key."""
        if api_key not in self._clients:
            self._clients[api_key] = AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                default_headers=self.headers or None,
                timeout=self.config.timeout,
                # Fallback between backends is the manager's job
                max_retries=0,
            )
        return self._clients[api_key]

    def _process_response(self, result: ChatCompletion, model: str) -> str | None:
        # OpenRouter reports some upstream failures inside a 200 response
        error = getattr(result, "error", None)
        if error:
            message = _extract_error_message(error)
            logger.error("Provider returned error", provider=self.name, model=model, error=message)
            raise ProviderTransientError(f"{self.name} API error: {message}", provider=self.name)

        if not result.choices or not result.choices[0].message:
            return None
        return result.choices[0].message.content

    async def _complete(self, api_key: str, model: str, messages: ChatMessages) -> str | None:
        try:
            result = await self.client(api_key).chat.completions.create(
                model=model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                stream=False,
            )
        except APITimeoutError as e:
            raise ProviderTransientError(
                f"{self.name} API timeout after {self.config.timeout:g} seconds",
                provider=self.name,
            ) from e
        except APIStatusError as e:
            message = _extract_error_message(e.body) if e.body else e.message
            logger.error(
                "Provider HTTP error",
                provider=self.name,
                model=model,
                status_code=e.status_code,
                error=message,
            )
            raise ProviderTransientError(
                f"{self.name} API error: {e.status_code} - {message}", provider=self.name
            ) from e
        except APIConnectionError as e:
            raise ProviderTransientError(
                f"{self.name} connection error: {e}", provider=self.name
            ) from e
        except OpenAIError as e:
            logger.error("Error in API call", provider=self.name, exc_info=e)
            raise ProviderTransientError(f"{self.name} error: {e}", provider=self.name) from e

        return self._process_response(result, model)


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI API, called directly."""

    name = "OpenAI"
    default_models = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo")


class OpenRouterProvider(OpenAICompatibleProvider):
    """OpenRouter, which proxies many vendors' models."""

    name = "OpenRouter"
    base_url = "https://openrouter.ai/api/v1"
    default_models = (
        "openai/gpt-4o-mini",
        "openai/gpt-4o",
        "anthropic/claude-3-haiku",
        "anthropic/claude-3.5-sonnet",
        "google/gemini-2.0-flash-exp",
        "meta-llama/llama-3.1-70b-instruct",
        "mistralai/devstral-2512:free",
        "nvidia/nemotron-3-nano-30b-a3b:free",
        "allenai/olmo-3.1-32b-think:free",
        "nex-agi/deepseek-v3.1-nex-n1:free",
        "tngtech/deepseek-r1t2-chimera:free",
    )

    def __init__(
        self,
        api_keys: Sequence[str],
        models: Sequence[str] | None = None,
        site_url: str = "https://sarcasm.wiki",
        site_name: str = "Sarcasm Wiki",
        **kwargs: Any,
    ) -> None:
        super().__init__(
            api_keys,
            models,
            headers={"HTTP-Referer": site_url, "X-Title": site_name},
            **kwargs,
        )


class GeminiProvider(OpenAICompatibleProvider):
    """Google Gemini through its OpenAI compatible endpoint."""

    name = "Gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta/openai/"
    default_models = ("gemini-2.5-flash", "gemini-2.5-flash-lite", "gemini-2.5-pro")
