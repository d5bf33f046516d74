"""Type definitions for LLM providers."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Chat message list as sent to chat-completions endpoints
ChatMessages = list[dict[str, Any]]


@dataclass
class GenerateConfig:
    """Configuration for generation requests."""

    temperature: float = 0.7
    max_tokens: int = 32000
    timeout: float = 60.0
    min_length: int = 50

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0 <= self.temperature <= 2:
            raise ValueError("Temperature must be between 0 and 2")
        if self.max_tokens < 1:
            raise ValueError("Max tokens must be positive")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")
        if self.min_length < 0:
            raise ValueError("Minimum length cannot be negative")


class GenerationOutcome(BaseModel):
    """Result of one call through the provider manager."""

    text: str = Field(description="Generated text content")
    provider_name: str = Field(description="Backend that produced the text")
    model_name: str = Field(description="Model used by the backend")

    @field_validator("provider_name", "model_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names are shown to operators and must not be blank."""
        if not v or v.isspace():
            raise ValueError("Provider and model names cannot be empty")
        return v

    def __str__(self) -> str:
        return self.text


def build_messages(prompt: str, system_prompt: str | None = None) -> ChatMessages:
    """Build a chat message list from a prompt and optional system prompt."""
    messages: ChatMessages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages
