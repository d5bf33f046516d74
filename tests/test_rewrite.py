"""Tests for the chunk orchestrator."""

import random

import pytest

from sarcasm_wiki.generation.chunking import CHUNK_SEPARATOR
from sarcasm_wiki.generation.errors import (
    ProviderTransientError,
    RateLimitedError,
    SourceContentTooShortError,
)
from sarcasm_wiki.generation.rate_limit import RateLimiter
from sarcasm_wiki.generation.rewrite import ChunkOrchestrator
from sarcasm_wiki.llm.manager import ProviderManager
from sarcasm_wiki.llm.prompts import PromptLibrary
from tests.conftest import FakeProvider

REWRITTEN = "Rewritten with the enthusiasm of a cat being bathed, at considerable length."


def _long_article() -> str:
    sections = ["lead " * 3000]
    sections += [f"## Part {i}\n\n" + "word " * 3000 for i in range(1, 4)]
    return CHUNK_SEPARATOR.join(sections)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider("Fake", [REWRITTEN])


@pytest.fixture
def orchestrator(provider: FakeProvider, rate_limiter: RateLimiter) -> ChunkOrchestrator:
    return ChunkOrchestrator(
        ProviderManager([provider], rng=random.Random(0)),
        rate_limiter,
        max_chunk_length=30000,
    )


class TestChunkOrchestrator:
    """Test rewriting of whole and chunked articles."""

    @pytest.mark.asyncio
    async def test_short_source_rejected(self, orchestrator: ChunkOrchestrator) -> None:
        with pytest.raises(SourceContentTooShortError) as exc_info:
            await orchestrator.rewrite("tiny", identifier="Cat")
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_short_source_does_not_consume_rate_limit(
        self, orchestrator: ChunkOrchestrator, rate_limiter: RateLimiter
    ) -> None:
        with pytest.raises(SourceContentTooShortError):
            await orchestrator.rewrite("tiny", identifier="Cat")
        assert rate_limiter.get_status().active is False

    @pytest.mark.asyncio
    async def test_single_chunk_uses_first_prompts(
        self, orchestrator: ChunkOrchestrator, provider: FakeProvider
    ) -> None:
        prompts = PromptLibrary()
        source = "The cat is a small mammal. " * 10

        outcome = await orchestrator.rewrite(source, identifier="Cat")

        assert outcome.text == REWRITTEN
        assert outcome.provider_name == "Fake"
        messages = provider.calls[0]
        assert messages[0]["content"] == prompts.system_prompt(first=True)
        assert messages[1]["content"] == prompts.user_prompt(source, first=True)

    @pytest.mark.asyncio
    async def test_long_article_rewritten_per_chunk(
        self, orchestrator: ChunkOrchestrator, provider: FakeProvider
    ) -> None:
        """Each chunk is one call; later chunks use the continuation prompts."""
        prompts = PromptLibrary()

        outcome = await orchestrator.rewrite(_long_article(), identifier="Cat")

        assert len(provider.calls) >= 2
        assert outcome.text == CHUNK_SEPARATOR.join([REWRITTEN] * len(provider.calls))
        assert provider.calls[0][0]["content"] == prompts.system_prompt(first=True)
        for messages in provider.calls[1:]:
            assert messages[0]["content"] == prompts.system_prompt(first=False)
            assert messages[1]["content"].startswith(prompts.user_prompt("", first=False))

    @pytest.mark.asyncio
    async def test_rate_limited(self, orchestrator: ChunkOrchestrator, provider: FakeProvider) -> None:
        """A second article inside the window is refused before any call."""
        source = "The cat is a small mammal. " * 10
        await orchestrator.rewrite(source, identifier="Cat")

        with pytest.raises(RateLimitedError) as exc_info:
            await orchestrator.rewrite(source, identifier="Dog")

        assert exc_info.value.retriable is True
        assert 0 < exc_info.value.retry_after <= 60
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_without_identifier_skips_rate_limit(
        self, orchestrator: ChunkOrchestrator, rate_limiter: RateLimiter
    ) -> None:
        await orchestrator.rewrite("The cat is a small mammal. " * 10)
        assert rate_limiter.get_status().active is False

    @pytest.mark.asyncio
    async def test_chunk_failure_propagates(self, rate_limiter: RateLimiter) -> None:
        """A failing chunk fails the whole rewrite; nothing partial is returned."""
        provider = FakeProvider("Fake", [REWRITTEN, ProviderTransientError("down")])
        orchestrator = ChunkOrchestrator(
            ProviderManager([provider], rng=random.Random(0)), rate_limiter
        )

        with pytest.raises(ProviderTransientError):
            await orchestrator.rewrite(_long_article(), identifier="Cat")
        assert len(provider.calls) == 2
