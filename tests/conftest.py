"""Test configuration."""

import random
import time
from collections.abc import Sequence
from pathlib import Path

import pytest

from sarcasm_wiki.content_store.store import ArticleStore
from sarcasm_wiki.core.config import Settings
from sarcasm_wiki.core.logging import configure_logging
from sarcasm_wiki.generation.queue import GenerationQueue
from sarcasm_wiki.generation.rate_limit import RateLimiter
from sarcasm_wiki.llm.providers.base import BaseLLMProvider
from sarcasm_wiki.llm.providers.types import ChatMessages
from sarcasm_wiki.source.wikipedia import SourceDocument

configure_logging(testing=True, level="debug")

ARTICLE_TEXT = (
    "The cat is a small domesticated carnivorous mammal that has lived alongside "
    "[humans](/Human) for thousands of years.\n\n"
    "## Behaviour\n\n"
    "Cats sleep for most of the day and spend the rest of it judging everyone."
)


class FakeClock:
    """Manually advanced wall clock.

    Starts at the real time so lock file mtimes and clock readings agree.
    """

    def __init__(self) -> None:
        self.now = time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(BaseLLMProvider):
    """Backend that replays scripted answers.

    Each entry of ``responses`` is returned in order; exceptions are raised.
    The last entry repeats once the script runs out.
    """

    def __init__(
        self,
        name: str = "Fake",
        responses: Sequence[str | BaseException | None] = ("x" * 100,),
        min_length: int = 50,
    ) -> None:
        self.name = name
        super().__init__(["test-key"], models=[f"{name.lower()}-model"])
        self.config.min_length = min_length
        self.responses = list(responses)
        self.calls: list[ChatMessages] = []

    async def _complete(self, api_key: str, model: str, messages: ChatMessages) -> str | None:
        self.calls.append(messages)
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return response


class StaticFetcher:
    """Source fetcher backed by a dict."""

    def __init__(self, articles: dict[str, str] | None = None) -> None:
        self.articles = articles or {}
        self.requested: list[str] = []

    async def fetch_source(self, identifier: str) -> SourceDocument | None:
        self.requested.append(identifier)
        text = self.articles.get(identifier)
        return SourceDocument(text=text) if text is not None else None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def queue(tmp_path: Path) -> GenerationQueue:
    """Create a queue stored in a temporary directory."""
    state_dir = tmp_path / ".temp"
    return GenerationQueue(
        state_dir / "generation-queue.json", state_dir / "generation-stats.json"
    )


@pytest.fixture
def store(tmp_path: Path) -> ArticleStore:
    return ArticleStore(tmp_path / "content")


@pytest.fixture
def rate_limiter(tmp_path: Path, clock: FakeClock) -> RateLimiter:
    """Create a rate limiter with a fake clock and short lock retries."""
    return RateLimiter(
        tmp_path / ".rate-limit",
        window_seconds=60.0,
        stale_lock_seconds=300.0,
        retry_attempts=2,
        retry_delay=0.01,
        wait_timeout=0.05,
        wait_delay=0.01,
        clock=clock,
    )


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings that keep all state under a temporary directory."""
    return Settings(
        CONTENT_DIR=tmp_path / "content",
        STATE_DIR=tmp_path / ".temp",
        RATE_LIMIT_DIR=tmp_path / ".rate-limit",
        PROCESSOR_ENABLED=False,
        LOCK_RETRY_ATTEMPTS=2,
        LOCK_RETRY_DELAY=0.01,
        LOCK_WAIT_TIMEOUT=0.05,
        LOCK_WAIT_DELAY=0.01,
        GEMINI_API_KEY=None,
        OPENROUTER_API_KEY=None,
        OPENAI_API_KEY="sk-test",
    )
