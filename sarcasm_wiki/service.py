"""Article service: the request-side view of the generation system."""

import random
from enum import Enum
from typing import Any

from pydantic import BaseModel

from sarcasm_wiki.content_store.models import GeneratedArtifact
from sarcasm_wiki.content_store.store import ArticleStore, is_valid_identifier
from sarcasm_wiki.core.config import Settings
from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.errors import RateLimitedError
from sarcasm_wiki.generation.pipeline import (
    ArticlePipeline,
    PipelineResult,
    PipelineRetriable,
    PipelineSuccess,
)
from sarcasm_wiki.generation.processor import BackgroundProcessor, ProcessReport
from sarcasm_wiki.generation.queue import GenerationQueue, QueueStats
from sarcasm_wiki.generation.rate_limit import RateLimiter, RateLimitStatus
from sarcasm_wiki.generation.rewrite import ChunkOrchestrator
from sarcasm_wiki.llm.manager import ProviderManager, build_provider_manager
from sarcasm_wiki.source.wikipedia import WikipediaFetcher

logger = get_logger().bind(module="article_service")

IGNORED_MARKERS = ("_next", "webpack", "hot-update")


class ArticleStatus(str, Enum):
    """Outcome of an article request."""

    READY = "ready"
    PENDING = "pending"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"


class ArticleResponse(BaseModel):
    """What a request handler needs to answer an article request."""

    identifier: str
    status: ArticleStatus
    article: GeneratedArtifact | None = None
    queue_position: int | None = None
    estimated_wait_seconds: int | None = None
    retry_after: int | None = None
    message: str = ""


def is_ignored_identifier(identifier: str) -> bool:
    """Asset-like paths that browsers and dev servers request."""
    if not identifier or identifier.startswith("."):
        return True
    return any(marker in identifier for marker in IGNORED_MARKERS)


def is_enqueueable_identifier(identifier: str) -> bool:
    """Identifiers that could ever be served, and so are worth generating."""
    return not is_ignored_identifier(identifier) and is_valid_identifier(identifier)


class ArticleService:
    """Serves cached articles and schedules generation for the rest."""

    def __init__(
        self,
        store: ArticleStore,
        queue: GenerationQueue,
        rate_limiter: RateLimiter,
        pipeline: ArticlePipeline,
        processor: BackgroundProcessor,
        manager: ProviderManager | None = None,
        immediate_generation: bool = True,
    ) -> None:
        """Initialize the service.

        Args:
            store: Cached articles
            queue: Generation backlog
            rate_limiter: Global cooldown gate
            pipeline: Article pipeline used for immediate generation
            processor: Background processor draining the queue
            manager: Provider manager, only used for reporting
            immediate_generation: Try generating on the request path first
        """
        self.store = store
        self.queue = queue
        self.rate_limiter = rate_limiter
        self.pipeline = pipeline
        self.processor = processor
        self.manager = manager
        self.immediate_generation = immediate_generation

    def is_queued(self, identifier: str) -> bool:
        return self.queue.contains(identifier)

    def enqueue(self, identifier: str) -> bool:
        """Add an identifier to the front of the queue.

        Raises:
            ValueError: If the identifier could never be stored or served
        """
        if not is_enqueueable_identifier(identifier):
            raise ValueError(f"Invalid article identifier: {identifier!r}")
        return self.queue.enqueue(identifier)

    def get_queue_stats(self) -> QueueStats:
        return self.queue.get_stats(total_generated=self.store.count())

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self.rate_limiter.get_status()

    def _pending(self, identifier: str, message: str) -> ArticleResponse:
        position = self.queue.position(identifier)
        wait = None
        if position is not None:
            wait = round(
                position * self.processor.interval_seconds
                + self.rate_limiter.get_status().remaining_seconds
            )
        return ArticleResponse(
            identifier=identifier,
            status=ArticleStatus.PENDING,
            queue_position=position,
            estimated_wait_seconds=wait,
            message=message,
        )

    def _rate_limited(self, identifier: str, error: RateLimitedError) -> ArticleResponse:
        status = self.rate_limiter.get_status()
        retry_after = status.remaining_seconds or error.retry_after
        return ArticleResponse(
            identifier=identifier,
            status=ArticleStatus.RATE_LIMITED,
            retry_after=max(1, retry_after),
            message="Generation is rate limited, try again later",
        )

    def _not_found(self, identifier: str, message: str = "Article not found") -> ArticleResponse:
        return ArticleResponse(
            identifier=identifier, status=ArticleStatus.NOT_FOUND, message=message
        )

    def _from_result(self, identifier: str, result: PipelineResult) -> ArticleResponse:
        if isinstance(result, PipelineSuccess):
            return ArticleResponse(
                identifier=identifier,
                status=ArticleStatus.READY,
                article=result.artifact,
            )

        if isinstance(result, PipelineRetriable):
            if isinstance(result.error, RateLimitedError):
                return self._rate_limited(identifier, result.error)
            self.queue.enqueue(identifier)
            return self._pending(identifier, f"{result.error.code}: queued for generation")

        return self._not_found(identifier, f"{result.error.code}: {result.error}")

    async def get_article(self, identifier: str) -> ArticleResponse:
        """Answer a request for an article.

        Args:
            identifier: Topic identifier from the request path

        Returns:
            Ready article, or why it is not available yet
        """
        if is_ignored_identifier(identifier):
            return self._not_found(identifier)

        try:
            artifact = self.store.read_artifact(identifier)
        except ValueError:
            return self._not_found(identifier, "Invalid identifier")

        if artifact is not None:
            return ArticleResponse(
                identifier=identifier, status=ArticleStatus.READY, article=artifact
            )

        if self.queue.contains(identifier):
            return self._pending(identifier, "Already queued for generation")

        if not self.immediate_generation:
            self.queue.enqueue(identifier)
            return self._pending(identifier, "Queued for generation")

        logger.info("Trying immediate generation", identifier=identifier)
        result = await self.pipeline.generate(identifier)
        return self._from_result(identifier, result)

    async def process_next(self) -> ProcessReport:
        """Run one processor pass now."""
        return await self.processor.tick()

    async def force_refresh(self, identifier: str) -> ArticleResponse:
        """Regenerate an article even if a cached copy exists.

        The rate limiter still applies; a blocked refresh is reported and not
        queued.
        """
        if is_ignored_identifier(identifier):
            return self._not_found(identifier, "Invalid identifier")
        try:
            existed = self.store.exists(identifier)
        except ValueError:
            return self._not_found(identifier, "Invalid identifier")

        logger.info("Force refreshing article", identifier=identifier, existed=existed)
        result = await self.pipeline.generate(identifier)
        return self._from_result(identifier, result)

    def inspect(self) -> dict[str, Any]:
        """Snapshot of everything an operator might want to look at."""
        return {
            "queue": [entry.model_dump(mode="json") for entry in self.queue.entries()],
            "stats": self.get_queue_stats().model_dump(),
            "rate_limit": self.get_rate_limit_status().model_dump(),
            "processor": {
                "running": self.processor.running,
                "processing": self.processor.processing,
                "interval_seconds": self.processor.interval_seconds,
            },
            "providers": self.manager.get_stats() if self.manager else None,
            "latest_articles": self.store.latest(),
        }


def build_service(
    settings: Settings,
    manager: ProviderManager | None = None,
    fetcher: Any | None = None,
    rng: random.Random | None = None,
) -> ArticleService:
    """Wire an ArticleService from settings.

    Args:
        settings: Application settings
        manager: Provider manager; built from the API keys when omitted
        fetcher: Source fetcher; a WikipediaFetcher when omitted
        rng: Random source for backend, model and key selection

    Raises:
        NoProvidersConfiguredError: If no provider has an API key
    """
    manager = manager or build_provider_manager(settings, rng)
    store = ArticleStore(settings.CONTENT_DIR)
    queue = GenerationQueue(settings.queue_path, settings.stats_path)
    rate_limiter = RateLimiter(
        settings.RATE_LIMIT_DIR,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        stale_lock_seconds=settings.LOCK_STALE_SECONDS,
        retry_attempts=settings.LOCK_RETRY_ATTEMPTS,
        retry_delay=settings.LOCK_RETRY_DELAY,
        wait_timeout=settings.LOCK_WAIT_TIMEOUT,
        wait_delay=settings.LOCK_WAIT_DELAY,
    )
    orchestrator = ChunkOrchestrator(
        manager,
        rate_limiter,
        max_chunk_length=settings.MAX_CHUNK_LENGTH,
        min_source_length=settings.MIN_SOURCE_LENGTH,
    )
    fetcher = fetcher or WikipediaFetcher(
        api_url=settings.WIKIPEDIA_API_URL,
        user_agent=settings.WIKIPEDIA_USER_AGENT,
        timeout=settings.WIKIPEDIA_TIMEOUT,
    )
    pipeline = ArticlePipeline(fetcher, orchestrator, store, queue)
    processor = BackgroundProcessor(
        queue, pipeline, interval_seconds=settings.PROCESSOR_INTERVAL_SECONDS
    )
    return ArticleService(
        store=store,
        queue=queue,
        rate_limiter=rate_limiter,
        pipeline=pipeline,
        processor=processor,
        manager=manager,
        immediate_generation=settings.IMMEDIATE_GENERATION,
    )
