"""Fetch -> rewrite -> store, with a tagged result instead of exceptions."""

import time
from dataclasses import dataclass
from typing import Protocol, Union

from sarcasm_wiki.content_store.mdc import metadata_from_content, remove_references_section
from sarcasm_wiki.content_store.models import GeneratedArtifact
from sarcasm_wiki.content_store.store import ArticleStore, is_valid_identifier
from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.errors import (
    GenerationError,
    InvalidIdentifierError,
    ProviderEmptyError,
    SourceNotFoundError,
)
from sarcasm_wiki.generation.queue import GenerationQueue
from sarcasm_wiki.generation.rewrite import ChunkOrchestrator
from sarcasm_wiki.llm.providers.types import GenerationOutcome
from sarcasm_wiki.source.wikipedia import SourceDocument

logger = get_logger().bind(module="pipeline")

MIN_SOURCE_TEXT = 50
MIN_REWRITTEN_TEXT = 50


class SourceFetcher(Protocol):
    """Anything that can fetch source articles."""

    async def fetch_source(self, identifier: str) -> SourceDocument | None: ...


@dataclass
class PipelineSuccess:
    """The article was generated and stored."""

    identifier: str
    artifact: GeneratedArtifact
    outcome: GenerationOutcome


@dataclass
class PipelineRetriable:
    """The attempt failed but may succeed later."""

    identifier: str
    error: GenerationError


@dataclass
class PipelinePermanent:
    """The attempt can never succeed; the identifier should be dropped."""

    identifier: str
    error: GenerationError


PipelineResult = Union[PipelineSuccess, PipelineRetriable, PipelinePermanent]


class ArticlePipeline:
    """Produces one article for one identifier."""

    def __init__(
        self,
        fetcher: SourceFetcher,
        orchestrator: ChunkOrchestrator,
        store: ArticleStore,
        queue: GenerationQueue,
    ) -> None:
        self.fetcher = fetcher
        self.orchestrator = orchestrator
        self.store = store
        self.queue = queue

    @staticmethod
    def _classify(identifier: str, error: GenerationError) -> PipelineResult:
        if error.retriable:
            return PipelineRetriable(identifier=identifier, error=error)
        return PipelinePermanent(identifier=identifier, error=error)

    async def generate(self, identifier: str, wait_for_release: bool = False) -> PipelineResult:
        """Generate and store the article for an identifier.

        An existing article is overwritten, keeping its creation time.

        Args:
            identifier: Topic identifier
            wait_for_release: Wait out a busy rate-limit lock

        Returns:
            Tagged result of the attempt
        """
        if not is_valid_identifier(identifier):
            logger.warning("Rejecting invalid identifier", identifier=identifier)
            return PipelinePermanent(
                identifier=identifier,
                error=InvalidIdentifierError(f"Invalid article identifier: {identifier!r}"),
            )

        started = time.monotonic()
        logger.info("Starting content generation", identifier=identifier)

        try:
            source = await self.fetcher.fetch_source(identifier)
        except GenerationError as e:
            logger.warning("Source fetch failed", identifier=identifier, error=str(e))
            return self._classify(identifier, e)

        if source is None or len(source.text.strip()) < MIN_SOURCE_TEXT:
            logger.warning("No source content found", identifier=identifier)
            return PipelinePermanent(
                identifier=identifier,
                error=SourceNotFoundError(f"No source article for {identifier}"),
            )

        try:
            outcome = await self.orchestrator.rewrite(
                source.text, identifier=identifier, wait_for_release=wait_for_release
            )
        except GenerationError as e:
            logger.warning(
                "Rewriting failed, not saving original content",
                identifier=identifier,
                code=e.code,
                error=str(e),
            )
            return self._classify(identifier, e)

        body = remove_references_section(outcome.text)
        if len(body.strip()) < MIN_REWRITTEN_TEXT:
            return PipelineRetriable(
                identifier=identifier,
                error=ProviderEmptyError(
                    "Rewritten article empty after cleanup", provider=outcome.provider_name
                ),
            )

        existing = self.store.read_artifact(identifier)
        metadata = metadata_from_content(
            identifier,
            body,
            created_at=existing.metadata.created_at if existing else None,
        )
        artifact = GeneratedArtifact(metadata=metadata, body=body)
        self.store.write_artifact(identifier, artifact)
        self.queue.record_generated(identifier, self.store.count())

        logger.info(
            "Content generation completed",
            identifier=identifier,
            provider=outcome.provider_name,
            model=outcome.model_name,
            source_length=len(source.text),
            length=len(body),
            links=len(source.links),
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return PipelineSuccess(identifier=identifier, artifact=artifact, outcome=outcome)
