"""Chunked rewriting of source articles."""

import time

from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.chunking import CHUNK_SEPARATOR, build_chunks
from sarcasm_wiki.generation.errors import RateLimitedError, SourceContentTooShortError
from sarcasm_wiki.generation.rate_limit import RateLimiter
from sarcasm_wiki.llm.manager import ProviderManager
from sarcasm_wiki.llm.prompts import PromptLibrary
from sarcasm_wiki.llm.providers.types import GenerationOutcome

logger = get_logger().bind(module="rewrite")


class ChunkOrchestrator:
    """Rewrites a source article, one provider call per chunk."""

    def __init__(
        self,
        manager: ProviderManager,
        rate_limiter: RateLimiter,
        prompts: PromptLibrary | None = None,
        max_chunk_length: int = 30000,
        min_source_length: int = 100,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            manager: Provider manager that performs the calls
            rate_limiter: Global cooldown gate
            prompts: Rewrite templates
            max_chunk_length: Source length above which text is chunked
            min_source_length: Shortest source text worth rewriting
        """
        self.manager = manager
        self.rate_limiter = rate_limiter
        self.prompts = prompts or PromptLibrary()
        self.max_chunk_length = max_chunk_length
        self.min_source_length = min_source_length

    async def rewrite(
        self,
        source_text: str,
        identifier: str | None = None,
        wait_for_release: bool = False,
    ) -> GenerationOutcome:
        """Rewrite source text.

        Args:
            source_text: Article text with ``## `` section headings
            identifier: Topic being generated; when given the rate limiter
                must authorize the attempt first
            wait_for_release: Passed through to the rate limiter

        Returns:
            Rewritten text; provider and model are those of the last chunk

        Raises:
            SourceContentTooShortError: Source text is too short
            RateLimitedError: The rate limiter did not authorize the attempt
            ProviderError: A chunk could not be rewritten
        """
        if not source_text or len(source_text.strip()) < self.min_source_length:
            raise SourceContentTooShortError(
                f"Source text shorter than {self.min_source_length} characters"
            )

        if identifier is not None:
            if not await self.rate_limiter.try_start(identifier, wait_for_release):
                status = self.rate_limiter.get_status()
                raise RateLimitedError(
                    f"Generation rate limited for {identifier}",
                    retry_after=status.remaining_seconds,
                )

        chunks = build_chunks(source_text, self.max_chunk_length)
        logger.info(
            "Rewriting content",
            identifier=identifier,
            length=len(source_text),
            chunks=len(chunks),
        )

        outcomes: list[GenerationOutcome] = []
        for index, chunk in enumerate(chunks):
            first = index == 0
            started = time.monotonic()
            outcome = await self.manager.generate_content(
                self.prompts.user_prompt(chunk, first=first),
                self.prompts.system_prompt(first=first),
            )
            logger.info(
                "Chunk rewritten",
                identifier=identifier,
                chunk=index + 1,
                of=len(chunks),
                provider=outcome.provider_name,
                model=outcome.model_name,
                duration_ms=round((time.monotonic() - started) * 1000),
            )
            outcomes.append(outcome)

        last = outcomes[-1]
        return GenerationOutcome(
            text=CHUNK_SEPARATOR.join(o.text for o in outcomes),
            provider_name=last.provider_name,
            model_name=last.model_name,
        )
