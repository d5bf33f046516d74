"""Periodic worker that drains the generation queue."""

import asyncio
from enum import Enum

from prometheus_client import Counter
from pydantic import BaseModel

from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.pipeline import ArticlePipeline, PipelineRetriable, PipelineSuccess
from sarcasm_wiki.generation.queue import GenerationQueue

logger = get_logger().bind(module="queue_processor")

PROCESSOR_TICKS = Counter(
    "sarcasm_wiki_processor_ticks_total",
    "Background processor passes by outcome",
    labelnames=["outcome"],
)


class ProcessStatus(str, Enum):
    """What one processor pass did."""

    IDLE = "idle"
    SKIPPED = "skipped"
    GENERATED = "generated"
    REQUEUED = "requeued"
    DROPPED = "dropped"


class ProcessReport(BaseModel):
    """Result of one processor pass."""

    status: ProcessStatus
    identifier: str | None = None
    message: str = ""


class BackgroundProcessor:
    """Single logical worker for the generation queue.

    At most one pass runs at a time; a pass requested while another is in
    flight is skipped rather than queued. Each pass pops one identifier, runs
    the pipeline willing to wait for the rate-limit lock, and either puts the
    identifier back (retriable failure) or forgets it.
    """

    def __init__(
        self,
        queue: GenerationQueue,
        pipeline: ArticlePipeline,
        interval_seconds: float = 120.0,
    ) -> None:
        """Initialize the processor.

        Args:
            queue: Backlog to drain
            pipeline: Article pipeline
            interval_seconds: Time between passes
        """
        self.queue = queue
        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self._processing = False
        self._task: asyncio.Task[None] | None = None

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> ProcessReport:
        """Run one pass over the queue."""
        if self._processing:
            logger.info("Already processing, skipping")
            PROCESSOR_TICKS.labels(outcome=ProcessStatus.SKIPPED.value).inc()
            return ProcessReport(status=ProcessStatus.SKIPPED, message="Already processing")

        self._processing = True
        try:
            report = await self._process_next()
        finally:
            self._processing = False

        PROCESSOR_TICKS.labels(outcome=report.status.value).inc()
        return report

    async def _process_next(self) -> ProcessReport:
        identifier = self.queue.dequeue()
        if identifier is None:
            logger.debug("Queue is empty")
            return ProcessReport(status=ProcessStatus.IDLE, message="Queue is empty")

        logger.info("Processing queued identifier", identifier=identifier)
        try:
            result = await self.pipeline.generate(identifier, wait_for_release=True)
        except Exception:
            # Unknown failures are not re-queued so they cannot loop forever
            logger.exception("Unexpected error processing identifier", identifier=identifier)
            return ProcessReport(
                status=ProcessStatus.DROPPED,
                identifier=identifier,
                message="Unexpected error",
            )

        if isinstance(result, PipelineSuccess):
            logger.info("Successfully generated", identifier=identifier)
            return ProcessReport(
                status=ProcessStatus.GENERATED,
                identifier=identifier,
                message=f"Generated: {identifier}",
            )

        if isinstance(result, PipelineRetriable):
            logger.info(
                "Retriable error, re-adding to queue",
                identifier=identifier,
                code=result.error.code,
            )
            self.queue.enqueue(identifier)
            return ProcessReport(
                status=ProcessStatus.REQUEUED,
                identifier=identifier,
                message=f"{result.error.code}: re-queued",
            )

        logger.warning(
            "Permanent error, dropping identifier",
            identifier=identifier,
            code=result.error.code,
            error=str(result.error),
        )
        return ProcessReport(
            status=ProcessStatus.DROPPED,
            identifier=identifier,
            message=f"{result.error.code}: {result.error}",
        )

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.tick()
            except Exception:
                logger.exception("Queue processor pass failed")

    def start(self) -> None:
        """Start the periodic loop in the running event loop."""
        if self.running:
            return
        logger.info("Starting queue processor", interval_seconds=self.interval_seconds)
        self._task = asyncio.create_task(self._run(), name="queue-processor")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Queue processor stopped")
