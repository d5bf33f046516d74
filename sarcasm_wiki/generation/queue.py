"""Persisted backlog of topics waiting to be generated."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from prometheus_client import Gauge
from pydantic import BaseModel, Field, ValidationError

from sarcasm_wiki.core.files import read_json, write_json
from sarcasm_wiki.core.logging import get_logger

logger = get_logger().bind(module="generation_queue")

QUEUE_DEPTH = Gauge(
    "sarcasm_wiki_queue_depth",
    "Number of identifiers waiting in the generation queue",
)


class QueueEntry(BaseModel):
    """A single pending topic."""

    identifier: str
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class QueueStats(BaseModel):
    """Counters shown to visitors and operators."""

    depth: int = 0
    total_generated: int = 0
    last_generated: str | None = None


class GenerationQueue:
    """Deduplicated last-in-first-out queue stored as a JSON document.

    New requests go to the front so live demand is served before older
    backlog. Each mutation is written to disk before the call returns.
    ``dequeue`` is a plain read-modify-write and is only safe with a single
    consumer per queue file.
    """

    def __init__(self, queue_path: Path, stats_path: Path) -> None:
        """Initialize the queue.

        Args:
            queue_path: JSON file holding the list of entries
            stats_path: JSON file holding the generation counters
        """
        self.queue_path = queue_path
        self.stats_path = stats_path

    def _load(self) -> list[QueueEntry]:
        raw = read_json(self.queue_path)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Queue file is not a list, starting empty")
            return []

        entries: list[QueueEntry] = []
        for item in raw:
            try:
                entries.append(QueueEntry.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed queue entry", entry=item, error=str(e))
        return entries

    def _save(self, entries: list[QueueEntry]) -> None:
        write_json(self.queue_path, [entry.model_dump(mode="json") for entry in entries])
        self._update_depth(len(entries))

    def _load_stats(self) -> dict[str, Any]:
        raw = read_json(self.stats_path)
        return raw if isinstance(raw, dict) else {}

    def _update_depth(self, depth: int) -> None:
        stats = self._load_stats()
        stats["depth"] = depth
        write_json(self.stats_path, stats)
        QUEUE_DEPTH.set(depth)

    def enqueue(self, identifier: str) -> bool:
        """Add an identifier to the front of the queue.

        Args:
            identifier: Topic identifier

        Returns:
            False without touching the file when already queued, True otherwise
        """
        entries = self._load()
        if any(entry.identifier == identifier for entry in entries):
            logger.info("Identifier already queued, skipping", identifier=identifier)
            return False

        entries.insert(0, QueueEntry(identifier=identifier))
        self._save(entries)
        logger.info("Added identifier to queue", identifier=identifier, depth=len(entries))
        return True

    def dequeue(self) -> str | None:
        """Remove and return the most recently enqueued identifier."""
        entries = self._load()
        if not entries:
            return None

        entry = entries.pop(0)
        self._save(entries)
        logger.info(
            "Removed identifier from queue",
            identifier=entry.identifier,
            depth=len(entries),
        )
        return entry.identifier

    def contains(self, identifier: str) -> bool:
        return any(entry.identifier == identifier for entry in self._load())

    def length(self) -> int:
        return len(self._load())

    def __len__(self) -> int:
        return self.length()

    def position(self, identifier: str) -> int | None:
        """1-based distance from the front, or None when not queued."""
        for index, entry in enumerate(self._load()):
            if entry.identifier == identifier:
                return index + 1
        return None

    def entries(self) -> list[QueueEntry]:
        """Snapshot of the queue, front first."""
        return self._load()

    def record_generated(self, identifier: str, total_generated: int) -> None:
        """Remember the latest generated identifier and the article total.

        Args:
            identifier: Identifier that was just generated
            total_generated: Number of articles in the content store
        """
        stats = self._load_stats()
        stats["depth"] = self.length()
        stats["generated"] = total_generated
        stats["last_generated"] = identifier
        write_json(self.stats_path, stats)

    def get_stats(self, total_generated: int | None = None) -> QueueStats:
        """Read the counters.

        Args:
            total_generated: Live article count; falls back to the stored one

        Returns:
            Current queue statistics
        """
        stats = self._load_stats()
        generated = total_generated
        if generated is None:
            generated = int(stats.get("generated", 0) or 0)
        return QueueStats(
            depth=self.length(),
            total_generated=generated,
            last_generated=stats.get("last_generated"),
        )
