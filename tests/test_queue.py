"""Tests for the persisted generation queue."""

import json
from pathlib import Path

from sarcasm_wiki.generation.queue import GenerationQueue


class TestGenerationQueue:
    """Test queue ordering, deduplication and persistence."""

    def test_empty_queue(self, queue: GenerationQueue) -> None:
        """An unused queue is empty and dequeue returns None."""
        assert queue.length() == 0
        assert len(queue) == 0
        assert queue.dequeue() is None
        assert queue.position("Cat") is None

    def test_newest_first(self, queue: GenerationQueue) -> None:
        """Identifiers come back in reverse order of insertion."""
        for identifier in ["A", "B", "C"]:
            queue.enqueue(identifier)

        assert queue.position("C") == 1
        assert queue.position("A") == 3
        assert [queue.dequeue() for _ in range(4)] == ["C", "B", "A", None]

    def test_duplicate_enqueue_is_noop(self, queue: GenerationQueue) -> None:
        """Enqueueing a queued identifier does not move or duplicate it."""
        assert queue.enqueue("A") is True
        assert queue.enqueue("B") is True
        before = queue.queue_path.read_bytes()

        assert queue.enqueue("A") is False

        assert queue.queue_path.read_bytes() == before
        assert [entry.identifier for entry in queue.entries()] == ["B", "A"]
        assert queue.length() == 2

    def test_contains(self, queue: GenerationQueue) -> None:
        queue.enqueue("Cat")
        assert queue.contains("Cat")
        assert not queue.contains("Dog")

        queue.dequeue()
        assert not queue.contains("Cat")

    def test_reenqueue_after_dequeue_goes_to_front(self, queue: GenerationQueue) -> None:
        """A re-queued identifier is served next."""
        queue.enqueue("A")
        queue.enqueue("B")
        assert queue.dequeue() == "B"

        queue.enqueue("B")
        assert queue.position("B") == 1

    def test_persists_across_instances(self, queue: GenerationQueue) -> None:
        """A new instance over the same files sees the same queue."""
        queue.enqueue("A")
        queue.enqueue("B")

        reopened = GenerationQueue(queue.queue_path, queue.stats_path)
        assert [entry.identifier for entry in reopened.entries()] == ["B", "A"]
        assert reopened.dequeue() == "B"
        assert queue.entries()[0].identifier == "A"

    def test_file_format(self, queue: GenerationQueue) -> None:
        """The queue file is a JSON list of entries."""
        queue.enqueue("Cat")

        data = json.loads(queue.queue_path.read_text())
        assert isinstance(data, list)
        assert data[0]["identifier"] == "Cat"
        assert "enqueued_at" in data[0]

    def test_corrupt_file_reads_as_empty(self, queue: GenerationQueue) -> None:
        """A broken queue file does not crash readers."""
        queue.queue_path.parent.mkdir(parents=True, exist_ok=True)
        queue.queue_path.write_text("{not json")

        assert queue.length() == 0
        assert queue.enqueue("Cat") is True
        assert queue.dequeue() == "Cat"

    def test_malformed_entries_are_skipped(self, queue: GenerationQueue) -> None:
        queue.queue_path.parent.mkdir(parents=True, exist_ok=True)
        queue.queue_path.write_text(
            json.dumps([{"identifier": "Cat"}, {"wrong": 1}, "Dog"])
        )

        assert [entry.identifier for entry in queue.entries()] == ["Cat"]

    def test_no_temp_files_left_behind(self, queue: GenerationQueue) -> None:
        queue.enqueue("A")
        queue.dequeue()

        leftovers = [p for p in Path(queue.queue_path.parent).iterdir() if p.suffix == ".tmp"]
        assert leftovers == []


class TestQueueStats:
    """Test generation counters."""

    def test_stats_track_depth(self, queue: GenerationQueue) -> None:
        queue.enqueue("A")
        queue.enqueue("B")

        stats = queue.get_stats()
        assert stats.depth == 2
        assert stats.total_generated == 0
        assert stats.last_generated is None

        data = json.loads(queue.stats_path.read_text())
        assert data["depth"] == 2

    def test_record_generated(self, queue: GenerationQueue) -> None:
        """Recording a generation stores the identifier and the total."""
        queue.enqueue("A")
        queue.record_generated("Cat", 5)

        stats = queue.get_stats()
        assert stats.last_generated == "Cat"
        assert stats.total_generated == 5
        assert stats.depth == 1

    def test_live_total_overrides_stored_total(self, queue: GenerationQueue) -> None:
        queue.record_generated("Cat", 5)

        assert queue.get_stats(total_generated=7).total_generated == 7
