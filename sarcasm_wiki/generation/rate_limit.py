"""Global single-flight rate limiter for generation calls.

Two files under the state directory are shared by every process on the host:

- ``global.json`` holds the RateLimitRecord, the only source of truth for the
  cooldown window.
- ``generation.lock`` is a zero-byte marker created with exclusive-create
  semantics. Its existence means a process is inside the check-and-record
  section; its mtime is used to detect holders that died inside it.

The lock only covers the decision. It is never held while a provider call is
running.
"""

import asyncio
import math
import os
import time
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ValidationError

from sarcasm_wiki.core.files import read_json, write_json
from sarcasm_wiki.core.logging import get_logger

logger = get_logger().bind(module="rate_limit")

Clock = Callable[[], float]


class RateLimitRecord(BaseModel):
    """Start time and identifier of the last authorized generation."""

    last_started_at: float
    last_identifier: str


class RateLimitStatus(BaseModel):
    """Lock-free view of the cooldown window."""

    active: bool
    remaining_seconds: int = 0
    last_identifier: str | None = None


class FileLock:
    """Advisory lock backed by exclusive file creation."""

    def __init__(self, path: Path, stale_after: float = 300.0, clock: Clock = time.time):
        """Initialize the lock.

        Args:
            path: Marker file location
            stale_after: Age in seconds after which a held lock is broken
            clock: Wall clock used to judge the marker's age
        """
        self.path = path
        self.stale_after = stale_after
        self._clock = clock

    def acquire(self) -> bool:
        """Try once to take the lock."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        os.close(fd)
        return True

    def release(self) -> None:
        self.path.unlink(missing_ok=True)

    def age(self) -> float | None:
        """Seconds since the marker was created, or None when unlocked."""
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return None
        return self._clock() - mtime

    def break_if_stale(self) -> float | None:
        """Remove the marker if its holder has exceeded the stale timeout.

        Returns:
            The broken marker's mtime, or None when nothing was removed
        """
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return None

        age = self._clock() - mtime
        if age <= self.stale_after:
            return None

        self.path.unlink(missing_ok=True)
        logger.warning(
            "Force released stale generation lock",
            lock=str(self.path),
            age_seconds=round(age, 1),
        )
        return mtime


class RateLimiter:
    """Cooldown window shared by every generation attempt on the host."""

    def __init__(
        self,
        state_dir: Path,
        window_seconds: float = 60.0,
        stale_lock_seconds: float = 300.0,
        retry_attempts: int = 5,
        retry_delay: float = 0.2,
        wait_timeout: float = 300.0,
        wait_delay: float = 1.0,
        clock: Clock = time.time,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            state_dir: Directory holding the record and the lock marker
            window_seconds: Minimum time between two generation starts
            stale_lock_seconds: Age after which a lock marker is force released
            retry_attempts: Lock attempts for callers that do not wait
            retry_delay: Pause between those attempts
            wait_timeout: How long a waiting caller keeps trying for the lock
            wait_delay: Pause between attempts of a waiting caller
            clock: Wall clock, injectable for tests
        """
        self.state_dir = state_dir
        self.record_path = state_dir / "global.json"
        self.window_seconds = window_seconds
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.wait_timeout = wait_timeout
        self.wait_delay = wait_delay
        self._clock = clock
        self.lock = FileLock(
            state_dir / "generation.lock", stale_after=stale_lock_seconds, clock=clock
        )

    def _read_record(self) -> RateLimitRecord | None:
        raw = read_json(self.record_path)
        if raw is None:
            return None
        try:
            return RateLimitRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed rate limit record", error=str(e))
            return None

    def _remaining(self, record: RateLimitRecord | None, now: float) -> float:
        if record is None:
            return 0.0
        return max(0.0, self.window_seconds - (now - record.last_started_at))

    async def _acquire(self, wait_for_release: bool) -> tuple[bool, float | None]:
        """Take the lock, breaking stale markers along the way.

        Returns:
            Whether the lock is held, and the mtime of the newest stale
            marker that had to be broken to get it
        """
        if wait_for_release:
            attempts = max(1, math.ceil(self.wait_timeout / self.wait_delay))
            delay = self.wait_delay
        else:
            attempts = self.retry_attempts
            delay = self.retry_delay

        broken_at: float | None = None
        for attempt in range(attempts):
            stale_mtime = self.lock.break_if_stale()
            if stale_mtime is not None:
                broken_at = stale_mtime
            if self.lock.acquire():
                return True, broken_at
            if attempt < attempts - 1:
                await asyncio.sleep(delay)

        return False, broken_at

    async def try_start(self, identifier: str, wait_for_release: bool = False) -> bool:
        """Authorize a generation attempt if the cooldown window has closed.

        Args:
            identifier: Topic about to be generated
            wait_for_release: Keep waiting for a busy lock instead of giving
                up after a few short retries

        Returns:
            True when the caller may start generating, False when blocked
        """
        acquired, broken_at = await self._acquire(wait_for_release)
        if not acquired:
            logger.info(
                "Rate limit lock busy",
                identifier=identifier,
                waited=wait_for_release,
            )
            return False

        try:
            now = self._clock()
            record = self._read_record()

            # A start written under a lock that was never released was never
            # handed back to its caller, so it does not open a window.
            if (
                record is not None
                and broken_at is not None
                and record.last_started_at >= broken_at
            ):
                logger.warning(
                    "Discarding start recorded by crashed lock holder",
                    last_identifier=record.last_identifier,
                )
                record = None

            remaining = self._remaining(record, now)
            if remaining > 0:
                logger.info(
                    "Rate limit blocked",
                    identifier=identifier,
                    remaining_seconds=math.ceil(remaining),
                )
                return False

            started_at = now
            if record is not None and started_at <= record.last_started_at:
                started_at = math.nextafter(record.last_started_at, math.inf)

            write_json(
                self.record_path,
                RateLimitRecord(
                    last_started_at=started_at, last_identifier=identifier
                ).model_dump(),
            )
            logger.info("Rate limit passed", identifier=identifier)
            return True
        finally:
            self.lock.release()

    def get_status(self) -> RateLimitStatus:
        """Read the cooldown window without taking the lock."""
        record = self._read_record()
        remaining = self._remaining(record, self._clock())
        if record is None or remaining <= 0:
            return RateLimitStatus(active=False)
        return RateLimitStatus(
            active=True,
            remaining_seconds=math.ceil(remaining),
            last_identifier=record.last_identifier,
        )
