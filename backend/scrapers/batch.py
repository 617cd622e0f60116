"""
Paced batch processing of scrape work.

Items are processed in fixed-size groups with bounded concurrency inside a
group, staggered starts, a pause between groups and per-item retries of
transient failures. The output always has one result per input item, in
input order, whatever happens to individual items.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .base import Colors, ErrorKind, ScrapeResult

logger = logging.getLogger(__name__)


STOPPED_MESSAGE = 'Batch processing stopped'


@dataclass
class BatchItem:
    """One unit of work: an id for the result and the worker's input."""
    id: str
    payload: Any


@dataclass
class BatchResult:
    """Outcome of one item after all attempts."""
    id: str
    success: bool
    data: Optional[ScrapeResult] = None
    error: Optional[str] = None
    attempts: int = 0
    duration: float = 0.0

    @property
    def cached(self) -> bool:
        return self.data is not None and self.data.cached

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'success': self.success,
            'data': self.data.to_dict() if self.data else None,
            'error': self.error,
            'attempts': self.attempts,
            'duration': round(self.duration, 2),
        }


@dataclass
class BatchProgress:
    """Snapshot reported after every completed group."""
    completed: int
    total: int
    successful: int
    failed: int
    cached: int = 0
    current_batch: int = 0
    total_batches: int = 0
    elapsed_seconds: float = 0.0
    estimated_time_remaining: Optional[float] = None

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return self.completed / self.total * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'completed': self.completed,
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'cached': self.cached,
            'current_batch': self.current_batch,
            'total_batches': self.total_batches,
            'elapsed_seconds': round(self.elapsed_seconds, 1),
            'estimated_time_remaining': (
                round(self.estimated_time_remaining, 1)
                if self.estimated_time_remaining is not None else None
            ),
        }


@dataclass
class BatchConfig:
    """Pacing and retry settings for a batch run."""
    batch_size: int = 10
    concurrency: int = 3
    delay_between_batches: float = 2.0
    delay_between_items: float = 0.5
    max_retries: int = 2
    retry_delay: float = 1.0
    timeout: Optional[float] = None
    on_progress: Optional[Callable[[BatchProgress], None]] = None
    on_item_complete: Optional[Callable[[BatchResult], None]] = None
    on_batch_complete: Optional[Callable[[List[BatchResult]], None]] = None

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must not be negative, got {self.max_retries}")
        for name in ('delay_between_batches', 'delay_between_items', 'retry_delay'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


Worker = Callable[[Any], Awaitable[ScrapeResult]]


class BatchProcessor:
    """
    Runs a worker over many items with pacing and retries.

    One processor runs one batch at a time. Worker exceptions are contained
    per item and never abort the batch.
    """

    def __init__(
        self,
        config: Optional[BatchConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the processor.

        Args:
            config: Pacing and retry settings (defaults when omitted)
            sleep: Async sleep used for all pacing delays (injectable for tests)
            clock: Monotonic time source for durations and ETA
        """
        self.config = config or BatchConfig()
        self._sleep = sleep
        self._clock = clock
        self._running = False
        self._stop_requested = False

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Stop after in-flight items; items not yet started fail."""
        if self._running:
            logger.info("Stop requested, finishing in-flight items")
            self._stop_requested = True

    async def process_batch(self, items: Sequence[BatchItem], worker: Worker) -> List[BatchResult]:
        """
        Process every item and return results in input order.

        Raises:
            RuntimeError: If this processor is already running a batch
        """
        if self._running:
            raise RuntimeError('Batch processor is already running')

        self._running = True
        self._stop_requested = False
        items = list(items)
        results: List[Optional[BatchResult]] = [None] * len(items)

        try:
            if self.config.timeout is None:
                await self._run(items, worker, results)
            else:
                try:
                    await asyncio.wait_for(self._run(items, worker, results), timeout=self.config.timeout)
                except asyncio.TimeoutError:
                    pending = sum(1 for result in results if result is None)
                    logger.error(f"Batch timed out after {self.config.timeout}s with {pending} items unresolved")
                    self._fill_unresolved(items, results, f"Timed out after {self.config.timeout}s")
        finally:
            self._running = False
            self._stop_requested = False

        return results

    async def _run(self, items: List[BatchItem], worker: Worker, results: List[Optional[BatchResult]]) -> None:
        started = self._clock()
        size = self.config.batch_size
        total_batches = math.ceil(len(items) / size)

        logger.info(
            f"Processing {len(items)} items in {total_batches} batches "
            f"(size={size}, concurrency={self.config.concurrency})"
        )

        for batch_index in range(total_batches):
            if self._stop_requested:
                self._fill_unresolved(items, results, STOPPED_MESSAGE)
                break

            indexes = list(range(batch_index * size, min((batch_index + 1) * size, len(items))))
            logger.info(Colors.cyan(f"Batch {batch_index + 1}/{total_batches}: {len(indexes)} items"))

            await self._run_group(items, indexes, worker, results)

            progress = self._progress(results, batch_index + 1, total_batches, started)
            logger.info(
                f"Progress: {progress.completed}/{progress.total} ({progress.percent:.0f}%), "
                f"{progress.successful} ok, {progress.failed} failed, {progress.cached} cached"
            )
            if self.config.on_progress:
                self.config.on_progress(progress)
            if self.config.on_batch_complete:
                self.config.on_batch_complete([results[index] for index in indexes])

            is_last = batch_index == total_batches - 1
            if not is_last and not self._stop_requested and self.config.delay_between_batches > 0:
                await self._sleep(self.config.delay_between_batches)

        successful = sum(1 for result in results if result is not None and result.success)
        logger.info(Colors.bold(
            f"Batch complete: {successful}/{len(items)} successful in {self._clock() - started:.1f}s"
        ))

    async def _run_group(
        self,
        items: List[BatchItem],
        indexes: List[int],
        worker: Worker,
        results: List[Optional[BatchResult]],
    ) -> None:
        semaphore = asyncio.Semaphore(self.config.concurrency)

        async def run_one(index: int) -> None:
            async with semaphore:
                if self._stop_requested:
                    result = BatchResult(id=items[index].id, success=False, error=STOPPED_MESSAGE)
                else:
                    result = await self._process_item(items[index], worker)
            results[index] = result
            if self.config.on_item_complete:
                self.config.on_item_complete(result)

        tasks: List[asyncio.Future] = []
        try:
            for position, index in enumerate(indexes):
                if position > 0 and self.config.delay_between_items > 0:
                    await self._sleep(self.config.delay_between_items)
                tasks.append(asyncio.ensure_future(run_one(index)))
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def _process_item(self, item: BatchItem, worker: Worker) -> BatchResult:
        """Run the worker with retries of transient failures."""
        started = self._clock()
        outcome: Optional[ScrapeResult] = None

        for attempt in range(1, self.config.max_attempts + 1):
            outcome = await self._invoke(item, worker)

            if outcome.found:
                return BatchResult(
                    id=item.id,
                    success=True,
                    data=outcome,
                    attempts=attempt,
                    duration=self._clock() - started,
                )

            if not outcome.retryable:
                break

            if attempt < self.config.max_attempts:
                logger.warning(
                    f"{item.id}: attempt {attempt}/{self.config.max_attempts} failed "
                    f"({outcome.error}), retrying in {self.config.retry_delay}s"
                )
                await self._sleep(self.config.retry_delay)

        return BatchResult(
            id=item.id,
            success=False,
            data=outcome,
            error=outcome.error,
            attempts=attempt,
            duration=self._clock() - started,
        )

    async def _invoke(self, item: BatchItem, worker: Worker) -> ScrapeResult:
        try:
            outcome = await worker(item.payload)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(f"{item.id}: worker raised {e.__class__.__name__}: {message}")
            return ScrapeResult.failure(message, ErrorKind.NETWORK)

        if not isinstance(outcome, ScrapeResult):
            logger.warning(f"{item.id}: worker returned {type(outcome).__name__}")
            return ScrapeResult.failure(f"Worker returned {type(outcome).__name__}", ErrorKind.NETWORK)

        if not outcome.found and not outcome.error:
            return ScrapeResult.no_match()
        return outcome

    def _fill_unresolved(self, items: List[BatchItem], results: List[Optional[BatchResult]], error: str) -> None:
        for index, result in enumerate(results):
            if result is None:
                results[index] = BatchResult(id=items[index].id, success=False, error=error)

    def _progress(
        self,
        results: List[Optional[BatchResult]],
        current_batch: int,
        total_batches: int,
        started: float,
    ) -> BatchProgress:
        done = [result for result in results if result is not None]
        elapsed = self._clock() - started
        remaining = len(results) - len(done)

        eta = None
        if done and remaining:
            eta = elapsed / len(done) * remaining
        elif not remaining:
            eta = 0.0

        return BatchProgress(
            completed=len(done),
            total=len(results),
            successful=sum(1 for result in done if result.success),
            failed=sum(1 for result in done if not result.success),
            cached=sum(1 for result in done if result.cached),
            current_batch=current_batch,
            total_batches=total_batches,
            elapsed_seconds=elapsed,
            estimated_time_remaining=eta,
        )
