"""
Tests for the batch processor.

Pacing delays go through an injected sleep that only records durations.
"""

import asyncio
import random
from decimal import Decimal

import pytest

from scrapers.base import ErrorKind, NO_MATCH_MESSAGE, ScrapeResult
from scrapers.batch import STOPPED_MESSAGE, BatchConfig, BatchItem, BatchProcessor


def ok(payload) -> ScrapeResult:
    return ScrapeResult(price=Decimal("1.00"), product_url=f"https://shop.example/{payload}")


def items(count: int):
    return [BatchItem(id=str(i), payload=str(i)) for i in range(count)]


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def fast_config(**overrides) -> BatchConfig:
    values = dict(delay_between_batches=0, delay_between_items=0, retry_delay=0)
    values.update(overrides)
    return BatchConfig(**values)


class TestCardinalityAndOrder:
    """Test that every item yields exactly one result, in input order."""

    def test_results_follow_input_order(self):
        async def worker(payload):
            # Later items finish first
            await asyncio.sleep(random.uniform(0, 0.01))
            return ok(payload)

        processor = BatchProcessor(fast_config(batch_size=4, concurrency=4))
        results = asyncio.run(processor.process_batch(items(10), worker))

        assert [r.id for r in results] == [str(i) for i in range(10)]
        assert all(r.success for r in results)

    @pytest.mark.parametrize("count", [0, 1, 9, 10, 11, 25])
    def test_length_matches_input(self, count):
        async def worker(payload):
            if int(payload) % 3 == 0:
                raise RuntimeError("boom")
            return ok(payload)

        processor = BatchProcessor(fast_config(batch_size=10, max_retries=0))
        results = asyncio.run(processor.process_batch(items(count), worker))

        assert len(results) == count

    def test_worker_exception_is_contained(self):
        async def worker(payload):
            if payload == "1":
                raise RuntimeError("browser crashed")
            return ok(payload)

        processor = BatchProcessor(fast_config(max_retries=0))
        results = asyncio.run(processor.process_batch(items(3), worker))

        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "browser crashed"

    def test_non_result_return_is_contained(self):
        async def worker(payload):
            if payload == "1":
                return None
            return ok(payload)

        processor = BatchProcessor(fast_config(max_retries=0))
        results = asyncio.run(processor.process_batch(items(3), worker))

        assert len(results) == 3
        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "Worker returned NoneType"


class TestConcurrency:
    """Test the in-flight bound."""

    def test_never_more_than_concurrency_in_flight(self):
        state = {"in_flight": 0, "peak": 0}

        async def worker(payload):
            state["in_flight"] += 1
            state["peak"] = max(state["peak"], state["in_flight"])
            await asyncio.sleep(0.005)
            state["in_flight"] -= 1
            return ok(payload)

        processor = BatchProcessor(fast_config(batch_size=10, concurrency=3))
        asyncio.run(processor.process_batch(items(20), worker))

        assert state["peak"] == 3


class TestRetries:
    """Test retry of transient failures."""

    def test_fails_twice_then_succeeds(self):
        attempts = {"count": 0}

        async def worker(payload):
            attempts["count"] += 1
            if attempts["count"] <= 2:
                return ScrapeResult.failure("Navigation timed out", ErrorKind.NETWORK)
            return ok(payload)

        processor = BatchProcessor(fast_config(max_retries=3))
        results = asyncio.run(processor.process_batch(items(1), worker))

        assert results[0].success is True
        assert results[0].attempts == 3

    def test_always_failing_gives_up(self):
        attempts = {"count": 0}

        async def worker(payload):
            attempts["count"] += 1
            raise ConnectionError("net::ERR_CONNECTION_RESET")

        processor = BatchProcessor(fast_config(max_retries=2))
        results = asyncio.run(asyncio.wait_for(processor.process_batch(items(1), worker), timeout=5))

        assert results[0].success is False
        assert results[0].error == "net::ERR_CONNECTION_RESET"
        assert attempts["count"] == 3

    def test_no_match_is_not_retried(self):
        attempts = {"count": 0}

        async def worker(payload):
            attempts["count"] += 1
            return ScrapeResult.no_match()

        processor = BatchProcessor(fast_config(max_retries=2))
        results = asyncio.run(processor.process_batch(items(1), worker))

        assert attempts["count"] == 1
        assert results[0].success is False
        assert results[0].error == NO_MATCH_MESSAGE

    def test_empty_result_is_a_miss(self):
        async def worker(payload):
            return ScrapeResult()

        processor = BatchProcessor(fast_config())
        results = asyncio.run(processor.process_batch(items(1), worker))

        assert results[0].success is False
        assert results[0].error == NO_MATCH_MESSAGE

    def test_retry_delay_is_used(self):
        sleep = RecordingSleep()

        async def worker(payload):
            return ScrapeResult.failure("timeout", ErrorKind.NETWORK)

        processor = BatchProcessor(fast_config(max_retries=2, retry_delay=1.5), sleep=sleep)
        asyncio.run(processor.process_batch(items(1), worker))

        assert sleep.calls == [1.5, 1.5]


class TestPacing:
    """Test item staggering and inter-batch delays."""

    def test_delays(self):
        sleep = RecordingSleep()

        async def worker(payload):
            return ok(payload)

        config = BatchConfig(batch_size=2, concurrency=2, delay_between_batches=2.0, delay_between_items=0.5)
        processor = BatchProcessor(config, sleep=sleep)
        asyncio.run(processor.process_batch(items(5), worker))

        # Groups of 2, 2, 1: one stagger per full group, no pause after the last group
        assert sleep.calls == [0.5, 2.0, 0.5, 2.0]

    def test_progress_is_cumulative(self):
        reports = []

        async def worker(payload):
            return ok(payload) if payload != "2" else ScrapeResult.no_match()

        config = fast_config(batch_size=2, on_progress=reports.append)
        asyncio.run(BatchProcessor(config).process_batch(items(5), worker))

        assert [p.completed for p in reports] == [2, 4, 5]
        assert [p.current_batch for p in reports] == [1, 2, 3]
        assert reports[-1].total == 5
        assert reports[-1].successful == 4
        assert reports[-1].failed == 1
        assert reports[-1].estimated_time_remaining == 0.0

    def test_item_and_batch_callbacks(self):
        completed_items = []
        batches = []

        async def worker(payload):
            return ok(payload)

        config = fast_config(
            batch_size=3,
            on_item_complete=completed_items.append,
            on_batch_complete=batches.append,
        )
        asyncio.run(BatchProcessor(config).process_batch(items(4), worker))

        assert sorted(r.id for r in completed_items) == ["0", "1", "2", "3"]
        assert [[r.id for r in batch] for batch in batches] == [["0", "1", "2"], ["3"]]


class TestControl:
    """Test stop, concurrent runs and the overall timeout."""

    def test_stop_fails_remaining_items(self):
        processor = BatchProcessor(fast_config(batch_size=2, concurrency=1))

        async def worker(payload):
            if payload == "0":
                processor.stop()
            return ok(payload)

        results = asyncio.run(processor.process_batch(items(6), worker))

        assert len(results) == 6
        assert results[0].success is True
        assert all(r.error == STOPPED_MESSAGE for r in results[1:])
        assert not processor.is_running

    def test_refuses_concurrent_run(self):
        processor = BatchProcessor(fast_config())

        async def scenario():
            gate = asyncio.Event()

            async def worker(payload):
                await gate.wait()
                return ok(payload)

            first = asyncio.ensure_future(processor.process_batch(items(2), worker))
            await asyncio.sleep(0)
            with pytest.raises(RuntimeError):
                await processor.process_batch(items(1), worker)
            gate.set()
            return await first

        results = asyncio.run(scenario())
        assert len(results) == 2

    def test_timeout_fails_unresolved_items(self):
        async def worker(payload):
            if payload == "1":
                await asyncio.sleep(10)
            return ok(payload)

        processor = BatchProcessor(fast_config(batch_size=2, concurrency=1, timeout=0.1))
        results = asyncio.run(processor.process_batch(items(3), worker))

        assert len(results) == 3
        assert results[0].success is True
        assert results[1].success is False
        assert "Timed out" in results[1].error
        assert "Timed out" in results[2].error
        assert not processor.is_running


class TestBatchConfig:
    """Test configuration validation."""

    @pytest.mark.parametrize("overrides", [
        {"batch_size": 0},
        {"concurrency": 0},
        {"max_retries": -1},
        {"delay_between_items": -0.5},
        {"timeout": 0},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            BatchConfig(**overrides)

    def test_defaults(self):
        config = BatchConfig()
        assert config.batch_size == 10
        assert config.concurrency == 3
        assert config.delay_between_batches == 2.0
        assert config.delay_between_items == 0.5
        assert config.max_attempts == 3
