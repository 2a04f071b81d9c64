# ============================================================================
# tests/unit/test_worker_pool.py
# ============================================================================
"""
Tests for the recognition worker pool and pass runner
"""

import asyncio
import time

import pytest

from order_proof.core.deadline import Deadline
from order_proof.core.outcome import ErrorKind
from order_proof.core.types import ImageVariant
from order_proof.ocr.pass_runner import RecognitionPassRunner
from order_proof.ocr.worker_pool import RecognitionWorkerPool
from order_proof.utils.exceptions import PoolClosedError, RecognitionError


class TestPoolLifecycle:
    """Acquire / release / shutdown bookkeeping"""

    @pytest.mark.asyncio
    async def test_initializes_once_to_capacity(self, make_engine_factory):
        """Concurrent first acquisitions share one initialization"""
        factory = make_engine_factory()
        pool = RecognitionWorkerPool(factory, size=2)
        try:
            handles = await asyncio.gather(pool.acquire(), pool.acquire())
            assert len({h.id for h in handles}) == 2
            assert not any(h.ephemeral for h in handles)
            assert len(factory.engines) == 2
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_acquire_release_never_exceeds_capacity(self, make_engine_factory):
        """N+1 leases against a pool of N keep at most N idle handles"""
        factory = make_engine_factory()
        pool = RecognitionWorkerPool(factory, size=2)
        try:
            handles = [await pool.acquire() for _ in range(3)]
            assert [h.ephemeral for h in handles] == [False, False, True]

            for handle in handles:
                pool.release(handle)

            assert pool.idle_count == 2
            assert handles[2].disposed
            assert handles[2].engine.dispose_calls == 1
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_sequential_leases_reuse_handles(self, make_engine_factory):
        """Acquire followed by release repeatedly never creates extra engines"""
        factory = make_engine_factory()
        pool = RecognitionWorkerPool(factory, size=1)
        try:
            for _ in range(5):
                async with pool.lease() as handle:
                    assert not handle.ephemeral
            assert len(factory.engines) == 1
            assert pool.idle_count == 1
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_disposed_handle_is_not_reused(self, make_engine_factory):
        """A handle disposed while leased never returns to the pool"""
        pool = RecognitionWorkerPool(make_engine_factory(), size=1)
        try:
            handle = await pool.acquire()
            handle.dispose()
            pool.release(handle)
            assert pool.idle_count == 0

            replacement = await pool.acquire()
            assert replacement.id != handle.id
            assert not replacement.disposed
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, make_engine_factory):
        """Shutdown disposes each idle engine exactly once"""
        factory = make_engine_factory()
        pool = RecognitionWorkerPool(factory, size=2)
        handle = await pool.acquire()
        pool.release(handle)

        pool.shutdown()
        pool.shutdown()

        assert pool.closed
        assert all(engine.dispose_calls == 1 for engine in factory.engines)
        assert pool.get_statistics()['disposed'] == 2

    @pytest.mark.asyncio
    async def test_acquire_after_shutdown_raises(self, make_engine_factory):
        """The pool refuses new leases once shut down"""
        pool = RecognitionWorkerPool(make_engine_factory(), size=1)
        pool.shutdown()
        with pytest.raises(PoolClosedError):
            await pool.acquire()

    @pytest.mark.asyncio
    async def test_release_after_shutdown_disposes(self, make_engine_factory):
        """Handles returned after shutdown are disposed instead of kept"""
        pool = RecognitionWorkerPool(make_engine_factory(), size=1)
        handle = await pool.acquire()
        pool.shutdown()
        pool.release(handle)
        assert handle.disposed
        assert pool.idle_count == 0

    def test_rejects_empty_pool(self, make_engine_factory):
        """Pool size must be positive"""
        with pytest.raises(ValueError):
            RecognitionWorkerPool(make_engine_factory(), size=0)


class TestPoolRecognition:
    """Recognition under a deadline"""

    @pytest.mark.asyncio
    async def test_recognize_returns_text(self, make_engine_factory):
        """Successful recognition carries text and timing"""
        pool = RecognitionWorkerPool(make_engine_factory(texts=["Order ID 123"]), size=1)
        try:
            outcome = await pool.recognize(b"image", Deadline.after(2.0), label="original")
            assert outcome.ok
            assert outcome.value['text'] == "Order ID 123"
            assert outcome.source == "original"
            assert outcome.value['elapsed'] >= 0
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_slow_recognition_times_out_and_disposes_handle(self, make_engine_factory):
        """A call outliving its deadline is abandoned within timeout + epsilon"""
        factory = make_engine_factory(default="late text", delay=0.5)
        pool = RecognitionWorkerPool(factory, size=1)
        try:
            start = time.perf_counter()
            outcome = await pool.recognize(b"image", Deadline.after(0.1), label="slow")
            elapsed = time.perf_counter() - start

            assert outcome.error_kind is ErrorKind.TIMEOUT
            assert elapsed < 0.4

            # the worker thread finishes later; its handle must not come back
            await asyncio.sleep(0.6)
            assert pool.idle_count == 0
            assert factory.engines[0].disposed
            assert pool.get_statistics()['timeouts'] == 1
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_expired_deadline_skips_work(self, make_engine_factory):
        """No engine is touched when the deadline has already passed"""
        factory = make_engine_factory(texts=["unused"])
        pool = RecognitionWorkerPool(factory, size=1)
        try:
            outcome = await pool.recognize(b"image", Deadline.after(0.0))
            assert outcome.error_kind is ErrorKind.TIMEOUT
            assert factory.calls == 0
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_engine_error_becomes_outcome(self, make_engine_factory):
        """Engine failures are reported, and the handle stays usable"""
        factory = make_engine_factory(error=RecognitionError("tesseract crashed"))
        pool = RecognitionWorkerPool(factory, size=1)
        try:
            outcome = await pool.recognize(b"image", Deadline.after(2.0))
            assert outcome.error_kind is ErrorKind.ENGINE_ERROR
            assert "tesseract crashed" in outcome.message
            assert pool.idle_count == 1
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_recognize_after_shutdown(self, make_engine_factory):
        """A closed pool reports an engine error instead of raising"""
        pool = RecognitionWorkerPool(make_engine_factory(), size=1)
        pool.shutdown()
        outcome = await pool.recognize(b"image", Deadline.after(1.0))
        assert outcome.error_kind is ErrorKind.ENGINE_ERROR


class TestPassRunner:
    """Recognition passes with early exit"""

    @staticmethod
    def _variants(count):
        return [ImageVariant(label=f"v{i}", data=b"image") for i in range(count)]

    @pytest.mark.asyncio
    async def test_sequential_early_exit(self, make_engine_factory):
        """Passes stop as soon as the consumer is satisfied"""
        factory = make_engine_factory(texts=["first", "second", "third", "fourth"])
        pool = RecognitionWorkerPool(factory, size=1)
        runner = RecognitionPassRunner(pool, timeout=2.0)
        seen = []

        def consume(result):
            seen.append(result.recognized_text)
            return result.recognized_text == "second"

        try:
            results = await runner.run(self._variants(4), consume)
            assert seen == ["first", "second"]
            assert len(results) == 2
            assert factory.calls == 2
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_parallel_batches_finish_before_stopping(self, make_engine_factory):
        """With parallelism the whole batch is consumed before exiting"""
        factory = make_engine_factory(default="text")
        pool = RecognitionWorkerPool(factory, size=2)
        runner = RecognitionPassRunner(pool, timeout=2.0, parallelism=2)
        try:
            results = await runner.run(self._variants(5), lambda result: True)
            assert len(results) == 2
            assert factory.calls == 2
        finally:
            pool.shutdown()

    @pytest.mark.asyncio
    async def test_failed_pass_is_empty_result(self, make_engine_factory):
        """Timed-out passes become empty results and the next variant runs"""
        factory = make_engine_factory(default="text", delay=0.3)
        pool = RecognitionWorkerPool(factory, size=1)
        runner = RecognitionPassRunner(pool, timeout=0.05)
        try:
            results = await runner.run(self._variants(2), lambda result: False)
            assert len(results) == 2
            assert all(not r.has_text for r in results)
            assert all(r.elapsed_ok is False for r in results)
            assert results[0].error
        finally:
            pool.shutdown()
