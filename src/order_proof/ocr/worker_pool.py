# ============================================================================
# src/order_proof/ocr/worker_pool.py
# ============================================================================
"""
Recognition Worker Pool

Keeps a small fixed number of recognition engines warm and hands them out
one caller at a time. Blocking recognition runs in a thread executor so the
event loop never stalls.

Contract:
- acquire() waits only for the first (single-flight) initialization, never
  for a free handle: on a miss it creates an ephemeral one.
- release() keeps a handle only while fewer than ``size`` are idle,
  otherwise disposes it. A disposed handle never re-enters the pool.
- shutdown() is idempotent, disposes every idle handle and logs (but
  swallows) disposal failures.
"""

import asyncio
import itertools
import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, Callable, Deque, Dict, Optional

from ..core.deadline import Deadline
from ..core.outcome import ErrorKind, Outcome
from ..utils.exceptions import PoolClosedError, RecognitionError, RecognitionTimeoutError
from ..utils.logging import text_preview
from .engine import RecognitionEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], RecognitionEngine]


class WorkerHandle:
    """One engine instance plus the mutex that serializes its use."""

    def __init__(self, handle_id: int, engine: RecognitionEngine, ephemeral: bool = False):
        self.id = handle_id
        self.engine = engine
        self.ephemeral = ephemeral
        self.disposed = False
        self._lock = threading.Lock()

    def run(self, image_bytes: bytes, timeout: Optional[float] = None) -> Dict[str, Any]:
        with self._lock:
            if self.disposed:
                raise PoolClosedError(f"worker {self.id} already disposed")
            return self.engine.recognize(image_bytes, timeout=timeout)

    def dispose(self) -> None:
        with self._lock:
            if self.disposed:
                return
            self.disposed = True
            self.engine.dispose()

    def __repr__(self) -> str:
        kind = "ephemeral" if self.ephemeral else "pooled"
        return f"WorkerHandle(id={self.id}, {kind}, disposed={self.disposed})"


class RecognitionWorkerPool:
    """
    Bounded pool of recognition engines.

    Owned by the composition root and passed to the orchestrator and the
    verification engines; nothing else creates engines.
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        size: int = 2,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: Optional[int] = None,
        debug_text: bool = False,
    ):
        if size < 1:
            raise ValueError("pool size must be at least 1")

        self._factory = engine_factory
        self.size = size
        self.debug_text = debug_text

        self._idle: Deque[WorkerHandle] = deque()
        self._state_lock = threading.Lock()
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._closed = False
        self._ids = itertools.count(1)

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers or max(4, size * 2),
            thread_name_prefix="ocr-worker",
        )

        # Statistics
        self._created = 0
        self._ephemeral_created = 0
        self._disposed = 0
        self._timeouts = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def idle_count(self) -> int:
        with self._state_lock:
            return len(self._idle)

    def _create_handle(self, ephemeral: bool) -> WorkerHandle:
        engine = self._factory()
        handle = WorkerHandle(next(self._ids), engine, ephemeral=ephemeral)
        with self._state_lock:
            self._created += 1
            if ephemeral:
                self._ephemeral_created += 1
        return handle

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return

            loop = asyncio.get_running_loop()
            results = await asyncio.gather(
                *[loop.run_in_executor(self._executor, self._create_handle, False)
                  for _ in range(self.size)],
                return_exceptions=True,
            )

            ready = 0
            for result in results:
                if isinstance(result, BaseException):
                    logger.warning(f"Recognition engine init failed (slot left empty): {result}")
                    continue
                with self._state_lock:
                    keep = not self._closed and len(self._idle) < self.size
                    if keep:
                        self._idle.append(result)
                        ready += 1
                if not keep:
                    self._dispose(result)

            self._initialized = True
            logger.info(f"Recognition pool initialized: {ready}/{self.size} engines ready")

    async def acquire(self) -> WorkerHandle:
        if self._closed:
            raise PoolClosedError("recognition pool is shut down")

        await self._ensure_initialized()

        with self._state_lock:
            if self._idle:
                return self._idle.popleft()

        loop = asyncio.get_running_loop()
        handle = await loop.run_in_executor(self._executor, self._create_handle, True)
        logger.debug(f"Pool miss: created ephemeral worker {handle.id}")
        return handle

    def release(self, handle: WorkerHandle) -> None:
        if handle.disposed:
            return
        with self._state_lock:
            if not self._closed and len(self._idle) < self.size:
                self._idle.append(handle)
                return
        self._dispose(handle)

    @asynccontextmanager
    async def lease(self):
        """Scoped acquisition: the handle is released on every exit path."""
        handle = await self.acquire()
        try:
            yield handle
        finally:
            self.release(handle)

    def _dispose(self, handle: WorkerHandle) -> None:
        try:
            handle.dispose()
        except Exception as e:
            logger.warning(f"Disposing recognition worker {handle.id} failed: {e}")
        with self._state_lock:
            self._disposed += 1

    def shutdown(self) -> None:
        """Dispose every idle handle. Safe to call any number of times."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            handles = list(self._idle)
            self._idle.clear()

        for handle in handles:
            self._dispose(handle)

        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

        logger.info(f"Recognition pool shut down ({len(handles)} idle engines disposed)")

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    async def recognize(
        self,
        image_bytes: bytes,
        deadline: Deadline,
        label: str = "image",
    ) -> Outcome:
        """
        Recognize one image under ``deadline``.

        Returns an Outcome carrying the engine's ``{'text', 'metadata'}``
        dict. A handle whose call outlives the deadline is disposed once its
        thread finishes instead of going back to the pool.
        """
        if deadline.expired:
            return Outcome.failure(ErrorKind.TIMEOUT, f"no time left for '{label}'")

        try:
            handle = await self.acquire()
        except RecognitionError as e:
            return Outcome.failure(ErrorKind.ENGINE_ERROR, str(e))

        start = time.perf_counter()
        future = None
        try:
            future = self._executor.submit(handle.run, image_bytes, deadline.remaining())
            data = await asyncio.wait_for(
                asyncio.wrap_future(future),
                timeout=max(deadline.remaining(), 0.001),
            )
        except asyncio.TimeoutError:
            self._timeouts += 1
            logger.warning(f"Recognition of '{label}' timed out after {deadline.budget:.1f}s")
            return Outcome.failure(ErrorKind.TIMEOUT, f"recognition of '{label}' timed out")
        except RecognitionTimeoutError as e:
            self._timeouts += 1
            logger.warning(f"Recognition of '{label}' timed out in engine: {e}")
            return Outcome.failure(ErrorKind.TIMEOUT, str(e))
        except RecognitionError as e:
            logger.warning(f"Recognition of '{label}' failed: {e}")
            return Outcome.failure(ErrorKind.ENGINE_ERROR, str(e))
        except RuntimeError as e:
            # executor already shut down
            logger.warning(f"Recognition of '{label}' not scheduled: {e}")
            return Outcome.failure(ErrorKind.ENGINE_ERROR, str(e))
        finally:
            if future is not None and not future.done():
                future.add_done_callback(lambda _f, h=handle: self._dispose(h))
            else:
                self.release(handle)

        elapsed = time.perf_counter() - start
        text = data.get('text', '') if isinstance(data, dict) else ''
        if self.debug_text:
            logger.debug(f"[{label}] {elapsed:.2f}s, {len(text)} chars: {text_preview(text)}")
        return Outcome.success({'text': text, 'metadata': data.get('metadata', {}), 'elapsed': elapsed},
                               source=label)

    def get_statistics(self) -> Dict[str, Any]:
        with self._state_lock:
            return {
                'size': self.size,
                'idle': len(self._idle),
                'created': self._created,
                'ephemeral_created': self._ephemeral_created,
                'disposed': self._disposed,
                'timeouts': self._timeouts,
                'closed': self._closed,
            }
