# ============================================================================
# src/order_proof/ocr/pass_runner.py
# ============================================================================
"""
Recognition passes over image variants.

One pass per variant, each under its own deadline. Passes run one at a time
(``parallelism=1``) or in batches of ``parallelism``; after every pass (or
batch) the caller's ``consume`` callback sees the result and returns True to
stop early. A failed or timed-out pass becomes an empty result and never
cancels its siblings.
"""

import asyncio
import logging
from typing import Callable, List, Sequence

from ..core.deadline import Deadline
from ..core.outcome import ErrorKind
from ..core.types import ImageVariant, RecognitionPassResult
from .worker_pool import RecognitionWorkerPool

logger = logging.getLogger(__name__)

PassConsumer = Callable[[RecognitionPassResult], bool]


class RecognitionPassRunner:

    def __init__(self, pool: RecognitionWorkerPool, timeout: float = 20.0, parallelism: int = 1):
        self.pool = pool
        self.timeout = timeout
        self.parallelism = max(1, parallelism)

    async def run_pass(self, variant: ImageVariant) -> RecognitionPassResult:
        outcome = await self.pool.recognize(variant.data, Deadline.after(self.timeout), label=variant.label)
        if outcome.ok:
            return RecognitionPassResult(
                variant_label=variant.label,
                recognized_text=outcome.value.get('text', ''),
                elapsed_ok=True,
                elapsed_seconds=outcome.value.get('elapsed', 0.0),
            )
        return RecognitionPassResult(
            variant_label=variant.label,
            elapsed_ok=outcome.error_kind is not ErrorKind.TIMEOUT,
            error=outcome.message,
        )

    async def run(self, variants: Sequence[ImageVariant], consume: PassConsumer) -> List[RecognitionPassResult]:
        """Run passes until ``consume`` asks to stop or variants run out."""
        results: List[RecognitionPassResult] = []

        for start in range(0, len(variants), self.parallelism):
            batch = variants[start:start + self.parallelism]
            if len(batch) == 1:
                batch_results = [await self.run_pass(batch[0])]
            else:
                batch_results = await asyncio.gather(*(self.run_pass(v) for v in batch))

            stop = False
            for result in batch_results:
                results.append(result)
                if consume(result):
                    stop = True

            if stop:
                remaining = len(variants) - start - len(batch)
                if remaining:
                    logger.debug(f"Early exit after '{batch[-1].label}', {remaining} variants skipped")
                break

        return results
