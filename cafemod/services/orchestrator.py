import asyncio
import logging

from cafemod.errors import RunAborted
from cafemod.models.batch import BatchResult, RunSummary
from cafemod.services.aggregator import aggregate
from cafemod.services.classifier import SubmissionClassifier

logger = logging.getLogger(__name__)


def queue_has_more(batch: BatchResult, batch_size: int) -> bool:
    """
    Prefer the classifier's pending count. Without one, a short batch means the
    queue is drained; a queue refilled to exactly batch_size between calls
    looks non-empty until max_batches.
    """
    if batch.remaining is not None:
        return batch.remaining > 0
    return batch.total_processed == batch_size


class BatchOrchestrator:
    """Calls the classifier batch by batch, one at a time, pausing between batches."""

    def __init__(
        self,
        classifier: SubmissionClassifier,
        pause_seconds: float = 2.0,
        verbose: bool = False,
        sleep=asyncio.sleep,
    ) -> None:
        self._classifier = classifier
        self._pause_seconds = pause_seconds
        self._verbose = verbose
        self._sleep = sleep

    async def run(self, batch_size: int, max_batches: int) -> RunSummary:
        """
        Run until the queue looks drained or max_batches calls were made.
        A classifier exception stops the loop and raises RunAborted with the
        summary of the batches finished so far.
        """
        if batch_size < 1 or max_batches < 1:
            raise ValueError("batch_size and max_batches must be at least 1")

        results: list[BatchResult] = []
        has_more = True
        while has_more and len(results) < max_batches:
            try:
                batch = await self._classifier.classify(limit=batch_size, verbose=self._verbose)
            except Exception as exc:
                logger.error(
                    "[orchestrator] classifier failed | batch=%d | completed=%d | error=%s",
                    len(results) + 1, len(results), exc,
                )
                raise RunAborted(str(exc) or type(exc).__name__, aggregate(results)) from exc

            results.append(batch)
            has_more = queue_has_more(batch, batch_size)
            logger.info(
                "[orchestrator] batch %d/%d | processed=%d | remaining=%s | more=%s",
                len(results), max_batches, batch.total_processed, batch.remaining, has_more,
            )
            if has_more and len(results) < max_batches:
                await self._sleep(self._pause_seconds)

        return aggregate(results)
