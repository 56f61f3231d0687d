import asyncio
import logging
import uuid

from cafemod.errors import RunAborted, RunInProgressError
from cafemod.repositories.base import AbstractLeaseRepository
from cafemod.schemas.report import FailureReport, SuccessReport
from cafemod.services.orchestrator import BatchOrchestrator
from cafemod.services.report_builder import build_failure_report, build_success_report

logger = logging.getLogger(__name__)

JOB_ID = "process-submissions"


class SubmissionRunService:
    """One triggered run: take the job lease, drive the orchestrator, build the report."""

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        leases: AbstractLeaseRepository,
        batch_size: int,
        max_batches: int,
        lease_ttl_seconds: float,
        job_id: str = JOB_ID,
    ) -> None:
        self._orchestrator = orchestrator
        self._leases = leases
        self._batch_size = batch_size
        self._max_batches = max_batches
        self._lease_ttl_seconds = lease_ttl_seconds
        self._job_id = job_id

    async def run(self) -> SuccessReport | FailureReport:
        """Raises RunInProgressError if another run holds the lease; otherwise always returns a report."""
        holder = uuid.uuid4().hex
        acquired = await asyncio.to_thread(
            self._leases.acquire, self._job_id, holder, self._lease_ttl_seconds
        )
        if not acquired:
            logger.warning("[run] lease held by another run | job=%s", self._job_id)
            raise RunInProgressError("Run already in progress")

        logger.info(
            "[run] starting | job=%s | batch_size=%d | max_batches=%d",
            self._job_id, self._batch_size, self._max_batches,
        )
        try:
            summary = await self._orchestrator.run(self._batch_size, self._max_batches)
        except RunAborted as exc:
            logger.error(
                "[run] aborted | completed_batches=%d | error=%s", exc.summary.batch_count, exc
            )
            return build_failure_report(str(exc), exc.summary)
        except Exception as exc:
            logger.exception("[run] crashed")
            return build_failure_report(str(exc))
        finally:
            try:
                await asyncio.to_thread(self._leases.release, self._job_id, holder)
            except Exception:
                logger.exception("[run] lease release failed, leaving it to expire | job=%s", self._job_id)

        logger.info(
            "[run] completed | processed=%d | batches=%d | approved=%d | rejected=%d | flagged=%d | errors=%d",
            summary.total_processed, summary.batch_count, summary.approved,
            summary.rejected, summary.flagged, summary.errors,
        )
        return build_success_report(summary)
