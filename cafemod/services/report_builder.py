from dataclasses import asdict
from datetime import datetime, timezone

from cafemod.models.batch import BatchResult, RunSummary
from cafemod.schemas.report import (
    BatchReport,
    FailureReport,
    RunTotals,
    SubmissionOutcome,
    SuccessReport,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def batch_report(batch: BatchResult) -> BatchReport:
    return BatchReport(
        total_processed=batch.total_processed,
        approved=batch.approved,
        rejected=batch.rejected,
        flagged=batch.flagged,
        errors=batch.errors,
        external_call_count=batch.external_call_count,
        remaining=batch.remaining,
        started_at=batch.started_at,
        completed_at=batch.completed_at,
        results=[SubmissionOutcome(**asdict(r)) for r in batch.results],
    )


def build_success_report(summary: RunSummary, timestamp: datetime | None = None) -> SuccessReport:
    return SuccessReport(
        timestamp=timestamp or _now(),
        total_processed=summary.total_processed,
        batch_runs=summary.batch_count,
        summary=RunTotals(
            approved=summary.approved,
            rejected=summary.rejected,
            flagged=summary.flagged,
            errors=summary.errors,
            external_call_count=summary.external_call_count,
        ),
        batches=[batch_report(b) for b in summary.batches],
    )


def build_failure_report(
    error: str,
    partial: RunSummary | None = None,
    timestamp: datetime | None = None,
) -> FailureReport:
    """Batches completed before the failure are kept and the report is tagged partial."""
    report = FailureReport(error=error or "Unknown error", timestamp=timestamp or _now())
    if partial is not None and partial.batch_count > 0:
        report.partial = True
        report.total_processed = partial.total_processed
        report.batch_runs = partial.batch_count
        report.batches = [batch_report(b) for b in partial.batches]
    return report


def dump_report(report: SuccessReport | FailureReport) -> dict:
    """JSON-ready dict with camelCase keys; unset optional failure fields are left out."""
    return report.model_dump(mode="json", by_alias=True, exclude_none=isinstance(report, FailureReport))
