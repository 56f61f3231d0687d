from collections.abc import Sequence

from cafemod.models.batch import BatchResult, RunSummary


def aggregate(batch_results: Sequence[BatchResult]) -> RunSummary:
    """Fold per-batch tallies into one run summary. Pure; keeps batch order."""
    batches = tuple(batch_results)
    return RunSummary(
        total_processed=sum(b.total_processed for b in batches),
        batch_count=len(batches),
        approved=sum(b.approved for b in batches),
        rejected=sum(b.rejected for b in batches),
        flagged=sum(b.flagged for b in batches),
        errors=sum(b.errors for b in batches),
        external_call_count=sum(b.external_call_count for b in batches),
        batches=batches,
    )
