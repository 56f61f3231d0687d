from dataclasses import dataclass, field
from datetime import datetime, timezone

ACTIONS = ("approved", "rejected", "flagged", "error")


@dataclass(frozen=True)
class ProcessingResult:
    submission_id: str
    action: str
    notes: str
    cafe_id: str | None = None
    name_match_score: float | None = None
    distance_meters: int | None = None
    used_llm: bool = False

    def __post_init__(self) -> None:
        if self.action not in ACTIONS:
            raise ValueError(f"unknown action: {self.action}")


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one classifier call.
    `remaining` is the pending count left after the batch, or None when the
    classifier cannot tell.
    """

    total_processed: int = 0
    approved: int = 0
    rejected: int = 0
    flagged: int = 0
    errors: int = 0
    external_call_count: int = 0
    remaining: int | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    results: tuple[ProcessingResult, ...] = ()

    def __post_init__(self) -> None:
        counters = (
            self.total_processed,
            self.approved,
            self.rejected,
            self.flagged,
            self.errors,
            self.external_call_count,
        )
        if any(c < 0 for c in counters):
            raise ValueError("batch counters must be non-negative")
        if self.approved + self.rejected + self.flagged + self.errors > self.total_processed:
            raise ValueError("decisions and errors cannot exceed total_processed")
        if self.remaining is not None and self.remaining < 0:
            raise ValueError("remaining must be non-negative")


@dataclass(frozen=True)
class RunSummary:
    total_processed: int
    batch_count: int
    approved: int
    rejected: int
    flagged: int
    errors: int
    external_call_count: int
    batches: tuple[BatchResult, ...]
