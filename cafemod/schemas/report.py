from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmissionOutcome(CamelModel):
    submission_id: str
    action: str
    notes: str
    cafe_id: str | None = None
    name_match_score: float | None = None
    distance_meters: int | None = None
    used_llm: bool = False


class BatchReport(CamelModel):
    total_processed: int
    approved: int
    rejected: int
    flagged: int
    errors: int
    external_call_count: int
    remaining: int | None = None
    started_at: datetime
    completed_at: datetime
    results: list[SubmissionOutcome] = []


class RunTotals(CamelModel):
    approved: int
    rejected: int
    flagged: int
    errors: int
    external_call_count: int


class SuccessReport(CamelModel):
    success: bool = True
    timestamp: datetime
    total_processed: int
    batch_runs: int
    summary: RunTotals
    batches: list[BatchReport]


class FailureReport(CamelModel):
    success: bool = False
    error: str
    timestamp: datetime
    partial: bool | None = None
    total_processed: int | None = None
    batch_runs: int | None = None
    batches: list[BatchReport] | None = None


class ErrorBody(BaseModel):
    error: str
