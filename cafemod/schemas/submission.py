from datetime import datetime

from pydantic import Field, field_validator

from cafemod.schemas.report import BatchReport, CamelModel


class SubmissionRequest(CamelModel):
    name: str
    google_maps_link: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    submitted_by: str | None = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name must not be empty")
        return v.strip()

    @field_validator("google_maps_link")
    @classmethod
    def link_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("google_maps_link must not be empty")
        return v.strip()


class SubmissionCreated(CamelModel):
    id: str
    status: str


class SubmissionView(CamelModel):
    id: str
    name: str
    google_maps_link: str
    status: str
    submitted_at: datetime
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    approved_cafe_id: str | None = None


class SubmissionList(CamelModel):
    success: bool = True
    count: int
    submissions: list[SubmissionView]


class ApproveRequest(CamelModel):
    dry_run: bool = False
    limit: int = Field(default=10, ge=1, le=100)


class ApproveResponse(CamelModel):
    success: bool = True
    message: str
    duration_ms: int
    batch: BatchReport
