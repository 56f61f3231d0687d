from dataclasses import dataclass, field
from datetime import datetime, timezone

SUBMISSION_STATUSES = ("pending", "approved", "rejected", "flagged")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Submission:
    name: str
    google_maps_link: str
    latitude: float
    longitude: float
    id: str | None = None
    submitted_by: str | None = None
    status: str = "pending"
    review_notes: str | None = None
    approved_cafe_id: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class Cafe:
    name: str
    latitude: float
    longitude: float
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    id: str | None = None
    first_discovered_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class PlaceDetails:
    """What the Google Maps link actually points at."""

    name: str
    address: str
    latitude: float
    longitude: float
