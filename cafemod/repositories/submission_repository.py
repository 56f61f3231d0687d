import logging
import math
import uuid
from datetime import datetime, timezone

from cafemod.db.connection import transaction
from cafemod.models.submission import Cafe, Submission
from cafemod.repositories.base import AbstractSubmissionRepository

logger = logging.getLogger(__name__)

_METERS_PER_DEGREE_LAT = 111_320.0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_submission(row) -> Submission:
    return Submission(
        id=row["id"],
        name=row["name"],
        google_maps_link=row["google_maps_link"],
        latitude=row["latitude"],
        longitude=row["longitude"],
        submitted_by=row["submitted_by"],
        status=row["status"],
        review_notes=row["review_notes"],
        approved_cafe_id=row["approved_cafe_id"],
        reviewed_at=_parse_ts(row["reviewed_at"]),
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


class SubmissionRepository(AbstractSubmissionRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert(self, submission: Submission) -> str:
        submission_id = submission.id or uuid.uuid4().hex
        with transaction(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO submissions
                    (id, name, google_maps_link, latitude, longitude,
                     submitted_by, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 'pending', ?, ?)
                """,
                (
                    submission_id,
                    submission.name,
                    submission.google_maps_link,
                    submission.latitude,
                    submission.longitude,
                    submission.submitted_by,
                    submission.created_at.isoformat(),
                    submission.updated_at.isoformat(),
                ),
            )
        return submission_id

    def get(self, submission_id: str) -> Submission | None:
        with transaction(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM submissions WHERE id = ?", (submission_id,)
            ).fetchone()
        return _row_to_submission(row) if row else None

    def fetch_pending(self, limit: int) -> list[Submission]:
        with transaction(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM submissions
                WHERE status = 'pending'
                ORDER BY created_at ASC, rowid ASC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_row_to_submission(r) for r in rows]

    def count_pending(self) -> int:
        with transaction(self._db_path) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM submissions WHERE status = 'pending'"
            ).fetchone()
        return row[0]

    def list_by_status(self, status: str, limit: int) -> list[Submission]:
        with transaction(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM submissions
                WHERE status = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (status, limit),
            ).fetchall()
        return [_row_to_submission(r) for r in rows]

    def resolve(
        self,
        submission_id: str,
        status: str,
        notes: str,
        cafe_id: str | None = None,
    ) -> bool:
        """Guarded on status = 'pending' so a decided submission is never overwritten."""
        now = _now_iso()
        with transaction(self._db_path) as conn:
            cursor = conn.execute(
                """
                UPDATE submissions
                SET status = ?, review_notes = ?, approved_cafe_id = ?,
                    reviewed_at = ?, updated_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (status, notes, cafe_id, now, now, submission_id),
            )
            updated = cursor.rowcount == 1
        if not updated:
            logger.warning(
                "[repo] submission already resolved | id=%s | wanted=%s", submission_id, status
            )
        return updated

    def create_cafe(self, cafe: Cafe) -> str:
        cafe_id = cafe.id or uuid.uuid4().hex
        with transaction(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO cafes
                    (id, name, address, latitude, longitude, phone, website, first_discovered_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    cafe_id,
                    cafe.name,
                    cafe.address,
                    cafe.latitude,
                    cafe.longitude,
                    cafe.phone,
                    cafe.website,
                    cafe.first_discovered_at.isoformat(),
                ),
            )
        return cafe_id

    def find_cafes_in_box(self, latitude: float, longitude: float, radius_meters: float) -> list[Cafe]:
        d_lat = radius_meters / _METERS_PER_DEGREE_LAT
        cos_lat = max(math.cos(math.radians(latitude)), 1e-6)
        d_lng = radius_meters / (_METERS_PER_DEGREE_LAT * cos_lat)
        with transaction(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM cafes
                WHERE latitude BETWEEN ? AND ?
                  AND longitude BETWEEN ? AND ?
                LIMIT 20
                """,
                (latitude - d_lat, latitude + d_lat, longitude - d_lng, longitude + d_lng),
            ).fetchall()
        return [
            Cafe(
                id=r["id"],
                name=r["name"],
                address=r["address"],
                latitude=r["latitude"],
                longitude=r["longitude"],
                phone=r["phone"],
                website=r["website"],
                first_discovered_at=_parse_ts(r["first_discovered_at"]),
            )
            for r in rows
        ]
