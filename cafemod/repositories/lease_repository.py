import logging
import time

from cafemod.db.connection import transaction
from cafemod.repositories.base import AbstractLeaseRepository

logger = logging.getLogger(__name__)


class LeaseRepository(AbstractLeaseRepository):
    def __init__(self, db_path: str, clock=time.time) -> None:
        self._db_path = db_path
        self._clock = clock

    def acquire(self, job_id: str, holder: str, ttl_seconds: float) -> bool:
        """
        Single upsert: inserts a fresh lease, or takes over one whose expiry has passed.
        A live lease held by someone else leaves the row untouched.
        """
        now = self._clock()
        with transaction(self._db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO job_leases (job_id, holder, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(job_id) DO UPDATE SET
                    holder     = excluded.holder,
                    expires_at = excluded.expires_at
                WHERE job_leases.expires_at < ?
                """,
                (job_id, holder, now + ttl_seconds, now),
            )
            acquired = cursor.rowcount == 1
        logger.debug("[lease] acquire | job=%s | holder=%s | ok=%s", job_id, holder, acquired)
        return acquired

    def release(self, job_id: str, holder: str) -> None:
        with transaction(self._db_path) as conn:
            conn.execute(
                "DELETE FROM job_leases WHERE job_id = ? AND holder = ?", (job_id, holder)
            )
