from abc import ABC, abstractmethod

from cafemod.models.submission import Cafe, Submission


class AbstractSubmissionRepository(ABC):
    @abstractmethod
    def insert(self, submission: Submission) -> str:
        """Insert a new pending submission. Returns its id."""

    @abstractmethod
    def get(self, submission_id: str) -> Submission | None:
        """Return the submission with the given id, or None."""

    @abstractmethod
    def fetch_pending(self, limit: int) -> list[Submission]:
        """Return up to `limit` pending submissions, oldest first."""

    @abstractmethod
    def count_pending(self) -> int:
        """Return the number of submissions still pending."""

    @abstractmethod
    def list_by_status(self, status: str, limit: int) -> list[Submission]:
        """Return up to `limit` submissions with the given status, newest first."""

    @abstractmethod
    def resolve(
        self,
        submission_id: str,
        status: str,
        notes: str,
        cafe_id: str | None = None,
    ) -> bool:
        """
        Move a pending submission to a decided status.
        Returns False if the submission was no longer pending.
        """

    @abstractmethod
    def create_cafe(self, cafe: Cafe) -> str:
        """Insert a cafe. Returns its id."""

    @abstractmethod
    def find_cafes_in_box(self, latitude: float, longitude: float, radius_meters: float) -> list[Cafe]:
        """Return cafes inside the bounding box enclosing the given radius."""


class AbstractLeaseRepository(ABC):
    @abstractmethod
    def acquire(self, job_id: str, holder: str, ttl_seconds: float) -> bool:
        """Atomically take the lease for `job_id` if free or expired. Returns True on success."""

    @abstractmethod
    def release(self, job_id: str, holder: str) -> None:
        """Release the lease if `holder` still owns it."""
