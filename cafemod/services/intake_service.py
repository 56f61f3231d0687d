import logging

from cafemod.models.submission import Submission
from cafemod.repositories.base import AbstractSubmissionRepository
from cafemod.schemas.submission import SubmissionCreated, SubmissionRequest

logger = logging.getLogger(__name__)


class IntakeService:
    def __init__(self, repository: AbstractSubmissionRepository) -> None:
        self._repository = repository

    def submit(self, payload: SubmissionRequest) -> SubmissionCreated:
        """Queue a user-submitted cafe for moderation. The link is validated later by the classifier."""
        submission = Submission(
            name=payload.name,
            google_maps_link=payload.google_maps_link,
            latitude=payload.latitude,
            longitude=payload.longitude,
            submitted_by=payload.submitted_by,
        )
        submission_id = self._repository.insert(submission)
        logger.info("[intake] queued | id=%s | name=%r", submission_id, payload.name)
        return SubmissionCreated(id=submission_id, status="pending")
