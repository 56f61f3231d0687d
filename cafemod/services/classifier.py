import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Protocol

from cafemod.errors import PlaceLookupError
from cafemod.models.batch import BatchResult, ProcessingResult
from cafemod.models.submission import Cafe, PlaceDetails, Submission
from cafemod.repositories.base import AbstractSubmissionRepository
from cafemod.services import matching
from cafemod.services.llm_evaluator import LlmEvaluator
from cafemod.services.place_lookup import GoogleMapsLookup, is_valid_google_maps_url

logger = logging.getLogger(__name__)


class SubmissionClassifier(Protocol):
    async def classify(self, limit: int, verbose: bool) -> BatchResult:
        """
        Decide up to `limit` pending submissions.
        Per-submission failures are counted in `errors`; raises only for systemic failures.
        """
        ...


class CafeApproverClassifier:
    """Rule-based approval against the linked Maps place, with an LLM for borderline cases."""

    def __init__(
        self,
        repository: AbstractSubmissionRepository,
        lookup: GoogleMapsLookup,
        evaluator: LlmEvaluator,
        dry_run: bool = False,
        submission_pause: float = 1.0,
        sleep=asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._lookup = lookup
        self._evaluator = evaluator
        self._dry_run = dry_run
        self._submission_pause = submission_pause
        self._sleep = sleep

    async def classify(self, limit: int, verbose: bool = False) -> BatchResult:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        log = logger.info if verbose else logger.debug
        started_at = datetime.now(timezone.utc)

        # Failing to read the queue is systemic and propagates.
        submissions = await asyncio.to_thread(self._repository.fetch_pending, limit)
        log("[classify] fetched pending | count=%d | limit=%d | dry_run=%s",
            len(submissions), limit, self._dry_run)

        results: list[ProcessingResult] = []
        for i, submission in enumerate(submissions):
            log("[classify] %d/%d | id=%s | name=%r", i + 1, len(submissions), submission.id, submission.name)
            result = await self._process(submission)
            results.append(result)
            log("[classify] decided | id=%s | action=%s | notes=%s", submission.id, result.action, result.notes)
            if i < len(submissions) - 1 and self._submission_pause > 0:
                await self._sleep(self._submission_pause)

        tally = Counter(r.action for r in results)
        batch = BatchResult(
            total_processed=len(results),
            approved=tally["approved"],
            rejected=tally["rejected"],
            flagged=tally["flagged"],
            errors=tally["error"],
            external_call_count=sum(1 for r in results if r.used_llm),
            remaining=await self._remaining(),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            results=tuple(results),
        )
        logger.info(
            "[classify] batch done | processed=%d | approved=%d | rejected=%d | flagged=%d | errors=%d | llm_calls=%d",
            batch.total_processed, batch.approved, batch.rejected, batch.flagged,
            batch.errors, batch.external_call_count,
        )
        return batch

    async def _remaining(self) -> int | None:
        # Dry runs leave the queue untouched, so a count would never reach zero.
        if self._dry_run:
            return None
        try:
            return await asyncio.to_thread(self._repository.count_pending)
        except Exception:
            logger.exception("[classify] pending count failed, falling back to batch-size signal")
            return None

    async def _resolve(self, submission: Submission, status: str, notes: str, cafe_id: str | None = None) -> None:
        if self._dry_run:
            return
        await asyncio.to_thread(self._repository.resolve, submission.id, status, notes, cafe_id)

    async def _create_cafe(self, place: PlaceDetails) -> str | None:
        if self._dry_run:
            return None
        cafe = Cafe(
            name=place.name,
            address=place.address or None,
            latitude=place.latitude,
            longitude=place.longitude,
        )
        return await asyncio.to_thread(self._repository.create_cafe, cafe)

    async def _find_existing(self, place: PlaceDetails) -> Cafe | None:
        candidates = await asyncio.to_thread(
            self._repository.find_cafes_in_box,
            place.latitude,
            place.longitude,
            matching.DUPLICATE_CHECK_RADIUS_METERS,
        )
        for cafe in candidates:
            distance = matching.distance_meters(place.latitude, place.longitude, cafe.latitude, cafe.longitude)
            if distance > matching.DUPLICATE_CHECK_RADIUS_METERS:
                continue
            if matching.name_similarity(place.name, cafe.name) >= matching.DUPLICATE_NAME_THRESHOLD:
                return cafe
        return None

    async def _process(self, submission: Submission) -> ProcessingResult:
        try:
            return await self._decide(submission)
        except Exception as exc:
            logger.exception("[classify] submission failed | id=%s", submission.id)
            notes = f"Processing error: {exc}"
            try:
                await self._resolve(submission, "flagged", notes)
            except Exception:
                logger.exception("[classify] could not mark failed submission | id=%s", submission.id)
            return ProcessingResult(submission_id=submission.id, action="error", notes=notes)

    async def _decide(self, submission: Submission) -> ProcessingResult:
        if not is_valid_google_maps_url(submission.google_maps_link):
            notes = "Invalid Google Maps URL format"
            await self._resolve(submission, "rejected", notes)
            return ProcessingResult(submission_id=submission.id, action="rejected", notes=notes)

        try:
            place = await self._lookup.lookup(submission.google_maps_link)
        except PlaceLookupError as exc:
            notes = f"Place lookup failed: {exc}"
            await self._resolve(submission, "flagged", notes)
            return ProcessingResult(submission_id=submission.id, action="flagged", notes=notes)

        existing = await self._find_existing(place)
        if existing is not None:
            notes = f'Linked to existing cafe: "{existing.name}" (ID: {existing.id})'
            await self._resolve(submission, "approved", notes, existing.id)
            return ProcessingResult(
                submission_id=submission.id, action="approved", notes=notes, cafe_id=existing.id
            )

        score = matching.name_similarity(submission.name, place.name)
        distance = matching.distance_meters(
            submission.latitude, submission.longitude, place.latitude, place.longitude
        )
        verdict = matching.classify_match(score, distance)
        metrics = f"{score}% name, {distance}m"

        if verdict == "clear_match":
            cafe_id = await self._create_cafe(place)
            notes = f"Auto-approved (clear match): {metrics}"
            await self._resolve(submission, "approved", notes, cafe_id)
            return ProcessingResult(
                submission_id=submission.id, action="approved", notes=notes, cafe_id=cafe_id,
                name_match_score=score, distance_meters=distance,
            )

        if verdict == "clear_mismatch":
            notes = (
                f'Rejected (clear mismatch): {metrics}. '
                f'Submission: "{submission.name}" vs Maps: "{place.name}"'
            )
            await self._resolve(submission, "rejected", notes)
            return ProcessingResult(
                submission_id=submission.id, action="rejected", notes=notes,
                name_match_score=score, distance_meters=distance,
            )

        used_llm = self._evaluator.configured
        decision = await self._evaluator.evaluate(submission, place, score, distance)
        if decision.approve:
            cafe_id = await self._create_cafe(place)
            notes = f"LLM-approved: {decision.reasoning}"
            await self._resolve(submission, "approved", notes, cafe_id)
            return ProcessingResult(
                submission_id=submission.id, action="approved", notes=notes, cafe_id=cafe_id,
                name_match_score=score, distance_meters=distance, used_llm=used_llm,
            )
        notes = f"LLM-flagged: {decision.reasoning}"
        await self._resolve(submission, "flagged", notes)
        return ProcessingResult(
            submission_id=submission.id, action="flagged", notes=notes,
            name_match_score=score, distance_meters=distance, used_llm=used_llm,
        )
