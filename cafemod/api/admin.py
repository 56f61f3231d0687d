import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from cafemod.api.deps import require_trigger_secret
from cafemod.models.submission import SUBMISSION_STATUSES
from cafemod.schemas.submission import (
    ApproveRequest,
    ApproveResponse,
    SubmissionList,
    SubmissionView,
)
from cafemod.services.report_builder import batch_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_trigger_secret)])


@router.post("/approve-submissions")
async def approve_submissions(payload: ApproveRequest, request: Request) -> JSONResponse:
    """Run a single classifier batch on demand, optionally without writing anything."""
    classifier = request.app.state.classifier_factory(dry_run=payload.dry_run)
    logger.info("[admin] running approver | dry_run=%s | limit=%d", payload.dry_run, payload.limit)
    try:
        batch = await classifier.classify(limit=payload.limit, verbose=True)
    except Exception as exc:
        logger.exception("[admin] approver run failed")
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    duration = batch.completed_at - batch.started_at
    response = ApproveResponse(
        message=f"Processed {batch.total_processed} submission(s)",
        duration_ms=int(duration.total_seconds() * 1000),
        batch=batch_report(batch),
    )
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True))


@router.get("/submissions")
async def list_submissions(
    request: Request, status: str = "pending", limit: int = Query(50, ge=1, le=500)
) -> JSONResponse:
    if status not in SUBMISSION_STATUSES:
        return JSONResponse(
            status_code=400,
            content={"error": f"Invalid status. Must be one of: {', '.join(SUBMISSION_STATUSES)}"},
        )
    repository = request.app.state.repository
    if status == "pending":
        rows = await asyncio.to_thread(repository.fetch_pending, limit)
    else:
        rows = await asyncio.to_thread(repository.list_by_status, status, limit)
    body = SubmissionList(
        count=len(rows),
        submissions=[
            SubmissionView(
                id=s.id,
                name=s.name,
                google_maps_link=s.google_maps_link,
                status=s.status,
                submitted_at=s.created_at,
                reviewed_at=s.reviewed_at,
                review_notes=s.review_notes,
                approved_cafe_id=s.approved_cafe_id,
            )
            for s in rows
        ],
    )
    return JSONResponse(content=body.model_dump(mode="json", by_alias=True))
