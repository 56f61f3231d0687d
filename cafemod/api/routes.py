import asyncio

from fastapi import APIRouter, Request, status

from cafemod.schemas.submission import SubmissionCreated, SubmissionRequest

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.post(
    "/api/submissions",
    response_model=SubmissionCreated,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def submit_cafe(payload: SubmissionRequest, request: Request) -> SubmissionCreated:
    intake_service = request.app.state.intake_service
    return await asyncio.to_thread(intake_service.submit, payload)
