import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from cafemod.api.deps import require_trigger_secret
from cafemod.schemas.report import SuccessReport
from cafemod.services.report_builder import dump_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron")


@router.get("/process-submissions", dependencies=[Depends(require_trigger_secret)])
async def process_submissions(request: Request) -> JSONResponse:
    """Scheduled trigger: drain pending submissions in bounded batches."""
    logger.info("[cron] starting automated submission processing")
    report = await request.app.state.run_service.run()
    if isinstance(report, SuccessReport):
        logger.info(
            "[cron] completed | processed=%d | batches=%d", report.total_processed, report.batch_runs
        )
        return JSONResponse(status_code=200, content=dump_report(report))
    logger.error("[cron] failed | error=%s", report.error)
    return JSONResponse(status_code=500, content=dump_report(report))
