import logging
from contextlib import asynccontextmanager
from functools import partial

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cafemod.api import admin, cron, routes
from cafemod.config import Settings, settings
from cafemod.db.connection import run_migrations
from cafemod.errors import AuthConfigurationError, RunInProgressError, UnauthorizedError
from cafemod.repositories.lease_repository import LeaseRepository
from cafemod.repositories.submission_repository import SubmissionRepository
from cafemod.schemas.report import ErrorBody
from cafemod.services.classifier import CafeApproverClassifier
from cafemod.services.intake_service import IntakeService
from cafemod.services.llm_evaluator import LlmEvaluator
from cafemod.services.orchestrator import BatchOrchestrator
from cafemod.services.place_lookup import GoogleMapsLookup
from cafemod.services.run_service import SubmissionRunService
from cafemod.services.trigger_gate import TriggerGate


def _configure_logging(cfg: Settings) -> None:
    logging.basicConfig(
        level=cfg.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_classifier(
    cfg: Settings, repository: SubmissionRepository, dry_run: bool = False
) -> CafeApproverClassifier:
    lookup = GoogleMapsLookup(
        timeout=cfg.LOOKUP_TIMEOUT_SECONDS,
        max_attempts=cfg.LOOKUP_MAX_ATTEMPTS,
        base_delay=cfg.LOOKUP_BASE_DELAY_SECONDS,
    )
    evaluator = LlmEvaluator(
        api_key=cfg.ANTHROPIC_API_KEY,
        model=cfg.LLM_MODEL,
        max_tokens=cfg.LLM_MAX_TOKENS,
    )
    return CafeApproverClassifier(
        repository,
        lookup,
        evaluator,
        dry_run=dry_run,
        submission_pause=cfg.SUBMISSION_PAUSE_SECONDS,
    )


def wire_services(app: FastAPI, cfg: Settings) -> None:
    """Attach repositories and services to app.state. The trigger secret is read once, here."""
    repository = SubmissionRepository(cfg.DB_PATH)
    app.state.repository = repository
    app.state.gate = TriggerGate(cfg.CRON_SECRET)
    app.state.intake_service = IntakeService(repository)
    app.state.classifier_factory = partial(build_classifier, cfg, repository)
    app.state.run_service = SubmissionRunService(
        BatchOrchestrator(
            app.state.classifier_factory(),
            pause_seconds=cfg.BATCH_PAUSE_SECONDS,
        ),
        LeaseRepository(cfg.DB_PATH),
        batch_size=cfg.BATCH_SIZE,
        max_batches=cfg.MAX_BATCHES,
        lease_ttl_seconds=cfg.LEASE_TTL_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    _configure_logging(settings)
    logger = logging.getLogger(__name__)
    logger.info("cafemod starting | db=%s | port=%s", settings.DB_PATH, settings.PORT)
    if not settings.CRON_SECRET:
        logger.error("CRON_SECRET not configured; scheduled runs will be refused")
    if not settings.ANTHROPIC_API_KEY:
        logger.warning("ANTHROPIC_API_KEY not set; borderline submissions will be flagged for manual review")
    run_migrations(settings.DB_PATH)
    wire_services(app, settings)
    yield
    logger.info("cafemod shutting down")


def create_app() -> FastAPI:
    app = FastAPI(title="cafemod", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(routes.router)
    app.include_router(cron.router)
    app.include_router(admin.router)

    @app.exception_handler(AuthConfigurationError)
    async def auth_configuration_handler(request: Request, exc: AuthConfigurationError) -> JSONResponse:
        return JSONResponse(status_code=500, content=ErrorBody(error="Cron not configured").model_dump())

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
        return JSONResponse(status_code=401, content=ErrorBody(error="Unauthorized").model_dump())

    @app.exception_handler(RunInProgressError)
    async def run_in_progress_handler(request: Request, exc: RunInProgressError) -> JSONResponse:
        return JSONResponse(status_code=409, content=ErrorBody(error="Run already in progress").model_dump())

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.getLogger(__name__).exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("cafemod.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL)
