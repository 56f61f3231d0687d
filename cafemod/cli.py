import asyncio
import json

import typer
import uvicorn

from cafemod.config import settings
from cafemod.db.connection import run_migrations
from cafemod.errors import RunInProgressError
from cafemod.main import _configure_logging, build_classifier
from cafemod.repositories.lease_repository import LeaseRepository
from cafemod.repositories.submission_repository import SubmissionRepository
from cafemod.services.orchestrator import BatchOrchestrator
from cafemod.services.report_builder import batch_report, dump_report
from cafemod.services.run_service import SubmissionRunService

app = typer.Typer(help="cafemod: moderation for user-submitted cafes.", no_args_is_help=True)


def _prepare() -> SubmissionRepository:
    _configure_logging(settings)
    run_migrations(settings.DB_PATH)
    return SubmissionRepository(settings.DB_PATH)


@app.command()
def serve() -> None:
    """Start the HTTP service."""
    uvicorn.run("cafemod.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL)


@app.command()
def approve(
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview decisions without writing them"),
    limit: int = typer.Option(10, "--limit", min=1, help="Process at most N submissions"),
) -> None:
    """Run one classifier batch over pending submissions. Exits 1 if any submission errored."""
    repository = _prepare()
    if not settings.ANTHROPIC_API_KEY:
        typer.echo("ANTHROPIC_API_KEY not set: borderline cases will be flagged for manual review.", err=True)
    typer.echo(f"MODE: {'DRY RUN (no database changes)' if dry_run else 'LIVE'} | LIMIT: {limit}")

    classifier = build_classifier(settings, repository, dry_run=dry_run)
    batch = asyncio.run(classifier.classify(limit=limit, verbose=True))
    typer.echo(json.dumps(batch_report(batch).model_dump(mode="json", by_alias=True), indent=2))

    if batch.errors > 0:
        typer.echo(f"Completed with {batch.errors} error(s).", err=True)
        raise typer.Exit(code=1)
    typer.echo("Completed successfully.")


@app.command("run-cron")
def run_cron() -> None:
    """Run the scheduled drain once, without the HTTP trigger, and print the report."""
    repository = _prepare()
    service = SubmissionRunService(
        BatchOrchestrator(build_classifier(settings, repository), pause_seconds=settings.BATCH_PAUSE_SECONDS),
        LeaseRepository(settings.DB_PATH),
        batch_size=settings.BATCH_SIZE,
        max_batches=settings.MAX_BATCHES,
        lease_ttl_seconds=settings.LEASE_TTL_SECONDS,
    )
    try:
        report = asyncio.run(service.run())
    except RunInProgressError:
        typer.echo("Run already in progress.", err=True)
        raise typer.Exit(code=2)
    typer.echo(json.dumps(dump_report(report), indent=2))
    if not report.success:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
