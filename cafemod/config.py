from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def run_fits_ceiling(
    max_batches: int,
    classifier_latency_budget: float,
    pause_seconds: float,
    run_ceiling: float,
    batch_size: int = 1,
    submission_pause_seconds: float = 0.0,
) -> bool:
    """True if the worst-case run (every batch full, paused after each) ends under the ceiling.

    A full batch takes at least its own pacing, (batch_size - 1) submission
    pauses, whatever the latency budget says.
    """
    per_batch = max(classifier_latency_budget, (batch_size - 1) * submission_pause_seconds)
    return max_batches * (per_batch + pause_seconds) < run_ceiling


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PORT: int = 3002
    DB_PATH: str = "/data/cafemod.db"
    LOG_LEVEL: str = "info"

    CRON_SECRET: str | None = None

    BATCH_SIZE: int = 20
    MAX_BATCHES: int = 5
    BATCH_PAUSE_SECONDS: float = 2.0
    SUBMISSION_PAUSE_SECONDS: float = 1.0
    RUN_CEILING_SECONDS: float = 300.0
    CLASSIFIER_LATENCY_BUDGET_SECONDS: float = 50.0
    LEASE_TTL_SECONDS: float = 330.0

    LOOKUP_MAX_ATTEMPTS: int = 3
    LOOKUP_BASE_DELAY_SECONDS: float = 2.0
    LOOKUP_TIMEOUT_SECONDS: float = 30.0

    ANTHROPIC_API_KEY: str | None = None
    LLM_MODEL: str = "claude-3-haiku-20240307"
    LLM_MAX_TOKENS: int = 500

    @model_validator(mode="after")
    def check_run_budget(self) -> "Settings":
        if self.BATCH_SIZE < 1 or self.MAX_BATCHES < 1:
            raise ValueError("BATCH_SIZE and MAX_BATCHES must be at least 1")
        if not run_fits_ceiling(
            self.MAX_BATCHES,
            self.CLASSIFIER_LATENCY_BUDGET_SECONDS,
            self.BATCH_PAUSE_SECONDS,
            self.RUN_CEILING_SECONDS,
            batch_size=self.BATCH_SIZE,
            submission_pause_seconds=self.SUBMISSION_PAUSE_SECONDS,
        ):
            raise ValueError(
                "MAX_BATCHES * (max(CLASSIFIER_LATENCY_BUDGET_SECONDS, "
                "(BATCH_SIZE - 1) * SUBMISSION_PAUSE_SECONDS) + BATCH_PAUSE_SECONDS) "
                "must stay below RUN_CEILING_SECONDS"
            )
        if self.LEASE_TTL_SECONDS <= self.RUN_CEILING_SECONDS:
            raise ValueError("LEASE_TTL_SECONDS must exceed RUN_CEILING_SECONDS")
        return self


settings = Settings()
