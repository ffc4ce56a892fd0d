from typing import Literal

from fastapi import Depends
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Enrollment Bot", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=True, description="Debug mode")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_every_n_jobs: int = Field(
        default=10, ge=1, description="Log worker progress every N processed items"
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=3001, description="Server port")

    # Queue workers
    queue_poll_interval_ms: int = Field(
        default=1000, ge=1, description="Sleep between polls of an empty queue"
    )
    job_max_retries: int = Field(
        default=2, ge=0, description="Retries per job after the first attempt"
    )
    document_fail_threshold: int = Field(
        default=3, description="Failed jobs needed to mark a whole document failed"
    )
    finalized_document_memory: int = Field(
        default=1024,
        ge=0,
        description="Recently finalized document ids kept to classify late completions",
    )

    # Supervisor / shutdown
    shutdown_timeout_s: float = Field(
        default=30.0, gt=0, description="Deadline for draining queues on shutdown"
    )
    shutdown_poll_interval_ms: int = Field(
        default=1000, ge=1, description="Poll interval while waiting for drain"
    )
    worker_restart_delays_ms: list[int] = Field(
        default=[1000, 2000, 5000, 10000, 30000],
        description="Backoff table for restarting a crashed worker loop",
    )
    worker_restart_reset_window_s: float = Field(
        default=60.0,
        gt=0,
        description="Uptime after which the restart counter resets",
    )

    # Pacing ranges, [min_ms, max_ms]
    delay_initial_response_ms: tuple[int, int] = Field(
        default=(2000, 5000), description="Delay before replying to a user"
    )
    delay_between_operations_ms: tuple[int, int] = Field(
        default=(8000, 20000), description="Delay between group operations"
    )
    delay_after_error_ms: tuple[int, int] = Field(
        default=(10000, 15000), description="Delay before retrying a failed job"
    )
    delay_between_notifications_ms: tuple[int, int] = Field(
        default=(3000, 8000), description="Delay between notification sends"
    )

    def model_post_init(self, __context) -> None:
        """Validate settings after initialization."""
        for name in (
            "delay_initial_response_ms",
            "delay_between_operations_ms",
            "delay_after_error_ms",
            "delay_between_notifications_ms",
        ):
            low, high = getattr(self, name)
            if low < 0 or high < low:
                raise ValueError(
                    f"{name.upper()} must be a [min, max] range with 0 <= min <= max, "
                    f"got [{low}, {high}]"
                )

        if not self.worker_restart_delays_ms:
            raise ValueError("WORKER_RESTART_DELAYS_MS must contain at least one delay")

        if any(delay < 0 for delay in self.worker_restart_delays_ms):
            raise ValueError("WORKER_RESTART_DELAYS_MS cannot contain negative delays")

        if self.document_fail_threshold < 1:
            raise ValueError("DOCUMENT_FAIL_THRESHOLD must be at least 1")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Dependency injection function for settings."""
    return settings


# Convenience type alias for dependency injection
SettingsDep = Depends(get_settings)
