"""Application settings.

All values are read from environment variables (or a local ``.env`` file).
Only the service and API layers read ``settings`` directly; pipeline
components receive their tunables through their constructors.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration.

    Attributes:
        LOCAL_DEVELOPMENT: Render logs for a terminal instead of JSON lines
        LOG_LEVEL: Root log level for the ``antennawatch`` logger tree

        MATERIALIZE_*: Connection to the streaming store that is tailed
        TAIL_VIEW: Materialized view followed by the change-feed cursor
        ANTENNAS_VIEW: View used for the plain "current antennas" query

        POSTGRES_*: Connection to the write-side store feeding the views

        TAIL_FETCH_SIZE: Rows requested per cursor pull
        TAIL_FETCH_TIMEOUT_SECONDS: Server-side wait bound for each FETCH
        TAIL_CONNECT_ATTEMPTS: Attempts when opening a cursor session
        TAIL_MAX_SESSION_RESTARTS: Session losses tolerated per subscription
        HELPER_MISS_THRESHOLD: Matching retractions before a helper is evicted
        PERFORMANCE_HIGH_THRESHOLD: Performance strictly above this is "high"
        PERFORMANCE_LOW_THRESHOLD: Performance strictly below this is "low"
        DEGRADED_PERFORMANCE: Performance written by the degrade mutation
        SSE_HEARTBEAT_SECONDS: Idle interval before a heartbeat event is sent
        API_HOST / API_PORT: Bind address of the HTTP server
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    LOCAL_DEVELOPMENT: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "local"

    MATERIALIZE_HOST: str = "materialized"
    MATERIALIZE_PORT: int = 6875
    MATERIALIZE_USER: str = "materialize"
    MATERIALIZE_PASSWORD: str = "materialize"
    MATERIALIZE_DB: str = "materialize"
    TAIL_VIEW: str = "last_half_minute_performance_per_antenna"
    ANTENNAS_VIEW: str = "antennas"

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "pg_password"
    POSTGRES_DB: str = "postgres"

    TAIL_FETCH_SIZE: int = Field(default=1000, gt=0)
    TAIL_FETCH_TIMEOUT_SECONDS: float = Field(default=1.0, gt=0)
    TAIL_CONNECT_ATTEMPTS: int = Field(default=3, ge=1)
    TAIL_MAX_SESSION_RESTARTS: int = Field(default=5, ge=0)
    HELPER_MISS_THRESHOLD: int = Field(default=3, ge=1)
    PERFORMANCE_HIGH_THRESHOLD: float = 5.0
    PERFORMANCE_LOW_THRESHOLD: float = 4.75
    DEGRADED_PERFORMANCE: float = 1.0

    SSE_HEARTBEAT_SECONDS: float = 30.0
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 4000

    CONNECT_TIMEOUT_SECONDS: float = 30.0
    COMMAND_TIMEOUT_SECONDS: Optional[float] = None

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        """Accept any casing for the log level name."""
        return value.upper()

    @property
    def materialize_dsn(self) -> str:
        """Connection string for the tailed store."""
        return (
            f"postgresql://{self.MATERIALIZE_USER}:{self.MATERIALIZE_PASSWORD}"
            f"@{self.MATERIALIZE_HOST}:{self.MATERIALIZE_PORT}/{self.MATERIALIZE_DB}"
        )

    @property
    def postgres_dsn(self) -> str:
        """Connection string for the write-side store."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
