from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Collector configuration loaded from environment variables or .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="COLLECTOR_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "Metrics Collector"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 7002
    tls_enabled: bool = True
    ssl_keyfile: str = "./key/key.pem"
    ssl_certfile: str = "./key/cert.pem"

    # Basic auth for /metrics; the password can be rotated at runtime
    username: str = "admin"
    password: str = Field(
        "defaultPassword",
        validation_alias=AliasChoices("METRICS_API_PASSWORD", "COLLECTOR_PASSWORD"),
    )

    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_requests: int = 100

    # Probe bounds
    probe_timeout_seconds: float = 10.0
    command_timeout_seconds: float = 10.0
    cpu_sample_interval_seconds: float = 0.5
    top_process_limit: int = 5

    docker_binary: str = "docker"
    docker_socket: str = "/var/run/docker.sock"
    docker_api_timeout_seconds: float = 5.0
    # Whole Docker overview; kept above command_timeout_seconds so CLI errors surface
    docker_probe_timeout_seconds: float = 30.0

    # Push target (receiver process)
    receiver_url: str = "http://localhost:4000/receive-metrics"
    receiver_username: str = "admin"
    receiver_password: str = "defaultReceiverPassword"
    push_timeout_seconds: float = 10.0

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str | None) -> str:
        if value is None:
            return "INFO"
        level = str(value).strip().upper()
        return level or "INFO"

    @field_validator("rate_limit_window_seconds", "rate_limit_max_requests", "top_process_limit", mode="before")
    @classmethod
    def _validate_positive_int(cls, value: int | str | None, info) -> int:
        default = cls.model_fields[info.field_name].default
        if value in (None, ""):
            return default
        try:
            numeric = int(value)
        except (TypeError, ValueError):
            return default
        return max(1, numeric)

    @field_validator(
        "probe_timeout_seconds",
        "command_timeout_seconds",
        "docker_api_timeout_seconds",
        "docker_probe_timeout_seconds",
        "push_timeout_seconds",
        mode="before",
    )
    @classmethod
    def _validate_timeout(cls, value: float | str | None, info) -> float:
        default = cls.model_fields[info.field_name].default
        if value in (None, ""):
            return default
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return default
        return max(0.1, numeric)

    @field_validator("cpu_sample_interval_seconds", mode="before")
    @classmethod
    def _validate_sample_interval(cls, value: float | str | None) -> float:
        if value in (None, ""):
            return 0.5
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return 0.5
        return max(0.0, numeric)


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings = get_settings()
