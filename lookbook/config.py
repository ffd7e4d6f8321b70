"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables (LOOKBOOK_*) or a .env file.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LOOKBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Remote API ─────────────────────────────────────────────────────────
    api_base_url: str = "http://localhost:3000/api"
    api_timeout: float = 5.0             # seconds; retries are not attempted

    # ── Entity cache ───────────────────────────────────────────────────────
    cache_stale_time_seconds: float = 60.0

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    tracing_enabled: bool = True
    service_name: str = "lookbook-interactions"
    environment: str = "development"
    log_level: str = "INFO"


settings = Settings()
