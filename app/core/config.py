"""
Application configuration via environment variables.
Supports .env file auto-loading via pydantic-settings.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── Application ────────────────────────────────────
    app_name: str = "Huddle Conferencing API"
    env: str = "dev"
    debug: bool = False

    # ── Security ───────────────────────────────────────
    secret_key: str = "change-me-in-production"
    access_token_expire_minutes: int = 360
    refresh_token_expire_minutes: int = 10080  # 7 days
    algorithm: str = "HS256"
    login_max_attempts: int = 5
    login_lock_minutes: int = 15

    # ── Database ───────────────────────────────────────
    database_url: str = "sqlite:///./huddle.db"
    db_ssl_verify: bool = True

    # ── CORS / Hosts ───────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    cors_allow_methods: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    cors_allow_headers: str = "Authorization,Content-Type"
    trusted_hosts: str = ""

    # ── Rate Limiting ──────────────────────────────────
    rate_limit_per_minute: int = 60
    rate_limit_enabled: bool = True

    # ── LiveKit ────────────────────────────────────────
    livekit_url: str = "ws://localhost:7880"
    livekit_api_key: str = "devkey"
    livekit_api_secret: str = "secret"
    livekit_token_ttl_minutes: int = 360

    # ── Attendance Tracking ────────────────────────────
    tracker_tick_secs: float = 1.0
    tracker_refresh_secs: float = 10.0
    participant_stale_after_secs: int = 60
    sweep_interval_secs: int = 30

    # ── Redis / Celery ─────────────────────────────────
    redis_host: str = "localhost"
    redis_port: int = 6379
    celery_broker_url: str | None = None  # Auto-constructed if None
    celery_result_backend: str | None = None  # Auto-constructed if None

    @property
    def get_celery_broker_url(self) -> str:
        if self.celery_broker_url:
            return self.celery_broker_url
        return f"redis://{self.redis_host}:{self.redis_port}/0"

    @property
    def get_celery_result_backend(self) -> str:
        if self.celery_result_backend:
            return self.celery_result_backend
        return f"redis://{self.redis_host}:{self.redis_port}/1"

    @property
    def cors_origins_list(self) -> list[str]:
        return [v.strip() for v in self.cors_origins.split(",") if v.strip()]

    @property
    def cors_allow_methods_list(self) -> list[str]:
        return [v.strip() for v in self.cors_allow_methods.split(",") if v.strip()]

    @property
    def cors_allow_headers_list(self) -> list[str]:
        return [v.strip() for v in self.cors_allow_headers.split(",") if v.strip()]

    @property
    def trusted_hosts_list(self) -> list[str]:
        return [v.strip() for v in self.trusted_hosts.split(",") if v.strip()]

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("prod", "production")

    @field_validator("secret_key")
    @classmethod
    def warn_default_secret(cls, v: str) -> str:
        if v == "change-me-in-production":
            import logging
            logging.getLogger("huddle.config").warning(
                "Using default secret key. Set SECRET_KEY env var for production!"
            )
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
