"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (MySQL protocol) ──────────────────────────────────────────
    db_host: str = "mysql"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "pinboard"
    db_url: Optional[str] = None         # full URL override (e.g. sqlite+aiosqlite://)

    @property
    def database_url(self) -> str:
        if self.db_url:
            return self.db_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    social_key_ttl: int = 0              # 0 = membership sets never expire

    # ── Social toggles ─────────────────────────────────────────────────────
    social_backend: str = "redis"        # 'redis' | 'memory'

    # ── Related pins ───────────────────────────────────────────────────────
    related_limit: int = 12
    related_candidate_pool: int = 500    # newest pins scored per request

    # ── Pagination ─────────────────────────────────────────────────────────
    feed_page_size: int = 20
    max_page_size: int = 100

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    otel_enabled: bool = True
    service_name: str = "pinboard-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
