"""Конфигурация приложения."""
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    app_env: str = "development"
    debug: bool = True
    public_base_url: str | None = None

    database_url: str | None = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "voicedesk"
    postgres_user: str = "voicedesk"
    postgres_password: str = "changeme"

    redis_host: str = "localhost"
    redis_port: int = 6379

    # Voice platform (Vapi)
    vapi_private_key: str = ""
    vapi_api_base: str = "https://api.vapi.ai"
    vapi_timeout_seconds: int = 30
    vapi_model_provider: str = "openai"
    vapi_model: str = "gpt-4o-mini"
    vapi_tool_server_url: str | None = None  # куда платформа шлёт вызовы function-тулов

    # Crawl provider (Firecrawl)
    firecrawl_api_key: str = ""
    firecrawl_api_base: str = "https://api.firecrawl.dev/v1"
    firecrawl_timeout_seconds: int = 30

    # Identity provider (Clerk). Пусто -> claims читаются без проверки подписи
    clerk_jwt_public_key: str = ""
    clerk_jwt_algorithm: str = "RS256"

    scrape_poll_interval_seconds: float = 2.0
    scrape_max_attempts: int = 30
    scrape_page_limit: int = 30
    scrape_stale_seconds: int = 900
    scrape_watchdog_interval_seconds: int = 120
    scrape_watchdog_batch_limit: int = 200
    scrape_job_timeout_seconds: int = 300
    rq_scrape_queue_name: str = "scrape"

    file_upload_max_bytes: int = 10 * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()
