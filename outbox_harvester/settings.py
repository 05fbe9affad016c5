from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DB_HOST: str = "localhost"
    DB_PORT: str = "5432"
    DB_NAME: str = "outbox"
    DB_USER: str = "postgres"
    DB_PASS: str = "postgres"
    DB_URL: Optional[str] = None

    RABBIT_HOST: str = "localhost"
    RABBIT_PORT: int = 5672
    RABBIT_USER: str = "guest"
    RABBIT_PASS: str = "guest"
    RABBIT_VHOST: str = "/"

    OUTBOX_DESTINATION: str = "outboxQueue"
    OUTBOX_RETRY_LIMIT: int = Field(default=3, ge=0)
    OUTBOX_POLL_INTERVAL_MS: int = Field(default=5000, gt=0)
    OUTBOX_PUBLISH_TIMEOUT_MS: int = Field(default=10000, gt=0)
    OUTBOX_STORE_TIMEOUT_MS: int = Field(default=10000, gt=0)
    OUTBOX_EMBEDDED_DISPATCHER: bool = False

    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "outbox-harvester"
    OTEL_CONSOLE_EXPORT: bool = False

    METRICS_PORT: int = 0

    model_config = SettingsConfigDict(
        env_file=".env.example",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
