from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "minutemeter"
    api_version: str = "0.1.0"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "minutemeter"
    db_use_nullpool: bool = (
        False  # True for workers (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def async_database_url(self) -> str:
        return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    # Rate limiting (memory:// for a single pod, redis:// when scaled out)
    rate_limit_storage_uri: str = "memory://"

    # OpenTelemetry
    otel_service_name: str = "minutemeter-api"
    otel_service_version: str = "0.1.0"

    # Axiom (exporters are only wired when a token is configured)
    axiom_token: str = ""
    axiom_dataset: str = ""

    @property
    def cors_allowed_origins(self) -> List[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return ["https://app.minutemeter.io"]

    # Billing - payment gateway (Paddle Billing API)
    gateway_api_url: str = "https://api.paddle.com"
    gateway_api_key: str = ""
    gateway_webhook_secret: str = ""
    # Max age of a signed delivery; None disables the replay check
    gateway_webhook_tolerance_seconds: Optional[int] = 300
    gateway_timeout_seconds: float = 10.0
    # Gateway price IDs for the plan catalog
    gateway_price_id_starter: str = "pri_01kcgn71kmeypsjan8aqw1snf6"
    gateway_price_id_growth: str = "pri_01kcgp2hssyxaq4kyrxxegjvjv"
    gateway_price_id_scale: str = "pri_01kcgpmajyawrje6emz4edyet5"
    gateway_price_id_pro: str = "pri_01kd56vwkfm7v52yjes8ymavt3"
    # Shared overage price, one unit per cent charged
    gateway_price_id_usage: str = "pri_01kd5qrbh5d1hadyfa15sp0m51"

    # Voice platform webhooks (x-vapi-secret header checked when set)
    voice_webhook_secret: Optional[str] = None

    # Billing - usage invoicing and enforcement
    usage_grace_days: int = 7
    cron_secret: Optional[str] = None
    sweep_interval_seconds: int = 3600


settings = Settings()
