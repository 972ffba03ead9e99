from fastapi import Request
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEV_JWT_SECRET = "dev-secret-change-me"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    database_url: str = "postgresql+psycopg://rdsync:rdsync@db:5432/rdsync"
    redis_url: str = "redis://redis:6379/0"

    jwt_secret: str = _DEV_JWT_SECRET
    jwt_issuer: str = "rdsync"
    jwt_audience: str = "rdsync"
    jwt_expires_minutes: int = 60

    log_level: str = "INFO"
    log_json: bool = True

    # rd station crm
    rd_api_base_url: str = "https://crm.rdstation.com/api/v1"
    rd_api_token: str | None = None
    rd_webhook_secret: str | None = None
    rd_api_timeout_seconds: float = 10.0
    rd_api_max_attempts: int = 3
    rd_sinistro_pipeline_name: str = "Gestão de Sinistro"

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_webhooks_per_min: int = 60
    rate_limit_sync_per_min: int = 30

    @field_validator("rd_api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("rd_api_token", "rd_webhook_secret")
    @classmethod
    def _blank_is_unset(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("rd_api_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("rd_api_timeout_seconds must be positive")
        return v

    @field_validator("rd_api_max_attempts")
    @classmethod
    def _bounded_attempts(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("rd_api_max_attempts must be between 1 and 10")
        return v

    @model_validator(mode="after")
    def _prod_requires_real_secrets(self) -> "Settings":
        if self.app_env == "prod" and self.jwt_secret == _DEV_JWT_SECRET:
            raise ValueError("jwt_secret must be set in prod")
        return self

settings = Settings()

# handlers get the object the app was built with, never the environment
def get_settings(request: Request) -> Settings:
    return request.app.state.settings
