"""
Application configuration management using Pydantic Settings.
"""
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, RedisDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OAuth2ProviderSettings(BaseModel):
    """Endpoint and client configuration for one generic OAuth2 provider."""
    client_id: str
    client_secret: str
    authorization_url: str
    token_url: str
    profile_url: str
    scopes: List[str] = Field(default_factory=list)
    redirect_uri: Optional[str] = None
    field_map: Dict[str, str] = Field(default_factory=dict)
    extra_auth_params: Dict[str, str] = Field(default_factory=dict)


# Published default, refused in production
DEFAULT_SESSION_SECRET_KEY = "XDZZYmriq8pJ5k8OKqdDuUFym2e7Im5O1MzdyapfotOnrqQ7ZEdTN9AA7K6aPieC"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "authgate"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")

    # API
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "authgate API"
    API_BASE_URL: str = "http://localhost:8000"
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"]
    )

    # Session
    # Applications should always override the signing key.
    SESSION_SECRET_KEY: str = Field(
        default=DEFAULT_SESSION_SECRET_KEY,
        min_length=32,
    )
    SESSION_NAME: str = "_authgate_session"
    SESSION_COOKIE_NAME: str = "authgate"
    SESSION_BACKEND: str = Field(default="cookie", pattern="^(cookie|redis)$")
    SESSION_TTL_SECONDS: int = Field(default=600, ge=30)  # 10 minutes

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_URL: Optional[RedisDsn] = Field(default=None, validate_default=True)
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_KEY_PREFIX: str = "authgate:session"

    # OAuth providers
    OAUTH2_PROVIDERS: Dict[str, OAuth2ProviderSettings] = Field(default_factory=dict)
    OAUTH_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Sentry
    SENTRY_DSN: Optional[str] = None
    SENTRY_ENVIRONMENT: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_connection(cls, v: Optional[str], info) -> str:
        if v:
            return v
        values = info.data
        host = values.get("REDIS_HOST", "localhost")
        port = values.get("REDIS_PORT", 6379)
        db = values.get("REDIS_DB", 0)
        password = values.get("REDIS_PASSWORD")
        if password:
            return f"redis://:{password}@{host}:{port}/{db}"
        return f"redis://{host}:{port}/{db}"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @model_validator(mode="after")
    def check_session_secret(self) -> "Settings":
        if self.ENVIRONMENT == "production" and self.SESSION_SECRET_KEY == DEFAULT_SESSION_SECRET_KEY:
            raise ValueError("SESSION_SECRET_KEY must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    def default_redirect_uri(self, provider_name: str) -> str:
        """Callback URL for a provider mounted by this application."""
        base = self.API_BASE_URL.rstrip("/")
        return f"{base}{self.API_V1_PREFIX}/auth/{provider_name}/callback"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance
    """
    return Settings()


settings = get_settings()
