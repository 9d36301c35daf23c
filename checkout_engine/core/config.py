"""
Application configuration

Endpoint locations and transport tuning for the cart/checkout collaborators.
Everything has a development-safe default; production overrides come from
the environment or a .env file.
"""
import logging
from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Checkout Engine"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # Site the cart widget talks to
    SITE_URL: str = "http://localhost:8080"
    REST_BASE_PATH: str = "/wp-json/"
    AJAX_PATH: str = "/"

    @field_validator("SITE_URL", mode="before")
    @classmethod
    def strip_site_url(cls, v):
        if not isinstance(v, str):
            return v
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("SITE_URL must start with http:// or https://")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    # HTTP transport
    HTTP_TIMEOUT_SECONDS: float = 15.0
    HTTP_MAX_RETRIES: int = 2  # GET only, mutations are never retried
    HTTP_RETRY_BASE_DELAY: float = 0.5
    HTTP_RETRY_MAX_DELAY: float = 5.0

    # GeoIP country detection
    GEOIP_TIMEOUT_SECONDS: float = 3.0

    # Upload de-duplication cache
    UPLOAD_CACHE_MAX_ENTRIES: int = 100

    @property
    def rest_url(self) -> str:
        """Base REST URL, always ending in a slash."""
        path = self.REST_BASE_PATH.strip("/")
        return f"{self.SITE_URL}/{path}/" if path else f"{self.SITE_URL}/"

    @property
    def ajax_url(self) -> str:
        """AJAX endpoint; actions are passed as ?vx=1&action=..."""
        path = self.AJAX_PATH.strip("/")
        return f"{self.SITE_URL}/{path}" if path else f"{self.SITE_URL}/"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
