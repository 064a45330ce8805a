from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend API
    api_url: str = Field(default="http://localhost:8080")
    request_timeout: float = Field(default=30.0, gt=0)

    # Environment (for conditional validation)
    environment: str = Field(default="development")
    log_level: Optional[str] = Field(default=None)

    # Link flow presentation defaults
    unknown_institution_label: str = Field(default="Unknown Institution")
    missing_category_label: str = Field(default="N/A")

    @field_validator("api_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_production_api_url(self):
        """Ensure API_URL points somewhere real in production"""
        if self.environment == "production":
            host = urlparse(self.api_url).hostname or ""
            if host in ("", "localhost", "127.0.0.1"):
                raise ValueError(
                    "API_URL must be explicitly set to the backend host in production."
                )
        return self


settings = Settings()
