"""Application settings loaded from environment variables.

Every setting can be overridden with a ``COURSE_API_`` prefixed variable,
e.g. ``COURSE_API_DATABASE_URL=postgresql://...``. A local ``.env`` file is
read as well.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Course management API configuration"""

    model_config = SettingsConfigDict(
        env_prefix="COURSE_API_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = "sqlite:///./course_management.db"
    sql_echo: bool = False

    log_level: str = "INFO"
    log_file: str = "api.log"

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    default_page_size: int = Field(10, ge=1)
    max_page_size: int = Field(100, ge=1)
    activity_feed_limit: int = Field(10, ge=1)

    # Demo credentials for the mock login endpoint
    admin_username: str = "admin"
    admin_password: SecretStr = SecretStr("admin123")
    demo_token: str = "mock-admin-token-12345"


@lru_cache
def get_settings() -> Settings:
    return Settings()
