from functools import lru_cache
from typing import Optional, Tuple, Type

from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        json_file=".config.json",
        case_sensitive=True,
        extra="ignore",
    )

    # Database settings
    DATABASE_URL: str = "sqlite:///./markbook.db"

    # JWT settings
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # Email settings, SMTP_HOST unset disables outgoing mail
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "noreply@markbook.local"
    SMTP_FROM_NAME: str = "Markbook"

    # File upload settings
    FILE_STORAGE_PATH: str = "uploads"
    MAX_UPLOAD_SIZE: int = 15 * 1024 * 1024  # 15MB in bytes
    ALLOWED_EXTENSIONS: set[str] = {"gif", "png", "jpg", "jpeg", "doc", "docx", "xls", "xlsm", "pdf"}

    # Marking
    MARK_COMMENT_MAX_LENGTH: int = 500

    # API settings
    API_BASE_URL: str = "http://localhost:8000"
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Markbook API"
    CORS_ORIGINS: list[str] = ["*"]

    # Logging
    LOG_DIR: str = "logs"
    LOG_FILE: str = "server.log"
    LOG_LEVEL: str = "INFO"

    # Rate limiting, REDIS_URL unset disables it
    REDIS_URL: Optional[str] = None
    RATE_LIMIT_PER_MINUTE: int = 100

    # Seeded on startup when both are set
    DEFAULT_ADMIN_EMAIL: Optional[str] = None
    DEFAULT_ADMIN_PASSWORD: Optional[str] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.SMTP_HOST)


@lru_cache()
def get_settings() -> Settings:
    """
    Get settings instance with caching
    Returns:
        Settings instance
    """
    return Settings()
