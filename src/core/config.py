"""Application settings and configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Any, Dict, Optional, List


def _split_csv(value: str) -> List[str]:
    """Comma separated setting as a list; a bare "*" stays a wildcard."""
    if value.strip() == "*":
        return ["*"]
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    # API settings
    PROJECT_NAME: str = "ID Card Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_V1_STR: str = "/api/v1"

    # CORS
    CORS_ORIGINS: str = "*"
    CORS_HEADERS: str = "*"
    CORS_METHODS: str = "*"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "idcards"
    POSTGRES_PORT: str = "5432"
    DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)
    SQL_ECHO: bool = False

    # Database connection pool settings
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Logging
    LOG_DIRECTORY: str = "logs"
    LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 5
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "idcard-service"

    # Card output
    CARD_DEFAULT_WIDTH_MM: float = 85.6
    CARD_DEFAULT_HEIGHT_MM: float = 53.98
    CARD_ARCHIVE_COMPRESSION_LEVEL: int = 9
    CARD_BATCH_MAX_ENTITIES: int = 1000

    # Records service (schools, sessions, students, teachers)
    RECORDS_SERVICE_URL: str = "http://localhost:4000/api/v1"
    RECORDS_SERVICE_TOKEN: Optional[str] = None
    RECORDS_SERVICE_TIMEOUT_SECONDS: float = 10.0

    @field_validator("DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: Any) -> Any:
        """Build async PostgreSQL connection string from components."""
        if isinstance(v, str):
            return v

        values: Dict[str, Any] = info.data
        user = values.get("POSTGRES_USER", "")
        password = values.get("POSTGRES_PASSWORD", "")
        host = values.get("POSTGRES_SERVER", "")
        port = values.get("POSTGRES_PORT", "5432")
        db = values.get("POSTGRES_DB", "")

        auth = f"{user}:{password}" if password else user
        return f"postgresql+asyncpg://{auth}@{host}:{port}/{db}"

    @field_validator("API_V1_STR")
    def ensure_api_prefix_has_slash(cls, v: str) -> str:
        """Ensure API prefix starts with a slash."""
        if not v.startswith("/"):
            return f"/{v}"
        return v

    @field_validator("CARD_ARCHIVE_COMPRESSION_LEVEL")
    def validate_compression_level(cls, v: int) -> int:
        """zlib only accepts levels 0-9."""
        if not 0 <= v <= 9:
            raise ValueError("CARD_ARCHIVE_COMPRESSION_LEVEL must be between 0 and 9")
        return v

    @property
    def CORS_ORIGINS_LIST(self) -> List[str]:
        return _split_csv(self.CORS_ORIGINS)

    @property
    def CORS_METHODS_LIST(self) -> List[str]:
        return _split_csv(self.CORS_METHODS)

    @property
    def CORS_HEADERS_LIST(self) -> List[str]:
        return _split_csv(self.CORS_HEADERS)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


# Create global settings instance
settings = Settings()
