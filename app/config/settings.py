from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field

load_dotenv()


class Settings(BaseSettings):
    """Base settings for the application."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Adyn Campaign Backend"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "URL-to-campaign generation API"
    APP_AUTHOR: str = "Adyn Development Team"

    LOG_LEVEL: str = "INFO"
    LOGS_DIR: str = "logs"

    DATABASE_URL: str = ""
    LOCAL_SQLITE_PATH: str = "sqlite+aiosqlite:///./local.db"

    # Local auth (HS256 bearer tokens)
    LOCAL_AUTH_SECRET: str = "JWT_SECRET_KEY"
    LOCAL_AUTH_TOKEN_EXP_SECONDS: int = 3600

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """Resolve the database URL for the application.

        Priority:
        1. Explicit DATABASE_URL (Postgres, SQLite, etc.)
        2. Local SQLite fallback for development: LOCAL_SQLITE_PATH
        """
        if self.DATABASE_URL and self.DATABASE_URL.strip():
            return self.DATABASE_URL.strip()
        if self.LOCAL_SQLITE_PATH and self.LOCAL_SQLITE_PATH.strip():
            return self.LOCAL_SQLITE_PATH.strip()
        return "sqlite+aiosqlite:///./local.db"

    # Tool gateway settings
    TOOL_GATEWAY_URL: str = Field(
        default="http://localhost:8787",
        description="Base URL of the gateway that executes marketing tools",
    )
    TOOL_NAMESPACE: str = "adyn"
    TOOL_TIMEOUT_SECONDS: float = Field(
        default=300.0,
        gt=0,
        description="Upper bound for a single tool call, including campaign building",
    )
    TOOL_LOG_PREVIEW_CHARS: int = 500

    # Usage accounting (USD per 1M tokens)
    USAGE_PROMPT_RATE_PER_MILLION: float = 2.50
    USAGE_COMPLETION_RATE_PER_MILLION: float = 10.00
    USAGE_CHARS_PER_TOKEN: int = 4

    # Pipeline behaviour
    DEFAULT_OBJECTIVE: str = "Conversions"
    STRICT_STAGE_OUTPUTS: bool = Field(
        default=False,
        description="Fail a stage whose tool returned an empty or unparsable payload",
    )


settings = Settings()
