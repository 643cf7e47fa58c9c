## src/core/settings.py

import tempfile
from functools import lru_cache
from typing import Annotated, Any

from dotenv import find_dotenv
from pydantic import (
    BeforeValidator,
    Field,
    HttpUrl,
    SecretStr,
    TypeAdapter,
    computed_field,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def check_str_is_http(x: str) -> str:
    http_url_adapter = TypeAdapter(HttpUrl)
    return str(http_url_adapter.validate_python(x))


def split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_dotenv(),
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        validate_default=False,
    )
    MODE: str | None = None

    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: Annotated[list[str], NoDecode, BeforeValidator(split_csv)] = Field(
        default_factory=lambda: ["*"]
    )

    # Gemini file search
    # Both are checked lazily: a missing value only fails the request that needs it.
    GOOGLE_GENERATIVE_AI_API_KEY: SecretStr | None = None
    FILE_SEARCH_STORE_NAME: str | None = None
    GOOGLE_CHAT_MODEL: str = "gemini-2.5-flash"
    GOOGLE_VISION_MODEL: str = "gemini-2.5-flash"
    VISION_TEMPERATURE: float = 0.2

    LANGFUSE_TRACING: bool = False
    LANGFUSE_HOST: Annotated[str, BeforeValidator(check_str_is_http)] = "https://cloud.langfuse.com"
    LANGFUSE_PUBLIC_KEY: str | SecretStr | None = None
    LANGFUSE_SECRET_KEY: SecretStr | None = None
    LANGFUSE_ENVIRONMENT: str | None = None
    LANGFUSE_SAMPLE_RATE: float | None = None

    # Metadata catalog
    DATABASE_URL: str = "sqlite:///./data_sources.db"

    # -- Uploads --
    SCRATCH_DIR: str = Field(default_factory=tempfile.gettempdir)
    MAX_UPLOAD_MB: int = 100

    # Upload operation polling (exponential backoff, bounded by timeout)
    UPLOAD_POLL_INITIAL_INTERVAL: float = 5.0
    UPLOAD_POLL_MAX_INTERVAL: float = 30.0
    UPLOAD_POLL_BACKOFF: float = 2.0
    UPLOAD_POLL_TIMEOUT: float = 600.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def BASE_URL(self) -> str:
        return f"http://{self.HOST}:{self.PORT}"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def MAX_UPLOAD_BYTES(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    def is_dev(self) -> bool:
        return self.MODE == "dev"


settings = Settings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached instance so settings are evaluated once only."""

    return Settings()
