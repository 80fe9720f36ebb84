"""Configuration management for Critique using Pydantic Settings."""

import json
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class UserSpec(BaseModel):
    """Entry of the access-token lookup table."""

    name: str
    role: str = "client"


DEFAULT_USER_TOKENS: dict[str, UserSpec] = {
    "dev-admin": UserSpec(name="Admin", role="admin"),
    "dev-client": UserSpec(name="Client Reviewer", role="client"),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Local state
    data_dir: Path = Field(
        default=Path(".critique"),
        description="Directory for the local cache database and blob files",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL of the local cache (defaults to SQLite in data_dir)",
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL queries to console",
    )

    # Blob storage
    blob_dir: Path | None = Field(
        default=None,
        description="Directory backing the blob store (defaults to data_dir/blobs)",
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL under which stored blobs are served",
    )
    storage_api_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the upload/list/delete API used by clients",
    )
    storage_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for each call to the image persistence service",
    )
    storage_max_retries: int = Field(
        default=1,
        description="Retries for uploads before falling back to inline storage",
    )
    storage_list_limit: int = Field(
        default=100,
        description="Maximum blobs returned by one list call",
    )

    # Capture
    capture_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for a single capture strategy attempt",
    )
    min_selection_px: int = Field(
        default=10,
        description="Minimum selection width and height in device pixels",
    )
    jpeg_quality: int = Field(
        default=80,
        description="JPEG quality used when encoding captured regions",
    )
    viewer_selector: str = Field(
        default="model-viewer",
        description="CSS selector of the 3D viewer element on review pages",
    )
    viewer_width: int = Field(default=1280, description="Browser viewport width")
    viewer_height: int = Field(default=800, description="Browser viewport height")

    # Gallery
    gallery_rows: int = Field(default=2, description="Rows shown before 'show more'")
    gallery_columns: int = Field(default=4, description="Screenshots per gallery row")

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    environment: str = Field(
        default="development",
        description="Environment (development or production)",
    )

    # CORS settings
    cors_allowed_origins: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="Allowed CORS origins for API requests",
    )

    # API Security settings
    api_key: SecretStr | None = Field(
        default=None,
        description="Write token required for blob uploads and deletes",
    )
    require_api_key: bool = Field(
        default=False,
        description="Require the X-API-Key header on blob write endpoints",
    )

    # Users
    user_tokens: dict[str, UserSpec] = Field(
        default_factory=lambda: dict(DEFAULT_USER_TOKENS),
        description="Access token to reviewer lookup table (JSON)",
    )
    default_user_token: str = Field(
        default="dev-admin",
        description="Token used when a request or command supplies none",
    )

    model_config = SettingsConfigDict(
        env_prefix="CRITIQUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from a JSON list, a comma-separated string or a list."""
        if isinstance(v, str) and v.lstrip().startswith("["):
            return json.loads(v)  # type: ignore[no-any-return]
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("jpeg_quality")
    @classmethod
    def validate_jpeg_quality(cls, v: int) -> int:
        """Validate JPEG quality is within Pillow's accepted range."""
        if not 1 <= v <= 95:
            raise ValueError(f"Invalid jpeg_quality: {v}. Allowed range: 1-95")
        return v

    @field_validator("min_selection_px", "gallery_rows", "gallery_columns")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate sizes are positive."""
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v

    @model_validator(mode="after")
    def resolve_storage_paths(self) -> "Settings":
        """Derive defaults that depend on data_dir and create directories."""
        if self.blob_dir is None:
            self.blob_dir = self.data_dir / "blobs"
        if self.database_url is None:
            self.database_url = f"sqlite+aiosqlite:///{self.data_dir / 'cache.db'}"
        try:
            self.blob_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise ValueError(
                f"Cannot create blob directory at {self.blob_dir}: {e}"
            ) from e
        return self

    @model_validator(mode="after")
    def validate_default_user(self) -> "Settings":
        """Validate the fallback token resolves to a configured user."""
        if self.default_user_token not in self.user_tokens:
            raise ValueError(
                f"default_user_token '{self.default_user_token}' is not present in user_tokens"
            )
        for token, spec in self.user_tokens.items():
            if spec.role not in {"admin", "client"}:
                raise ValueError(f"Invalid role '{spec.role}' for token '{token}'")
        return self

    @model_validator(mode="after")
    def validate_api_key(self) -> "Settings":
        """Validate API key is set when required in production."""
        if (
            self.require_api_key
            and self.environment == "production"
            and not self.api_key
        ):
            raise ValueError(
                "CRITIQUE_API_KEY must be set when CRITIQUE_REQUIRE_API_KEY=true in production. "
                "Set CRITIQUE_API_KEY or set CRITIQUE_REQUIRE_API_KEY=false."
            )
        return self

    @property
    def blob_root(self) -> Path:
        """Directory holding stored blobs, as resolved by resolve_storage_paths."""
        if self.blob_dir is None:
            raise RuntimeError("blob_dir is unset; settings were not validated")
        return self.blob_dir


# Global settings instance
settings = Settings()
