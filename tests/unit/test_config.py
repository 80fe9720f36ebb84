"""Unit tests for configuration management."""

import os

import pytest
from pydantic import ValidationError

from critique.config import Settings


def test_settings_from_environment(test_settings: Settings):
    """Test that settings load from environment variables."""
    assert test_settings.log_level == "DEBUG"
    assert test_settings.storage_timeout_seconds == 2.5
    assert test_settings.data_dir.name == "data"


def test_derived_paths(test_settings: Settings):
    """Test that blob dir and database URL derive from data_dir."""
    assert test_settings.blob_dir == test_settings.data_dir / "blobs"
    assert test_settings.blob_dir.is_dir()
    assert test_settings.database_url == (
        f"sqlite+aiosqlite:///{test_settings.data_dir / 'cache.db'}"
    )


def test_default_values(test_settings: Settings):
    """Test that default values are set correctly."""
    assert test_settings.min_selection_px == 10
    assert test_settings.jpeg_quality == 80
    assert test_settings.gallery_rows * test_settings.gallery_columns == 8
    assert test_settings.default_user_token == "dev-admin"
    assert test_settings.user_tokens["dev-client"].role == "client"


def test_cors_origins_parsed_from_csv(test_settings: Settings):
    """Test that comma-separated CORS origins are split."""
    os.environ["CRITIQUE_CORS_ALLOWED_ORIGINS"] = "http://a.test, http://b.test"

    settings = Settings()

    assert settings.cors_allowed_origins == ["http://a.test", "http://b.test"]


def test_cors_origins_parsed_from_json_list(test_settings: Settings):
    """Test that a JSON list of CORS origins is still accepted."""
    os.environ["CRITIQUE_CORS_ALLOWED_ORIGINS"] = '["http://a.test", "http://b.test"]'

    settings = Settings()

    assert settings.cors_allowed_origins == ["http://a.test", "http://b.test"]


def test_jpeg_quality_validation_invalid(test_settings: Settings):
    """Test validation error for out-of-range JPEG quality."""
    os.environ["CRITIQUE_JPEG_QUALITY"] = "0"

    with pytest.raises(ValidationError) as exc_info:
        Settings()

    assert "Invalid jpeg_quality" in str(exc_info.value)


def test_gallery_size_must_be_positive(test_settings: Settings):
    """Test validation error for an empty gallery page."""
    os.environ["CRITIQUE_GALLERY_ROWS"] = "0"

    with pytest.raises(ValidationError):
        Settings()


def test_user_tokens_from_json(test_settings: Settings):
    """Test that the token table can be supplied as JSON."""
    os.environ["CRITIQUE_USER_TOKENS"] = (
        '{"abc": {"name": "Dana", "role": "admin"}, "xyz": {"name": "Lee"}}'
    )
    os.environ["CRITIQUE_DEFAULT_USER_TOKEN"] = "xyz"

    settings = Settings()

    assert settings.user_tokens["abc"].name == "Dana"
    assert settings.user_tokens["xyz"].role == "client"


def test_unknown_default_token_rejected(test_settings: Settings):
    """Test that the fallback token must exist."""
    os.environ["CRITIQUE_DEFAULT_USER_TOKEN"] = "missing"

    with pytest.raises(ValidationError) as exc_info:
        Settings()

    assert "default_user_token" in str(exc_info.value)


def test_invalid_role_rejected(test_settings: Settings):
    """Test that roles are limited to admin and client."""
    os.environ["CRITIQUE_USER_TOKENS"] = '{"dev-admin": {"name": "X", "role": "owner"}}'

    with pytest.raises(ValidationError) as exc_info:
        Settings()

    assert "Invalid role" in str(exc_info.value)


def test_api_key_required_in_production(test_settings: Settings):
    """Test that production with require_api_key needs a key."""
    os.environ["CRITIQUE_ENVIRONMENT"] = "production"
    os.environ["CRITIQUE_REQUIRE_API_KEY"] = "true"
    os.environ.pop("CRITIQUE_API_KEY", None)

    with pytest.raises(ValidationError) as exc_info:
        Settings()

    assert "CRITIQUE_API_KEY must be set" in str(exc_info.value)


def test_api_key_optional_in_development(test_settings: Settings):
    """Test that development does not enforce a key."""
    os.environ["CRITIQUE_REQUIRE_API_KEY"] = "true"

    settings = Settings()

    assert settings.require_api_key is True
    assert settings.api_key is None


def test_blob_root_resolves_from_data_dir(test_settings: Settings):
    """Test that blob_root is derived from data_dir and created."""
    assert test_settings.blob_root == test_settings.data_dir / "blobs"
    assert test_settings.blob_root.is_dir()
