import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from pickup_plants.app.core.errors import ConfigurationError


class Settings(BaseSettings):
    supabase_url: str = Field(..., alias="SUPABASE_URL")
    supabase_anon_key: str = Field(..., alias="SUPABASE_ANON_KEY")
    auth_jwt_secret: str | None = Field(None, alias="SUPABASE_JWT_SECRET")
    auth_jwt_algorithm: str = Field("HS256", alias="AUTH_JWT_ALGORITHM")
    auth_jwt_audience: str = Field("authenticated", alias="AUTH_JWT_AUDIENCE")
    provider_timeout_seconds: float = Field(10.0, alias="PROVIDER_TIMEOUT_SECONDS")
    auth_resolve_timeout_seconds: float = Field(5.0, alias="AUTH_RESOLVE_TIMEOUT_SECONDS")
    token_refresh_margin_seconds: int = Field(60, alias="TOKEN_REFRESH_MARGIN_SECONDS")
    password_reset_redirect_url: str | None = Field(None, alias="PASSWORD_RESET_REDIRECT_URL")
    session_cookie_name: str = Field("pp_session", alias="SESSION_COOKIE_NAME")
    refresh_cookie_name: str = Field("pp_refresh", alias="REFRESH_COOKIE_NAME")
    session_cookie_secure: bool = Field(False, alias="SESSION_COOKIE_SECURE")
    session_idle_timeout_seconds: float = Field(1800.0, alias="SESSION_IDLE_TIMEOUT_SECONDS")
    session_max_active: int = Field(10000, alias="SESSION_MAX_ACTIVE")
    database_url: str = Field("sqlite:///./pickup_plants.db", alias="DATABASE_URL")
    media_root: Path = Field(Path("media"), alias="MEDIA_ROOT")
    recipe_image_max_bytes: int = Field(10 * 1024 * 1024, alias="RECIPE_IMAGE_MAX_BYTES")
    storage_backend: str = Field("local", alias="RECIPE_IMAGE_STORAGE")
    recipe_image_s3_bucket: str | None = Field(None, alias="RECIPE_IMAGE_S3_BUCKET")
    recipe_image_s3_region: str | None = Field(None, alias="RECIPE_IMAGE_S3_REGION")
    recipe_image_s3_prefix: str = Field("recipe-images", alias="RECIPE_IMAGE_S3_PREFIX")
    # Supabase Storage speaks the S3 protocol at <project>/storage/v1/s3
    recipe_image_s3_endpoint_url: str | None = Field(None, alias="RECIPE_IMAGE_S3_ENDPOINT_URL")
    recipe_image_public_base_url: str | None = Field(None, alias="RECIPE_IMAGE_PUBLIC_BASE_URL")
    aws_access_key_id: str | None = Field(None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(None, alias="AWS_SECRET_ACCESS_KEY")
    aws_session_token: str | None = Field(None, alias="AWS_SESSION_TOKEN")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


logger = logging.getLogger(__name__)

_REQUIRED_ENV = {"supabase_url": "SUPABASE_URL", "supabase_anon_key": "SUPABASE_ANON_KEY"}


def _load_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        missing = sorted(
            {
                _REQUIRED_ENV.get(str(err["loc"][0]), str(err["loc"][0]))
                for err in exc.errors()
                if err.get("type") == "missing" and err.get("loc")
            }
        )
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}") from exc
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    try:
        settings = _load_settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = _load_settings(_env_file=None)

    blank = [env for field, env in _REQUIRED_ENV.items() if not getattr(settings, field).strip()]
    if blank:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(blank)}")
    if settings.storage_backend not in {"local", "s3"}:
        raise ConfigurationError(f"Unknown RECIPE_IMAGE_STORAGE backend: {settings.storage_backend}")

    settings.media_root.mkdir(parents=True, exist_ok=True)
    return settings
