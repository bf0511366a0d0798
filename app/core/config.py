"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Gift Check-in"
    debug: bool = False
    log_dir: str = "~/.logs/gift-checkin"

    # Server
    host: str = "0.0.0.0"  # Bind to all interfaces for external access
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./gift_checkin.db"

    # Pick-up selector fields, in cascade order. "name:off" keeps the
    # position but leaves the field out of the cascade.
    pickup_fields: str = "type:off,brand,gender:off,product:off,color:off,size"


settings = Settings()
