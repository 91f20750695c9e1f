from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the MyGPA API."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./mygpa.db"

    # Tokens (local auth provider)
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    password_reset_expire_minutes: int = 60
    min_password_length: int = 6

    # Auth provider
    auth_provider: Literal["local", "firebase"] = "local"
    firebase_api_key: Optional[str] = None
    firebase_credentials_file: Optional[str] = None
    firebase_storage_bucket: Optional[str] = None

    # Object storage
    storage_backend: Literal["local", "firebase"] = "local"
    storage_root: str = "./storage"
    public_base_url: str = "http://localhost:8000"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Frontend
    frontend_url: str = "http://localhost:3000"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "https://localhost:3000",
        "http://127.0.0.1:3000",
        "https://127.0.0.1:3000",
    ]


settings = Settings()
