from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "trackupload"
    db_username: str = "trackupload"
    db_password: str = "secret"
    db_connect_timeout_seconds: float = 10.0

    ledger_backend: str = "postgres"

    uploads_dir: Path = Path("uploads")
    chunk_workspace_dir: Path = Path("uploads/temp")
    max_chunk_bytes: int = 10 * 1024 * 1024

    duration_prober: str = "mutagen"

    recovery_poll_interval_seconds: int = 30
