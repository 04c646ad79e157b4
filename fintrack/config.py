"""Configuration management for FinTrack."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Development mode
    dev_mode: bool = True

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Processing limits
    max_concurrent_runs: int = 4
    max_pending_runs: int = 32  # Uploads beyond this are stored but not queued
    extraction_timeout_seconds: float = 60.0
    max_upload_bytes: int = 25 * 1024 * 1024

    # How long finished run progress stays visible (15 minutes)
    progress_ttl_seconds: int = 900

    # Data directory
    data_dir: Path = Path.home() / ".fintrack"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # MAX_CONCURRENT_RUNS and max_concurrent_runs both work
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def db_path(self) -> Path:
        """Get the SQLite database path."""
        suffix = "dev" if self.dev_mode else "prod"
        return self.data_dir / f"fintrack_{suffix}.db"

    @property
    def uploads_path(self) -> Path:
        """Get the uploads directory path."""
        return self.data_dir / "uploads"

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.uploads_path.mkdir(parents=True, exist_ok=True)

    def log_config(self) -> None:
        """Log current configuration."""
        import os

        print("\n" + "=" * 60)
        print("CONFIGURATION LOADED")
        print("=" * 60)

        env_file_path = os.path.join(os.getcwd(), ".env")
        print(f"Working Directory:   {os.getcwd()}")
        print(f".env file exists:    {os.path.exists(env_file_path)}")
        print("-" * 60)

        print(f"Dev Mode:            {self.dev_mode}")
        print(f"Log Level:           {self.log_level}")
        print(f"Concurrent Runs:     {self.max_concurrent_runs}")
        print(f"Pending Runs:        {self.max_pending_runs}")
        print(f"Extraction Timeout:  {self.extraction_timeout_seconds}s")
        print(f"Data Directory:      {self.data_dir}")
        print(f"Database:            {self.db_path}")
        print(f"Uploads:             {self.uploads_path}")
        print(f"API Host:            {self.api_host}:{self.api_port}")
        print("=" * 60 + "\n")


# Global settings instance
settings = Settings()
