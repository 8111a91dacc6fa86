"""Configuration management using Pydantic settings."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "STORMNIGHT"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Choice catalog (None = bundled engine/simulation/data/choices.json)
    catalog_path: Optional[Path] = None

    # Narration via Ollama; disabled = scripted narrator
    narration_enabled: bool = True
    ollama_host: str = "http://localhost:11434"
    narration_model: str = "gemma3:4b"
    narration_timeout: float = 15.0

    # Simulation randomness; unset = fresh entropy every request
    sim_seed: Optional[int] = None


settings = Settings()
