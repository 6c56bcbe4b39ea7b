"""Application configuration management.

Loads settings from environment with validation.
"""

from functools import lru_cache
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="CONLANG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Enrichment service (Ollama-compatible)
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    use_enrichment: bool = True
    enrichment_timeout: float = Field(default=30.0, gt=0)
    enrichment_cache_size: int = Field(default=1000, ge=0)

    # Output
    output_dir: Path = Path("./dictionaries")

    # Batch processing
    save_interval: int = Field(default=25, ge=1)
    batch_size: int = Field(default=10, ge=1)
    pause_poll_interval: float = Field(default=2.0, gt=0)

    # Transformation
    variation_seed: int | None = 0
    ascii_pronunciation: bool = False

    # Development
    debug: bool = False
    log_level: str = "INFO"

    @property
    def checkpoint_dir(self) -> Path:
        """Directory holding batch checkpoints and their lock files."""
        return self.output_dir / ".checkpoints"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
