"""
Central configuration for the burn-in engine.
Uses environment variables with sensible defaults.
"""

import tempfile
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    # External tools
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")

    # Every call into ffmpeg/ffprobe is bounded (seconds)
    ffmpeg_timeout: float = Field(default=3600.0)
    probe_timeout: float = Field(default=30.0)

    # Directories
    temp_dir: Path = Field(default=Path(tempfile.gettempdir()) / "burnin")

    # Frame raster export
    default_fps: float = Field(default=30.0)
    frame_workers: int = Field(default=1)

    # Fonts / text measurement
    font_dirs: list[Path] = Field(default_factory=lambda: [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("/Library/Fonts"),
        Path("/System/Library/Fonts"),
        Path("C:/Windows/Fonts"),
    ])
    default_font_family: str = Field(default="DejaVu Sans")
    measure_cache_size: int = Field(default=4096)

    # Job store expiry (swept by the caller's scheduler)
    job_ttl_seconds: float = Field(default=300.0)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="BURNIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Lazy-load settings to avoid errors when env vars not set
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings, initializing if needed."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
