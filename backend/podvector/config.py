"""
Application settings and configuration
"""
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration"""

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list = ["*"]

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024
    max_image_dimension: int = 8192  # Max side in pixels

    # Background keying
    key_dark_background: bool = True
    darkness_threshold: int = 30

    # Trace defaults (empirical, not tuned per input)
    trace_threshold: int = 180
    trace_speckle_size: int = 5
    trace_opt_tolerance: float = 0.2
    trace_use_curves: bool = True
    trace_foreground: str = "auto"  # auto, luminance or alpha
    trace_corner_angle: float = 70.0
    trace_fill_color: Optional[str] = None
    trace_background_color: Optional[str] = None

    # Tier 1: in-process tracer
    local_engine_enabled: bool = True

    # Tier 2: external export tool
    cli_command: str = "inkscape"
    cli_timeout: float = 60.0

    # Tier 3: remote vectorization API
    remote_url: str = "https://vectorizer.ai/api/v1/vectorize"
    remote_api_id: Optional[str] = None
    remote_api_secret: Optional[str] = None
    remote_simplify: float = 0.3
    remote_timeout: float = 30.0

    # Job scratch space
    tmp_root: Optional[Path] = Field(default=None)

    # Output sanity check
    min_svg_length: int = 50

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "PODVECTOR_"
        env_file = ".env"


settings = Settings()
