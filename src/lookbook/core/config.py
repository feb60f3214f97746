"""Configuration management for the Lookbook Generator.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the LOOKBOOK_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (LOOKBOOK_* prefix)
2. .env file in the project root
3. Default values defined in LookbookConfig

Example .env file:
    LOOKBOOK_GENERATION_BACKEND=gemini
    LOOKBOOK_GEMINI_API_KEY=...
    LOOKBOOK_WORKER_COUNT=2
    LOOKBOOK_OUTPUTS_DIR=outputs

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from lookbook.core.config import config

    print(config.worker_count)
    print(config.outputs_dir)

Generation Backends
-------------------
- ``gemini``: remote image editing through the Gemini API (needs an API key)
- ``diffusers``: local instruction-based editing through a diffusers pipeline

Retry Settings
--------------
Remote calls are attempted at most ``max_attempts`` times.  The delay after
failed attempt *n* is ``initial_retry_delay * 2 ** (n - 1)`` seconds, so the
defaults give 1s then 2s.

Lookbook Layout Settings
------------------------
The canvas defaults to an A4-like portrait page (2480x3508) split into a
2x3 grid below a 550px title margin.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LookbookConfig(BaseSettings):
    """Main configuration for the Lookbook Generator.

    Values are loaded from environment variables with the LOOKBOOK_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Generation Backend:
        generation_backend : Literal["gemini", "diffusers"]
            Which GenerationClient implementation to instantiate
        gemini_api_key : str | None
            API key for the Gemini backend
        gemini_model : str
            Gemini model used for image editing
        diffusers_model_id : str
            HuggingFace model ID for the local image-edit pipeline
        torch_dtype : Literal["bfloat16", "float16", "float32"]
            Torch dtype for local inference
        device : str
            Device for local inference (cuda, mps, or cpu)

    Scheduling:
        worker_count : int
            Number of concurrent generation workers
        max_attempts : int
            Attempts per item (initial call plus retries)
        initial_retry_delay : float
            Backoff delay in seconds after the first failed attempt

    Lookbook Layout:
        canvas_width, canvas_height : int
            Size of the composite page in pixels
        texture_dots : int
            Number of stippled dots in the background texture
        grid_columns, grid_rows, grid_padding : int
            Panel grid geometry
        title_margin : int
            Height reserved at the top of the page for the title
        jpeg_quality : int
            JPEG quality of the encoded page
        title_font_path, caption_font_path : Path | None
            TrueType fonts for the title and the handwritten captions

    Paths:
        models_dir : Path
            Directory to cache downloaded models
        outputs_dir : Path
            Directory where exported images are written

    Server:
        server_host : str
            Bind address for the API server
        server_port : int
            Port for the API server

    Notes
    -----
    - outputs_dir is created automatically if it doesn't exist
    - Configuration is immutable after initialization
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LOOKBOOK_",
        case_sensitive=False,
    )

    # Generation backend
    generation_backend: Literal["gemini", "diffusers"] = Field(
        default="gemini",
        description="Generation backend (gemini for the remote API, diffusers for local)",
    )
    gemini_api_key: str | None = Field(
        default=None,
        description="API key for the Gemini backend",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Gemini model used for image editing",
    )

    # Local diffusers backend
    diffusers_model_id: str = Field(
        default="timbrooks/instruct-pix2pix",
        description="HuggingFace model ID for the local image-edit pipeline",
    )
    torch_dtype: Literal["bfloat16", "float16", "float32"] = Field(
        default="float16",
        description="Torch dtype for local inference",
    )
    device: str = Field(
        default="cuda",
        description="Device to run local inference on (cuda/cpu)",
    )
    num_inference_steps: int = Field(default=20, ge=1, le=100)
    enable_attention_slicing: bool = Field(
        default=False,
        description="Enable attention slicing for lower VRAM usage",
    )
    enable_model_cpu_offload: bool = Field(
        default=False,
        description="Enable CPU offloading for memory-constrained setups",
    )

    # Scheduling
    worker_count: int = Field(
        default=2,
        description="Number of archetypes generated concurrently",
        ge=1,
        le=16,
    )
    max_attempts: int = Field(
        default=3,
        description="Attempts per archetype (1 initial + retries)",
        ge=1,
        le=10,
    )
    initial_retry_delay: float = Field(
        default=1.0,
        description="Backoff delay in seconds after the first failed attempt",
        ge=0.0,
    )

    # Lookbook layout
    canvas_width: int = Field(default=2480, ge=256)
    canvas_height: int = Field(default=3508, ge=256)
    texture_dots: int = Field(
        default=150_000,
        description="Number of random dots stippled onto the background",
        ge=0,
    )
    grid_columns: int = Field(default=2, ge=1)
    grid_rows: int = Field(default=3, ge=1)
    grid_padding: int = Field(default=100, ge=0)
    title_margin: int = Field(default=550, ge=0)
    jpeg_quality: int = Field(default=90, ge=1, le=95)
    title_font_path: Path | None = Field(
        default=None,
        description="TrueType font for the title (e.g. Monoton)",
    )
    caption_font_path: Path | None = Field(
        default=None,
        description="TrueType handwritten font for captions (e.g. Permanent Marker)",
    )

    # Paths
    models_dir: Path = Field(
        default=Path("models"),
        description="Directory to cache models",
    )
    outputs_dir: Path = Field(
        default=Path("outputs"),
        description="Directory to save exported images",
    )

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the output directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.outputs_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# Loads values from environment variables (LOOKBOOK_* prefix) and .env file.
config = LookbookConfig()
