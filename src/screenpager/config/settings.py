"""Configuration management for screenpager.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

from screenpager.domain.models import Region

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/screenpager.yaml")


class CaptureConfig(BaseModel):
    interval_ms: int = Field(default=2000, gt=0, description="Milliseconds between ticks")
    change_threshold: float = Field(default=0.05, gt=0, le=1.0)
    full_display: bool = Field(default=False)
    monitor: int = Field(default=1, ge=0, description="mss monitor index (0 = all monitors)")
    region_x: int | None = Field(default=None, ge=0)
    region_y: int | None = Field(default=None, ge=0)
    region_width: int | None = Field(default=None, gt=0)
    region_height: int | None = Field(default=None, gt=0)

    @property
    def region(self) -> Region | None:
        values = (self.region_x, self.region_y, self.region_width, self.region_height)
        if any(v is None for v in values):
            return None
        return Region(
            x=self.region_x, y=self.region_y,
            width=self.region_width, height=self.region_height,
        )


class DetectionConfig(BaseModel):
    compare_size: int = Field(default=100, gt=0)
    pixel_tolerance: float = Field(default=50.0, ge=0)
    band_sample_rate: int = Field(default=4, gt=0)
    band_tolerance: int = Field(default=10, gt=0, le=256)
    hash_size: int = Field(default=8, gt=1)


class ExtractionConfig(BaseModel):
    mode: Literal["local", "cloud", "anthropic"] = Field(default="local")
    model: str = Field(default="gpt-4o")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514")
    base_url: str | None = Field(default=None)
    max_tokens: int = Field(default=4000, gt=0)
    max_attempts: int = Field(default=2, gt=0)
    backoff_base: float = Field(default=1.0, ge=0)
    timeout: float = Field(default=60.0, gt=0)
    tesseract_cmd: str | None = Field(default=None)
    tesseract_lang: str = Field(default="eng")
    tesseract_psm: int = Field(default=1, ge=0, le=13)


class EndpointConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)
    # Per-component levels, keyed by sub-package ("scheduler", "extraction.openai")
    components: dict[str, str] = Field(default_factory=dict)
    # Chatty client libraries held at WARNING unless raised explicitly
    quiet: list[str] = Field(default_factory=lambda: ["httpx", "httpcore", "openai", "anthropic"])


class Settings(BaseSettings):
    """Root configuration for the screenpager system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "SCREENPAGER_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    anthropic_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    openai_key = os.environ.get("OPENAI_API_KEY", "")
    anthropic_key = os.environ.get("ANTHROPIC_API_KEY", "")
    ocr_mode = os.environ.get("OCR_MODE", "").strip().lower()

    if openai_key:
        yaml_data["openai_api_key"] = openai_key
    if anthropic_key:
        yaml_data["anthropic_api_key"] = anthropic_key

    if ocr_mode:
        # "llm" is the historical name of the cloud mode
        if ocr_mode == "llm":
            ocr_mode = "cloud"
        if ocr_mode in ("local", "cloud", "anthropic"):
            yaml_data.setdefault("extraction", {})["mode"] = ocr_mode
        else:
            logger.warning("Ignoring unknown OCR_MODE %r", ocr_mode)
