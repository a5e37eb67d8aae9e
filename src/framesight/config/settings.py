"""Configuration management for framesight.

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

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/framesight.yaml")

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OVHCLOUD_BASE_URL = "https://oai.endpoints.kepler.ai.cloud.ovh.net/v1"
OVHCLOUD_MODEL = "Qwen2.5-VL-72B-Instruct"


class BrowserConfig(BaseModel):
    headless: bool = Field(default=True)
    timeout: int = Field(default=30000, gt=0, description="Default action timeout in ms")
    navigation_timeout: int = Field(default=60000, gt=0, description="Page load timeout in ms")
    viewport_width: int = Field(default=1280, gt=0)
    viewport_height: int = Field(default=720, gt=0)


class InferenceConfig(BaseModel):
    provider: Literal["openai", "anthropic"] = Field(default="openai")
    model: str = Field(default="gpt-4o")
    base_url: str | None = Field(default=None)
    max_tokens: int = Field(default=2000, gt=0)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    synthesis_max_tokens: int = Field(default=3000, gt=0)
    synthesis_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    timeout: float = Field(default=60.0, gt=0)


class AnalysisConfig(BaseModel):
    """Knobs for one analysis session.

    These are the fields a caller may override per session through the
    ``settings`` mapping passed to ``SessionOrchestrator.start``.
    """

    model_config = {"extra": "forbid"}

    max_concurrent: int = Field(default=3, gt=0, description="Frames analysed per batch")
    batch_delay: float = Field(default=2.0, ge=0, description="Seconds between batches")
    stabilization_timeout: float = Field(default=3.0, ge=0)
    event_detection_attempts: int = Field(default=3, gt=0)
    event_poll_interval: float = Field(default=2.0, ge=0)
    slide_sample_interval: float = Field(default=10.0, gt=0)
    navigation_attempts: int = Field(default=2, gt=0)
    session_timeout: float | None = Field(default=None, gt=0)
    image_format: Literal["png", "jpeg"] = Field(default="png")


class CacheConfig(BaseModel):
    enabled: bool = Field(default=True)
    ttl_seconds: float | None = Field(default=None, gt=0)
    max_entries: int = Field(default=100, gt=0)


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for framesight.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "FRAMESIGHT_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openrouter_api_key: SecretStr = Field(default=SecretStr(""))
    anthropic_api_key: SecretStr = Field(default=SecretStr(""))
    ovh_ai_token: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def inference_credentials(self) -> tuple[str, str | None]:
        """Return the (api_key, base_url) pair for the configured provider.

        For the OpenAI-compatible provider the first non-empty key wins in
        the order OpenRouter, OVHcloud, OpenAI; OpenRouter and OVHcloud keys
        imply their base URL unless one is configured explicitly.
        """
        base_url = self.inference.base_url
        if self.inference.provider == "anthropic":
            return self.anthropic_api_key.get_secret_value(), base_url

        or_key = self.openrouter_api_key.get_secret_value()
        if or_key:
            return or_key, base_url or OPENROUTER_BASE_URL
        ovh_key = self.ovh_ai_token.get_secret_value()
        if ovh_key:
            return ovh_key, base_url or OVHCLOUD_BASE_URL
        return self.openai_api_key.get_secret_value(), base_url


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
                value = value.strip().strip('"').strip("'")
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    for env_name, field_name in (
        ("OPENAI_API_KEY", "openai_api_key"),
        ("OPENROUTER_API_KEY", "openrouter_api_key"),
        ("ANTHROPIC_API_KEY", "anthropic_api_key"),
        ("OVH_AI_TOKEN", "ovh_ai_token"),
    ):
        value = os.environ.get(env_name, "")
        if value:
            yaml_data[field_name] = value

    if "inference" not in yaml_data or yaml_data["inference"] is None:
        yaml_data["inference"] = {}
    inference = yaml_data["inference"]

    vision_model = os.environ.get("VISION_MODEL", "")
    if vision_model and not inference.get("model"):
        inference["model"] = vision_model

    if os.environ.get("OVH_AI_TOKEN") and not inference.get("model"):
        inference["model"] = OVHCLOUD_MODEL
