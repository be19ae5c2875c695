# nexus/config.py
from __future__ import annotations

import os
from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = Path(BASE_DIR) / ".env"
DEFAULT_DATA_DIR = BASE_DIR / "data"

# Load .env
load_dotenv(ENV_PATH)


class ServiceConfigs(BaseSettings):
    """Runtime settings for storage locations and LLM call limits."""

    # ====================================
    # Storage
    # ====================================
    data_dir: Path = Path(os.getenv("NEXUS_DATA_DIR", str(DEFAULT_DATA_DIR)))

    # ====================================
    # LLM call limits
    # ====================================
    analysis_timeout: float = float(os.getenv("ANALYSIS_TIMEOUT", 600))
    test_timeout: float = float(os.getenv("TEST_TIMEOUT", 120))
    analysis_max_tokens: int = int(os.getenv("ANALYSIS_MAX_TOKENS", 8000))
    stream_max_tokens: int = int(os.getenv("STREAM_MAX_TOKENS", 4000))
    stream_temperature: float = float(os.getenv("STREAM_TEMPERATURE", 0.7))
    test_max_tokens: int = int(os.getenv("TEST_MAX_TOKENS", 1000))

    # ====================================
    # Local Ollama discovery
    # ====================================
    ollama_tags_url: str = os.getenv(
        "OLLAMA_TAGS_URL", "http://localhost:11434/api/tags"
    )
    ollama_timeout: float = float(os.getenv("OLLAMA_TIMEOUT", 10))

    # ====================================
    # Server
    # ====================================
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", 3001))
    app_env: str = os.getenv("APP_ENV", "development")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH), env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def models_file(self) -> Path:
        return self.data_dir / "models.json"

    @property
    def reports_dir(self) -> Path:
        return self.data_dir / "reports"


class BaseConfig:
    """Base configuration class for Quart."""

    # ====================
    # App Config
    # ====================
    ENV = os.getenv("APP_ENV", "development")
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-secret-key")
    DEBUG = False
    TESTING = False

    # ====================
    # Logger Config
    # ====================
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv(
        "LOG_FORMAT", "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"
    )
    LOG_RETENTION = int(os.getenv("LOG_RETENTION", 30))
    LOG_MODE = os.getenv("LOG_MODE", "file")  # file | stdout | socket
    LOG_CONSOLE = os.getenv("LOG_CONSOLE", "true").lower() == "true"

    JSON_SORT_KEYS = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"


class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    ENV = "testing"
    LOG_MODE = "stdout"


class ProductionConfig(BaseConfig):
    DEBUG = False
    ENV = "production"


config_map = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[BaseConfig]:
    """Return the configuration class corresponding to the given environment."""
    if not env:
        env = os.getenv("APP_ENV", "default")
    return config_map.get(env, config_map["default"])
