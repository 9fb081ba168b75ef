# ============================================================================
# src/medical_docintel/core/config.py
# ============================================================================
"""
Centralized Configuration Management

Loads configuration from environment variables (.env file) into the typed
settings classes and bundles them into one PipelineConfig. The config is
built once at process start and handed to build_pipeline(); components
never read the environment themselves.

Usage:
    from medical_docintel.core.config import load_config

    config = load_config()
    print(config.worker.WORKER_CONCURRENCY)
"""

from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from functools import lru_cache
import logging

from dotenv import load_dotenv

from ..config import (
    OcrSettings,
    LLMSettings,
    ExtractionSettings,
    WorkerSettings,
    LoggingSettings,
)

logger = logging.getLogger(__name__)


def _load_dotenv(env_file: Optional[Path] = None) -> bool:
    """Load .env file if it exists. Explicit path wins over the search."""
    if env_file is not None:
        if env_file.exists():
            load_dotenv(env_file)
            return True
        logger.warning(f"Env file not found: {env_file}")
        return False

    # Project root (…/src/medical_docintel/core/config.py -> root)
    root_env = Path(__file__).parent.parent.parent.parent / '.env'
    if root_env.exists():
        load_dotenv(root_env)
        return True

    cwd_env = Path.cwd() / '.env'
    if cwd_env.exists():
        load_dotenv(cwd_env)
        return True

    return False


@dataclass
class PipelineConfig:
    """All settings the pipeline needs, grouped by concern."""
    ocr: OcrSettings = field(default_factory=OcrSettings)
    llm: LLMSettings = field(default_factory=LLMSettings)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    worker: WorkerSettings = field(default_factory=WorkerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def to_dict(self) -> Dict[str, Any]:
        """Settings as a dict with secrets masked (for logs and /api/health)."""
        secret_markers = ("KEY", "SECRET", "REDIS_URL")
        result: Dict[str, Any] = {}
        for name in ("ocr", "llm", "extraction", "worker", "logging"):
            section = getattr(self, name).model_dump(mode="json")
            result[name] = {
                key: ("***" if value and any(m in key for m in secret_markers) else value)
                for key, value in section.items()
            }
        return result


def load_config(env_file: Optional[Path] = None) -> PipelineConfig:
    """Load .env and build a fresh PipelineConfig."""
    _load_dotenv(env_file)
    return PipelineConfig()


@lru_cache(maxsize=1)
def get_config() -> PipelineConfig:
    """
    Process-wide config, built on first call.

    Entry points (CLI, API) call this once and pass the result down.
    """
    return load_config()


def reload_config() -> PipelineConfig:
    """Drop the cached config and rebuild it from the environment."""
    get_config.cache_clear()
    return get_config()
