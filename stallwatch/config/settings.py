"""
Pipeline settings loaded from an optional YAML file over built-in defaults.

Lookup order for the settings file:
    1. explicit ``path`` argument
    2. ``STALLWATCH_CONFIG`` environment variable
    3. ``config/pipeline.yaml`` relative to the working directory

Example config/pipeline.yaml:

    retry:
      max_retries: 2
      initial_backoff_seconds: 1
    max_workers: 8
    source_timeout_seconds: 30
    upload_dir: /srv/uploads
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/pipeline.yaml"
CONFIG_ENV_VAR = "STALLWATCH_CONFIG"

# Default retry configuration (can be overridden by config/pipeline.yaml)
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF_SECONDS = 2
DEFAULT_BACKOFF_MULTIPLIER = 2

DEFAULT_MAX_WORKERS = 4
DEFAULT_SOURCE_TIMEOUT_SECONDS = 60.0
DEFAULT_HISTORY_LIMIT = 10

# Request timeout (connect, read) in seconds
DEFAULT_REQUEST_TIMEOUT = (10, 30)


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff_seconds: float = DEFAULT_INITIAL_BACKOFF_SECONDS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER


@dataclass(frozen=True)
class PipelineConfig:
    """Runtime settings shared by fetchers, orchestrator and analyzer."""
    retry: RetryConfig = field(default_factory=RetryConfig)
    max_workers: int = DEFAULT_MAX_WORKERS
    source_timeout_seconds: float = DEFAULT_SOURCE_TIMEOUT_SECONDS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    request_timeout: Tuple[float, float] = DEFAULT_REQUEST_TIMEOUT
    upload_dir: str = "data/uploads"
    manual_dir: str = "data/manual"


def _resolve_config_path(path: Optional[str]) -> Optional[Path]:
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path)
    default = Path(DEFAULT_CONFIG_PATH)
    return default if default.exists() else None


def load_raw_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the settings YAML as a plain dict.

    Returns:
        Config dict, or empty dict if no settings file is present

    Raises:
        ConfigurationError: If an explicitly named file is missing or not a mapping
    """
    config_path = _resolve_config_path(path)
    if config_path is None:
        return {}

    if not config_path.exists():
        raise ConfigurationError(f"Settings file not found: {config_path}")

    with open(config_path, 'r') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {config_path} must contain a mapping")

    logger.debug(f"Loaded pipeline settings from {config_path}")
    return data


def load_pipeline_config(path: Optional[str] = None) -> PipelineConfig:
    """
    Build a PipelineConfig, preferring values from the settings file over defaults.

    Args:
        path: Optional explicit settings file path

    Returns:
        PipelineConfig
    """
    raw = load_raw_config(path)
    retry_raw = raw.get('retry', {}) or {}

    retry = RetryConfig(
        max_retries=int(retry_raw.get('max_retries', DEFAULT_MAX_RETRIES)),
        initial_backoff_seconds=float(retry_raw.get('initial_backoff_seconds', DEFAULT_INITIAL_BACKOFF_SECONDS)),
        backoff_multiplier=float(retry_raw.get('backoff_multiplier', DEFAULT_BACKOFF_MULTIPLIER)),
    )
    if retry.max_retries < 1:
        raise ConfigurationError("retry.max_retries must be at least 1")

    max_workers = int(raw.get('max_workers', DEFAULT_MAX_WORKERS))
    if max_workers < 1:
        raise ConfigurationError("max_workers must be at least 1")

    request_timeout = raw.get('request_timeout', DEFAULT_REQUEST_TIMEOUT)
    if isinstance(request_timeout, (int, float)):
        request_timeout = (float(request_timeout), float(request_timeout))

    return PipelineConfig(
        retry=retry,
        max_workers=max_workers,
        source_timeout_seconds=float(raw.get('source_timeout_seconds', DEFAULT_SOURCE_TIMEOUT_SECONDS)),
        history_limit=int(raw.get('history_limit', DEFAULT_HISTORY_LIMIT)),
        request_timeout=tuple(request_timeout),
        upload_dir=str(raw.get('upload_dir', "data/uploads")),
        manual_dir=str(raw.get('manual_dir', "data/manual")),
    )
