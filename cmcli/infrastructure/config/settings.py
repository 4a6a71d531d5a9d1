"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.cmcli/config.yaml). Typed accessors at the bottom
turn raw values into RateLimits and RetryPolicy objects.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from cmcli.domain.models.common import ApiKey
from cmcli.domain.models.dispatch import DEFAULT_INITIAL_BACKOFF_MS, DEFAULT_MAX_RETRIES, RetryPolicy
from cmcli.domain.models.rate_limit import (
    DEFAULT_PER_DAY, DEFAULT_PER_MINUTE, DEFAULT_PER_MONTH, RateLimits,
)

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".cmcli"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_MIN_REQUEST_INTERVAL_SECONDS = 0.25

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('rate_limit.per_minute')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides
    2. Environment Variables (including those loaded from .env)
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False keeps real environment variables on top
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def _env_key(key: str) -> str:
    return key.upper().replace('.', '_')


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable ('rate_limit.per_minute' -> RATE_LIMIT_PER_MINUTE)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_key(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Typed accessors ---

def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def get_api_key() -> Optional[ApiKey]:
    """Returns the CoinMarketCap API key (CMC_API_KEY / cmc.api_key)."""
    key = get_config('cmc.api_key')
    return ApiKey(str(key)) if key else None


def use_sandbox() -> bool:
    """Whether requests go to the sandbox host (CMC_SANDBOX / cmc.sandbox)."""
    return _as_bool(get_config('cmc.sandbox', False))


def get_rate_limits() -> RateLimits:
    """Builds RateLimits from rate_limit.per_minute/per_day/per_month."""
    return RateLimits(
        per_minute=int(get_config('rate_limit.per_minute', DEFAULT_PER_MINUTE)),
        per_day=int(get_config('rate_limit.per_day', DEFAULT_PER_DAY)),
        per_month=int(get_config('rate_limit.per_month', DEFAULT_PER_MONTH)),
    )


def get_retry_policy() -> RetryPolicy:
    """Builds RetryPolicy from retry.max_retries/initial_backoff_ms.

    Raises:
        ValueError: If a configured value is out of range.
    """
    return RetryPolicy(
        max_retries=int(get_config('retry.max_retries', DEFAULT_MAX_RETRIES)),
        initial_backoff_ms=int(get_config('retry.initial_backoff_ms', DEFAULT_INITIAL_BACKOFF_MS)),
    )


def get_timeout_seconds() -> float:
    return float(get_config('http.timeout_seconds', DEFAULT_TIMEOUT_SECONDS))


def get_min_request_interval_seconds() -> float:
    return float(get_config('http.min_request_interval_seconds', DEFAULT_MIN_REQUEST_INTERVAL_SECONDS))


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
