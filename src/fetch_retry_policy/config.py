"""Retry policy configuration loading.

Reads the ``connection.retry`` section from a flat dotted key-value source
or from YAML files selected by APP_ENV, validates it, and builds a
RetryPolicy.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import PolicyConfigurationError
from .policy import (
    DEFAULT_RETRYABLE_ERROR_CATEGORIES,
    DEFAULT_RETRYABLE_STATUS_CODES,
    RetryPolicyBuilder,
    parse_category,
    parse_strategy,
)
from .types import RetryPolicy

logger = logging.getLogger(__name__)

RETRY_KEY_PREFIX = "connection.retry."


class RetrySettings(BaseModel):
    """Validated ``connection.retry`` section."""

    model_config = ConfigDict(extra="ignore")

    max_retries: int = Field(default=3, ge=0)
    initial_delay_ms: float = Field(default=1000.0, gt=0)
    max_delay_ms: float = Field(default=30000.0, gt=0)
    backoff_strategy: str = "EXPONENTIAL"
    retryable_status_codes: List[int] = Field(
        default_factory=lambda: sorted(DEFAULT_RETRYABLE_STATUS_CODES)
    )
    retryable_error_codes: List[str] = Field(
        default_factory=lambda: sorted(c.value for c in DEFAULT_RETRYABLE_ERROR_CATEGORIES)
    )
    error_specific_backoff: Dict[str, str] = Field(default_factory=dict)

    @field_validator("retryable_status_codes", "retryable_error_codes", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        # properties-style sources carry lists as "429,503"
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def to_policy(self) -> RetryPolicy:
        """Build an immutable RetryPolicy from these settings."""
        builder = (
            RetryPolicyBuilder()
            .max_retries(self.max_retries)
            .initial_delay_ms(self.initial_delay_ms)
            .max_delay_ms(self.max_delay_ms)
            .backoff_strategy(parse_strategy(self.backoff_strategy))
            .retryable_status_codes(self.retryable_status_codes)
            .retryable_error_codes([parse_category(c) for c in self.retryable_error_codes])
        )
        for category, strategy in self.error_specific_backoff.items():
            builder.error_specific_backoff(category, strategy)
        return builder.build()


def flatten_config(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Flatten nested mappings into dotted keys.

    ``error_specific_backoff`` is kept as a mapping since its keys are data,
    not config paths.
    """
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping) and key != "error_specific_backoff":
            flat.update(flatten_config(value, f"{path}."))
        else:
            flat[path] = value
    return flat


def retry_settings_from_config(data: Mapping[str, Any]) -> RetrySettings:
    """
    Validate the retry section of a flat or nested config mapping.

    Args:
        data: Either flat dotted keys (``connection.retry.max_retries``) or
            a nested dict as loaded from YAML

    Returns:
        Validated RetrySettings, defaults filling missing keys

    Raises:
        PolicyConfigurationError: If a value fails validation
    """
    flat = flatten_config(data)
    section = {
        key[len(RETRY_KEY_PREFIX):]: value
        for key, value in flat.items()
        if key.startswith(RETRY_KEY_PREFIX)
    }
    # flattening splits error_specific_backoff written as dotted keys
    overrides = {
        key.split(".", 1)[1]: value
        for key, value in section.items()
        if key.startswith("error_specific_backoff.")
    }
    section = {k: v for k, v in section.items() if not k.startswith("error_specific_backoff.")}
    if overrides:
        section.setdefault("error_specific_backoff", {}).update(overrides)

    logger.debug(f"Retry config keys: {sorted(section)}")
    try:
        return RetrySettings.model_validate(section)
    except ValidationError as e:
        raise PolicyConfigurationError(f"Invalid retry configuration: {e}") from e


def policy_from_config(data: Mapping[str, Any]) -> RetryPolicy:
    """Build a RetryPolicy from a flat or nested config mapping."""
    return retry_settings_from_config(data).to_policy()


def _find_config_path(base_path: Path, app_env: str) -> Path:
    """Find the configuration file path based on APP_ENV."""
    env_specific = base_path / f"retry.{app_env}.yaml"
    if env_specific.exists():
        logger.debug(f"Using environment-specific config: {env_specific}")
        return env_specific

    default = base_path / "retry.yaml"
    if default.exists():
        logger.debug(f"Using default config: {default}")
        return default

    raise PolicyConfigurationError(
        f"No config file found. Tried: {env_specific}, {default}"
    )


def load_retry_policy(config_dir: str, app_env: Optional[str] = None) -> RetryPolicy:
    """
    Load a retry policy from a YAML file.

    Args:
        config_dir: Path to the configuration directory
        app_env: Environment name (default: from APP_ENV env var or 'dev')

    Returns:
        The built RetryPolicy

    Raises:
        PolicyConfigurationError: If no file is found, the YAML is invalid,
            or the values fail validation
    """
    env = app_env or os.environ.get("APP_ENV", "dev")
    logger.info(f"Loading retry config for APP_ENV={env}")

    path = Path(config_dir)
    if not path.exists():
        raise PolicyConfigurationError(f"Config directory does not exist: {path}")

    config_path = _find_config_path(path, env)
    try:
        raw_data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise PolicyConfigurationError(f"YAML parsing error in {config_path}: {e}") from e

    if not isinstance(raw_data, Mapping):
        raise PolicyConfigurationError(f"Expected a mapping in {config_path}")

    policy = policy_from_config(raw_data)
    logger.info(f"Loaded retry policy from: {config_path}")
    return policy
