"""Configuration utilities for the execution engine."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from weft.utils.errors import ConfigurationError

MAX_CYCLE_DEPTH = 10
MAX_EXECUTION_STEPS = 1000
DEFAULT_MAX_ITERATIONS = 100


def load_env(env_file: Optional[str] = None) -> None:
    """Load environment variables from .env file.

    Args:
        env_file: Optional path to .env file. If not specified, searches
                 for .env in current and parent directories.

    Example:
        >>> from weft.utils.config import load_env, EngineConfig
        >>> load_env()
        >>> config = EngineConfig.from_env()
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()


def get_config(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get configuration value from environment.

    Args:
        key: Configuration key
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    return os.getenv(key, default)


def _get_positive_int(key: str, default: int) -> int:
    raw = get_config(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigurationError(f"{key} must be at least 1, got {value}")
    return value


@dataclass
class EngineConfig:
    """Limits and switches for the execution engine.

    Attributes:
        max_cycle_depth: Ceiling for nested data resolution depth
        max_execution_steps: Ceiling for node steps in one execution flow
        default_max_iterations: Loop bound used when an ITERATE node sets none
        validate_connections: Validate the root graph before every pass
    """

    max_cycle_depth: int = MAX_CYCLE_DEPTH
    max_execution_steps: int = MAX_EXECUTION_STEPS
    default_max_iterations: int = DEFAULT_MAX_ITERATIONS
    validate_connections: bool = True

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from ``WEFT_*`` environment variables.

        Raises:
            ConfigurationError: If a variable is set to an invalid value
        """
        validate = get_config("WEFT_VALIDATE_CONNECTIONS", "true")
        return cls(
            max_cycle_depth=_get_positive_int("WEFT_MAX_CYCLE_DEPTH", MAX_CYCLE_DEPTH),
            max_execution_steps=_get_positive_int(
                "WEFT_MAX_EXECUTION_STEPS", MAX_EXECUTION_STEPS
            ),
            default_max_iterations=_get_positive_int(
                "WEFT_DEFAULT_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS
            ),
            validate_connections=validate.strip().lower() not in ("0", "false", "no"),
        )
