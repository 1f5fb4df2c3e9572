"""Utility functions and helpers."""

from weft.utils.config import EngineConfig, get_config, load_env
from weft.utils.errors import (
    ConfigurationError,
    CycleDetectedError,
    ExecutionCancelledError,
    GraphValidationError,
    InvalidInputTypeError,
    InvalidNodeTypeError,
    MissingInputError,
    NodeExecutionError,
    StepLimitExceededError,
    TargetNotFoundError,
    TerminalReason,
    WeftError,
)

__all__ = [
    "EngineConfig",
    "get_config",
    "load_env",
    "ConfigurationError",
    "CycleDetectedError",
    "ExecutionCancelledError",
    "GraphValidationError",
    "InvalidInputTypeError",
    "InvalidNodeTypeError",
    "MissingInputError",
    "NodeExecutionError",
    "StepLimitExceededError",
    "TargetNotFoundError",
    "TerminalReason",
    "WeftError",
]
