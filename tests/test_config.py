"""Tests for engine configuration."""

import pytest

from weft import EngineConfig, Executor
from weft.utils.config import MAX_CYCLE_DEPTH, MAX_EXECUTION_STEPS, get_config, load_env
from weft.utils.errors import ConfigurationError

ENV_KEYS = [
    "WEFT_MAX_CYCLE_DEPTH",
    "WEFT_MAX_EXECUTION_STEPS",
    "WEFT_DEFAULT_MAX_ITERATIONS",
    "WEFT_VALIDATE_CONNECTIONS",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every WEFT_* variable for the test."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    """Test unset variables give the built-in limits."""
    config = EngineConfig.from_env()

    assert config.max_cycle_depth == MAX_CYCLE_DEPTH == 10
    assert config.max_execution_steps == MAX_EXECUTION_STEPS == 1000
    assert config.default_max_iterations == 100
    assert config.validate_connections is True


def test_from_env(clean_env):
    """Test limits are read from the environment."""
    clean_env.setenv("WEFT_MAX_CYCLE_DEPTH", "4")
    clean_env.setenv("WEFT_MAX_EXECUTION_STEPS", "50")
    clean_env.setenv("WEFT_DEFAULT_MAX_ITERATIONS", "7")
    clean_env.setenv("WEFT_VALIDATE_CONNECTIONS", "false")

    config = EngineConfig.from_env()

    assert config.max_cycle_depth == 4
    assert config.max_execution_steps == 50
    assert config.default_max_iterations == 7
    assert config.validate_connections is False


@pytest.mark.parametrize("raw", ["abc", "0", "-3"])
def test_invalid_limit(clean_env, raw):
    """Test non-integer and non-positive limits are rejected."""
    clean_env.setenv("WEFT_MAX_EXECUTION_STEPS", raw)

    with pytest.raises(ConfigurationError):
        EngineConfig.from_env()


def test_load_env_file(clean_env, tmp_path):
    """Test variables can be loaded from a .env file."""
    env_file = tmp_path / ".env"
    env_file.write_text("WEFT_MAX_CYCLE_DEPTH=6\n")
    # Record the variable so monkeypatch removes what load_env sets.
    clean_env.setenv("WEFT_MAX_CYCLE_DEPTH", "1")
    clean_env.delenv("WEFT_MAX_CYCLE_DEPTH")

    load_env(str(env_file))

    assert get_config("WEFT_MAX_CYCLE_DEPTH") == "6"
    assert EngineConfig.from_env().max_cycle_depth == 6


def test_executor_applies_config():
    """Test the executor passes its limits to every pass."""
    executor = Executor(config=EngineConfig(max_cycle_depth=3, max_execution_steps=9))

    meta = executor._new_meta(None)

    assert meta.max_cycle_depth == 3
    assert meta.max_steps == 9
