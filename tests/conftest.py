"""Pytest configuration and fixtures for Weft tests."""

import pytest

from weft import (
    DebugController,
    EngineConfig,
    EventEmitter,
    Executor,
    GlobalStore,
    MemoryBackend,
    NodeRegistry,
)


@pytest.fixture
def registry():
    """Create a fresh node registry."""
    return NodeRegistry()


@pytest.fixture
def store():
    """Create an empty global store."""
    return GlobalStore()


@pytest.fixture
def backend():
    """Create an in-memory backend for testing."""
    return MemoryBackend()


@pytest.fixture
def events():
    """Create an event emitter that records every event."""
    emitter = EventEmitter()
    emitter.received = []

    async def record(event):
        emitter.received.append(event)

    emitter.on(record)
    return emitter


@pytest.fixture
def debugger():
    """Create a debug controller with no breakpoints."""
    return DebugController()


@pytest.fixture
def executor(registry, events, debugger):
    """Create an executor with default limits."""
    return Executor(
        registry=registry,
        config=EngineConfig(),
        event_emitter=events,
        debugger=debugger,
    )
