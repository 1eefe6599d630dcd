"""Shared fixtures: manual clock, record store, and a factory wired to both."""

from __future__ import annotations

import pytest

from toolguard.foundation.config import clear_settings_cache
from toolguard.foundation.testing import FakeClock
from toolguard.runtime.commands import CommandQueue, InMemoryRecordStore
from toolguard.runtime.observability import MemoryRenderer, configure_logging
from toolguard.runtime.pipeline import PipelineConfig, ToolFactory


@pytest.fixture(autouse=True)
def quiet_logging() -> MemoryRenderer:
    """Capture structured log output instead of printing it."""
    renderer = MemoryRenderer()
    configure_logging(renderer=renderer, level="DEBUG")
    yield renderer
    configure_logging(format="none")


@pytest.fixture(autouse=True)
def fresh_settings() -> object:
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def queue() -> CommandQueue:
    return CommandQueue()


@pytest.fixture
def factory(clock: FakeClock, store: InMemoryRecordStore, queue: CommandQueue) -> ToolFactory:
    """Factory with documented defaults, no real waiting between retries."""
    return ToolFactory(
        services={"store": store, "command_queue": queue},
        config=PipelineConfig(),
        sleep=clock.sleep,
        clock=clock,
    )
