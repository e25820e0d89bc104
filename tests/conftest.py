"""Pytest configuration and fixtures for verishell tests."""

from __future__ import annotations

import tempfile
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
import pytest_asyncio

from verishell import (
    IsolationExecutor,
    LocalShell,
    MemoryActivityLog,
    OutcomeValidator,
    PipelineConfig,
    SafetyAnalyzer,
    Toolkit,
    ToolOrchestrator,
    ValidationCache,
    create_toolkit,
)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, millis: float) -> None:
        self.now += millis / 1000


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(prefix="verishell_test_") as tmp:
        yield Path(tmp)


@pytest.fixture
def analyzer() -> SafetyAnalyzer:
    """Create an analyzer with the standard rules."""
    return SafetyAnalyzer.standard()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def validator(clock: FakeClock) -> OutcomeValidator:
    """Create a validator with a private cache on a fake clock."""
    return OutcomeValidator(ValidationCache(clock=clock))


@pytest_asyncio.fixture
async def executor() -> AsyncGenerator[IsolationExecutor, None]:
    executor = IsolationExecutor()
    try:
        yield executor
    finally:
        await executor.close()


@pytest.fixture
def activity() -> MemoryActivityLog:
    return MemoryActivityLog()


@pytest_asyncio.fixture
async def orchestrator(
    validator: OutcomeValidator, activity: MemoryActivityLog
) -> AsyncGenerator[ToolOrchestrator, None]:
    """Create an orchestrator recording into an in-memory activity log."""
    orchestrator = ToolOrchestrator(
        validator=validator,
        config=PipelineConfig(max_time_millis=2_000),
        activity_log=activity,
    )
    try:
        yield orchestrator
    finally:
        await orchestrator.close()


@pytest_asyncio.fixture
async def shell(temp_dir: Path) -> AsyncGenerator[LocalShell, None]:
    """Create a LocalShell for testing."""
    # Create some test files
    (temp_dir / "test.txt").write_text("hello world")
    (temp_dir / "data.json").write_text('{"key": "value"}')

    shell = LocalShell(cwd=temp_dir)
    try:
        yield shell
    finally:
        await shell.close()


@pytest_asyncio.fixture
async def toolkit(temp_dir: Path, activity: MemoryActivityLog) -> AsyncGenerator[Toolkit, None]:
    """Create a Toolkit for testing."""
    (temp_dir / "test.txt").write_text("hello world")

    toolkit = create_toolkit(cwd=temp_dir, config=PipelineConfig(), activity_log=activity)
    try:
        yield toolkit
    finally:
        await toolkit.close()
