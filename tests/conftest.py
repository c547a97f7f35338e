"""
Shared pytest fixtures for dqm tests.

This module provides:
- A fake clock and a runner wired to it (no real sleeping)
- Settings pointing at a temporary resources directory
- A loaded content provider and its in-memory collaborators
- Upload events for the success and fail paths

Builders that are not fixtures live in ``tests._support``.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from dqm.core.settings import DqmSettings
from dqm.monitoring.events import UploadEvent
from dqm.monitoring.protocols import ProviderServices
from dqm.monitoring.providers import ContentProvider, load_provider
from dqm.orchestration import WorkflowRunner

from tests._support import (
    FAIL_KEY,
    INPUT_BUCKET,
    PROVIDER_PATH,
    SUCCESS_KEY,
    FakeClock,
    make_services,
    write_provider,
)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Undo any ``configure_logging`` call (e.g. from the CLI) after each test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runner(clock: FakeClock) -> WorkflowRunner:
    return WorkflowRunner(sleep=clock.sleep, clock=clock)


@pytest.fixture
def resources_dir(tmp_path: Path) -> Path:
    root = tmp_path / "resources"
    write_provider(root)
    return root


@pytest.fixture
def settings(resources_dir: Path) -> DqmSettings:
    return DqmSettings(
        _env_file=None,
        stage="dev",
        account_id="123456789012",
        input_bucket=INPUT_BUCKET,
        resources_dir=resources_dir,
        providers=[PROVIDER_PATH],
    )


@pytest.fixture
def provider(settings: DqmSettings) -> ContentProvider:
    return load_provider(PROVIDER_PATH, settings)


@pytest.fixture
def services(provider: ContentProvider) -> ProviderServices:
    return make_services(provider)


@pytest.fixture
def success_event() -> UploadEvent:
    return UploadEvent.for_object(INPUT_BUCKET, SUCCESS_KEY)


@pytest.fixture
def fail_event() -> UploadEvent:
    return UploadEvent.for_object(INPUT_BUCKET, FAIL_KEY)
