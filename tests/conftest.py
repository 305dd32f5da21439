"""Test configuration and fixtures."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from workflow_builder.builder.models import BuilderSession
from workflow_builder.builder.service import BuilderService
from workflow_builder.builder.store import SessionStore
from workflow_builder.cli.logging import JsonFormatter


@pytest.fixture
def builder_dir(tmp_path: Path) -> Path:
    """Provide a temporary builder directory."""
    return tmp_path / "config" / "builder"


@pytest.fixture
def store(builder_dir: Path) -> SessionStore:
    """Provide a session store rooted in a temporary directory."""
    return SessionStore(builder_dir)


@pytest.fixture
def service(store: SessionStore) -> BuilderService:
    """Provide a builder service backed by the temporary store."""
    return BuilderService(store)


@pytest.fixture
def session(store: SessionStore) -> BuilderSession:
    """Provide a fresh, unsaved DRAFT session."""
    return store.create_session("wf1", "test workflow")


@pytest.fixture(autouse=True)
def _isolate_root_logger() -> Iterator[None]:
    """Undo `configure_logging` after each test so handlers never outlive captured streams."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
    root.setLevel(level)
