"""Fixtures for command line tests."""

import logging

import pytest
from click.testing import CliRunner

from taskgate.infrastructure.factory import build_filesystem_engine


@pytest.fixture(autouse=True)
def restore_taskgate_logger():
    """setup_logging rewires the package logger; undo it after each test."""
    logger = logging.getLogger("taskgate")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def store(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def run(store):
    """Invoke the CLI against the temporary store."""
    from taskgate.cli.main import cli

    runner = CliRunner()

    def _run(*args: str, **kwargs):
        return runner.invoke(cli, ["--store", str(store), *args], **kwargs)

    return _run


@pytest.fixture
def engine(store):
    """An engine over the same store, for seeding and inspecting state."""
    return build_filesystem_engine(store)
