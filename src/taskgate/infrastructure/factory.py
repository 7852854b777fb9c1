"""Ready-wired engines over the bundled repositories."""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from taskgate.application.config import EngineConfig
from taskgate.application.engine import WorkflowEngine
from taskgate.domain.models import utcnow
from taskgate.infrastructure.persistence import (
    FilesystemDependencyRepository,
    FilesystemRoleTransitionRepository,
    FilesystemWorkItemRepository,
    InMemoryDependencyRepository,
    InMemoryRoleTransitionRepository,
    InMemoryWorkItemRepository,
)


def build_in_memory_engine(
    config: EngineConfig | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> WorkflowEngine:
    """Engine with ephemeral state, for tests and single-process use."""
    return WorkflowEngine(
        InMemoryWorkItemRepository(),
        InMemoryDependencyRepository(),
        InMemoryRoleTransitionRepository(),
        config=config,
        clock=clock,
    )


def build_filesystem_engine(
    base_dir: str | Path,
    config: EngineConfig | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> WorkflowEngine:
    """Engine persisting items, edges and the audit log under base_dir."""
    return WorkflowEngine(
        FilesystemWorkItemRepository(base_dir),
        FilesystemDependencyRepository(base_dir),
        FilesystemRoleTransitionRepository(base_dir),
        config=config,
        clock=clock,
    )
