"""Shared pytest fixtures for taskgate tests."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from taskgate.application.config import EngineConfig
from taskgate.application.engine import WorkflowEngine
from taskgate.domain.models import Dependency, DependencyType, Role, WorkItem
from taskgate.infrastructure.persistence.memory import (
    InMemoryDependencyRepository,
    InMemoryRoleTransitionRepository,
    InMemoryWorkItemRepository,
)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> ManualClock:
    """A frozen clock starting at 2025-01-01T00:00:00Z."""
    return ManualClock()


@pytest.fixture
def work_items() -> InMemoryWorkItemRepository:
    return InMemoryWorkItemRepository()


@pytest.fixture
def dependencies() -> InMemoryDependencyRepository:
    return InMemoryDependencyRepository()


@pytest.fixture
def transitions() -> InMemoryRoleTransitionRepository:
    return InMemoryRoleTransitionRepository()


@pytest.fixture
def engine(work_items, dependencies, transitions, clock) -> WorkflowEngine:
    """Engine over in-memory repositories with a manual clock."""
    return WorkflowEngine(
        work_items,
        dependencies,
        transitions,
        config=EngineConfig(lock_retry_window_seconds=0.05),
        clock=clock,
    )


@pytest.fixture
def make_item(work_items, clock) -> Callable[..., WorkItem]:
    """Store a work item directly in the repository and return it."""

    def _make(title: str = "Item", **fields) -> WorkItem:
        return work_items.create(WorkItem.create(title, now=clock(), **fields))

    return _make


@pytest.fixture
def link(dependencies) -> Callable[..., Dependency]:
    """Store a dependency edge directly in the repository and return it."""

    def _link(
        blocker: WorkItem,
        blocked: WorkItem,
        type: DependencyType = DependencyType.BLOCKS,
        unblock_at: Role | None = None,
    ) -> Dependency:
        if type == DependencyType.IS_BLOCKED_BY:
            edge = Dependency(blocked.id, blocker.id, type=type, unblock_at=unblock_at)
        else:
            edge = Dependency(blocker.id, blocked.id, type=type, unblock_at=unblock_at)
        return dependencies.create(edge)

    return _link
