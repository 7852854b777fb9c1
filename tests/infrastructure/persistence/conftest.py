"""Repository fixtures parametrized over every storage backend."""

import pytest

from taskgate.infrastructure.persistence.filesystem import (
    FilesystemDependencyRepository,
    FilesystemRoleTransitionRepository,
    FilesystemWorkItemRepository,
)
from taskgate.infrastructure.persistence.memory import (
    InMemoryDependencyRepository,
    InMemoryRoleTransitionRepository,
    InMemoryWorkItemRepository,
)

BACKENDS = ["memory", "filesystem"]


@pytest.fixture(params=BACKENDS)
def item_repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryWorkItemRepository()
    return FilesystemWorkItemRepository(tmp_path / "store")


@pytest.fixture(params=BACKENDS)
def dependency_repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryDependencyRepository()
    return FilesystemDependencyRepository(tmp_path / "store")


@pytest.fixture(params=BACKENDS)
def transition_repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryRoleTransitionRepository()
    return FilesystemRoleTransitionRepository(tmp_path / "store")
