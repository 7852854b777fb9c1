"""
Persistence adapters for work items, dependencies and the audit log.
"""

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

__all__ = [
    "InMemoryWorkItemRepository",
    "InMemoryDependencyRepository",
    "InMemoryRoleTransitionRepository",
    "FilesystemWorkItemRepository",
    "FilesystemDependencyRepository",
    "FilesystemRoleTransitionRepository",
]
