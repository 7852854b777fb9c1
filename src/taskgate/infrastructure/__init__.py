"""
Infrastructure layer for the work-coordination engine.

Contains adapters for external concerns (persistence, configuration files).
"""

from taskgate.infrastructure.config import ConfigurationError, load_engine_config
from taskgate.infrastructure.factory import (
    build_filesystem_engine,
    build_in_memory_engine,
)
from taskgate.infrastructure.persistence import (
    FilesystemDependencyRepository,
    FilesystemRoleTransitionRepository,
    FilesystemWorkItemRepository,
    InMemoryDependencyRepository,
    InMemoryRoleTransitionRepository,
    InMemoryWorkItemRepository,
)

__all__ = [
    # Persistence
    "InMemoryWorkItemRepository",
    "InMemoryDependencyRepository",
    "InMemoryRoleTransitionRepository",
    "FilesystemWorkItemRepository",
    "FilesystemDependencyRepository",
    "FilesystemRoleTransitionRepository",
    # Configuration
    "ConfigurationError",
    "load_engine_config",
    # Wiring
    "build_in_memory_engine",
    "build_filesystem_engine",
]
