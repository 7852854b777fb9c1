"""
taskgate: coordination core for concurrent work tracking.

Enforces a role-based life-cycle on work items, gates progress on unmet
dependencies, serializes mutations per entity across racing sessions,
and ranks unblocked work for "do next" queries.

Example:
    from taskgate import build_in_memory_engine

    engine = build_in_memory_engine()
    a = engine.create_item("session-1", "Write parser", priority="high")
    b = engine.create_item("session-1", "Write docs")
    engine.add_dependency(a.id, b.id, "session-1")

    engine.is_blocked(b.id)                                   # True
    engine.perform_role_transition(a.id, "start", "session-1")
    engine.perform_role_transition(a.id, "complete", "session-1")
    engine.recommend_next(limit=5).recommendations            # (b,)
"""

# Application layer (orchestration)
from taskgate.application.config import EngineConfig, LockPolicy
from taskgate.application.engine import WorkflowEngine

# Domain exceptions
from taskgate.domain.exceptions import (
    CyclicDependency,
    DatabaseError,
    DependencyBlocked,
    EntityLocked,
    InvalidTransition,
    NotFound,
    UnknownTrigger,
    ValidationError,
    VersionConflict,
    WorkflowError,
)

# Domain interfaces (for custom repository implementations)
from taskgate.domain.interfaces import (
    DependencyRepositoryInterface,
    RoleTransitionRepositoryInterface,
    WorkItemRepositoryInterface,
)
from taskgate.domain.models import (
    BlockedItem,
    BlockerInfo,
    CascadeEvent,
    Dependency,
    DependencyType,
    EntityType,
    ItemScope,
    Priority,
    Recommendation,
    Role,
    RoleTransition,
    TransitionOutcome,
    TransitionResult,
    TransitionStatus,
    Trigger,
    WorkItem,
    WorkSession,
    is_at_or_beyond,
)

# Infrastructure (explicit import encouraged for dependency injection)
from taskgate.infrastructure.factory import (
    build_filesystem_engine,
    build_in_memory_engine,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Application
    "WorkflowEngine",
    "EngineConfig",
    "LockPolicy",
    # Wiring
    "build_in_memory_engine",
    "build_filesystem_engine",
    # Models
    "Role",
    "Priority",
    "Trigger",
    "EntityType",
    "DependencyType",
    "WorkItem",
    "RoleTransition",
    "Dependency",
    "BlockerInfo",
    "BlockedItem",
    "ItemScope",
    "Recommendation",
    "TransitionOutcome",
    "CascadeEvent",
    "TransitionStatus",
    "TransitionResult",
    "WorkSession",
    "is_at_or_beyond",
    # Interfaces
    "WorkItemRepositoryInterface",
    "DependencyRepositoryInterface",
    "RoleTransitionRepositoryInterface",
    # Exceptions
    "WorkflowError",
    "ValidationError",
    "CyclicDependency",
    "UnknownTrigger",
    "InvalidTransition",
    "DependencyBlocked",
    "EntityLocked",
    "VersionConflict",
    "NotFound",
    "DatabaseError",
]
