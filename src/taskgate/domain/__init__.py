"""
Domain layer for the work-coordination engine.

Contains core business logic with no external dependencies.
"""

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
from taskgate.domain.interfaces import (
    DependencyRepositoryInterface,
    RoleTransitionRepositoryInterface,
    WorkItemRepositoryInterface,
)
from taskgate.domain.models import (
    PROGRESSION,
    BlockedItem,
    BlockerInfo,
    CascadeEvent,
    Dependency,
    DependencyType,
    EntityType,
    ItemScope,
    LockHandle,
    LockKey,
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
    is_forward_progression,
    parse_role,
    priority_rank,
)

__all__ = [
    # Models
    "PROGRESSION",
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
    "LockKey",
    "LockHandle",
    "WorkSession",
    "is_at_or_beyond",
    "is_forward_progression",
    "parse_role",
    "priority_rank",
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
