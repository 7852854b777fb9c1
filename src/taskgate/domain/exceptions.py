"""
Domain exceptions for the work-coordination engine.

Each error kind carries a stable `code` and a `retriable` flag so the
tool layer can tell "retry shortly" apart from "this request is invalid".
"""

from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskgate.domain.models import BlockerInfo, Role, Trigger


class WorkflowError(Exception):
    """Base class for every failure the core reports to its callers."""

    code = "WORKFLOW_ERROR"
    retriable = False


class ValidationError(WorkflowError):
    """A value violates a domain invariant."""

    code = "VALIDATION_ERROR"


class CyclicDependency(ValidationError):
    """Adding the edge would close a cycle in the blocker graph."""

    code = "CYCLIC_DEPENDENCY"

    def __init__(self, from_item_id: str, to_item_id: str):
        super().__init__(
            f"Dependency {from_item_id} -> {to_item_id} would create a cycle"
        )
        self.from_item_id = from_item_id
        self.to_item_id = to_item_id


class UnknownTrigger(WorkflowError):
    """Trigger is not part of the closed vocabulary."""

    code = "UNKNOWN_TRIGGER"

    def __init__(self, trigger: str, valid: Iterable[str]):
        self.trigger = trigger
        self.valid_triggers = tuple(valid)
        super().__init__(
            f"Unknown trigger: '{trigger}'. "
            f"Valid triggers: {', '.join(self.valid_triggers)}"
        )


class InvalidTransition(WorkflowError):
    """
    Trigger is not legal from the item's current role.

    The item is left unmodified and no audit record is written.
    """

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        current_role: "Role",
        trigger: "Trigger",
        legal_triggers: Iterable["Trigger"],
        reason: str = "",
    ):
        self.current_role = current_role
        self.trigger = trigger
        self.legal_triggers = tuple(legal_triggers)
        self.reason = reason
        legal = ", ".join(t.value for t in self.legal_triggers) or "(none)"
        message = (
            f"Cannot {trigger.value} from role '{current_role.value}'. "
            f"Legal triggers: {legal}"
        )
        if reason:
            message = f"{message}. {reason}"
        super().__init__(message)


class DependencyBlocked(WorkflowError):
    """Forward progress refused while prerequisites are unmet."""

    code = "DEPENDENCY_BLOCKED"
    retriable = True

    def __init__(self, item_id: str, blockers: Iterable["BlockerInfo"]):
        self.item_id = item_id
        self.blockers = tuple(blockers)
        super().__init__(
            f"Item {item_id} has {len(self.blockers)} blocking "
            "dependency(ies) not yet satisfied"
        )


class EntityLocked(WorkflowError):
    """Another session holds the entity lock; retry after a backoff."""

    code = "ENTITY_LOCKED"
    retriable = True

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        holder_session_id: str | None = None,
        acquired_at: datetime | None = None,
        waited_seconds: float = 0.0,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.holder_session_id = holder_session_id
        self.acquired_at = acquired_at
        self.waited_seconds = waited_seconds
        holder = f" held by session '{holder_session_id}'" if holder_session_id else ""
        super().__init__(
            f"{entity_type}:{entity_id} is locked{holder} "
            f"(waited {waited_seconds:.3f}s)"
        )


class VersionConflict(WorkflowError):
    """Write targeted a stale version; re-read and retry."""

    code = "VERSION_CONFLICT"
    retriable = True

    def __init__(self, item_id: str, expected_version: int, actual_version: int):
        self.item_id = item_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Item {item_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class NotFound(WorkflowError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class DatabaseError(WorkflowError):
    """Persistence collaborator failure."""

    code = "DATABASE_ERROR"
