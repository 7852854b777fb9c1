"""
Domain models for the work-coordination engine.

Pure data structures for work items, their role life-cycle, dependency
edges, audit records and lock/session bookkeeping. All models are
immutable (frozen dataclasses); updates produce new instances.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from taskgate.domain.exceptions import ValidationError

if TYPE_CHECKING:
    from taskgate.domain.exceptions import WorkflowError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# ROLES AND PRIORITY
# =============================================================================


class Role(str, Enum):
    """Canonical life-cycle stage of a work item."""

    QUEUE = "queue"
    WORK = "work"
    REVIEW = "review"
    BLOCKED = "blocked"  # Orthogonal to the progression order
    TERMINAL = "terminal"


# Total order of the non-blocked roles
PROGRESSION: tuple[Role, ...] = (Role.QUEUE, Role.WORK, Role.REVIEW, Role.TERMINAL)


def parse_role(value: "str | Role | None") -> Role | None:
    """Case-insensitive lookup; returns None for unknown names."""
    if value is None:
        return None
    if isinstance(value, Role):
        return value
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def is_at_or_beyond(role: Role, threshold: Role) -> bool:
    """
    True when role has reached threshold in the progression order.

    BLOCKED never satisfies a threshold, and BLOCKED is never a valid
    threshold either.
    """
    if role not in PROGRESSION or threshold not in PROGRESSION:
        return False
    return PROGRESSION.index(role) >= PROGRESSION.index(threshold)


def is_forward_progression(from_role: Role, to_role: Role) -> bool:
    """True for moves strictly forward along PROGRESSION (jumps included)."""
    if from_role not in PROGRESSION or to_role not in PROGRESSION:
        return False
    return PROGRESSION.index(to_role) > PROGRESSION.index(from_role)


class Priority(str, Enum):
    """Work item priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


def priority_rank(priority: Priority) -> int:
    """Sort rank: HIGH(0) < MEDIUM(1) < LOW(2)."""
    return _PRIORITY_RANK[priority]


def parse_priority(value: "str | Priority") -> Priority:
    if isinstance(value, Priority):
        return value
    try:
        return Priority(value.strip().lower())
    except ValueError as e:
        valid = ", ".join(p.value for p in Priority)
        raise ValidationError(
            f"Invalid priority '{value}'. Valid priorities: {valid}"
        ) from e


class Trigger(str, Enum):
    """Closed vocabulary of role-transition causes."""

    START = "start"
    COMPLETE = "complete"
    BLOCK = "block"
    HOLD = "hold"
    RESUME = "resume"
    CANCEL = "cancel"


class EntityType(str, Enum):
    """Entity kinds that can be locked."""

    WORK_ITEM = "work_item"
    PROJECT = "project"
    FEATURE = "feature"
    TASK = "task"
    DEPENDENCY = "dependency"


# =============================================================================
# WORK ITEM
# =============================================================================

MAX_TITLE_LENGTH = 500
MAX_SUMMARY_LENGTH = 2000
MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 10

_TAG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@dataclass(frozen=True)
class WorkItem:
    """
    A unit of work with a role-based life-cycle.

    Validation runs on construction, so every instance in circulation
    satisfies the field invariants. `version` and `modified_at` are only
    advanced through taskgate.domain.mutation.
    """

    title: str
    id: str = field(default_factory=new_id)
    parent_id: str | None = None
    summary: str = ""
    role: Role = Role.QUEUE
    status_label: str | None = None
    previous_role: Role | None = None  # Restored by "resume"
    priority: Priority = Priority.MEDIUM
    complexity: int | None = None
    depth: int = 0
    tags: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime = field(default_factory=utcnow)
    role_changed_at: datetime = field(default_factory=utcnow)
    version: int = 1

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("Title must not be blank")
        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValidationError(
                f"Title must not exceed {MAX_TITLE_LENGTH} characters "
                f"(got {len(self.title)})"
            )
        if len(self.summary) > MAX_SUMMARY_LENGTH:
            raise ValidationError(
                f"Summary must not exceed {MAX_SUMMARY_LENGTH} characters "
                f"(got {len(self.summary)})"
            )
        if self.complexity is not None and not (
            MIN_COMPLEXITY <= self.complexity <= MAX_COMPLEXITY
        ):
            raise ValidationError(
                f"Complexity must be between {MIN_COMPLEXITY} and "
                f"{MAX_COMPLEXITY} (got {self.complexity})"
            )
        if self.depth < 0:
            raise ValidationError(f"Depth must not be negative (got {self.depth})")
        if self.parent_id is None and self.depth != 0:
            raise ValidationError("Root items must have depth 0")
        if self.parent_id is not None and self.depth < 1:
            raise ValidationError("Child items must have depth >= 1")
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValidationError("An item cannot be its own parent")
        invalid = [t for t in self.tags if not _TAG_PATTERN.match(t)]
        if invalid:
            raise ValidationError(
                f"Tags {invalid} are invalid: use lowercase letters, digits "
                "and single hyphens"
            )
        if self.version < 1:
            raise ValidationError(f"Version must be >= 1 (got {self.version})")

    @classmethod
    def create(
        cls,
        title: str,
        *,
        now: datetime | None = None,
        **fields: Any,
    ) -> "WorkItem":
        """Build a fresh QUEUE item with all three timestamps equal."""
        now = now or utcnow()
        return cls(
            title=title,
            created_at=now,
            modified_at=now,
            role_changed_at=now,
            **fields,
        )


@dataclass(frozen=True)
class RoleTransition:
    """Immutable audit record of one role change."""

    item_id: str
    from_role: Role
    to_role: Role
    trigger: Trigger
    transitioned_at: datetime
    from_status_label: str | None = None
    to_status_label: str | None = None
    summary: str | None = None
    transition_id: str = field(default_factory=new_id)


# =============================================================================
# DEPENDENCIES
# =============================================================================


class DependencyType(str, Enum):
    """Semantics of a dependency edge."""

    BLOCKS = "blocks"  # from blocks to
    IS_BLOCKED_BY = "is_blocked_by"  # from is blocked by to
    RELATES_TO = "relates_to"  # informational, never gates


@dataclass(frozen=True)
class Dependency:
    """Directed edge between two work items."""

    from_item_id: str
    to_item_id: str
    type: DependencyType = DependencyType.BLOCKS
    unblock_at: Role | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.from_item_id == self.to_item_id:
            raise ValidationError(
                "A dependency cannot reference the same item on both ends"
            )
        if self.type == DependencyType.RELATES_TO and self.unblock_at is not None:
            raise ValidationError(
                "RELATES_TO dependencies cannot have an unblock_at threshold"
            )
        if self.unblock_at is not None and self.unblock_at not in PROGRESSION:
            valid = ", ".join(r.value for r in PROGRESSION)
            raise ValidationError(f"unblock_at must be one of: {valid}")

    @property
    def is_blocking(self) -> bool:
        return self.type != DependencyType.RELATES_TO

    @property
    def blocker_id(self) -> str:
        """The prerequisite side of the edge."""
        if self.type == DependencyType.IS_BLOCKED_BY:
            return self.to_item_id
        return self.from_item_id

    @property
    def blocked_id(self) -> str:
        """The side that waits on the prerequisite."""
        if self.type == DependencyType.IS_BLOCKED_BY:
            return self.from_item_id
        return self.to_item_id

    def effective_unblock_role(self) -> Role | None:
        """Threshold the blocker must reach; None for RELATES_TO."""
        if not self.is_blocking:
            return None
        return self.unblock_at or Role.TERMINAL


@dataclass(frozen=True)
class BlockerInfo:
    """One unmet prerequisite of a work item."""

    item_id: str
    blocker_id: str
    dependency_id: str
    required_role: Role
    current_role: Role | None  # None when the blocker could not be resolved


@dataclass(frozen=True)
class BlockedItem:
    """A work item held back explicitly or by its prerequisites."""

    item: WorkItem
    block_type: str  # "explicit" or "dependency"
    blockers: tuple[BlockerInfo, ...] = ()


# =============================================================================
# QUERIES AND RESULTS
# =============================================================================


@dataclass(frozen=True)
class ItemScope:
    """
    Candidate filter for queries.

    parent_id restricts to direct children, or to the whole subtree when
    recursive is set. tags keeps items carrying at least one of the tags.
    """

    parent_id: str | None = None
    recursive: bool = False
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Recommendation:
    """Top-N "do next" items plus the size of the unblocked backlog."""

    recommendations: tuple[WorkItem, ...]
    total_candidates: int


@dataclass(frozen=True)
class CascadeEvent:
    """
    A parent whose children have all reached TERMINAL.

    Reported, not applied: the caller finishes the parent by sending
    trigger to it (after a start, if the parent is still in QUEUE).
    """

    item_id: str
    current_role: Role
    target_role: Role = Role.TERMINAL
    trigger: Trigger = Trigger.COMPLETE


@dataclass(frozen=True)
class TransitionOutcome:
    """Successful role change with its audit record."""

    item: WorkItem
    transition: RoleTransition
    previous_role: Role
    new_role: Role
    unblocked_items: tuple[WorkItem, ...] = ()
    cascade_events: tuple[CascadeEvent, ...] = ()


class TransitionStatus(Enum):
    """Outcome kind of a role transition request."""

    SUCCESS = "success"
    INVALID_TRANSITION = "invalid_transition"
    UNKNOWN_TRIGGER = "unknown_trigger"
    DEPENDENCY_BLOCKED = "dependency_blocked"
    ENTITY_LOCKED = "entity_locked"
    VERSION_CONFLICT = "version_conflict"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    DATABASE_ERROR = "database_error"


@dataclass(frozen=True)
class TransitionResult:
    """Typed result of WorkflowEngine.perform_role_transition."""

    status: TransitionStatus
    outcome: TransitionOutcome | None = None
    error: "WorkflowError | None" = None

    @property
    def success(self) -> bool:
        return self.status == TransitionStatus.SUCCESS

    @property
    def item(self) -> WorkItem | None:
        return self.outcome.item if self.outcome else None


# =============================================================================
# LOCKS AND SESSIONS
# =============================================================================


@dataclass(frozen=True)
class LockKey:
    """Identity of a lockable entity."""

    entity_type: str
    entity_id: str

    def __str__(self) -> str:
        return f"{self.entity_type}:{self.entity_id}"


@dataclass(frozen=True)
class LockHandle:
    """Proof of exclusive, session-scoped ownership of one entity."""

    key: LockKey
    session_id: str
    token: str
    acquired_at: datetime


@dataclass(frozen=True)
class WorkSession:
    """Caller-scoped identity owning locks and a project context."""

    session_id: str
    client_id: str
    started_at: datetime
    last_activity: datetime
    project_id: str | None = None

    def __post_init__(self) -> None:
        if not self.session_id or not self.session_id.strip():
            raise ValidationError("Session ID must not be empty")
        if not self.client_id or not self.client_id.strip():
            raise ValidationError("Client ID must not be empty")

    def is_inactive(self, now: datetime, timeout_seconds: float) -> bool:
        return (now - self.last_activity).total_seconds() > timeout_seconds
