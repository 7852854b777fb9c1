"""
WorkflowEngine: facade over the coordination core.

Wires the lock coordinator, session registry, dependency gate,
transition service and recommendation engine around a set of
repositories, and exposes the operations the surrounding tool layer
calls. perform_role_transition converts domain errors into a
TransitionResult; the other operations raise them.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from taskgate.application.config import EngineConfig
from taskgate.application.dependency_gate import DependencyGate
from taskgate.application.locking import EntityLockCoordinator
from taskgate.application.recommendation import RecommendationEngine
from taskgate.application.sessions import DEFAULT_CLIENT_ID, SessionManager
from taskgate.application.transition_service import RoleTransitionService
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
from taskgate.domain.graph import would_create_cycle
from taskgate.domain.interfaces import (
    DependencyRepositoryInterface,
    RoleTransitionRepositoryInterface,
    WorkItemRepositoryInterface,
)
from taskgate.domain.models import (
    BlockedItem,
    BlockerInfo,
    Dependency,
    DependencyType,
    EntityType,
    ItemScope,
    Recommendation,
    Role,
    RoleTransition,
    TransitionResult,
    TransitionStatus,
    Trigger,
    WorkItem,
    WorkSession,
    parse_priority,
    parse_role,
    utcnow,
)
from taskgate.domain.mutation import mutate

logger = logging.getLogger("taskgate.engine")

# Checked in order; subclasses before their bases.
_STATUS_BY_ERROR: tuple[tuple[type[WorkflowError], TransitionStatus], ...] = (
    (UnknownTrigger, TransitionStatus.UNKNOWN_TRIGGER),
    (InvalidTransition, TransitionStatus.INVALID_TRANSITION),
    (DependencyBlocked, TransitionStatus.DEPENDENCY_BLOCKED),
    (EntityLocked, TransitionStatus.ENTITY_LOCKED),
    (VersionConflict, TransitionStatus.VERSION_CONFLICT),
    (NotFound, TransitionStatus.NOT_FOUND),
    (ValidationError, TransitionStatus.VALIDATION_ERROR),
    (DatabaseError, TransitionStatus.DATABASE_ERROR),
)

_EDITABLE_FIELDS = frozenset({"title", "summary", "priority", "complexity", "tags"})

# Serializes dependency edits so concurrent inserts cannot jointly close a cycle.
_GRAPH_LOCK_ID = "graph"

_OPEN_ROLES = (Role.BLOCKED, Role.QUEUE, Role.WORK, Role.REVIEW)


def status_for(error: WorkflowError) -> TransitionStatus:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return TransitionStatus.DATABASE_ERROR


def _normalize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - _EDITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields {sorted(unknown)} cannot be set here. "
            f"Editable fields: {', '.join(sorted(_EDITABLE_FIELDS))}"
        )
    normalized = dict(fields)
    if "priority" in normalized:
        normalized["priority"] = parse_priority(normalized["priority"])
    if "tags" in normalized:
        tags = normalized["tags"]
        # A bare string is one tag, not a sequence of one-letter tags.
        normalized["tags"] = (tags,) if isinstance(tags, str) else tuple(tags)
    return normalized


class WorkflowEngine:
    """
    Entry point of the coordination core.

    Every mutating operation refreshes the caller's session (creating it
    on first use), expires idle sessions, and runs under the entity lock
    of the item it changes. Read-only queries take no locks.
    """

    def __init__(
        self,
        work_items: WorkItemRepositoryInterface,
        dependencies: DependencyRepositoryInterface,
        transitions: RoleTransitionRepositoryInterface,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            work_items: Work item repository
            dependencies: Dependency edge repository
            transitions: Transition audit log
            config: Engine tunables (defaults apply when omitted)
            clock: Time source for timestamps and session activity
        """
        self._config = config or EngineConfig()
        self._clock = clock
        self._work_items = work_items
        self._dependencies = dependencies
        self._transition_log = transitions

        self._coordinator = EntityLockCoordinator(
            timeout_seconds=self._config.lock_timeout_seconds, clock=clock
        )
        self._sessions = SessionManager(
            self._coordinator,
            timeout_seconds=self._config.session_timeout_seconds,
            clock=clock,
        )
        self._gate = DependencyGate(work_items, dependencies)
        self._transitions = RoleTransitionService(
            work_items,
            transitions,
            self._gate,
            self._coordinator,
            config=self._config,
            clock=clock,
        )
        self._recommendations = RecommendationEngine(work_items, self._gate)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def coordinator(self) -> EntityLockCoordinator:
        return self._coordinator

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    # =========================================================================
    # Role transitions
    # =========================================================================

    def perform_role_transition(
        self,
        item_id: str,
        trigger: "str | Trigger",
        session_id: str,
        summary: str | None = None,
    ) -> TransitionResult:
        """
        Apply a trigger to an item and report the outcome.

        Never raises WorkflowError: every domain failure is returned as a
        TransitionResult carrying the status and the error. The item lock
        is released on every path.
        """
        try:
            self._touch(session_id)
            outcome = self._transitions.perform(item_id, trigger, session_id, summary)
        except WorkflowError as e:
            status = status_for(e)
            logger.debug("Transition %s on %s failed: %s", trigger, item_id, e)
            return TransitionResult(status=status, error=e)
        return TransitionResult(status=TransitionStatus.SUCCESS, outcome=outcome)

    def transition_history(self, item_id: str) -> tuple[RoleTransition, ...]:
        return tuple(self._transition_log.find_by_item(item_id))

    # =========================================================================
    # Dependency gate and recommendations (read-only)
    # =========================================================================

    def is_blocked(self, item_id: str, threshold: "Role | str | None" = None) -> bool:
        return self._gate.is_blocked(item_id, threshold)

    def find_blockers(
        self, item_id: str, threshold: "Role | str | None" = None
    ) -> tuple[BlockerInfo, ...]:
        return self._gate.blockers(item_id, threshold)

    def recommend_next(
        self,
        scope: ItemScope | None = None,
        limit: int = 1,
        session_id: str | None = None,
    ) -> Recommendation:
        """
        Top unblocked QUEUE items.

        Without an explicit scope, a session with a project context is
        scoped to that project's subtree.
        """
        if scope is None and session_id is not None:
            project_id = self._sessions.project_context(session_id)
            if project_id is not None:
                scope = ItemScope(parent_id=project_id, recursive=True)
        return self._recommendations.recommend(scope, limit)

    def find_blocked_items(self, scope: ItemScope | None = None) -> tuple[BlockedItem, ...]:
        items: list[WorkItem] = []
        for role in _OPEN_ROLES:
            items.extend(self._work_items.find_candidates(scope, role=role))
        return self._gate.blocked_items(items)

    # =========================================================================
    # Locking
    # =========================================================================

    def with_entity_lock[T](
        self,
        entity_type: "EntityType | str",
        entity_id: str,
        session_id: str,
        fn: Callable[[], T],
    ) -> T:
        """
        Run fn under the entity lock owned by session_id.

        Raises:
            EntityLocked: If the lock cannot be obtained in time
        """
        self._touch(session_id)
        return self._coordinator.with_lock(entity_type, entity_id, session_id, fn)

    # =========================================================================
    # Work items
    # =========================================================================

    def get_item(self, item_id: str) -> WorkItem:
        return self._work_items.get_by_id(item_id)

    def create_item(
        self,
        session_id: str,
        title: str,
        parent_id: str | None = None,
        **fields: Any,
    ) -> WorkItem:
        """
        Create a QUEUE item; depth follows from the parent.

        Raises:
            NotFound: If parent_id does not exist
            ValidationError: On invalid field values
        """
        self._touch(session_id)
        values = _normalize_fields(fields)

        def create() -> WorkItem:
            depth = 0
            if parent_id is not None:
                depth = self._work_items.get_by_id(parent_id).depth + 1
            item = WorkItem.create(
                title, now=self._clock(), parent_id=parent_id, depth=depth, **values
            )
            return self._work_items.create(item)

        if parent_id is None:
            item = create()
        else:
            item = self._coordinator.with_lock(
                EntityType.WORK_ITEM, parent_id, session_id, create
            )
        logger.info("Created item %s (%s)", item.id, item.title)
        return item

    def update_item(
        self,
        item_id: str,
        session_id: str,
        expected_version: int | None = None,
        **changes: Any,
    ) -> WorkItem:
        """
        Change non-role fields of an item.

        Role changes go through perform_role_transition.

        Raises:
            VersionConflict: If expected_version is given and stale
            ValidationError: For non-editable fields or invalid values
        """
        self._touch(session_id)
        values = _normalize_fields(changes)

        def update() -> WorkItem:
            item = self._work_items.get_by_id(item_id)
            if expected_version is not None and item.version != expected_version:
                raise VersionConflict(item_id, expected_version, item.version)
            return self._work_items.update(mutate(item, now=self._clock(), **values))

        return self._coordinator.with_lock(
            EntityType.WORK_ITEM, item_id, session_id, update
        )

    def delete_item(self, item_id: str, session_id: str) -> int:
        """
        Delete a leaf item and every dependency edge touching it.

        Returns:
            Number of dependency edges removed

        Raises:
            NotFound: If the item does not exist
            ValidationError: If the item still has children
        """
        self._touch(session_id)

        def delete() -> int:
            self._work_items.get_by_id(item_id)
            children = self._work_items.find_children(item_id)
            if children:
                raise ValidationError(
                    f"Item {item_id} has {len(children)} child item(s); delete them first"
                )
            removed = self._dependencies.delete_dependencies_for(item_id)
            self._work_items.delete(item_id)
            return removed

        # Graph lock first, as in add_dependency, so no edge to this item
        # can be inserted between the cascade and the delete.
        with self._coordinator.locked(EntityType.DEPENDENCY, _GRAPH_LOCK_ID, session_id):
            removed = self._coordinator.with_lock(
                EntityType.WORK_ITEM, item_id, session_id, delete
            )
        logger.info("Deleted item %s (%d dependency edge(s) removed)", item_id, removed)
        return removed

    # =========================================================================
    # Dependencies
    # =========================================================================

    def add_dependency(
        self,
        from_item_id: str,
        to_item_id: str,
        session_id: str,
        dependency_type: "DependencyType | str" = DependencyType.BLOCKS,
        unblock_at: "Role | str | None" = None,
    ) -> Dependency:
        """
        Add an edge between two existing items.

        Raises:
            NotFound: If either endpoint does not exist
            CyclicDependency: If the edge would close a blocking cycle
            ValidationError: For self-edges, duplicates or bad thresholds
        """
        self._touch(session_id)
        dependency = Dependency(
            from_item_id=from_item_id,
            to_item_id=to_item_id,
            type=_parse_dependency_type(dependency_type),
            unblock_at=_parse_unblock_at(unblock_at),
            created_at=self._clock(),
        )

        with self._coordinator.locked(EntityType.DEPENDENCY, _GRAPH_LOCK_ID, session_id):
            with self._coordinator.locked(
                EntityType.WORK_ITEM, dependency.blocked_id, session_id
            ):
                self._work_items.get_by_id(from_item_id)
                self._work_items.get_by_id(to_item_id)
                if would_create_cycle(
                    dependency, self._dependencies.find_dependencies_blocked_by
                ):
                    raise CyclicDependency(from_item_id, to_item_id)
                stored = self._dependencies.create(dependency)

        logger.info(
            "Added dependency %s: %s %s %s",
            stored.id,
            from_item_id,
            stored.type.value,
            to_item_id,
        )
        return stored

    def remove_dependency(self, dependency_id: str, session_id: str) -> bool:
        """Remove one edge; False if it does not exist."""
        self._touch(session_id)
        try:
            dependency = self._dependencies.get_by_id(dependency_id)
        except NotFound:
            return False
        with self._coordinator.locked(
            EntityType.WORK_ITEM, dependency.blocked_id, session_id
        ):
            return self._dependencies.delete(dependency_id)

    def dependencies_of(self, item_id: str) -> tuple[Dependency, ...]:
        return tuple(self._dependencies.find_by_item(item_id))

    # =========================================================================
    # Sessions
    # =========================================================================

    def open_session(
        self, client_id: str = DEFAULT_CLIENT_ID, session_id: str | None = None
    ) -> WorkSession:
        return self._sessions.open(client_id=client_id, session_id=session_id)

    def close_session(self, session_id: str) -> int:
        """Tear down a session; returns the number of locks released."""
        return self._sessions.close(session_id)

    def set_project_context(self, session_id: str, project_id: str | None) -> WorkSession:
        """
        Raises:
            NotFound: If project_id names no existing item
        """
        self._sessions.ensure(session_id)
        if project_id is not None:
            self._work_items.get_by_id(project_id)
        return self._sessions.set_project_context(session_id, project_id)

    def expire_inactive_sessions(self) -> list[str]:
        return self._sessions.expire_inactive()

    def _touch(self, session_id: str) -> None:
        self._sessions.expire_inactive()
        self._sessions.ensure(session_id)


def _parse_dependency_type(value: "DependencyType | str") -> DependencyType:
    if isinstance(value, DependencyType):
        return value
    try:
        return DependencyType(value.strip().lower())
    except ValueError as e:
        valid = ", ".join(t.value for t in DependencyType)
        raise ValidationError(
            f"Invalid dependency type '{value}'. Valid types: {valid}"
        ) from e


def _parse_unblock_at(value: "Role | str | None") -> Role | None:
    if value is None:
        return None
    role = parse_role(value)
    if role is None:
        raise ValidationError(f"Invalid unblock_at role '{value}'")
    return role
