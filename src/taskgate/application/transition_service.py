"""
RoleTransitionService: applies the role state machine to stored items.

Each transition runs inside the entity lock of the item, goes through
the mutation guard, and appends exactly one audit record. If the audit
append fails after the item was written, the prior role state is
written back before the error propagates.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from taskgate.application.config import EngineConfig
from taskgate.application.dependency_gate import DependencyGate
from taskgate.application.locking import EntityLockCoordinator
from taskgate.domain.exceptions import DependencyBlocked, WorkflowError
from taskgate.domain.hierarchy import detect_parent_cascades
from taskgate.domain.interfaces import (
    RoleTransitionRepositoryInterface,
    WorkItemRepositoryInterface,
)
from taskgate.domain.models import (
    CascadeEvent,
    EntityType,
    RoleTransition,
    TransitionOutcome,
    Trigger,
    WorkItem,
    is_forward_progression,
    utcnow,
)
from taskgate.domain.mutation import mutate, next_modified_at
from taskgate.domain.transitions import parse_trigger, resolve_transition

logger = logging.getLogger("taskgate.transitions")

# Only real progress is gated; block/hold/resume/cancel always go through.
_GATED_TRIGGERS = frozenset({Trigger.START, Trigger.COMPLETE})


class RoleTransitionService:
    """Performs validated, audited, lock-protected role changes."""

    def __init__(
        self,
        work_items: WorkItemRepositoryInterface,
        transitions: RoleTransitionRepositoryInterface,
        gate: DependencyGate,
        coordinator: EntityLockCoordinator,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._work_items = work_items
        self._transitions = transitions
        self._gate = gate
        self._coordinator = coordinator
        self._config = config or EngineConfig()
        self._clock = clock

    def perform(
        self,
        item_id: str,
        trigger: "str | Trigger",
        session_id: str,
        summary: str | None = None,
    ) -> TransitionOutcome:
        """
        Apply trigger to the item.

        Args:
            item_id: Item to transition
            trigger: Trigger name or value
            session_id: Session that will own the item lock
            summary: Free-text note stored on the audit record

        Returns:
            The committed item, its audit record and released dependents

        Raises:
            UnknownTrigger: Before any lookup, for names outside the vocabulary
            EntityLocked: If the item lock cannot be obtained in time
            NotFound: If the item does not exist
            InvalidTransition: If the trigger is illegal from the current role
            DependencyBlocked: If forward progress is gated by prerequisites
            VersionConflict: If the stored item moved underneath us
            DatabaseError: On persistence failure
        """
        parsed = parse_trigger(trigger)
        return self._coordinator.with_lock(
            EntityType.WORK_ITEM,
            item_id,
            session_id,
            lambda: self._apply(item_id, parsed, summary),
            timeout=self._config.lock_timeout_seconds,
        )

    def _apply(
        self, item_id: str, trigger: Trigger, summary: str | None
    ) -> TransitionOutcome:
        item = self._work_items.get_by_id(item_id)
        resolution = resolve_transition(
            item.role, trigger, item.previous_role, item.status_label
        )

        if (
            self._config.gate_forward_transitions
            and trigger in _GATED_TRIGGERS
            and is_forward_progression(item.role, resolution.target_role)
        ):
            unmet = self._gate.blockers(item.id)
            if unmet:
                logger.debug(
                    "Refusing %s on %s: %d unmet prerequisite(s)",
                    trigger.value,
                    item.id,
                    len(unmet),
                )
                raise DependencyBlocked(item.id, unmet)

        changed_at = next_modified_at(item.modified_at, self._clock())
        candidate = mutate(
            item,
            now=changed_at,
            role=resolution.target_role,
            previous_role=resolution.previous_role,
            status_label=resolution.status_label,
            role_changed_at=changed_at,
        )
        stored = self._work_items.update(candidate)

        record = RoleTransition(
            item_id=item.id,
            from_role=item.role,
            to_role=stored.role,
            trigger=trigger,
            transitioned_at=stored.role_changed_at,
            from_status_label=item.status_label,
            to_status_label=stored.status_label,
            summary=summary,
        )
        try:
            self._transitions.append(record)
        except Exception:
            self._compensate(item, stored)
            raise

        logger.info(
            "Item %s: %s -> %s (%s)",
            item.id,
            item.role.value,
            stored.role.value,
            trigger.value,
        )
        return TransitionOutcome(
            item=stored,
            transition=record,
            previous_role=item.role,
            new_role=stored.role,
            unblocked_items=self._released_dependents(item, stored),
            cascade_events=self._parent_cascades(stored),
        )

    def _compensate(self, original: WorkItem, written: WorkItem) -> None:
        """Write the pre-transition role state back after a failed audit append."""
        logger.error(
            "Audit append failed for item %s; restoring role %s",
            original.id,
            original.role.value,
        )
        restored = mutate(
            written,
            now=self._clock(),
            role=original.role,
            previous_role=original.previous_role,
            status_label=original.status_label,
            role_changed_at=original.role_changed_at,
        )
        try:
            self._work_items.update(restored)
        except WorkflowError:
            logger.exception("Could not restore item %s after audit failure", original.id)

    def _released_dependents(
        self, before: WorkItem, after: WorkItem
    ) -> tuple[WorkItem, ...]:
        try:
            return self._gate.find_newly_unblocked(after.id, before.role, after.role)
        except WorkflowError as e:
            logger.warning("Could not compute released dependents of %s: %s", after.id, e)
            return ()

    def _parent_cascades(self, after: WorkItem) -> tuple[CascadeEvent, ...]:
        try:
            events = detect_parent_cascades(
                after, self._work_items.get_by_id, self._work_items.find_children
            )
        except WorkflowError as e:
            logger.warning("Could not check parent cascade of %s: %s", after.id, e)
            return ()
        for event in events:
            logger.info("Item %s is ready to complete: all children finished", event.item_id)
        return events
