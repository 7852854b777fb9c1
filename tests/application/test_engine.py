"""Tests for WorkflowEngine, the facade over the coordination core."""

import threading

import pytest

from taskgate.application.config import EngineConfig, LockPolicy
from taskgate.application.engine import WorkflowEngine
from taskgate.domain.exceptions import (
    CyclicDependency,
    DatabaseError,
    EntityLocked,
    NotFound,
    ValidationError,
    VersionConflict,
)
from taskgate.domain.models import (
    DependencyType,
    EntityType,
    ItemScope,
    Priority,
    Role,
    TransitionStatus,
    Trigger,
)
from taskgate.infrastructure.persistence.memory import (
    InMemoryRoleTransitionRepository,
    InMemoryWorkItemRepository,
)

SESSION = "session-1"


class BrokenAuditLog(InMemoryRoleTransitionRepository):
    def append(self, transition):
        raise DatabaseError("audit log unavailable")


class ExplodingWorkItemRepository(InMemoryWorkItemRepository):
    """Raises a programming error on lookup once armed."""

    armed = False

    def get_by_id(self, item_id):
        if self.armed:
            raise RuntimeError("bug in adapter")
        return super().get_by_id(item_id)


class PausingWorkItemRepository(InMemoryWorkItemRepository):
    """Holds the first lookup of one id until resumed or 0.2s pass."""

    def __init__(self):
        super().__init__()
        self.pause_on = None
        self.reached = threading.Event()
        self.resume = threading.Event()

    def get_by_id(self, item_id):
        if item_id == self.pause_on:
            self.pause_on = None
            self.reached.set()
            self.resume.wait(timeout=0.2)
        return super().get_by_id(item_id)


class TestEndToEnd:
    """Scenarios spanning the gate, the state machine and recommendations."""

    def test_completing_prerequisite_releases_dependent(self, engine):
        """Completing A unblocks B and makes it the next recommendation."""
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        engine.add_dependency(a.id, b.id, SESSION)

        assert engine.is_blocked(b.id)
        assert [i.id for i in engine.recommend_next(limit=5).recommendations] == [a.id]

        assert engine.perform_role_transition(a.id, "start", SESSION).success
        result = engine.perform_role_transition(a.id, "complete", SESSION)
        assert result.success
        assert [i.id for i in result.outcome.unblocked_items] == [b.id]

        assert not engine.is_blocked(b.id)
        assert [i.id for i in engine.recommend_next(limit=5).recommendations] == [b.id]

    def test_resume_is_the_way_out_of_blocked(self, engine):
        """From BLOCKED only resume restores progress; hold is rejected."""
        item = engine.create_item(SESSION, "A")
        engine.perform_role_transition(item.id, "start", SESSION)
        assert engine.perform_role_transition(item.id, "block", SESSION).success

        for trigger in ("hold", "start", "complete"):
            result = engine.perform_role_transition(item.id, trigger, SESSION)
            assert result.status == TransitionStatus.INVALID_TRANSITION
            assert result.error.legal_triggers == (Trigger.RESUME, Trigger.CANCEL)

        result = engine.perform_role_transition(item.id, "resume", SESSION)
        assert result.success
        assert result.item.role == Role.WORK

    def test_history_records_every_change(self, engine):
        """Accepted transitions are logged in order; rejected ones are not."""
        item = engine.create_item(SESSION, "A")
        engine.perform_role_transition(item.id, "start", SESSION, summary="go")
        engine.perform_role_transition(item.id, "hold", SESSION)
        engine.perform_role_transition(item.id, "complete", SESSION)  # rejected

        history = engine.transition_history(item.id)
        assert [(t.from_role, t.to_role) for t in history] == [
            (Role.QUEUE, Role.WORK),
            (Role.WORK, Role.QUEUE),
        ]
        assert history[0].summary == "go"


class TestTransitionResults:
    """Tests for converting failures into TransitionResult."""

    def test_unknown_trigger(self, engine):
        """Unrecognized trigger names map to UNKNOWN_TRIGGER."""
        item = engine.create_item(SESSION, "A")
        result = engine.perform_role_transition(item.id, "finish", SESSION)
        assert result.status == TransitionStatus.UNKNOWN_TRIGGER
        assert "start" in result.error.valid_triggers
        assert result.item is None

    def test_not_found(self, engine):
        """Missing items map to NOT_FOUND."""
        result = engine.perform_role_transition("missing", "start", SESSION)
        assert result.status == TransitionStatus.NOT_FOUND
        assert not result.success

    def test_dependency_blocked(self, engine):
        """Gated transitions report the unmet blockers."""
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        engine.add_dependency(a.id, b.id, SESSION)

        result = engine.perform_role_transition(b.id, "start", SESSION)
        assert result.status == TransitionStatus.DEPENDENCY_BLOCKED
        assert result.error.blockers[0].blocker_id == a.id
        assert engine.get_item(b.id).role == Role.QUEUE

    def test_entity_locked_by_other_session(self, engine):
        """A lock held by another session maps to ENTITY_LOCKED."""
        item = engine.create_item(SESSION, "A")
        engine.coordinator.acquire(EntityType.WORK_ITEM, item.id, "other")

        result = engine.perform_role_transition(item.id, "start", SESSION)
        assert result.status == TransitionStatus.ENTITY_LOCKED
        assert result.error.holder_session_id == "other"
        assert result.error.retriable

    def test_entity_locked_while_other_thread_works(self, engine):
        """Concurrent work on the same item is refused, then allowed once done."""
        item = engine.create_item(SESSION, "A")
        inside = threading.Event()
        leave = threading.Event()

        def hold():
            inside.set()
            leave.wait(timeout=2.0)

        thread = threading.Thread(
            target=engine.with_entity_lock,
            args=(EntityType.WORK_ITEM, item.id, "other", hold),
        )
        thread.start()
        assert inside.wait(timeout=2.0)
        try:
            result = engine.perform_role_transition(item.id, "start", SESSION)
            assert result.status == TransitionStatus.ENTITY_LOCKED
        finally:
            leave.set()
            thread.join(timeout=2.0)

        assert engine.perform_role_transition(item.id, "start", SESSION).success

    def test_audit_failure_reported_and_compensated(self, work_items, dependencies, clock):
        """A failed audit append leaves the item in its prior role."""
        engine = WorkflowEngine(work_items, dependencies, BrokenAuditLog(), clock=clock)
        item = engine.create_item(SESSION, "A")

        result = engine.perform_role_transition(item.id, "start", SESSION)
        assert result.status == TransitionStatus.DATABASE_ERROR
        assert engine.get_item(item.id).role == Role.QUEUE
        assert engine.coordinator.active_lock_count == 0

    def test_programming_errors_propagate_after_release(self, dependencies, transitions, clock):
        """Non-domain errors escape but never leak the item lock."""
        repo = ExplodingWorkItemRepository()
        engine = WorkflowEngine(repo, dependencies, transitions, clock=clock)
        item = engine.create_item(SESSION, "A")
        repo.armed = True

        with pytest.raises(RuntimeError):
            engine.perform_role_transition(item.id, "start", SESSION)
        assert engine.coordinator.active_lock_count == 0


class TestItems:
    """Tests for item CRUD through the engine."""

    def test_create_child_sets_depth(self, engine):
        """Depth follows the parent chain."""
        project = engine.create_item(SESSION, "Project")
        feature = engine.create_item(SESSION, "Feature", parent_id=project.id)
        task = engine.create_item(
            SESSION, "Task", parent_id=feature.id, priority="high", tags=["api"]
        )

        assert (project.depth, feature.depth, task.depth) == (0, 1, 2)
        assert task.priority == Priority.HIGH
        assert task.tags == ("api",)
        assert task.role == Role.QUEUE
        assert task.version == 1

    def test_create_under_missing_parent(self, engine):
        with pytest.raises(NotFound):
            engine.create_item(SESSION, "Orphan", parent_id="missing")

    def test_single_tag_string_is_one_tag(self, engine):
        """tags="backend" stores one tag rather than splitting it."""
        item = engine.create_item(SESSION, "A", tags="backend")
        assert item.tags == ("backend",)

        updated = engine.update_item(item.id, SESSION, tags="api")
        assert updated.tags == ("api",)

    def test_create_rejects_role(self, engine):
        with pytest.raises(ValidationError):
            engine.create_item(SESSION, "A", role=Role.WORK)

    def test_update_bumps_version(self, engine, clock):
        """Field edits advance version and modified_at but not role_changed_at."""
        item = engine.create_item(SESSION, "A")
        clock.advance(1)
        updated = engine.update_item(item.id, SESSION, title="A2", complexity=3)

        assert updated.title == "A2"
        assert updated.complexity == 3
        assert updated.version == 2
        assert updated.modified_at > item.modified_at
        assert updated.role_changed_at == item.role_changed_at

    def test_update_with_stale_version(self, engine):
        """A stale expected_version is refused without writing."""
        item = engine.create_item(SESSION, "A")
        engine.update_item(item.id, SESSION, summary="first")

        with pytest.raises(VersionConflict) as exc_info:
            engine.update_item(item.id, SESSION, expected_version=1, summary="second")
        assert exc_info.value.actual_version == 2
        assert engine.get_item(item.id).summary == "first"

    def test_update_cannot_change_role(self, engine):
        """Role changes must go through triggers."""
        item = engine.create_item(SESSION, "A")
        with pytest.raises(ValidationError):
            engine.update_item(item.id, SESSION, role=Role.TERMINAL)

    def test_delete_cascades_dependencies(self, engine):
        """Deleting an item removes every edge touching it."""
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        c = engine.create_item(SESSION, "C")
        engine.add_dependency(a.id, b.id, SESSION)
        engine.add_dependency(c.id, a.id, SESSION)

        assert engine.delete_item(a.id, SESSION) == 2
        assert engine.dependencies_of(b.id) == ()
        assert not engine.is_blocked(b.id)
        with pytest.raises(NotFound):
            engine.get_item(a.id)

    def test_delete_refuses_items_with_children(self, engine):
        """Parents cannot be deleted before their children."""
        project = engine.create_item(SESSION, "Project")
        engine.create_item(SESSION, "Task", parent_id=project.id)
        with pytest.raises(ValidationError):
            engine.delete_item(project.id, SESSION)

    def test_delete_during_dependency_insert_leaves_no_dangling_edge(
        self, dependencies, transitions, clock
    ):
        """A prerequisite deleted mid-insert takes the new edge with it."""
        work_items = PausingWorkItemRepository()
        engine = WorkflowEngine(
            work_items,
            dependencies,
            transitions,
            config=EngineConfig(lock_policy=LockPolicy.WAIT),
            clock=clock,
        )
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        work_items.pause_on = b.id
        removed = []

        def delete_prerequisite():
            assert work_items.reached.wait(timeout=2.0)
            removed.append(engine.delete_item(a.id, "session-2"))
            work_items.resume.set()

        deleter = threading.Thread(target=delete_prerequisite)
        deleter.start()
        engine.add_dependency(a.id, b.id, SESSION)
        deleter.join(timeout=5.0)

        assert removed == [1]
        with pytest.raises(NotFound):
            engine.get_item(a.id)
        assert dependencies.find_dependencies_targeting(b.id) == []
        assert not engine.is_blocked(b.id)


class TestDependencies:
    """Tests for dependency edits through the engine."""

    def test_cycle_rejected(self, engine):
        """Edges closing a blocking cycle are refused in either spelling."""
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        c = engine.create_item(SESSION, "C")
        engine.add_dependency(a.id, b.id, SESSION)
        engine.add_dependency(b.id, c.id, SESSION)

        with pytest.raises(CyclicDependency):
            engine.add_dependency(c.id, a.id, SESSION)
        with pytest.raises(CyclicDependency):
            engine.add_dependency(a.id, c.id, SESSION, dependency_type="is_blocked_by")

    def test_relates_to_may_point_back(self, engine):
        """Informational edges never form cycles."""
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        engine.add_dependency(a.id, b.id, SESSION)
        edge = engine.add_dependency(b.id, a.id, SESSION, dependency_type="relates_to")
        assert edge.type == DependencyType.RELATES_TO
        assert not engine.is_blocked(a.id)

    def test_missing_endpoint(self, engine):
        a = engine.create_item(SESSION, "A")
        with pytest.raises(NotFound):
            engine.add_dependency(a.id, "missing", SESSION)

    @pytest.mark.parametrize(
        ("dependency_type", "unblock_at"),
        [("depends_on", None), ("blocks", "blocked"), ("relates_to", "review")],
    )
    def test_invalid_edge(self, engine, dependency_type, unblock_at):
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        with pytest.raises(ValidationError):
            engine.add_dependency(
                a.id, b.id, SESSION, dependency_type=dependency_type, unblock_at=unblock_at
            )

    def test_remove(self, engine):
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        edge = engine.add_dependency(a.id, b.id, SESSION)

        assert engine.remove_dependency(edge.id, SESSION) is True
        assert engine.remove_dependency(edge.id, SESSION) is False
        assert not engine.is_blocked(b.id)

    def test_soft_gate(self, engine):
        """An unblock_at threshold releases the dependent early."""
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        engine.add_dependency(a.id, b.id, SESSION, unblock_at="review")

        engine.perform_role_transition(a.id, "start", SESSION)
        assert engine.is_blocked(b.id)
        engine.perform_role_transition(a.id, "start", SESSION)
        assert not engine.is_blocked(b.id)
        assert engine.is_blocked(b.id, threshold=Role.TERMINAL)

    def test_find_blocked_items(self, engine):
        """Explicit and dependency blocks are both listed."""
        a = engine.create_item(SESSION, "A")
        b = engine.create_item(SESSION, "B")
        c = engine.create_item(SESSION, "C")
        engine.add_dependency(a.id, b.id, SESSION)
        engine.perform_role_transition(c.id, "block", SESSION)

        blocked = {entry.item.id: entry for entry in engine.find_blocked_items()}
        assert set(blocked) == {b.id, c.id}
        assert blocked[b.id].block_type == "dependency"
        assert blocked[b.id].blockers[0].blocker_id == a.id
        assert blocked[c.id].block_type == "explicit"


class TestSessions:
    """Tests for session handling through the engine."""

    def test_project_context_scopes_recommendations(self, engine):
        """A session project context narrows recommendations for that session only."""
        project = engine.create_item(SESSION, "Project")
        inside = engine.create_item(SESSION, "Inside", parent_id=project.id)
        engine.create_item(SESSION, "Outside", priority="high")

        engine.set_project_context(SESSION, project.id)
        scoped = engine.recommend_next(limit=10, session_id=SESSION)
        assert [i.id for i in scoped.recommendations] == [inside.id]

        other = engine.recommend_next(limit=10, session_id="other")
        assert len(other.recommendations) == 3

        explicit = engine.recommend_next(ItemScope(), limit=10, session_id=SESSION)
        assert len(explicit.recommendations) == 3

    def test_project_context_must_exist(self, engine):
        with pytest.raises(NotFound):
            engine.set_project_context(SESSION, "missing")

    def test_expired_session_locks_are_released(self, engine, clock):
        """Locks of an idle session are freed when it expires."""
        item = engine.create_item(SESSION, "A")
        engine.open_session(session_id="idle")
        engine.coordinator.acquire(EntityType.WORK_ITEM, item.id, "idle")

        assert engine.perform_role_transition(item.id, "start", SESSION).status == (
            TransitionStatus.ENTITY_LOCKED
        )

        clock.advance(engine.config.session_timeout_seconds + 1)
        assert engine.perform_role_transition(item.id, "start", SESSION).success
        assert engine.coordinator.locks_held_by("idle") == ()

    def test_close_session_releases_locks(self, engine):
        """Closing a session frees its locks."""
        engine.open_session(client_id="agent", session_id="s2")
        engine.coordinator.acquire(EntityType.WORK_ITEM, "x", "s2")
        assert engine.close_session("s2") == 1
        assert engine.coordinator.active_lock_count == 0

    def test_with_entity_lock_rejects_other_holder(self, engine):
        engine.coordinator.acquire(EntityType.PROJECT, "p", "other")
        with pytest.raises(EntityLocked):
            engine.with_entity_lock(EntityType.PROJECT, "p", SESSION, lambda: None)


class TestConfig:
    """Tests for engine configuration wiring."""

    def test_wait_policy_uses_long_timeout(self, work_items, dependencies, transitions):
        """The WAIT policy selects the long lock timeout."""
        config = EngineConfig(lock_policy=LockPolicy.WAIT, lock_wait_timeout_seconds=3.0)
        engine = WorkflowEngine(work_items, dependencies, transitions, config=config)
        assert engine.config.lock_timeout_seconds == 3.0
