"""
In-memory repositories.

Useful for testing and for a single-process deployment where state may
be lost on restart. Each repository guards its table with its own lock.
"""

import threading
from collections.abc import Iterable

from taskgate.domain.exceptions import NotFound, ValidationError
from taskgate.domain.interfaces import (
    DependencyRepositoryInterface,
    RoleTransitionRepositoryInterface,
    WorkItemRepositoryInterface,
)
from taskgate.domain.models import (
    Dependency,
    ItemScope,
    Role,
    RoleTransition,
    WorkItem,
)
from taskgate.domain.mutation import check_version


def select_in_scope(
    items: Iterable[WorkItem], scope: ItemScope | None, role: Role | None = None
) -> list[WorkItem]:
    """Filter items by role and scope, ordered by creation time."""
    items = list(items)
    selected = [i for i in items if role is None or i.role == role]

    if scope is not None and scope.parent_id is not None:
        if scope.recursive:
            children: dict[str, list[str]] = {}
            for item in items:
                if item.parent_id is not None:
                    children.setdefault(item.parent_id, []).append(item.id)
            subtree: set[str] = set()
            stack = list(children.get(scope.parent_id, ()))
            while stack:
                node = stack.pop()
                if node not in subtree:
                    subtree.add(node)
                    stack.extend(children.get(node, ()))
            selected = [i for i in selected if i.id in subtree]
        else:
            selected = [i for i in selected if i.parent_id == scope.parent_id]

    if scope is not None and scope.tags:
        wanted = set(scope.tags)
        selected = [i for i in selected if wanted.intersection(i.tags)]

    return sorted(selected, key=lambda i: i.created_at)


class InMemoryWorkItemRepository(WorkItemRepositoryInterface):
    """Dict-backed work item store with version-checked updates."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, WorkItem] = {}

    def create(self, item: WorkItem) -> WorkItem:
        with self._lock:
            if item.id in self._items:
                raise ValidationError(f"Work item already exists: {item.id}")
            self._items[item.id] = item
        return item

    def get_by_id(self, item_id: str) -> WorkItem:
        with self._lock:
            item = self._items.get(item_id)
        if item is None:
            raise NotFound("work_item", item_id)
        return item

    def update(self, item: WorkItem) -> WorkItem:
        with self._lock:
            stored = self._items.get(item.id)
            if stored is None:
                raise NotFound("work_item", item.id)
            check_version(stored, item)
            self._items[item.id] = item
        return item

    def delete(self, item_id: str) -> bool:
        with self._lock:
            return self._items.pop(item_id, None) is not None

    def find_candidates(
        self, scope: ItemScope | None = None, role: Role = Role.QUEUE
    ) -> list[WorkItem]:
        with self._lock:
            items = list(self._items.values())
        return select_in_scope(items, scope, role)

    def find_children(self, parent_id: str) -> list[WorkItem]:
        with self._lock:
            items = list(self._items.values())
        return select_in_scope(items, ItemScope(parent_id=parent_id))


class InMemoryDependencyRepository(DependencyRepositoryInterface):
    """Dict-backed dependency edge store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._edges: dict[str, Dependency] = {}

    def create(self, dependency: Dependency) -> Dependency:
        with self._lock:
            for edge in self._edges.values():
                if (
                    edge.from_item_id == dependency.from_item_id
                    and edge.to_item_id == dependency.to_item_id
                    and edge.type == dependency.type
                ):
                    raise ValidationError(
                        f"Dependency already exists: {dependency.from_item_id} "
                        f"{dependency.type.value} {dependency.to_item_id}"
                    )
            self._edges[dependency.id] = dependency
        return dependency

    def get_by_id(self, dependency_id: str) -> Dependency:
        with self._lock:
            edge = self._edges.get(dependency_id)
        if edge is None:
            raise NotFound("dependency", dependency_id)
        return edge

    def delete(self, dependency_id: str) -> bool:
        with self._lock:
            return self._edges.pop(dependency_id, None) is not None

    def find_dependencies_targeting(self, item_id: str) -> list[Dependency]:
        with self._lock:
            return [
                e
                for e in self._edges.values()
                if e.blocked_id == item_id
                or (not e.is_blocking and e.to_item_id == item_id)
            ]

    def find_dependencies_blocked_by(self, item_id: str) -> list[Dependency]:
        with self._lock:
            return [
                e for e in self._edges.values() if e.is_blocking and e.blocker_id == item_id
            ]

    def find_by_item(self, item_id: str) -> list[Dependency]:
        with self._lock:
            return [
                e
                for e in self._edges.values()
                if item_id in (e.from_item_id, e.to_item_id)
            ]

    def delete_dependencies_for(self, item_id: str) -> int:
        with self._lock:
            doomed = [
                dep_id
                for dep_id, e in self._edges.items()
                if item_id in (e.from_item_id, e.to_item_id)
            ]
            for dep_id in doomed:
                del self._edges[dep_id]
            return len(doomed)


class InMemoryRoleTransitionRepository(RoleTransitionRepositoryInterface):
    """Append-only list of transition records."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[RoleTransition] = []

    def append(self, transition: RoleTransition) -> RoleTransition:
        with self._lock:
            self._records.append(transition)
        return transition

    def find_by_item(self, item_id: str) -> list[RoleTransition]:
        with self._lock:
            return [r for r in self._records if r.item_id == item_id]
