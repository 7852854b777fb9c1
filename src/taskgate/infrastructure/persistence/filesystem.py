"""
Filesystem repositories.

Layout under the base directory:

    items/index.json                       id -> object path + summary fields
    items/objects/<prefix>/<id>.json       one work item per file
    dependencies.json                      every dependency edge
    transitions.jsonl                      append-only audit log

index.json and dependencies.json are rewritten atomically (write to a
temp file, then rename). Records are validated against the bundled
JSON Schemas on write and on read. I/O and decoding failures surface as
DatabaseError with the cause chained.
"""

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import jsonschema

from taskgate.domain.exceptions import DatabaseError, NotFound, ValidationError
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
from taskgate.infrastructure.persistence.memory import select_in_scope
from taskgate.infrastructure.persistence.serialization import (
    dependency_from_dict,
    dependency_to_dict,
    role_transition_from_dict,
    role_transition_to_dict,
    work_item_from_dict,
    work_item_to_dict,
)
from taskgate.schemas import (
    validate_dependency,
    validate_role_transition,
    validate_work_item,
)

logger = logging.getLogger("taskgate.persistence")

INDEX_VERSION = "1.0"


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Translate I/O and decoding failures into DatabaseError."""
    try:
        yield
    except (OSError, ValueError, KeyError, jsonschema.ValidationError) as e:
        logger.error("Storage failure while %s: %s", action, e)
        raise DatabaseError(f"Storage failure while {action}: {e}") from e


def _write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON via temp file + rename (atomic on POSIX)."""
    temp_path = path.with_suffix(".tmp")
    with open(temp_path, "w") as f:
        json.dump(data, f, indent=2)
    temp_path.replace(path)


def _decode(action: str, decoder, data: dict[str, Any]):
    """Run a record decoder; invalid stored records are storage failures."""
    try:
        return decoder(data)
    except ValidationError as e:
        raise DatabaseError(f"Corrupt record while {action}: {e}") from e


class FilesystemWorkItemRepository(WorkItemRepositoryInterface):
    """
    Persistent work item store.

    Items live one per file under objects/ with an index for lookups;
    loaded items are cached.
    """

    def __init__(self, base_dir: str | Path):
        self._base_dir = Path(base_dir) / "items"
        self._objects_dir = self._base_dir / "objects"
        self._index_path = self._base_dir / "index.json"
        self._lock = threading.Lock()
        self._cache: dict[str, WorkItem] = {}
        self._index: dict[str, Any] = self._load_or_create_index()

    def _load_or_create_index(self) -> dict[str, Any]:
        with _storage_errors("loading the item index"):
            self._objects_dir.mkdir(parents=True, exist_ok=True)
            if self._index_path.exists():
                with open(self._index_path) as f:
                    result: dict[str, Any] = json.load(f)
                    return result
        return {"version": INDEX_VERSION, "items": {}}

    def _get_object_path(self, item_id: str) -> Path:
        """Filesystem path for an item (using prefix directories)."""
        return self._objects_dir / item_id[:2] / f"{item_id}.json"

    def _write(self, item: WorkItem) -> None:
        data = work_item_to_dict(item)
        object_path = self._get_object_path(item.id)
        previous_entry = self._index["items"].get(item.id)
        previous_item = self._cache.get(item.id)
        try:
            with _storage_errors(f"writing item {item.id}"):
                validate_work_item(data)
                object_path.parent.mkdir(parents=True, exist_ok=True)
                _write_json_atomic(object_path, data)
                self._index["items"][item.id] = {
                    "path": str(object_path.relative_to(self._base_dir)),
                    "parent_id": item.parent_id,
                    "role": item.role.value,
                    "created_at": data["created_at"],
                }
                _write_json_atomic(self._index_path, self._index)
        except DatabaseError:
            self._undo_write(item.id, object_path, previous_entry, previous_item)
            raise
        self._cache[item.id] = item

    def _undo_write(
        self,
        item_id: str,
        object_path: Path,
        previous_entry: dict[str, Any] | None,
        previous_item: WorkItem | None,
    ) -> None:
        """Put the index entry and object file back as they were before _write."""
        if previous_entry is None:
            self._index["items"].pop(item_id, None)
        else:
            self._index["items"][item_id] = previous_entry
        try:
            with _storage_errors(f"restoring item {item_id}"):
                if previous_item is None:
                    object_path.unlink(missing_ok=True)
                else:
                    _write_json_atomic(object_path, work_item_to_dict(previous_item))
        except DatabaseError:
            logger.exception("Could not restore object file of item %s", item_id)

    def _read(self, item_id: str) -> WorkItem:
        if item_id in self._cache:
            return self._cache[item_id]
        entry = self._index["items"].get(item_id)
        if entry is None:
            raise NotFound("work_item", item_id)
        action = f"reading item {item_id}"
        with _storage_errors(action):
            with open(self._base_dir / entry["path"]) as f:
                data = json.load(f)
            validate_work_item(data)
            item = _decode(action, work_item_from_dict, data)
        self._cache[item_id] = item
        return item

    def create(self, item: WorkItem) -> WorkItem:
        with self._lock:
            if item.id in self._index["items"]:
                raise ValidationError(f"Work item already exists: {item.id}")
            self._write(item)
        return item

    def get_by_id(self, item_id: str) -> WorkItem:
        with self._lock:
            return self._read(item_id)

    def update(self, item: WorkItem) -> WorkItem:
        with self._lock:
            stored = self._read(item.id)
            check_version(stored, item)
            self._write(item)
        return item

    def delete(self, item_id: str) -> bool:
        with self._lock:
            entry = self._index["items"].pop(item_id, None)
            if entry is None:
                return False
            try:
                with _storage_errors(f"deleting item {item_id}"):
                    _write_json_atomic(self._index_path, self._index)
            except DatabaseError:
                self._index["items"][item_id] = entry
                raise
            self._cache.pop(item_id, None)
            with _storage_errors(f"removing object file of item {item_id}"):
                (self._base_dir / entry["path"]).unlink(missing_ok=True)
            return True

    def find_candidates(
        self, scope: ItemScope | None = None, role: Role = Role.QUEUE
    ) -> list[WorkItem]:
        with self._lock:
            items = [self._read(item_id) for item_id in list(self._index["items"])]
        return select_in_scope(items, scope, role)

    def find_children(self, parent_id: str) -> list[WorkItem]:
        with self._lock:
            items = [
                self._read(item_id)
                for item_id, entry in self._index["items"].items()
                if entry.get("parent_id") == parent_id
            ]
        return select_in_scope(items, None)


class FilesystemDependencyRepository(DependencyRepositoryInterface):
    """All edges kept in one JSON document, rewritten atomically."""

    def __init__(self, base_dir: str | Path):
        self._path = Path(base_dir) / "dependencies.json"
        self._lock = threading.Lock()
        self._edges: dict[str, Dependency] = self._load()

    def _load(self) -> dict[str, Dependency]:
        action = "loading dependencies"
        with _storage_errors(action):
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if not self._path.exists():
                return {}
            with open(self._path) as f:
                document = json.load(f)
            edges = {}
            for data in document["dependencies"]:
                validate_dependency(data)
                edge = _decode(action, dependency_from_dict, data)
                edges[edge.id] = edge
            return edges

    def _flush(self) -> None:
        records = [dependency_to_dict(e) for e in self._edges.values()]
        with _storage_errors("writing dependencies"):
            for data in records:
                validate_dependency(data)
            _write_json_atomic(
                self._path, {"version": INDEX_VERSION, "dependencies": records}
            )

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
            try:
                self._flush()
            except DatabaseError:
                del self._edges[dependency.id]
                raise
        return dependency

    def get_by_id(self, dependency_id: str) -> Dependency:
        with self._lock:
            edge = self._edges.get(dependency_id)
        if edge is None:
            raise NotFound("dependency", dependency_id)
        return edge

    def delete(self, dependency_id: str) -> bool:
        with self._lock:
            if dependency_id not in self._edges:
                return False
            before = dict(self._edges)
            del self._edges[dependency_id]
            try:
                self._flush()
            except DatabaseError:
                self._edges = before
                raise
            return True

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
            if not doomed:
                return 0
            before = dict(self._edges)
            for dep_id in doomed:
                del self._edges[dep_id]
            try:
                self._flush()
            except DatabaseError:
                self._edges = before
                raise
            return len(doomed)


class FilesystemRoleTransitionRepository(RoleTransitionRepositoryInterface):
    """Audit log stored as JSONL, one record per line."""

    def __init__(self, base_dir: str | Path):
        self._path = Path(base_dir) / "transitions.jsonl"
        self._lock = threading.Lock()
        with _storage_errors("preparing the transition log"):
            self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, transition: RoleTransition) -> RoleTransition:
        data = role_transition_to_dict(transition)
        with self._lock, _storage_errors("appending a transition"):
            validate_role_transition(data)
            with open(self._path, "a") as f:
                f.write(json.dumps(data) + "\n")
        return transition

    def find_by_item(self, item_id: str) -> list[RoleTransition]:
        action = f"reading transitions of {item_id}"
        with self._lock, _storage_errors(action):
            if not self._path.exists():
                return []
            records: list[RoleTransition] = []
            with open(self._path) as f:
                for line in f:
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    if data.get("item_id") != item_id:
                        continue
                    validate_role_transition(data)
                    records.append(_decode(action, role_transition_from_dict, data))
        return records
