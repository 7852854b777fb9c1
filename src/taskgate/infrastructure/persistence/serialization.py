"""
Record <-> JSON dict conversion for the filesystem repositories.

Timestamps are ISO-8601 strings; enums are stored by value; tuples
become lists.
"""

from datetime import datetime
from typing import Any

from taskgate.domain.models import (
    Dependency,
    DependencyType,
    Priority,
    Role,
    RoleTransition,
    Trigger,
    WorkItem,
)


def _opt_role(value: str | None) -> Role | None:
    return Role(value) if value is not None else None


def work_item_to_dict(item: WorkItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "parent_id": item.parent_id,
        "title": item.title,
        "summary": item.summary,
        "role": item.role.value,
        "status_label": item.status_label,
        "previous_role": item.previous_role.value if item.previous_role else None,
        "priority": item.priority.value,
        "complexity": item.complexity,
        "depth": item.depth,
        # Serialize tuple -> list for JSON array format (matches schema)
        "tags": list(item.tags),
        "created_at": item.created_at.isoformat(),
        "modified_at": item.modified_at.isoformat(),
        "role_changed_at": item.role_changed_at.isoformat(),
        "version": item.version,
    }


def work_item_from_dict(data: dict[str, Any]) -> WorkItem:
    return WorkItem(
        id=data["id"],
        parent_id=data.get("parent_id"),
        title=data["title"],
        summary=data.get("summary", ""),
        role=Role(data["role"]),
        status_label=data.get("status_label"),
        previous_role=_opt_role(data.get("previous_role")),
        priority=Priority(data["priority"]),
        complexity=data.get("complexity"),
        depth=data["depth"],
        tags=tuple(data.get("tags", ())),
        created_at=datetime.fromisoformat(data["created_at"]),
        modified_at=datetime.fromisoformat(data["modified_at"]),
        role_changed_at=datetime.fromisoformat(data["role_changed_at"]),
        version=data["version"],
    )


def dependency_to_dict(dependency: Dependency) -> dict[str, Any]:
    return {
        "id": dependency.id,
        "from_item_id": dependency.from_item_id,
        "to_item_id": dependency.to_item_id,
        "type": dependency.type.value,
        "unblock_at": dependency.unblock_at.value if dependency.unblock_at else None,
        "created_at": dependency.created_at.isoformat(),
    }


def dependency_from_dict(data: dict[str, Any]) -> Dependency:
    return Dependency(
        id=data["id"],
        from_item_id=data["from_item_id"],
        to_item_id=data["to_item_id"],
        type=DependencyType(data["type"]),
        unblock_at=_opt_role(data.get("unblock_at")),
        created_at=datetime.fromisoformat(data["created_at"]),
    )


def role_transition_to_dict(transition: RoleTransition) -> dict[str, Any]:
    return {
        "transition_id": transition.transition_id,
        "item_id": transition.item_id,
        "from_role": transition.from_role.value,
        "to_role": transition.to_role.value,
        "from_status_label": transition.from_status_label,
        "to_status_label": transition.to_status_label,
        "trigger": transition.trigger.value,
        "summary": transition.summary,
        "transitioned_at": transition.transitioned_at.isoformat(),
    }


def role_transition_from_dict(data: dict[str, Any]) -> RoleTransition:
    return RoleTransition(
        transition_id=data["transition_id"],
        item_id=data["item_id"],
        from_role=Role(data["from_role"]),
        to_role=Role(data["to_role"]),
        from_status_label=data.get("from_status_label"),
        to_status_label=data.get("to_status_label"),
        trigger=Trigger(data["trigger"]),
        summary=data.get("summary"),
        transitioned_at=datetime.fromisoformat(data["transitioned_at"]),
    )
