"""Pure helpers over the parent/child hierarchy of work items."""

from collections.abc import Callable, Iterable

from taskgate.domain.models import CascadeEvent, Role, WorkItem

# Ancestor levels examined per detection.
MAX_CASCADE_DEPTH = 3


def detect_parent_cascades(
    item: WorkItem,
    get_item: Callable[[str], WorkItem],
    find_children: Callable[[str], Iterable[WorkItem]],
    max_depth: int = MAX_CASCADE_DEPTH,
) -> tuple[CascadeEvent, ...]:
    """
    Ancestors of a finished item that are now ready to finish too.

    A parent is ready when it has children, every child is TERMINAL and
    the parent itself is not. Walking upward, ancestors already reported
    count as TERMINAL when their own parent is checked, so one call
    reports the whole chain that would close.

    Args:
        item: The item that just transitioned
        get_item: Looks an item up by id (e.g. a repository's get_by_id)
        find_children: Direct children of an item id
        max_depth: Most ancestor levels to examine

    Returns:
        Events ordered from the nearest parent outward; empty unless
        item is TERMINAL
    """
    if item.role != Role.TERMINAL:
        return ()

    events: list[CascadeEvent] = []
    finished = {item.id}
    parent_id = item.parent_id
    while parent_id is not None and len(events) < max_depth:
        children = list(find_children(parent_id))
        if not children or any(
            child.role != Role.TERMINAL and child.id not in finished
            for child in children
        ):
            break
        parent = get_item(parent_id)
        if parent.role == Role.TERMINAL:
            break
        events.append(CascadeEvent(item_id=parent.id, current_role=parent.role))
        finished.add(parent.id)
        parent_id = parent.parent_id
    return tuple(events)
