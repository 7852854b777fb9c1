"""Pure helpers over the dependency graph."""

from collections.abc import Callable, Iterable

from taskgate.domain.models import Dependency


def would_create_cycle(
    candidate: Dependency,
    blocked_by: Callable[[str], Iterable[Dependency]],
) -> bool:
    """
    True if adding candidate closes a cycle among blocking edges.

    Walks from the candidate's blocked item along "blocker -> blocked"
    edges; reaching the candidate's blocker means the new edge would
    make an item (transitively) wait on itself.

    Args:
        candidate: Edge about to be added
        blocked_by: Returns the blocking edges whose prerequisite is the
            given item (e.g. a repository's find_dependencies_blocked_by)
    """
    if not candidate.is_blocking:
        return False

    target = candidate.blocker_id
    stack = [candidate.blocked_id]
    visited: set[str] = set()
    while stack:
        node = stack.pop()
        if node == target:
            return True
        if node in visited:
            continue
        visited.add(node)
        stack.extend(
            edge.blocked_id
            for edge in blocked_by(node)
            if edge.is_blocking and edge.blocker_id == node
        )
    return False
