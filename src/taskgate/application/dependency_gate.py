"""
DependencyGate: is a work item held back by unfinished prerequisites?

An item is blocked iff at least one blocking edge targeting it has a
prerequisite that has not reached the unblock threshold. Prerequisites
that cannot be loaded count as unfinished.
"""

import logging
from collections.abc import Iterable

from taskgate.domain.exceptions import DatabaseError, NotFound, ValidationError
from taskgate.domain.interfaces import (
    DependencyRepositoryInterface,
    WorkItemRepositoryInterface,
)
from taskgate.domain.models import (
    PROGRESSION,
    BlockedItem,
    BlockerInfo,
    Role,
    WorkItem,
    is_at_or_beyond,
    parse_role,
)

logger = logging.getLogger("taskgate.gate")

EXPLICIT = "explicit"
DEPENDENCY = "dependency"


def _threshold(value: "Role | str | None") -> Role | None:
    if value is None:
        return None
    role = parse_role(value)
    if role not in PROGRESSION:
        valid = ", ".join(r.value for r in PROGRESSION)
        raise ValidationError(f"Invalid unblock threshold '{value}'. Valid: {valid}")
    return role


class DependencyGate:
    """Read-only blocking queries over live repository state."""

    def __init__(
        self,
        work_items: WorkItemRepositoryInterface,
        dependencies: DependencyRepositoryInterface,
    ):
        self._work_items = work_items
        self._dependencies = dependencies

    def blockers(
        self, item_id: str, threshold: "Role | str | None" = None
    ) -> tuple[BlockerInfo, ...]:
        """
        Unmet prerequisites of an item.

        Args:
            item_id: Item to check
            threshold: Role every prerequisite must reach. None uses each
                edge's own unblock_at (TERMINAL when unset).

        Raises:
            ValidationError: If threshold is not a progression role
            DatabaseError: If the edges themselves cannot be loaded
        """
        override = _threshold(threshold)
        unmet = []
        for edge in self._dependencies.find_dependencies_targeting(item_id):
            if not edge.is_blocking or edge.blocked_id != item_id:
                continue
            required = override or edge.effective_unblock_role() or Role.TERMINAL
            current = self._resolve_role(edge.blocker_id)
            if current is None or not is_at_or_beyond(current, required):
                unmet.append(
                    BlockerInfo(
                        item_id=item_id,
                        blocker_id=edge.blocker_id,
                        dependency_id=edge.id,
                        required_role=required,
                        current_role=current,
                    )
                )
        logger.debug("Item %s has %d unmet prerequisite(s)", item_id, len(unmet))
        return tuple(unmet)

    def is_blocked(self, item_id: str, threshold: "Role | str | None" = None) -> bool:
        return bool(self.blockers(item_id, threshold))

    def find_newly_unblocked(
        self, item_id: str, previous_role: Role, new_role: Role
    ) -> tuple[WorkItem, ...]:
        """
        Dependents released by item_id moving from previous_role to new_role.

        A dependent is reported when the move satisfies its edge and it
        has no other unmet prerequisite. Terminal dependents are skipped.
        """
        released: list[WorkItem] = []
        seen: set[str] = set()
        for edge in self._dependencies.find_dependencies_blocked_by(item_id):
            required = edge.effective_unblock_role()
            if required is None or edge.blocked_id in seen:
                continue
            if is_at_or_beyond(previous_role, required):
                continue
            if not is_at_or_beyond(new_role, required):
                continue
            seen.add(edge.blocked_id)
            try:
                dependent = self._work_items.get_by_id(edge.blocked_id)
            except (NotFound, DatabaseError) as e:
                logger.warning("Skipping unresolvable dependent %s: %s", edge.blocked_id, e)
                continue
            if dependent.role == Role.TERMINAL:
                continue
            if not self.is_blocked(dependent.id):
                released.append(dependent)
        return tuple(released)

    def blocked_items(self, items: Iterable[WorkItem]) -> tuple[BlockedItem, ...]:
        """
        Classify items as explicitly BLOCKED or held by prerequisites.

        Items that are neither are left out.
        """
        result = []
        for item in items:
            if item.role == Role.BLOCKED:
                result.append(
                    BlockedItem(
                        item=item,
                        block_type=EXPLICIT,
                        blockers=self.blockers(item.id),
                    )
                )
            elif item.role != Role.TERMINAL:
                unmet = self.blockers(item.id)
                if unmet:
                    result.append(
                        BlockedItem(item=item, block_type=DEPENDENCY, blockers=unmet)
                    )
        return tuple(result)

    def _resolve_role(self, blocker_id: str) -> Role | None:
        try:
            return self._work_items.get_by_id(blocker_id).role
        except (NotFound, DatabaseError) as e:
            logger.warning(
                "Treating prerequisite %s as unfinished (lookup failed: %s)",
                blocker_id,
                e,
            )
            return None
