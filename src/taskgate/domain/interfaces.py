"""
Domain interfaces (Ports) for the work-coordination engine.

The persistence collaborator is consumed only through these contracts.
Implementations must be safe to call from several threads.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from taskgate.domain.models import Role

if TYPE_CHECKING:
    from taskgate.domain.models import (
        Dependency,
        ItemScope,
        RoleTransition,
        WorkItem,
    )


class WorkItemRepositoryInterface(ABC):
    """Port for work item storage."""

    @abstractmethod
    def create(self, item: "WorkItem") -> "WorkItem":
        """
        Store a new item.

        Raises:
            ValidationError: If an item with the same id already exists
            DatabaseError: On storage failure
        """
        pass

    @abstractmethod
    def get_by_id(self, item_id: str) -> "WorkItem":
        """
        Raises:
            NotFound: If no item has this id
            DatabaseError: On storage failure
        """
        pass

    @abstractmethod
    def update(self, item: "WorkItem") -> "WorkItem":
        """
        Replace the stored item with a guarded mutation of it.

        The candidate must carry version == stored.version + 1 (see
        taskgate.domain.mutation.check_version).

        Raises:
            NotFound: If the item does not exist
            VersionConflict: If the candidate was derived from a stale version
            DatabaseError: On storage failure
        """
        pass

    @abstractmethod
    def delete(self, item_id: str) -> bool:
        """Remove an item. Returns False if it did not exist."""
        pass

    @abstractmethod
    def find_candidates(
        self, scope: "ItemScope | None" = None, role: Role = Role.QUEUE
    ) -> list["WorkItem"]:
        """
        Items in the given role within scope, ordered by creation time.

        Raises:
            DatabaseError: On storage failure
        """
        pass

    @abstractmethod
    def find_children(self, parent_id: str) -> list["WorkItem"]:
        """Direct children of an item."""
        pass


class DependencyRepositoryInterface(ABC):
    """Port for dependency edge storage."""

    @abstractmethod
    def create(self, dependency: "Dependency") -> "Dependency":
        """
        Raises:
            ValidationError: If an identical edge already exists
        """
        pass

    @abstractmethod
    def get_by_id(self, dependency_id: str) -> "Dependency":
        """
        Raises:
            NotFound: If no edge has this id
        """
        pass

    @abstractmethod
    def delete(self, dependency_id: str) -> bool:
        """Remove one edge. Returns False if it did not exist."""
        pass

    @abstractmethod
    def find_dependencies_targeting(self, item_id: str) -> list["Dependency"]:
        """Edges whose blocked side is item_id (RELATES_TO into item_id included)."""
        pass

    @abstractmethod
    def find_dependencies_blocked_by(self, item_id: str) -> list["Dependency"]:
        """Blocking edges whose prerequisite side is item_id."""
        pass

    @abstractmethod
    def find_by_item(self, item_id: str) -> list["Dependency"]:
        """Every edge touching item_id on either end."""
        pass

    @abstractmethod
    def delete_dependencies_for(self, item_id: str) -> int:
        """Remove every edge touching item_id. Returns the number removed."""
        pass


class RoleTransitionRepositoryInterface(ABC):
    """Port for the append-only transition audit log."""

    @abstractmethod
    def append(self, transition: "RoleTransition") -> "RoleTransition":
        """
        Raises:
            DatabaseError: On storage failure
        """
        pass

    @abstractmethod
    def find_by_item(self, item_id: str) -> list["RoleTransition"]:
        """Audit trail of one item, oldest first."""
        pass
