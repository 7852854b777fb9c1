"""RecommendationEngine: rank unblocked QUEUE items for "do next" queries."""

import logging

from taskgate.application.dependency_gate import DependencyGate
from taskgate.domain.exceptions import ValidationError
from taskgate.domain.interfaces import WorkItemRepositoryInterface
from taskgate.domain.models import (
    MAX_COMPLEXITY,
    ItemScope,
    Recommendation,
    Role,
    WorkItem,
    priority_rank,
)

logger = logging.getLogger("taskgate.recommendation")


def rank_key(item: WorkItem) -> tuple[int, int]:
    """Priority first, then lower complexity; unrated complexity sorts last."""
    complexity = item.complexity if item.complexity is not None else MAX_COMPLEXITY + 1
    return (priority_rank(item.priority), complexity)


class RecommendationEngine:
    """
    Read-only ranking over live state.

    Candidates are QUEUE items in scope that the dependency gate does not
    hold back under each edge's unblock threshold. Ranking is a stable
    sort, so ties keep repository (creation) order.
    """

    def __init__(self, work_items: WorkItemRepositoryInterface, gate: DependencyGate):
        self._work_items = work_items
        self._gate = gate

    def recommend(self, scope: ItemScope | None = None, limit: int = 1) -> Recommendation:
        """
        Args:
            scope: Restrict candidates to a subtree and/or tags
            limit: Maximum recommendations to return (>= 1)

        Raises:
            ValidationError: If limit is below 1
            DatabaseError: If candidates cannot be loaded
        """
        if limit < 1:
            raise ValidationError(f"limit must be >= 1 (got {limit})")

        candidates = self._work_items.find_candidates(scope, role=Role.QUEUE)
        unblocked = [item for item in candidates if not self._gate.is_blocked(item.id)]
        ranked = sorted(unblocked, key=rank_key)
        logger.debug(
            "%d QUEUE candidate(s), %d unblocked, returning %d",
            len(candidates),
            len(unblocked),
            min(limit, len(ranked)),
        )
        return Recommendation(
            recommendations=tuple(ranked[:limit]),
            total_candidates=len(unblocked),
        )
