"""
Mutation guard: optimistic versioning and monotonic modification times.

Every write of a WorkItem goes through mutate(); repositories call
check_version() before accepting the candidate.
"""

import dataclasses
from datetime import datetime, timedelta
from typing import Any

from taskgate.domain.exceptions import ValidationError, VersionConflict
from taskgate.domain.models import WorkItem, utcnow

TICK = timedelta(microseconds=1)

_PROTECTED_FIELDS = frozenset({"id", "version", "modified_at", "created_at"})


def next_modified_at(previous: datetime, now: datetime) -> datetime:
    """Return now, or previous + one tick if the clock has not moved past it."""
    return max(now, previous + TICK)


def mutate(item: WorkItem, *, now: datetime | None = None, **changes: Any) -> WorkItem:
    """
    Produce the next version of item with the given field changes.

    Raises:
        ValidationError: If changes touch identity/version fields or
            violate a WorkItem invariant
    """
    protected = _PROTECTED_FIELDS.intersection(changes)
    if protected:
        raise ValidationError(
            f"Fields {sorted(protected)} are managed by the mutation guard"
        )
    modified_at = next_modified_at(item.modified_at, now or utcnow())
    return dataclasses.replace(
        item, version=item.version + 1, modified_at=modified_at, **changes
    )


def check_version(stored: WorkItem, candidate: WorkItem) -> None:
    """
    Accept candidate only if it was derived from the stored version.

    Raises:
        VersionConflict: If candidate does not carry stored.version + 1, or
            its modification time does not advance past the stored one
    """
    if candidate.version != stored.version + 1:
        raise VersionConflict(
            candidate.id,
            expected_version=candidate.version - 1,
            actual_version=stored.version,
        )
    if candidate.modified_at <= stored.modified_at:
        raise VersionConflict(
            candidate.id,
            expected_version=candidate.version - 1,
            actual_version=stored.version,
        )
