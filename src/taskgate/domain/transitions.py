"""
Role state machine.

Pure functions deciding whether a trigger is legal from a role and what
the resulting role, remembered role and display label are. Persistence,
locking and dependency gating are applied on top of this by
taskgate.application.transition_service.
"""

from dataclasses import dataclass

from taskgate.domain.exceptions import InvalidTransition, UnknownTrigger
from taskgate.domain.models import Role, Trigger

CANCELLED_LABEL = "cancelled"

# (from_role, trigger) -> target role. BLOCK and RESUME are resolved
# separately because their target depends on the item's history.
_TABLE: dict[tuple[Role, Trigger], Role] = {
    (Role.QUEUE, Trigger.START): Role.WORK,
    (Role.WORK, Trigger.START): Role.REVIEW,
    (Role.WORK, Trigger.COMPLETE): Role.TERMINAL,
    (Role.REVIEW, Trigger.COMPLETE): Role.TERMINAL,
    (Role.WORK, Trigger.HOLD): Role.QUEUE,
    (Role.QUEUE, Trigger.CANCEL): Role.TERMINAL,
    (Role.WORK, Trigger.CANCEL): Role.TERMINAL,
    (Role.REVIEW, Trigger.CANCEL): Role.TERMINAL,
    (Role.BLOCKED, Trigger.CANCEL): Role.TERMINAL,
}

_BLOCKABLE = frozenset({Role.QUEUE, Role.WORK, Role.REVIEW})


@dataclass(frozen=True)
class TransitionResolution:
    """Field values an accepted transition writes onto the item."""

    target_role: Role
    previous_role: Role | None
    status_label: str | None


def parse_trigger(value: "str | Trigger") -> Trigger:
    """
    Resolve a trigger name (case-insensitive).

    Raises:
        UnknownTrigger: If the name is outside the closed vocabulary
    """
    if isinstance(value, Trigger):
        return value
    try:
        return Trigger(str(value).strip().lower())
    except ValueError as e:
        raise UnknownTrigger(str(value), (t.value for t in Trigger)) from e


def legal_triggers(role: Role, previous_role: Role | None = None) -> tuple[Trigger, ...]:
    """Triggers accepted from role, in vocabulary order."""
    legal = []
    for trigger in Trigger:
        if trigger == Trigger.BLOCK:
            if role in _BLOCKABLE:
                legal.append(trigger)
        elif trigger == Trigger.RESUME:
            if role == Role.BLOCKED and previous_role is not None:
                legal.append(trigger)
        elif (role, trigger) in _TABLE:
            legal.append(trigger)
    return tuple(legal)


def resolve_transition(
    role: Role,
    trigger: Trigger,
    previous_role: Role | None = None,
    status_label: str | None = None,
) -> TransitionResolution:
    """
    Compute the outcome of applying trigger to an item in role.

    Args:
        role: Current role of the item
        trigger: Validated trigger
        previous_role: Role remembered by the last "block"
        status_label: Current display label (kept by "block")

    Raises:
        InvalidTransition: If trigger is not legal from role
    """
    if trigger == Trigger.BLOCK:
        if role not in _BLOCKABLE:
            raise InvalidTransition(role, trigger, legal_triggers(role, previous_role))
        return TransitionResolution(
            target_role=Role.BLOCKED,
            previous_role=role,
            status_label=status_label,
        )

    if trigger == Trigger.RESUME:
        if role != Role.BLOCKED:
            raise InvalidTransition(role, trigger, legal_triggers(role, previous_role))
        if previous_role is None:
            raise InvalidTransition(
                role,
                trigger,
                legal_triggers(role, previous_role),
                reason="Item is blocked without a remembered role (corrupt state)",
            )
        return TransitionResolution(
            target_role=previous_role, previous_role=None, status_label=None
        )

    target = _TABLE.get((role, trigger))
    if target is None:
        raise InvalidTransition(role, trigger, legal_triggers(role, previous_role))

    label = CANCELLED_LABEL if trigger == Trigger.CANCEL else None
    return TransitionResolution(target_role=target, previous_role=None, status_label=label)
