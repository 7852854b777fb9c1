"""Runtime configuration of the coordination engine."""

from dataclasses import dataclass
from enum import Enum

from taskgate.domain.exceptions import ValidationError


class LockPolicy(str, Enum):
    """How long a contended lock acquisition may wait."""

    FAIL_FAST = "fail_fast"  # short bounded retry window
    WAIT = "wait"  # bounded wait with the long timeout


@dataclass(frozen=True)
class EngineConfig:
    """
    Tunables for locking, sessions and transition gating.

    Role names and the trigger vocabulary are fixed and not configurable.
    """

    lock_policy: LockPolicy = LockPolicy.FAIL_FAST
    lock_retry_window_seconds: float = 0.2
    lock_wait_timeout_seconds: float = 10.0
    session_timeout_seconds: float = 7200.0
    gate_forward_transitions: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.lock_policy, LockPolicy):
            raise ValidationError(f"Unknown lock policy: {self.lock_policy!r}")
        if self.lock_retry_window_seconds < 0:
            raise ValidationError("lock_retry_window_seconds must be >= 0")
        if self.lock_wait_timeout_seconds <= 0:
            raise ValidationError("lock_wait_timeout_seconds must be > 0")
        if self.session_timeout_seconds <= 0:
            raise ValidationError("session_timeout_seconds must be > 0")

    @property
    def lock_timeout_seconds(self) -> float:
        """Bounded wait applied to a contended acquire under the active policy."""
        if self.lock_policy == LockPolicy.WAIT:
            return self.lock_wait_timeout_seconds
        return self.lock_retry_window_seconds
