"""
Application layer for the work-coordination engine.

Contains the coordination services that apply domain rules to stored state.
"""

from taskgate.application.config import EngineConfig, LockPolicy
from taskgate.application.dependency_gate import DependencyGate
from taskgate.application.engine import WorkflowEngine
from taskgate.application.locking import EntityLockCoordinator
from taskgate.application.recommendation import RecommendationEngine
from taskgate.application.sessions import SessionManager
from taskgate.application.transition_service import RoleTransitionService

__all__ = [
    "DependencyGate",
    "EngineConfig",
    "EntityLockCoordinator",
    "LockPolicy",
    "RecommendationEngine",
    "RoleTransitionService",
    "SessionManager",
    "WorkflowEngine",
]
