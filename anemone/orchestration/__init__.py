"""Chat orchestration: the coordinator and the planning service."""

from anemone.orchestration.agent_coordinator import PENDING_REPLY, AgentCoordinator
from anemone.orchestration.planning_service import PROCESSOR_NAME, PlanningService

__all__ = ["AgentCoordinator", "PENDING_REPLY", "PlanningService", "PROCESSOR_NAME"]
