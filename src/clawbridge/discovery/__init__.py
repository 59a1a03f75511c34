"""Agent tool execution and discovery result recovery."""

from clawbridge.discovery.models import (
    DEFAULT_TOOL_CHAIN,
    AgentTool,
    Candidate,
    DiscoveryJob,
    DiscoveryMode,
    DiscoveryResult,
)
from clawbridge.discovery.orchestrator import DiscoveryOrchestrator
from clawbridge.discovery.supervisor import ProcessSupervisor

__all__ = [
    "DEFAULT_TOOL_CHAIN",
    "AgentTool",
    "Candidate",
    "DiscoveryJob",
    "DiscoveryMode",
    "DiscoveryOrchestrator",
    "DiscoveryResult",
    "ProcessSupervisor",
]
