"""
Zooverse - animal agents that plan, forage and build in a shared world.

Decisions come from an LLM oracle when one is configured and from a
rule-based planner otherwise. All services are constructed explicitly and
injected; nothing is a module-level singleton.
"""

__version__ = "0.1.0"

from .orchestrator import Orchestrator
from .controller import HealthTickController
from .state import AgentStateStore, AgentChange
from .world import WorldResourceRegistry, HarvestOutcome, generate_initial_resources
from .perception import PerceptionBuilder
from .actions import ActionExecutor
from .action_log import ActionLog, ActionLogEntry
from .memory import MemoryStrategy, SpatialMemoryStream
from .breeding import BreedingSystem
from .health import HealthReport, HealthAlert, assess_health
from .lifecycle import create_agent
from .cognition import (
    Plan,
    PlanStep,
    PlanStore,
    Decision,
    DecisionOracleAdapter,
    LLMOracleTransport,
    build_fallback_plan,
)
from .schemas import (
    ACTION_NAMES,
    ActionResult,
    Agent,
    AgentStats,
    GeneticTraits,
    Inventory,
    InventoryItem,
    PerceptionSnapshot,
    Position,
    Structure,
    WorldResource,
)

__all__ = [
    "Orchestrator",
    "HealthTickController",
    "AgentStateStore",
    "AgentChange",
    "WorldResourceRegistry",
    "HarvestOutcome",
    "generate_initial_resources",
    "PerceptionBuilder",
    "ActionExecutor",
    "ActionLog",
    "ActionLogEntry",
    "MemoryStrategy",
    "SpatialMemoryStream",
    "BreedingSystem",
    "HealthReport",
    "HealthAlert",
    "assess_health",
    "create_agent",
    "Plan",
    "PlanStep",
    "PlanStore",
    "Decision",
    "DecisionOracleAdapter",
    "LLMOracleTransport",
    "build_fallback_plan",
    "ACTION_NAMES",
    "ActionResult",
    "Agent",
    "AgentStats",
    "GeneticTraits",
    "Inventory",
    "InventoryItem",
    "PerceptionSnapshot",
    "Position",
    "Structure",
    "WorldResource",
]
