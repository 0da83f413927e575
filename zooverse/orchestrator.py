"""
Simulation orchestrator.

Wires the injected services together and owns population-level concerns
the per-agent controller does not: spawning, removal, periodic resource
regeneration, breeding rounds and a bounded world event feed.

Usage::

    orchestrator = Orchestrator.create(seed=7)
    orchestrator.spawn_initial_population(6)
    await orchestrator.run(max_ticks=20)
"""

from __future__ import annotations

import random
import time
from collections import deque
from typing import Callable, Deque, List, Optional

from .action_log import ActionLog
from .actions import ActionExecutor
from .breeding import BreedingSystem
from .cognition.oracle import DecisionOracleAdapter, LLMOracleTransport, OracleTransport
from .cognition.plan_store import PlanStore
from .config import Config
from .controller import HealthTickController
from .health import HealthReport
from .lifecycle import create_agent
from .logging_utils import log_info
from .memory import SpatialMemoryStream
from .perception import PerceptionBuilder
from .schemas import Agent, Position, WorldEvent
from .state import AgentStateStore
from .world import WorldResourceRegistry, generate_initial_resources

MAX_EVENTS = 100


class Orchestrator:
    """Top-level simulation built from explicitly constructed services."""

    def __init__(
        self,
        *,
        world: WorldResourceRegistry,
        store: AgentStateStore,
        controller: HealthTickController,
        breeding: BreedingSystem,
        rng: random.Random,
        clock: Callable[[], float] = time.time,
        max_agents: int = Config.MAX_AGENTS,
        world_size: float = Config.WORLD_SIZE,
        regeneration_every: int = 2,
        breeding_every: int = 4,
    ) -> None:
        self.world = world
        self.store = store
        self.controller = controller
        self.breeding = breeding
        self.rng = rng
        self._clock = clock
        self.max_agents = max_agents
        self.world_size = world_size
        self.regeneration_every = regeneration_every
        self.breeding_every = breeding_every
        self.events: Deque[WorldEvent] = deque(maxlen=MAX_EVENTS)
        self._deaths_recorded: set[str] = set()
        controller.on_tick.append(self._on_tick)

    @classmethod
    def create(
        cls,
        *,
        seed: Optional[int] = None,
        transport: Optional[OracleTransport] = None,
        use_llm: bool = True,
        clock: Callable[[], float] = time.time,
        world_size: float = Config.WORLD_SIZE,
    ) -> "Orchestrator":
        """Build a full simulation with default services.

        When ``transport`` is omitted and ``use_llm`` is true, the oracle
        uses the LLM configured in ``Config`` (agents fall back to rule-based
        plans if none is set).
        """
        rng = random.Random(seed)
        if transport is None and use_llm and Config.LLM_PROVIDER:
            transport = LLMOracleTransport()

        world = WorldResourceRegistry(
            generate_initial_resources(rng, world_size=world_size), rng=rng
        )
        store = AgentStateStore(clock=clock)
        memory = SpatialMemoryStream(clock=clock)
        plans = PlanStore(clock=clock)
        perception = PerceptionBuilder(world, store, memory, clock=clock)
        executor = ActionExecutor(world, memory=memory, rng=rng)
        oracle = DecisionOracleAdapter(transport, clock=clock)
        controller = HealthTickController(
            store=store,
            plans=plans,
            oracle=oracle,
            executor=executor,
            perception=perception,
            world=world,
            memory=memory,
            action_log=ActionLog(clock=clock),
            clock=clock,
            rng=rng,
        )
        breeding = BreedingSystem(rng=rng, clock=clock)
        return cls(
            world=world,
            store=store,
            controller=controller,
            breeding=breeding,
            rng=rng,
            clock=clock,
            world_size=world_size,
        )

    # Population -------------------------------------------------------------

    def living_agents(self) -> List[Agent]:
        return [agent for agent in self.store.get_all_agents() if agent.is_alive]

    def spawn_agent(self, agent: Optional[Agent] = None, *, position: Optional[Position] = None) -> Optional[Agent]:
        """Register ``agent`` (or a random newborn). None when the world is full."""
        if len(self.living_agents()) >= self.max_agents:
            return None
        agent = agent or create_agent(
            rng=self.rng, now=self._clock(), position=position, world_size=self.world_size
        )
        self.controller.register(agent)
        self.add_event("birth", f"{agent.name} joined the world", [agent.id])
        return agent

    def spawn_initial_population(self, count: int) -> List[Agent]:
        spawned = []
        for _ in range(count):
            agent = self.spawn_agent()
            if agent is None:
                break
            spawned.append(agent)
        return spawned

    def remove_agent(self, agent_id: str) -> bool:
        agent = self.store.get_agent(agent_id)
        removed = self.controller.unregister(agent_id)
        self.breeding.forget(agent_id)
        if removed and agent is not None:
            self.add_event("removal", f"{agent.name} left the world", [agent_id])
        return removed

    # Periodic cycles --------------------------------------------------------

    def regeneration_cycle(self) -> int:
        return self.world.regenerate_tick()

    def breeding_cycle(self) -> List[Agent]:
        room = self.max_agents - len(self.living_agents())
        if room <= 0:
            return []
        offspring = self.breeding.auto_breeding(self.living_agents(), max_offspring=min(room, 2))
        for child in offspring:
            self.spawn_agent(child)
        return offspring

    def _on_tick(self, tick: int, reports: List[HealthReport]) -> None:
        for report in reports:
            if report.status == "dying" and report.agent_id not in self._deaths_recorded:
                agent = self.store.get_agent(report.agent_id)
                if agent is not None:
                    self._deaths_recorded.add(agent.id)
                    self.add_event("death", f"{agent.name} died", [agent.id])
        if self.regeneration_every and tick % self.regeneration_every == 0:
            self.regeneration_cycle()
        if self.breeding_every and tick % self.breeding_every == 0:
            self.breeding_cycle()

    # Events -----------------------------------------------------------------

    def add_event(self, event_type: str, description: str, agent_ids: Optional[List[str]] = None) -> WorldEvent:
        event = WorldEvent(
            timestamp=self._clock(),
            type=event_type,
            description=description,
            agent_ids=list(agent_ids or []),
        )
        self.events.append(event)
        return event

    # Loop -------------------------------------------------------------------

    async def run(
        self,
        *,
        max_ticks: Optional[int] = None,
        duration: Optional[float] = None,
        poll_interval: float = 0.5,
    ) -> None:
        log_info(Config.display())
        log_info(
            f"Starting simulation: {len(self.living_agents())} agent(s), "
            f"{len(self.world.all_resources())} resource node(s)"
        )
        await self.controller.run(max_ticks=max_ticks, duration=duration, poll_interval=poll_interval)
        log_info(f"Simulation stopped after {self.controller.tick_count} tick(s)")
