"""Health/Tick Controller.

Drives the simulation clock. Every tick it ages each agent, degrades its
stats, classifies its health and schedules its next decision at
``now + stagger x multiplier`` (sooner for agents in trouble). Due agents
then run the decision pipeline:

1. ``can_make_new_decision`` gate (no overlap, minimum inter-step delay)
2. execute the current eligible step, if any
3. otherwise, if a new plan is needed, consult the oracle once, store the
   plan, and execute its first step immediately

All processing happens on one event loop. The oracle call is the only
suspension point; an agent is never in two pipelines at once.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Callable, Dict, List, Optional, Set

from .action_log import ActionLog
from .actions import ActionExecutor, failure
from .cognition.oracle import DecisionOracleAdapter
from .cognition.plan import PlanStep
from .cognition.plan_store import PlanStore
from .config import Config
from .health import HealthReport, assess_health
from .lifecycle import compute_age, degrade_stats
from .logging_utils import log_action, log_error, log_info, log_tick
from .memory import MemoryStrategy
from .perception import PerceptionBuilder
from .schemas import ActionResult, Agent
from .state import AgentStateStore
from .world import WorldResourceRegistry

TickHook = Callable[[int, List[HealthReport]], None]


class HealthTickController:
    """Periodic driver for aging, degradation and staggered decisions."""

    def __init__(
        self,
        *,
        store: AgentStateStore,
        plans: PlanStore,
        oracle: DecisionOracleAdapter,
        executor: ActionExecutor,
        perception: PerceptionBuilder,
        world: WorldResourceRegistry,
        memory: MemoryStrategy,
        action_log: Optional[ActionLog] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        tick_interval: float = Config.TICK_INTERVAL_SECONDS,
        stagger_range: float = Config.DECISION_STAGGER_SECONDS,
    ) -> None:
        self.store = store
        self.plans = plans
        self.oracle = oracle
        self.executor = executor
        self.perception = perception
        self.world = world
        self.memory = memory
        self.action_log = action_log or ActionLog(clock=clock)
        self._clock = clock
        self._rng = rng or random.Random()
        self.tick_interval = tick_interval
        self.stagger_range = stagger_range

        self.tick_count = 0
        self.on_tick: List[TickHook] = []
        self._stagger: Dict[str, float] = {}
        self._next_decision_at: Dict[str, float] = {}
        self._awaiting_oracle: Set[str] = set()
        self._pipelines: Dict[str, asyncio.Task] = {}
        self._running = False

    # Registration -----------------------------------------------------------

    def register(self, agent: Agent) -> None:
        """Add an agent to the store and give it a random decision stagger."""
        self.store.set_agent(agent, source="controller")
        offset = self._rng.uniform(0, self.stagger_range)
        self._stagger[agent.id] = offset
        self._next_decision_at[agent.id] = self._clock() + offset

    def unregister(self, agent_id: str) -> bool:
        """Remove an agent, its plan, its schedule and its memories.

        An oracle call already in flight for it finishes, but its result is
        discarded.
        """
        self._stagger.pop(agent_id, None)
        self._next_decision_at.pop(agent_id, None)
        self.plans.clear_plan(agent_id)
        self.memory.clear_agent(agent_id)
        return self.store.remove_agent(agent_id, source="controller")

    def is_registered(self, agent_id: str) -> bool:
        return agent_id in self._stagger

    def stagger_for(self, agent_id: str) -> Optional[float]:
        return self._stagger.get(agent_id)

    def next_decision_at(self, agent_id: str) -> Optional[float]:
        return self._next_decision_at.get(agent_id)

    # Tick -------------------------------------------------------------------

    def tick(self) -> List[HealthReport]:
        """Age, degrade and reschedule every registered agent."""
        now = self._clock()
        reports: List[HealthReport] = []
        for agent_id in list(self._stagger):
            try:
                report = self.check_agent(agent_id, now)
            except Exception as exc:  # one agent's fault must not stop the tick
                log_error(f"Health check failed for {agent_id}: {exc}")
                continue
            if report is not None:
                reports.append(report)

        self.tick_count += 1
        critical = sum(1 for r in reports if r.status in ("critical", "dying"))
        log_tick(self.tick_count, len(reports), critical)
        for hook in self.on_tick:
            hook(self.tick_count, reports)
        return reports

    def check_agent(self, agent_id: str, now: float) -> Optional[HealthReport]:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            return None

        if agent.is_alive:
            stats = degrade_stats(agent, now)
            self.store.update_stats(agent_id, stats.model_dump(), source="health", checked_at=now)
            age = compute_age(agent, now)
            alive = age < 1 and stats.health > 0
            self.store.update_age(agent_id, age, alive, source="health")
            if not alive:
                log_error(f"{agent.name} has died")

        agent = self.store.get_agent(agent_id)
        report = assess_health(agent)
        if agent.is_alive:
            due = now + self._stagger[agent_id] * report.decision_delay_multiplier
            current = self._next_decision_at.get(agent_id)
            self._next_decision_at[agent_id] = due if current is None else min(current, due)
        else:
            self._next_decision_at.pop(agent_id, None)
        return report

    # Decision pipeline ------------------------------------------------------

    def due_agents(self, now: Optional[float] = None) -> List[str]:
        now = self._clock() if now is None else now
        return [
            agent_id for agent_id, due in self._next_decision_at.items()
            if due <= now and agent_id not in self._pipelines
        ]

    async def process_due(self) -> Dict[str, str]:
        """Run the pipeline for every due agent and wait for all of them."""
        tasks = self.dispatch_due()
        if not tasks:
            return {}
        outcomes = await asyncio.gather(*tasks.values())
        return dict(zip(tasks.keys(), outcomes))

    def dispatch_due(self) -> Dict[str, asyncio.Task]:
        """Start pipelines for due agents without waiting for them."""
        started: Dict[str, asyncio.Task] = {}
        for agent_id in self.due_agents():
            self._next_decision_at.pop(agent_id, None)
            task = asyncio.create_task(self._guarded_pipeline(agent_id))
            self._pipelines[agent_id] = task
            started[agent_id] = task
        return started

    async def _guarded_pipeline(self, agent_id: str) -> str:
        try:
            return await self.run_decision_pipeline(agent_id)
        except Exception as exc:  # isolate agents from each other's failures
            log_error(f"Decision pipeline failed for {agent_id}: {exc!r}")
            return "error"
        finally:
            self._pipelines.pop(agent_id, None)

    async def run_decision_pipeline(self, agent_id: str) -> str:
        """One decision attempt for one agent.

        Returns ``skipped`` (gone or dead), ``waiting`` (gated or nothing to
        do yet), ``executed`` (ran a step of the existing plan), ``planned``
        (stored a new plan and ran its first step) or ``discarded`` (agent
        removed while the oracle was thinking).
        """
        agent = self.store.get_agent(agent_id)
        if agent is None or not agent.is_alive:
            return "skipped"
        if not self.plans.can_make_new_decision(agent_id):
            return "waiting"

        step = self.plans.get_current_step(agent_id)
        if step is not None:
            await self.execute_step(agent_id, step)
            return "executed"

        if not self.plans.needs_new_plan(agent_id) or agent_id in self._awaiting_oracle:
            return "waiting"

        self._awaiting_oracle.add(agent_id)
        try:
            snapshot = self.perception.build_snapshot(agent)
            decision = await self.oracle.decide(
                agent, snapshot, self.plans.get_plan(agent_id), needs_new_plan=True
            )
        finally:
            self._awaiting_oracle.discard(agent_id)

        if not self.is_registered(agent_id) or self.store.get_agent(agent_id) is None:
            log_info(f"Discarding plan for removed agent {agent_id}")
            return "discarded"
        if decision.plan is None or not decision.plan.steps:
            return "waiting"

        self.plans.store_plan(decision.plan)
        log_info(
            f"{agent.name} plans ({decision.source}): "
            + " -> ".join(s.action for s in decision.plan.steps)
        )
        first = self.plans.get_current_step(agent_id)
        if first is not None:
            await self.execute_step(agent_id, first, reasoning=decision.reasoning)
        return "planned"

    async def execute_step(self, agent_id: str, step: PlanStep, reasoning: str = "") -> Optional[ActionResult]:
        """Start, execute, apply and complete one step.

        ``complete_current_step`` runs exactly once, even if applying the
        result raises.
        """
        agent = self.store.get_agent(agent_id)
        if agent is None:
            return None

        self.plans.start_step(agent_id, step.id)
        success = False
        try:
            snapshot = self.perception.build_snapshot(agent)
            result = await self.executor.execute(agent, step.action, step.params, snapshot)
            result = self.apply_result(agent, step.action, result)
            success = result.success
        finally:
            self.plans.complete_current_step(agent_id, success, step_id=step.id)

        after = self.store.get_agent(agent_id)
        self.action_log.record(
            agent_id=agent_id,
            agent_name=agent.name,
            action=step.action,
            success=result.success,
            message=result.message,
            reasoning=reasoning or step.reason,
            stats_before=agent.stats.model_dump(),
            stats_after=after.stats.model_dump() if after else {},
        )
        log_action(agent.name, step.action, result.success, result.message)
        return result

    def apply_result(self, agent: Agent, action: str, result: ActionResult) -> ActionResult:
        """Apply an executor result to the world, the store and memory.

        Inventory changes are worked out first; if any of them is impossible
        the whole result turns into a failure and nothing is written.
        """
        if not result.success:
            self._record_failure(agent, action, result.message)
            self.store.update_action(agent.id, "idle", source="action")
            return result

        inventory = agent.inventory
        if result.consumed_item is not None:
            item = result.consumed_item
            inventory = inventory.remove(item.type, item.quantity, item_id=item.id)
            if inventory is None:
                return self._reject(agent, action, f"{agent.name} no longer has {item.name}")
        if result.building is not None:
            for material, count in result.building.materials_used.items():
                inventory = inventory.remove(material, count)
                if inventory is None:
                    return self._reject(agent, action, f"{agent.name} ran out of {material}")
        if result.harvested_item is not None:
            inventory = inventory.add(result.harvested_item)
            if inventory is None:
                return self._reject(agent, action, f"{agent.name}'s inventory is full")

        if result.harvested_item is not None and result.resource_id is not None:
            outcome = self.world.harvest(result.resource_id, result.harvested_item.quantity)
            if not outcome.success:
                return self._reject(agent, action, outcome.message)
        if result.building is not None:
            structure = self.world.apply_building_change(
                result.building, agent_id=agent.id, now=self._clock()
            )
            if structure is None:
                return self._reject(agent, action, f"{result.building.name} is gone")

        if inventory is not agent.inventory:
            self.store.update_inventory(agent.id, inventory, source="action")
        self.store.update_from_action_result(agent.id, result, action, source="action")

        for discovery in result.discoveries:
            self.memory.add_discovery(
                agent.id,
                discovery.type,
                discovery.description,
                discovery.position,
                reliability=discovery.reliability,
            )
        return result

    def _reject(self, agent: Agent, action: str, message: str) -> ActionResult:
        self._record_failure(agent, action, message)
        self.store.update_action(agent.id, "idle", source="action")
        return failure(message)

    def _record_failure(self, agent: Agent, action: str, message: str) -> None:
        self.memory.record_failure(agent.id, action, message, agent.position)

    # Loop -------------------------------------------------------------------

    async def run(
        self,
        *,
        max_ticks: Optional[int] = None,
        duration: Optional[float] = None,
        poll_interval: float = 0.5,
    ) -> None:
        """Tick every ``tick_interval`` and dispatch due pipelines in between.

        Stops after ``max_ticks`` ticks, after ``duration`` seconds, or when
        ``stop()`` is called; then waits for running pipelines.
        """
        self._running = True
        started = self._clock()
        next_tick = started
        try:
            while self._running:
                now = self._clock()
                if now >= next_tick:
                    self.tick()
                    next_tick = now + self.tick_interval
                self.dispatch_due()
                if max_ticks is not None and self.tick_count >= max_ticks:
                    break
                if duration is not None and now - started >= duration:
                    break
                await asyncio.sleep(poll_interval)
        finally:
            self._running = False
            await self.drain()

    def stop(self) -> None:
        self._running = False

    async def drain(self) -> None:
        """Wait for every running pipeline to finish."""
        if self._pipelines:
            await asyncio.gather(*list(self._pipelines.values()))
