"""Agent State Store.

The single authoritative ``agent_id -> Agent`` map. Every mutation goes
through here, replaces the stored record, and queues a typed change event.
Events are delivered on the next turn of the event loop (or on an explicit
``flush()``), grouped per agent and coalesced per change type, so callback
frequency is bounded by the number of flushes rather than mutations.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from .logging_utils import log_error
from .schemas import (
    ActionResult,
    Agent,
    Inventory,
    Position,
    clamp,
)

ChangeType = Literal["full", "stats", "position", "action", "inventory"]


@dataclass
class AgentChange:
    """A change notification. ``data`` holds the fields that changed; a
    ``full`` change with empty data means the agent was removed."""

    agent_id: str
    type: ChangeType
    data: Dict[str, Any] = field(default_factory=dict)
    source: str = "system"
    timestamp: float = 0.0


Subscriber = Callable[[AgentChange], None]


class AgentStateStore:
    """Authoritative agent map with deferred, coalesced change events."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._agents: Dict[str, Agent] = {}
        self._subscribers: Dict[str, Subscriber] = {}
        self._queue: List[AgentChange] = []
        self._clock = clock
        self._flush_scheduled = False
        self._flushing = False

    # Reads ------------------------------------------------------------------

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def get_all_agents(self) -> List[Agent]:
        return list(self._agents.values())

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    # Writes -----------------------------------------------------------------

    def set_agent(self, agent: Agent, source: str = "system") -> None:
        self._agents[agent.id] = agent
        self._queue_change(agent.id, "full", agent.model_dump(), source)

    def remove_agent(self, agent_id: str, source: str = "system") -> bool:
        if self._agents.pop(agent_id, None) is None:
            return False
        self._queue_change(agent_id, "full", {}, source)
        return True

    def update_stats(
        self,
        agent_id: str,
        stats: Dict[str, float],
        source: str = "system",
        *,
        checked_at: Optional[float] = None,
    ) -> bool:
        """Overwrite the given stats with absolute values (clamped)."""
        agent = self._agents.get(agent_id)
        if agent is None:
            return False
        updates: Dict[str, Any] = {"stats": agent.stats.with_values(stats)}
        if checked_at is not None:
            updates["last_health_check"] = checked_at
        self._agents[agent_id] = agent.model_copy(update=updates)
        self._queue_change(agent_id, "stats", updates["stats"].model_dump(), source)
        return True

    def update_position(self, agent_id: str, position: Position, source: str = "system") -> bool:
        agent = self._agents.get(agent_id)
        if agent is None:
            return False
        self._agents[agent_id] = agent.model_copy(update={"position": position})
        self._queue_change(agent_id, "position", {"position": position.model_dump()}, source)
        return True

    def update_action(self, agent_id: str, action_label: str, source: str = "system") -> bool:
        agent = self._agents.get(agent_id)
        if agent is None:
            return False
        self._agents[agent_id] = agent.model_copy(update={"current_action": action_label})
        self._queue_change(agent_id, "action", {"current_action": action_label}, source)
        return True

    def update_inventory(self, agent_id: str, inventory: Inventory, source: str = "system") -> bool:
        agent = self._agents.get(agent_id)
        if agent is None:
            return False
        self._agents[agent_id] = agent.model_copy(update={"inventory": inventory})
        self._queue_change(agent_id, "inventory", {"inventory": inventory.model_dump()}, source)
        return True

    def update_age(self, agent_id: str, age: float, alive: bool, source: str = "system") -> bool:
        agent = self._agents.get(agent_id)
        if agent is None:
            return False
        age = clamp(age, 0.0, 1.0)
        alive = alive and age < 1
        self._agents[agent_id] = agent.model_copy(update={"age": age, "is_alive": alive})
        self._queue_change(agent_id, "full", {"age": age, "is_alive": alive}, source)
        return True

    def update_from_action_result(
        self,
        agent_id: str,
        result: ActionResult,
        action_label: str,
        source: str = "action",
    ) -> bool:
        """Apply stat deltas, new position and action label in one write.

        Inventory and world effects are not handled here; the caller applies
        those through ``update_inventory`` and the world registry.
        """
        agent = self._agents.get(agent_id)
        if agent is None:
            return False
        updates: Dict[str, Any] = {"current_action": action_label}
        if result.stat_deltas:
            updates["stats"] = agent.stats.with_deltas(result.stat_deltas)
        if result.new_position is not None:
            updates["position"] = result.new_position
        self._agents[agent_id] = agent.model_copy(update=updates)

        if "stats" in updates:
            self._queue_change(agent_id, "stats", updates["stats"].model_dump(), source)
        if "position" in updates:
            self._queue_change(
                agent_id, "position", {"position": updates["position"].model_dump()}, source
            )
        self._queue_change(agent_id, "action", {"current_action": action_label}, source)
        return True

    # Subscriptions ----------------------------------------------------------

    def subscribe(self, subscriber_id: str, callback: Subscriber) -> None:
        self._subscribers[subscriber_id] = callback

    def unsubscribe(self, subscriber_id: str) -> None:
        self._subscribers.pop(subscriber_id, None)

    def state_stats(self) -> Dict[str, int]:
        return {
            "agents": len(self._agents),
            "subscribers": len(self._subscribers),
            "queued_changes": len(self._queue),
        }

    # Notification queue -----------------------------------------------------

    def _queue_change(self, agent_id: str, change_type: ChangeType, data: Dict[str, Any], source: str) -> None:
        self._queue.append(
            AgentChange(
                agent_id=agent_id,
                type=change_type,
                data=data,
                source=source,
                timestamp=self._clock(),
            )
        )
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._flush_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous use): changes wait for an explicit flush().
            return
        self._flush_scheduled = True
        loop.call_soon(self._scheduled_flush)

    def _scheduled_flush(self) -> None:
        self._flush_scheduled = False
        self.flush()

    def flush(self) -> int:
        """Deliver queued changes. Returns the number of callbacks made.

        Changes queued by subscribers while this runs wait for the next flush.
        """
        if self._flushing or not self._queue:
            return 0

        self._flushing = True
        batch, self._queue = self._queue, []
        delivered = 0
        try:
            for change in self._coalesce(batch):
                for subscriber_id, callback in list(self._subscribers.items()):
                    try:
                        callback(change)
                    except Exception as exc:  # subscriber faults must not block the others
                        log_error(f"State subscriber {subscriber_id} failed: {exc}")
                    delivered += 1
        finally:
            self._flushing = False

        if self._queue:
            self._schedule_flush()
        return delivered

    @staticmethod
    def _coalesce(batch: List[AgentChange]) -> List[AgentChange]:
        """Group by agent (first-seen order), one change per type, later data winning."""
        grouped: "OrderedDict[str, OrderedDict[str, AgentChange]]" = OrderedDict()
        for change in batch:
            per_agent = grouped.setdefault(change.agent_id, OrderedDict())
            if change.type == "full" and not change.data:
                # A removal (full change, empty data) supersedes everything pending.
                per_agent.clear()
            previous = per_agent.get(change.type)
            if previous is None:
                per_agent[change.type] = AgentChange(
                    agent_id=change.agent_id,
                    type=change.type,
                    data=dict(change.data),
                    source=change.source,
                    timestamp=change.timestamp,
                )
                continue
            previous.data.update(change.data)
            previous.source = change.source
            previous.timestamp = change.timestamp

        return [change for per_agent in grouped.values() for change in per_agent.values()]
