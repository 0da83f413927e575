"""
Spatial memory for agents.

Agents remember where they found things (discoveries) and where actions
went wrong (failures). Memories are tied to positions; their reliability
fades with time since the spot was last visited, and relevance ranking
blends distance with recency.

Key responsibilities:
- Store discoveries, merging repeats of the same thing at the same spot
- Store failures so later snapshots can warn the planner
- Retrieve a small, ranked window of memories near a position
- Forget stale memories so the store stays bounded
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from .schemas import MemoryRecord, Position, clamp

MERGE_DISTANCE = 3.0
MAX_DISCOVERIES = 50
KEEP_AFTER_TRIM = 30
MAX_FAILURES = 20
RELEVANCE_DISTANCE = 15.0
MIN_RELIABILITY = 0.3
FORGET_RELIABILITY = 0.1
DECAY_PER_HOUR = 0.2
RECENCY_SECONDS_PER_UNIT = 10.0


class MemoryStrategy(ABC):
    """Abstract base class for agent spatial memory.

    Implementations decide how memories are stored and ranked; the
    perception builder and executor only use this interface.
    """

    @abstractmethod
    def add_discovery(
        self,
        agent_id: str,
        discovery_type: str,
        description: str,
        position: Position,
        reliability: float = 0.6,
    ) -> MemoryRecord:
        """Remember something found at ``position``."""

    @abstractmethod
    def record_failure(
        self,
        agent_id: str,
        action: str,
        reason: str,
        position: Position,
    ) -> MemoryRecord:
        """Remember that ``action`` failed at ``position``."""

    @abstractmethod
    def get_relevant(
        self,
        agent_id: str,
        position: Position,
        *,
        kind: str = "discovery",
        max_distance: float = RELEVANCE_DISTANCE,
        limit: int = 10,
    ) -> List[MemoryRecord]:
        """Memories near ``position`` worth showing to the planner, best first."""

    @abstractmethod
    def clear_agent(self, agent_id: str) -> None:
        """Forget everything about an agent (e.g. after removal)."""


class SpatialMemoryStream(MemoryStrategy):
    """In-memory implementation with reliability decay and bounded size."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._discoveries: Dict[str, List[MemoryRecord]] = {}
        self._failures: Dict[str, List[MemoryRecord]] = {}

    def effective_reliability(self, memory: MemoryRecord, now: Optional[float] = None) -> float:
        """Stored reliability minus decay since the spot was last visited."""
        now = self._clock() if now is None else now
        hours = max(0.0, now - memory.last_visited) / 3600.0
        return clamp(memory.reliability - DECAY_PER_HOUR * hours, 0.0, 1.0)

    def add_discovery(
        self,
        agent_id: str,
        discovery_type: str,
        description: str,
        position: Position,
        reliability: float = 0.6,
    ) -> MemoryRecord:
        now = self._clock()
        memories = self._discoveries.setdefault(agent_id, [])

        for index, existing in enumerate(memories):
            if existing.type == discovery_type and existing.position.planar_distance(position) < MERGE_DISTANCE:
                merged = existing.model_copy(
                    update={
                        "reliability": clamp(existing.reliability + 0.1, 0.0, 1.0),
                        "last_visited": now,
                        "description": description,
                    }
                )
                memories[index] = merged
                return merged

        memory = MemoryRecord(
            agent_id=agent_id,
            kind="discovery",
            type=discovery_type,
            description=description,
            position=position,
            timestamp=now,
            last_visited=now,
            reliability=clamp(reliability, 0.0, 1.0),
        )
        memories.append(memory)
        if len(memories) > MAX_DISCOVERIES:
            memories.sort(key=lambda m: m.last_visited, reverse=True)
            del memories[KEEP_AFTER_TRIM:]
        return memory

    def record_failure(
        self,
        agent_id: str,
        action: str,
        reason: str,
        position: Position,
    ) -> MemoryRecord:
        now = self._clock()
        memory = MemoryRecord(
            agent_id=agent_id,
            kind="failure",
            type=action,
            description=reason,
            position=position,
            timestamp=now,
            last_visited=now,
            reliability=1.0,
        )
        failures = self._failures.setdefault(agent_id, [])
        failures.append(memory)
        del failures[:-MAX_FAILURES]
        return memory

    def get_relevant(
        self,
        agent_id: str,
        position: Position,
        *,
        kind: str = "discovery",
        max_distance: float = RELEVANCE_DISTANCE,
        limit: int = 10,
    ) -> List[MemoryRecord]:
        now = self._clock()
        source = self._discoveries if kind == "discovery" else self._failures
        scored = []
        for memory in source.get(agent_id, []):
            distance = position.planar_distance(memory.position)
            if distance > max_distance:
                continue
            if self.effective_reliability(memory, now) <= MIN_RELIABILITY:
                continue
            score = distance + (now - memory.last_visited) / RECENCY_SECONDS_PER_UNIT
            scored.append((score, memory))
        scored.sort(key=lambda pair: pair[0])
        return [memory for _, memory in scored[:limit]]

    def discoveries(self, agent_id: str) -> List[MemoryRecord]:
        return list(self._discoveries.get(agent_id, []))

    def failures(self, agent_id: str) -> List[MemoryRecord]:
        return list(self._failures.get(agent_id, []))

    def cleanup(self, agent_id: str) -> int:
        """Drop discoveries whose effective reliability has faded away.

        Returns how many were forgotten.
        """
        now = self._clock()
        memories = self._discoveries.get(agent_id, [])
        kept = [m for m in memories if self.effective_reliability(m, now) > FORGET_RELIABILITY]
        self._discoveries[agent_id] = kept
        return len(memories) - len(kept)

    def clear_agent(self, agent_id: str) -> None:
        self._discoveries.pop(agent_id, None)
        self._failures.pop(agent_id, None)
