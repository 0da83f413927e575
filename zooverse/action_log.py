"""Bounded history of executed actions with live subscribers."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional

from .logging_utils import log_error

MAX_ENTRIES = 500


@dataclass
class ActionLogEntry:
    timestamp: float
    agent_id: str
    agent_name: str
    action: str
    success: bool
    message: str
    reasoning: str = ""
    stats_before: Dict[str, float] = field(default_factory=dict)
    stats_after: Dict[str, float] = field(default_factory=dict)


class ActionLog:
    def __init__(
        self,
        *,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: Deque[ActionLogEntry] = deque(maxlen=max_entries)
        self._subscribers: List[Callable[[ActionLogEntry], None]] = []
        self._clock = clock

    def record(
        self,
        *,
        agent_id: str,
        agent_name: str,
        action: str,
        success: bool,
        message: str,
        reasoning: str = "",
        stats_before: Optional[Dict[str, float]] = None,
        stats_after: Optional[Dict[str, float]] = None,
    ) -> ActionLogEntry:
        entry = ActionLogEntry(
            timestamp=self._clock(),
            agent_id=agent_id,
            agent_name=agent_name,
            action=action,
            success=success,
            message=message,
            reasoning=reasoning,
            stats_before=dict(stats_before or {}),
            stats_after=dict(stats_after or {}),
        )
        self._entries.append(entry)
        for callback in list(self._subscribers):
            try:
                callback(entry)
            except Exception as exc:  # one bad listener must not stop the others
                log_error(f"Action log subscriber failed: {exc}")
        return entry

    def subscribe(self, callback: Callable[[ActionLogEntry], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def recent(self, limit: int = 50, agent_id: Optional[str] = None) -> List[ActionLogEntry]:
        entries = [e for e in self._entries if agent_id is None or e.agent_id == agent_id]
        return entries[-limit:]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
