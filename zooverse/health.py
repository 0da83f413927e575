"""Health assessment used by the tick controller to pace decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal

from .lifecycle import life_stage, survival_priority
from .schemas import Agent

Severity = Literal["low", "medium", "high", "critical"]
HealthStatus = Literal["healthy", "warning", "critical", "dying"]

# Fraction of the stagger range an agent waits before its next decision.
DECISION_DELAY_MULTIPLIERS: dict[str, float] = {
    "dying": 0.1,
    "critical": 0.1,
    "warning": 0.3,
    "healthy": 1.0,
}


@dataclass
class HealthAlert:
    stat: str
    severity: Severity
    message: str
    value: float


@dataclass
class HealthReport:
    agent_id: str
    status: HealthStatus
    alerts: List[HealthAlert] = field(default_factory=list)
    survival_priority: float = 0.0
    life_stage: str = "adult"
    recommendation: str = "idle"

    @property
    def decision_delay_multiplier(self) -> float:
        return DECISION_DELAY_MULTIPLIERS[self.status]


def _alerts_for(agent: Agent) -> List[HealthAlert]:
    stats = agent.stats
    alerts: List[HealthAlert] = []

    if not agent.is_alive:
        alerts.append(HealthAlert("alive", "critical", f"{agent.name} has died", 0.0))
        return alerts

    if stats.health < 10:
        alerts.append(HealthAlert("health", "critical", "Health is critically low", stats.health))
    elif stats.health < 30:
        alerts.append(HealthAlert("health", "high", "Health is low", stats.health))

    if stats.hunger > 90:
        alerts.append(HealthAlert("hunger", "critical", "Starving", stats.hunger))
    elif stats.hunger > 70:
        alerts.append(HealthAlert("hunger", "high", "Very hungry", stats.hunger))

    if stats.thirst > 90:
        alerts.append(HealthAlert("thirst", "critical", "Severely dehydrated", stats.thirst))
    elif stats.thirst > 70:
        alerts.append(HealthAlert("thirst", "high", "Very thirsty", stats.thirst))

    if stats.energy < 10:
        alerts.append(HealthAlert("energy", "high", "Exhausted", stats.energy))

    if stats.happiness < 20:
        alerts.append(HealthAlert("happiness", "medium", "Unhappy", stats.happiness))

    return alerts


def _recommend(agent: Agent) -> str:
    stats = agent.stats
    if survival_priority(stats) > 0:
        if stats.thirst > 70:
            return "drinking"
        if stats.hunger > 70:
            return "eating"
        if stats.energy < 30 or stats.health < 30:
            return "sleeping"
    stage = life_stage(agent.age)
    if stage in ("baby", "young"):
        return "playing"
    if stage == "elder":
        return "socializing"
    return "exploring"


def assess_health(agent: Agent) -> HealthReport:
    """Classify an agent's condition.

    Status is ``dying`` for dead agents, ``critical`` when any alert is
    critical, ``warning`` when any alert is high, otherwise ``healthy``.
    """

    alerts = _alerts_for(agent)
    if not agent.is_alive:
        status: HealthStatus = "dying"
    elif any(alert.severity == "critical" for alert in alerts):
        status = "critical"
    elif any(alert.severity == "high" for alert in alerts):
        status = "warning"
    else:
        status = "healthy"

    return HealthReport(
        agent_id=agent.id,
        status=status,
        alerts=alerts,
        survival_priority=survival_priority(agent.stats),
        life_stage=life_stage(agent.age),
        recommendation=_recommend(agent),
    )
