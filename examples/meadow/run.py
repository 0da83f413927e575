"""Meadow: a handful of animals foraging, building and resting.

Run with the rule-based planner only (no LLM):

    UV_CACHE_DIR=.uv-cache uv run python -m examples.meadow.run --ticks 6

Let an LLM decide (requires LLM_PROVIDER/LLM_MODEL and an API key, or
LLM_PROVIDER=ollama):

    UV_CACHE_DIR=.uv-cache uv run python -m examples.meadow.run --llm --ticks 6
"""

from __future__ import annotations

import argparse
import asyncio
from typing import List

from zooverse import Orchestrator
from zooverse.config import Config
from zooverse.logging_utils import Color, colored, log_info
from zooverse.schemas import Agent


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the meadow simulation")
    parser.add_argument("--ticks", type=int, default=6, help="Number of health ticks to run")
    parser.add_argument("--agents", type=int, default=6, help="Initial population")
    parser.add_argument("--seed", type=int, default=7, help="Random seed for the world and agents")
    parser.add_argument(
        "--tick-interval",
        type=float,
        default=2.0,
        help="Seconds between ticks (the simulation runs in real time)",
    )
    parser.add_argument("--llm", action="store_true", help="Use the configured LLM as the oracle")
    return parser.parse_args()


def describe(agent: Agent) -> str:
    stats = agent.stats
    status = "alive" if agent.is_alive else "dead"
    carrying = ", ".join(f"{i.quantity} {i.name}" for i in agent.inventory.items) or "nothing"
    return (
        f"{agent.name:<22} {status:<5} {agent.current_action:<11} "
        f"hp {stats.health:5.1f}  hunger {stats.hunger:5.1f}  thirst {stats.thirst:5.1f}  "
        f"energy {stats.energy:5.1f}  carrying {carrying}"
    )


def print_summary(orchestrator: Orchestrator) -> None:
    print()
    print(colored("Population", Color.CYAN, bold=True))
    agents: List[Agent] = sorted(orchestrator.store.get_all_agents(), key=lambda a: a.name)
    for agent in agents:
        print("  " + describe(agent))

    structures = orchestrator.world.all_structures()
    if structures:
        print(colored("Structures", Color.CYAN, bold=True))
        for structure in structures:
            print(f"  {structure.name} at ({structure.position.x:.0f}, {structure.position.z:.0f}), comfort {structure.comfort:.0f}")

    print(colored("Recent actions", Color.CYAN, bold=True))
    for entry in orchestrator.controller.action_log.recent(limit=10):
        mark = "ok " if entry.success else "err"
        print(f"  [{mark}] {entry.agent_name}: {entry.action} - {entry.message}")

    print(colored("Events", Color.CYAN, bold=True))
    for event in orchestrator.events:
        print(f"  {event.type}: {event.description}")


async def main() -> None:
    args = parse_args()
    if args.llm:
        Config.validate()

    orchestrator = Orchestrator.create(seed=args.seed, use_llm=args.llm)
    orchestrator.controller.tick_interval = args.tick_interval
    orchestrator.controller.stagger_range = args.tick_interval * 2
    orchestrator.spawn_initial_population(args.agents)
    log_info(f"Spawned {len(orchestrator.living_agents())} animals")

    await orchestrator.run(max_ticks=args.ticks, poll_interval=0.25)
    print_summary(orchestrator)


if __name__ == "__main__":
    asyncio.run(main())
