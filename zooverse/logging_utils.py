"""Console output for Zooverse runs.

Every line carries a channel tag so the source of a message can be told
apart without color: ticks and rule-based plans, oracle calls, action
outcomes, faults. Color is layered on top unless ``ZOOVERSE_NO_COLOR`` (or
the common ``NO_COLOR``) is set.
"""

import os
from enum import Enum
from typing import Dict, Tuple


class Color(Enum):
    """ANSI color codes for terminal output."""

    BLUE = "\033[94m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    CYAN = "\033[96m"

    BOLD = "\033[1m"
    RESET = "\033[0m"


LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_LLM = "[LLM]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"

# channel -> (tag, color)
CHANNELS: Dict[str, Tuple[str, Color]] = {
    "sim": (LOG_TAG_DETERMINISTIC, Color.BLUE),
    "oracle": (LOG_TAG_LLM, Color.YELLOW),
    "fault": (LOG_TAG_ERROR, Color.RED),
    "done": (LOG_TAG_SUCCESS, Color.GREEN),
    "info": (LOG_TAG_INFO, Color.CYAN),
}


def color_enabled() -> bool:
    return not (os.getenv("ZOOVERSE_NO_COLOR") or os.getenv("NO_COLOR"))


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap ``text`` in ANSI codes when color output is enabled."""
    if not color_enabled():
        return text
    prefix = (Color.BOLD.value if bold else "") + color.value
    return f"{prefix}{text}{Color.RESET.value}"


def format_line(channel: str, message: str) -> str:
    tag, color = CHANNELS[channel]
    return colored(f"{tag} {message}", color)


def emit(channel: str, message: str) -> None:
    print(format_line(channel, message))


def log_deterministic(message: str) -> None:
    """Ticks, regeneration and fallback planning."""
    emit("sim", message)


def log_llm(message: str) -> None:
    emit("oracle", message)


def log_error(message: str) -> None:
    emit("fault", message)


def log_success(message: str) -> None:
    emit("done", message)


def log_info(message: str) -> None:
    emit("info", message)


def log_tick(tick: int, checked: int, in_danger: int) -> None:
    """One summary line per health tick."""
    line = f"Tick {tick}: {checked} agent(s) checked"
    if in_danger:
        line += f", {in_danger} in danger"
    emit("sim", line)


def log_action(agent_name: str, action: str, success: bool, message: str) -> None:
    """Outcome of one executed plan step."""
    emit("done" if success else "fault", f"{agent_name} [{action}] {message}")
