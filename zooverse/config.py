"""
Zooverse Configuration

Loads configuration from environment variables with sensible defaults.
Services take these values as keyword defaults; nothing reads the
environment after import.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    # Decision oracle (LLM). Leaving the provider unset runs agents on the
    # rule-based fallback planner only.
    LLM_PROVIDER: str | None = os.getenv("LLM_PROVIDER")
    LLM_MODEL: str | None = os.getenv("LLM_MODEL")

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Local LLM (Ollama)
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")

    # Tick loop and scheduling
    TICK_INTERVAL_SECONDS: float = float(os.getenv("TICK_INTERVAL_SECONDS", "30"))
    DECISION_STAGGER_SECONDS: float = float(os.getenv("DECISION_STAGGER_SECONDS", "15"))
    MIN_STEP_DELAY_SECONDS: float = float(os.getenv("MIN_STEP_DELAY_SECONDS", "1.0"))
    ORACLE_TIMEOUT_SECONDS: float = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "30"))

    # Planning
    LOW_CONFIDENCE_THRESHOLD: float = float(os.getenv("LOW_CONFIDENCE_THRESHOLD", "0.3"))
    PLAN_MAX_AGE_SECONDS: float = float(os.getenv("PLAN_MAX_AGE_SECONDS", "600"))
    PLAN_HISTORY_SIZE: int = int(os.getenv("PLAN_HISTORY_SIZE", "5"))

    # Spatial limits
    HARVEST_RADIUS: float = float(os.getenv("HARVEST_RADIUS", "4.0"))
    MAX_EXPLORATION_RADIUS: float = float(os.getenv("MAX_EXPLORATION_RADIUS", "15.0"))
    WORLD_SIZE: float = float(os.getenv("WORLD_SIZE", "100"))
    MAX_AGENTS: int = int(os.getenv("MAX_AGENTS", "50"))

    # Logging
    DEBUG_LLM: bool = _env_flag("DEBUG_LLM")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if cls.LLM_PROVIDER and not cls.LLM_MODEL:
            raise ValueError(
                "LLM_MODEL is required when LLM_PROVIDER is set. "
                "Unset LLM_PROVIDER to run agents on the fallback planner only."
            )

        if cls.LLM_PROVIDER == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if cls.LLM_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For local models, set LLM_PROVIDER=ollama instead."
            )

        if cls.HARVEST_RADIUS <= 0 or cls.MAX_EXPLORATION_RADIUS <= 0:
            raise ValueError("HARVEST_RADIUS and MAX_EXPLORATION_RADIUS must be positive")

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Zooverse Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER or '(fallback planner only)'}",
            f"  LLM Model: {cls.LLM_MODEL or '-'}",
            f"  Tick Interval: {cls.TICK_INTERVAL_SECONDS}s",
            f"  Decision Stagger: {cls.DECISION_STAGGER_SECONDS}s",
            f"  Oracle Timeout: {cls.ORACLE_TIMEOUT_SECONDS}s",
            f"  Harvest Radius: {cls.HARVEST_RADIUS}",
            f"  Max Exploration Radius: {cls.MAX_EXPLORATION_RADIUS}",
        ]
        return "\n".join(lines)
