"""
Engine Settings

Centralized configuration for the round engine.
All values are loaded from environment variables (optionally via a .env file).
"""
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return int(value)


def get_float_env(key: str, default: float) -> float:
    """Get a float value from environment variable."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return float(value)


@dataclass(frozen=True)
class EngineSettings:
    """
    Settings for the scheduling, matchmaking and rating engine.

    To add a new setting:
    1. Add it here as a field with its default
    2. Load it from the environment in from_env()
    3. Pass the settings object to the service that needs it
    """

    database_url: str = "sqlite+aiosqlite:///./botarena.db"
    sql_echo: bool = False

    # Rating engine
    elo_k_factor: int = 32
    initial_elo: int = 1000

    # Round scheduler
    fixture_timeout_seconds: int = 900
    round_poll_interval_seconds: float = 5.0
    round_wait_timeout_seconds: float = 3600.0

    # Matchmaker: node budget for the repeat-free pairing search
    pairing_search_budget: int = 20000

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            sql_echo=get_bool_env("SQL_ECHO", cls.sql_echo),
            elo_k_factor=get_int_env("ELO_K_FACTOR", cls.elo_k_factor),
            initial_elo=get_int_env("INITIAL_ELO", cls.initial_elo),
            fixture_timeout_seconds=get_int_env("FIXTURE_TIMEOUT_SECONDS", cls.fixture_timeout_seconds),
            round_poll_interval_seconds=get_float_env(
                "ROUND_POLL_INTERVAL_SECONDS", cls.round_poll_interval_seconds
            ),
            round_wait_timeout_seconds=get_float_env(
                "ROUND_WAIT_TIMEOUT_SECONDS", cls.round_wait_timeout_seconds
            ),
            pairing_search_budget=get_int_env("PAIRING_SEARCH_BUDGET", cls.pairing_search_budget),
        )


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Process-wide settings, read once from the environment."""
    return EngineSettings.from_env()
