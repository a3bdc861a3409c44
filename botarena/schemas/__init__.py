from .outcome import BotResult, TeamResult, GameOutcome, FixtureKey
from .round_state import FixtureView, GameView, ByeView, RoundStateView, StandingEntry
from .public import PublicCompetition, PublicTeam

__all__ = [
    "BotResult", "TeamResult", "GameOutcome", "FixtureKey",
    "FixtureView", "GameView", "ByeView", "RoundStateView", "StandingEntry",
    "PublicCompetition", "PublicTeam",
]
