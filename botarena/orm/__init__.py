from .base import Base, new_id

# Schema tables
from .user import User, UserRole
from .competition import Competition
from .team import Team, TeamWithdrawal
from .bot import Bot
from .game import Game2v2, DRAW_WINNER, VOID_WINNER, WINNER_SENTINELS

# Engine tables
from .round_engine import (
    CompetitionSchedule, CompetitionRound, RoundFixture, RoundBye, StandingsSnapshot,
    RoundState, FixtureStatus, ScheduleStatus, TERMINAL_FIXTURE_STATUSES,
)
from .rating_ledger import RatingLedgerEntry

__all__ = [
    "Base", "new_id",
    "User", "UserRole",
    "Competition",
    "Team", "TeamWithdrawal",
    "Bot",
    "Game2v2", "DRAW_WINNER", "VOID_WINNER", "WINNER_SENTINELS",
    "CompetitionSchedule", "CompetitionRound", "RoundFixture", "RoundBye", "StandingsSnapshot",
    "RoundState", "FixtureStatus", "ScheduleStatus", "TERMINAL_FIXTURE_STATUSES",
    "RatingLedgerEntry",
]
