"""
botarena/exceptions.py
Typed exceptions for the round engine.

Failures of eligibility and matchmaking halt round advancement and are
surfaced to the operator. Ingestion validation failures are returned to the
reporting collaborator, which retries with corrected data.

Duplicate reports and timed-out fixtures are not failures; they are
reported through IngestStatus and FixtureStatus instead.
"""
from typing import Optional


class ArenaError(Exception):
    """Base exception for the round engine."""
    code: str = "ARENA_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(self.message)


class CompetitionNotFoundError(ArenaError):
    code = "COMPETITION_NOT_FOUND"


class RoundNotFoundError(ArenaError):
    code = "ROUND_NOT_FOUND"


class TeamNotFoundError(ArenaError):
    code = "TEAM_NOT_FOUND"


class CompetitionHaltedError(ArenaError):
    """
    Raised when scheduling is attempted on a halted competition.

    A competition halts when a round had to be skipped; an operator must
    resume it explicitly.
    """
    code = "COMPETITION_HALTED"


class CompetitionClosedError(ArenaError):
    code = "COMPETITION_CLOSED"


class CompetitionNotStartedError(ArenaError):
    """Raised when a round is requested before the competition window opens."""
    code = "COMPETITION_NOT_STARTED"


class RoundInProgressError(ArenaError):
    """Raised when a new round is requested before the current one completed."""
    code = "ROUND_IN_PROGRESS"


class InvalidTransitionError(ArenaError):
    """Raised when a round state transition is not allowed."""
    code = "STATE_TRANSITION_INVALID"


class ConcurrentModificationError(InvalidTransitionError):
    """Raised when optimistic locking detects a concurrent round update."""
    code = "CONCURRENT_MODIFICATION"


class NoEligibleTeamsError(ArenaError):
    """Raised when fewer than two teams may take part in a round."""
    code = "NO_ELIGIBLE_TEAMS"

    def __init__(self, message: str, eligible_count: int = 0):
        self.eligible_count = eligible_count
        super().__init__(message)


class InsufficientTeamsError(ArenaError):
    """Raised when fewer than two teams remain to be paired after the bye."""
    code = "INSUFFICIENT_TEAMS"


class UnknownFixtureError(ArenaError):
    """Raised when a result arrives for a pair that was never dispatched."""
    code = "UNKNOWN_FIXTURE"


class InvalidOutcomeError(ArenaError):
    """Raised for malformed winner or bot references in a reported outcome."""
    code = "INVALID_OUTCOME"
