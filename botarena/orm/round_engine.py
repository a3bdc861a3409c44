"""
Round Engine ORM Models

Persisted scheduling state, so any process can resume a competition:
- competition_schedules: open / halted / closed per competition
- competition_rounds: state machine row per (competition, round)
- round_fixtures: dispatched pairings with pinned bots and deadlines
- round_byes: the unpaired team of an odd round
- standings_snapshots: standings written when a round closes
"""
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey,
    UniqueConstraint, Index
)

from botarena.orm.base import Base, new_id
from botarena.core.timeutils import utcnow


# =============================================================================
# Enums
# =============================================================================

class RoundState(str, PyEnum):
    PENDING = "pending"
    PAIRING = "pairing"
    AWAITING_RESULTS = "awaiting_results"
    CLOSING = "closing"
    COMPLETE = "complete"


class FixtureStatus(str, PyEnum):
    QUEUED = "queued"          # persisted, waiting for its wave
    DISPATCHED = "dispatched"  # handed to the game executor
    INGESTED = "ingested"      # game recorded
    VOID = "void"              # timed out, no rating impact


TERMINAL_FIXTURE_STATUSES = frozenset({FixtureStatus.INGESTED.value, FixtureStatus.VOID.value})


class ScheduleStatus(str, PyEnum):
    OPEN = "open"
    HALTED = "halted"
    CLOSED = "closed"


# =============================================================================
# Model 1: CompetitionSchedule
# =============================================================================

class CompetitionSchedule(Base):
    __tablename__ = "competition_schedules"

    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        primary_key=True
    )
    status = Column(String(20), nullable=False, default=ScheduleStatus.OPEN.value)
    # When set, completing this round closes the competition
    final_round = Column(Integer, nullable=True)
    halt_reason = Column(Text, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "competition_id": self.competition_id,
            "status": self.status,
            "final_round": self.final_round,
            "halt_reason": self.halt_reason,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }


# =============================================================================
# Model 2: CompetitionRound
# =============================================================================

class CompetitionRound(Base):
    __tablename__ = "competition_rounds"

    id = Column(String(255), primary_key=True, default=new_id)
    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)
    state = Column(String(30), nullable=False, default=RoundState.PENDING.value)
    current_wave = Column(Integer, nullable=False, default=0)
    wave_count = Column(Integer, nullable=False, default=0)
    skip_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    opened_at = Column(DateTime, nullable=False, default=utcnow)
    pairing_started_at = Column(DateTime, nullable=True)
    results_started_at = Column(DateTime, nullable=True)
    closing_started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint('competition_id', 'round_number', name='uq_round_competition_number'),
        Index('idx_rounds_competition', 'competition_id', 'state'),
    )

    # Optimistic locking: concurrent transitions raise StaleDataError on flush
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_skipped(self) -> bool:
        return self.state == RoundState.COMPLETE.value and self.skip_reason is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "round_number": self.round_number,
            "state": self.state,
            "current_wave": self.current_wave,
            "wave_count": self.wave_count,
            "skip_reason": self.skip_reason,
            "opened_at": self.opened_at.isoformat() if self.opened_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


# =============================================================================
# Model 3: RoundFixture
# =============================================================================

class RoundFixture(Base):
    __tablename__ = "round_fixtures"

    id = Column(String(255), primary_key=True, default=new_id)
    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)
    wave = Column(Integer, nullable=False)
    table_number = Column(Integer, nullable=False)

    # Dispatch orientation: team1 is the higher seed
    team1_id = Column(String(255), ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False)
    team2_id = Column(String(255), ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False)
    # team_low_id < team_high_id, for unordered-pair uniqueness and lookups
    team_low_id = Column(String(255), nullable=False)
    team_high_id = Column(String(255), nullable=False)

    # Bots pinned at pairing time
    team1bot1_id = Column(String(255), nullable=False)
    team1bot2_id = Column(String(255), nullable=False)
    team2bot1_id = Column(String(255), nullable=False)
    team2bot2_id = Column(String(255), nullable=False)

    status = Column(String(20), nullable=False, default=FixtureStatus.QUEUED.value)
    fixture_handle = Column(String(255), nullable=True, unique=True)
    game_id = Column(String(255), ForeignKey("games_2v2.id", ondelete="RESTRICT"), nullable=True)

    dispatched_at = Column(DateTime, nullable=True)
    deadline = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            'competition_id', 'round_number', 'team_low_id', 'team_high_id',
            name='uq_fixture_pair'
        ),
        UniqueConstraint('competition_id', 'round_number', 'table_number', name='uq_fixture_table'),
        Index('idx_fixtures_round_status', 'competition_id', 'round_number', 'status'),
    )

    @property
    def pinned_bots(self) -> Dict[str, Tuple[str, str]]:
        return {
            self.team1_id: (self.team1bot1_id, self.team1bot2_id),
            self.team2_id: (self.team2bot1_id, self.team2bot2_id),
        }

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_FIXTURE_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.status == FixtureStatus.DISPATCHED.value
            and self.deadline is not None
            and self.deadline <= now
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "round_number": self.round_number,
            "wave": self.wave,
            "table_number": self.table_number,
            "team1_id": self.team1_id,
            "team2_id": self.team2_id,
            "status": self.status,
            "fixture_handle": self.fixture_handle,
            "game_id": self.game_id,
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }


# =============================================================================
# Model 4: RoundBye
# =============================================================================

class RoundBye(Base):
    __tablename__ = "round_byes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)
    team_id = Column(String(255), ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('competition_id', 'round_number', name='uq_bye_round'),
        Index('idx_byes_team', 'competition_id', 'team_id'),
    )


# =============================================================================
# Model 5: StandingsSnapshot
# =============================================================================

class StandingsSnapshot(Base):
    __tablename__ = "standings_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)
    team_id = Column(String(255), ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False)
    rank = Column(Integer, nullable=False)
    elo = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('competition_id', 'round_number', 'team_id', name='uq_standing_team'),
    )

    def to_dict(self) -> Dict[str, Optional[Any]]:
        return {
            "competition_id": self.competition_id,
            "round_number": self.round_number,
            "team_id": self.team_id,
            "rank": self.rank,
            "elo": self.elo,
        }
