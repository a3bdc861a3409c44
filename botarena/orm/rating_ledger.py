"""
Rating Ledger

Append-only history of every elo change, in ingestion order.
Team.elo must always equal the first elo_before of the team plus the sum
of its deltas; replay_ratings() verifies this.
"""
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index

from botarena.orm.base import Base
from botarena.core.timeutils import utcnow


class RatingLedgerEntry(Base):
    __tablename__ = "rating_ledger"

    # Autoincrement id doubles as the ingestion sequence
    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False
    )
    game_id = Column(String(255), ForeignKey("games_2v2.id", ondelete="RESTRICT"), nullable=False)
    team_id = Column(String(255), ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False)
    elo_before = Column(Integer, nullable=False)
    delta = Column(Integer, nullable=False)
    elo_after = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('game_id', 'team_id', name='uq_ledger_game_team'),
        Index('idx_ledger_team', 'team_id', 'id'),
        Index('idx_ledger_competition', 'competition_id'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.id,
            "competition_id": self.competition_id,
            "game_id": self.game_id,
            "team_id": self.team_id,
            "elo_before": self.elo_before,
            "delta": self.delta,
            "elo_after": self.elo_after,
        }
