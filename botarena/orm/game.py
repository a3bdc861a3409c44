"""
botarena/orm/game.py
Immutable record of one completed 2v2 game.

The four bots are pinned as they were at dispatch, and team1_elo/team2_elo
hold the pre-game ratings snapshotted at ingestion. Live ratings only live
on Team.

Games are always written in fixture orientation (team1 of the fixture is
team1 of the game), so the unique constraint below covers the unordered
team pair of a round.
"""
from typing import Any, Dict, Tuple

from sqlalchemy import (
    Column, String, Integer, Boolean, Text, ForeignKey,
    UniqueConstraint, Index
)

from botarena.orm.base import BaseModel

DRAW_WINNER = "draw"
VOID_WINNER = "void"
WINNER_SENTINELS = frozenset({DRAW_WINNER, VOID_WINNER})


class Game2v2(BaseModel):
    __tablename__ = "games_2v2"

    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False
    )
    round = Column(Integer, nullable=False)
    team1_id = Column(String(255), ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False)
    team2_id = Column(String(255), ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False)
    winner_id = Column(String(255), nullable=False)

    team1bot1_id = Column(String(255), nullable=False)
    team1bot2_id = Column(String(255), nullable=False)
    team2bot1_id = Column(String(255), nullable=False)
    team2bot2_id = Column(String(255), nullable=False)

    team1bot1_survived = Column(Boolean, nullable=False)
    team1bot2_survived = Column(Boolean, nullable=False)
    team2bot1_survived = Column(Boolean, nullable=False)
    team2bot2_survived = Column(Boolean, nullable=False)

    log_file_path = Column(String(4096), nullable=False, default="")
    public = Column(Boolean, nullable=False, default=True)
    # Engine-specific telemetry, stored and forwarded but never parsed
    additional_data = Column(Text, nullable=False, default="")

    team1_elo = Column(Integer, nullable=False)
    team2_elo = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('competition_id', 'round', 'team1_id', 'team2_id', name='uq_game_fixture'),
        Index('idx_games_competition_round', 'competition_id', 'round'),
    )

    @property
    def bot_ids(self) -> Tuple[str, str, str, str]:
        return (self.team1bot1_id, self.team1bot2_id, self.team2bot1_id, self.team2bot2_id)

    @property
    def is_void(self) -> bool:
        return self.winner_id == VOID_WINNER

    @property
    def is_draw(self) -> bool:
        return self.winner_id == DRAW_WINNER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "round": self.round,
            "team1_id": self.team1_id,
            "team2_id": self.team2_id,
            "winner_id": self.winner_id,
            "bots": list(self.bot_ids),
            "survived": [
                self.team1bot1_survived,
                self.team1bot2_survived,
                self.team2bot1_survived,
                self.team2bot2_survived,
            ],
            "log_file_path": self.log_file_path,
            "public": self.public,
            "team1_elo": self.team1_elo,
            "team2_elo": self.team2_elo,
            "created": self.created.isoformat() if self.created else None,
        }

    def __repr__(self):
        return (
            f"<Game2v2(id={self.id}, round={self.round}, "
            f"{self.team1_id} vs {self.team2_id}, winner={self.winner_id})>"
        )
