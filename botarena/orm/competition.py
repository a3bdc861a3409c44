"""
botarena/orm/competition.py
A tournament instance: time window, submission policy, round descriptor.

`allowed_submissions` and `round` are VARCHAR columns in the schema; the
properties below expose them as bool and int.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.orm import relationship

from botarena.orm.base import BaseModel, new_id
from botarena.core.timeutils import utcnow

DEFAULT_GAMES_PER_ROUND = 6


class Competition(BaseModel):
    __tablename__ = "competitions"

    name = Column(String(255), nullable=False)
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    allowed_submissions = Column(String(255), nullable=False, default="true")
    round = Column(String(255), nullable=False, default="0")
    type_ = Column("type", String(255), nullable=False)
    games_per_round = Column(Integer, nullable=False, default=DEFAULT_GAMES_PER_ROUND)
    game_pack = Column(String(255), nullable=False)

    teams = relationship("Team", back_populates="competition")

    @classmethod
    def new(
        cls,
        name: str,
        start: datetime,
        end: datetime,
        type_: str,
        games_per_round: int = DEFAULT_GAMES_PER_ROUND,
        allowed_submissions: bool = True,
        game_pack: Optional[str] = None,
    ) -> "Competition":
        """Build a freshly registered competition with no round opened yet."""
        return cls(
            id=new_id(),
            name=name,
            start=start,
            end=end,
            allowed_submissions=str(allowed_submissions).lower(),
            round="0",
            type_=type_,
            games_per_round=games_per_round,
            game_pack=game_pack or f"./resources/packs/Batalja{type_}Pack.zip",
            created=utcnow(),
        )

    @property
    def submissions_allowed(self) -> bool:
        return (self.allowed_submissions or "").strip().lower() == "true"

    @property
    def round_number(self) -> int:
        return int(self.round or 0)

    @round_number.setter
    def round_number(self, value: int) -> None:
        self.round = str(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "allowed_submissions": self.submissions_allowed,
            "round": self.round_number,
            "type": self.type_,
            "games_per_round": self.games_per_round,
            "game_pack": self.game_pack,
            "created": self.created.isoformat() if self.created else None,
        }

    def __repr__(self):
        return f"<Competition(id={self.id}, name='{self.name}', round={self.round})>"
