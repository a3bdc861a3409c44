"""
botarena/orm/team.py
Two-owner team with exactly two bot slots and a live elo rating.

Elo is only ever changed by result ingestion; bot references change on
resubmission. Teams are never deleted while games reference them.
"""
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from botarena.config import get_settings
from botarena.orm.base import Base, BaseModel, new_id
from botarena.core.timeutils import utcnow


class Team(BaseModel):
    __tablename__ = "teams"

    name = Column(String(255), nullable=False)
    owner = Column(String(255), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    # Empty until a partner joins
    partner = Column(String(255), nullable=False, default="")
    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    # Current bots; empty until submitted
    bot1 = Column(String(255), nullable=False, default="")
    bot2 = Column(String(255), nullable=False, default="")
    elo = Column(Integer, nullable=False, default=lambda: get_settings().initial_elo)

    competition = relationship("Competition", back_populates="teams")
    owner_user = relationship("User", back_populates="owned_teams", foreign_keys=[owner])

    @classmethod
    def new(
        cls,
        owner: str,
        competition_id: str,
        name: str,
        elo: Optional[int] = None,
    ) -> "Team":
        """Register a team with no partner and no bots, rated at the configured initial elo."""
        return cls(
            id=new_id(),
            name=name,
            owner=owner,
            partner="",
            competition_id=competition_id,
            bot1="",
            bot2="",
            elo=get_settings().initial_elo if elo is None else elo,
            created=utcnow(),
        )

    @property
    def bot_ids(self) -> Tuple[str, str]:
        return (self.bot1, self.bot2)

    @property
    def has_full_roster(self) -> bool:
        return bool(self.bot1) and bool(self.bot2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "partner": self.partner,
            "competition_id": self.competition_id,
            "bot1": self.bot1,
            "bot2": self.bot2,
            "elo": self.elo,
            "created": self.created.isoformat() if self.created else None,
        }

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}', elo={self.elo})>"


class TeamWithdrawal(Base):
    """A team pulled out of its competition. Withdrawn teams are never paired."""
    __tablename__ = "team_withdrawals"

    team_id = Column(
        String(255),
        ForeignKey("teams.id", ondelete="RESTRICT"),
        primary_key=True
    )
    competition_id = Column(
        String(255),
        ForeignKey("competitions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    reason = Column(Text, nullable=False, default="")
    created = Column(DateTime, nullable=False, default=utcnow)
