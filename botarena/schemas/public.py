"""
botarena/schemas/public.py
Public views of competitions and teams.

These omit operational fields (game pack, games per round, elo) and expose
the string-typed columns of the schema with their real types.
"""
from datetime import datetime

from pydantic import BaseModel, Field


class PublicCompetition(BaseModel):
    id: str
    name: str
    start: datetime
    end: datetime
    allowed_submissions: bool
    round: int = Field(..., ge=0)
    type: str
    created: datetime

    @classmethod
    def from_orm_competition(cls, competition) -> "PublicCompetition":
        return cls(
            id=competition.id,
            name=competition.name,
            start=competition.start,
            end=competition.end,
            allowed_submissions=competition.submissions_allowed,
            round=competition.round_number,
            type=competition.type_,
            created=competition.created,
        )


class PublicTeam(BaseModel):
    id: str
    owner: str
    partner: str
    competition_id: str
    bot1: str
    bot2: str
    created: datetime

    @classmethod
    def from_orm_team(cls, team) -> "PublicTeam":
        return cls(
            id=team.id,
            owner=team.owner,
            partner=team.partner,
            competition_id=team.competition_id,
            bot1=team.bot1,
            bot2=team.bot2,
            created=team.created,
        )
