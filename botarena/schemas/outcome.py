"""
botarena/schemas/outcome.py
Pydantic schemas for game outcomes reported by the game execution collaborator.

Structural checks (two teams, two bots each, non-empty ids) live here.
Checks against the fixture (right teams, pinned bots, winner) are done by
result ingestion, which knows the fixture.
"""
from typing import List, Tuple

from pydantic import BaseModel, Field, field_validator


class BotResult(BaseModel):
    """One bot of a finished game."""
    bot_id: str = Field(..., min_length=1, description="Bot that played")
    survived: bool = Field(..., description="Whether the bot was alive at game end")


class TeamResult(BaseModel):
    """One side of a finished 2v2 game."""
    team_id: str = Field(..., min_length=1, description="Team that played")
    bots: List[BotResult] = Field(..., min_length=2, max_length=2, description="Exactly two bots")

    @property
    def bot_ids(self) -> Tuple[str, str]:
        return (self.bots[0].bot_id, self.bots[1].bot_id)


class GameOutcome(BaseModel):
    """
    Outcome of one fixture, as reported after the game ran.

    winner_id is one of the two team ids, or "draw" / "void".
    """
    winner_id: str = Field(..., min_length=1, description="Winning team id, 'draw' or 'void'")
    teams: List[TeamResult] = Field(..., min_length=2, max_length=2, description="Both sides")
    log_file_path: str = Field("", description="Where the game log was stored")
    public: bool = Field(True, description="Whether the game may be listed publicly")
    additional_data: str = Field("", description="Opaque engine telemetry")

    @field_validator('teams')
    @classmethod
    def validate_distinct_teams(cls, v: List[TeamResult]) -> List[TeamResult]:
        """Both sides must be different teams"""
        if v[0].team_id == v[1].team_id:
            raise ValueError("Outcome lists the same team twice")
        return v

    def team_result(self, team_id: str) -> TeamResult:
        for team in self.teams:
            if team.team_id == team_id:
                return team
        raise KeyError(team_id)

    @property
    def team_ids(self) -> Tuple[str, str]:
        return (self.teams[0].team_id, self.teams[1].team_id)


class FixtureKey(BaseModel):
    """Identifies a fixture by its unordered team pair within a round."""
    competition_id: str = Field(..., min_length=1)
    round_number: int = Field(..., ge=1)
    team_a_id: str = Field(..., min_length=1)
    team_b_id: str = Field(..., min_length=1)

    @property
    def normalized_pair(self) -> Tuple[str, str]:
        if self.team_a_id < self.team_b_id:
            return (self.team_a_id, self.team_b_id)
        return (self.team_b_id, self.team_a_id)
