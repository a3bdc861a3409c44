"""
Pydantic read models for round state and standings.

All schemas are read-only and built from ORM rows with from_attributes.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FixtureView(BaseModel):
    """A paired fixture of a round."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    wave: int
    table_number: int
    team1_id: str
    team2_id: str
    status: str = Field(..., description="queued | dispatched | ingested | void")
    fixture_handle: Optional[str] = None
    deadline: Optional[datetime] = None
    game_id: Optional[str] = None


class GameView(BaseModel):
    """An ingested game."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    team1_id: str
    team2_id: str
    winner_id: str
    team1_elo: int
    team2_elo: int
    log_file_path: str = ""
    created: Optional[datetime] = None


class ByeView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team_id: str
    round_number: int


class RoundStateView(BaseModel):
    """
    Current round of a competition.

    Used by: get_round_state() and `botarena round state`
    """
    competition_id: str
    round_number: int = Field(..., ge=0, description="0 when no round was opened yet")
    state: Optional[str] = Field(None, description="pending | pairing | awaiting_results | closing | complete")
    schedule_status: str = Field(..., description="open | halted | closed")
    current_wave: int = 0
    wave_count: int = 0
    skip_reason: Optional[str] = None
    fixtures: List[FixtureView] = Field(default_factory=list)
    games: List[GameView] = Field(default_factory=list)
    bye: Optional[ByeView] = None


class StandingEntry(BaseModel):
    """One row of the standings table (elo desc, team id asc)."""
    model_config = ConfigDict(from_attributes=True)

    rank: int = Field(..., ge=1)
    team_id: str
    name: str
    elo: int
    games_played: int = Field(0, ge=0)
