"""
Elo Rating Engine

Chess-style rating updates for ingested 2v2 games.

Guarantees:
- Pure function of the game record (winner + pre-game elo snapshots)
- Zero-sum rating changes between the two teams
- Void games change nothing
- Replaying the ledger in ingestion order reproduces Team.elo
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from botarena.orm.game import Game2v2, DRAW_WINNER, VOID_WINNER
from botarena.orm.rating_ledger import RatingLedgerEntry
from botarena.orm.team import Team

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingDelta:
    team_a_id: str
    team_b_id: str
    delta_a: int
    delta_b: int

    def for_team(self, team_id: str) -> int:
        if team_id == self.team_a_id:
            return self.delta_a
        if team_id == self.team_b_id:
            return self.delta_b
        raise KeyError(team_id)


class EloRatingService:
    """Server-side Elo rating calculator with a fixed K-factor."""

    def __init__(self, k_factor: int = 32):
        if k_factor <= 0:
            raise ValueError("K-factor must be positive")
        self.k_factor = k_factor

    @staticmethod
    def expected_score(ra: int, rb: int) -> float:
        """Ea = 1 / (1 + 10 ** ((Rb - Ra) / 400))."""
        return 1.0 / (1.0 + math.pow(10.0, (rb - ra) / 400.0))

    @staticmethod
    def round_delta(raw: float) -> int:
        """Nearest integer, halves rounded away from zero."""
        return int(Decimal(str(raw)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def actual_score(team_a_id: str, team_b_id: str, winner_id: str) -> float:
        if winner_id == team_a_id:
            return 1.0
        if winner_id == team_b_id:
            return 0.0
        if winner_id == DRAW_WINNER:
            return 0.5
        raise ValueError(f"winner_id {winner_id!r} does not match either team")

    def apply_result(
        self,
        team_a_id: str,
        elo_a: int,
        team_b_id: str,
        elo_b: int,
        winner_id: str,
    ) -> RatingDelta:
        """
        Compute the rating change of one game.

        delta_a is rounded once; delta_b = -delta_a keeps the update zero-sum.
        """
        if winner_id == VOID_WINNER:
            return RatingDelta(team_a_id, team_b_id, 0, 0)

        actual_a = self.actual_score(team_a_id, team_b_id, winner_id)
        expected_a = self.expected_score(elo_a, elo_b)
        delta_a = self.round_delta(self.k_factor * (actual_a - expected_a))

        return RatingDelta(team_a_id, team_b_id, delta_a, -delta_a)

    def delta_for_game(self, game: Game2v2) -> RatingDelta:
        return self.apply_result(
            game.team1_id, game.team1_elo, game.team2_id, game.team2_elo, game.winner_id
        )


@dataclass
class RatingMismatch:
    team_id: str
    stored_elo: int
    replayed_elo: int


@dataclass
class ReplayReport:
    competition_id: str
    games_replayed: int = 0
    mismatches: List[RatingMismatch] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches


async def replay_ratings(
    db: AsyncSession,
    competition_id: str,
    k_factor: int = 32,
    initial_elo: Optional[int] = None,
) -> ReplayReport:
    """
    Recompute every team's elo from the ledger and compare to Team.elo.

    Each team starts at the elo_before of its first ledger row (or at its
    stored elo when it has never played, or initial_elo when given). Games
    are replayed in ingestion order using the pre-game snapshots and the
    deltas are recomputed, so a tampered ledger row or a lost update shows
    up as a mismatch.
    """
    rating = EloRatingService(k_factor)
    report = ReplayReport(competition_id=competition_id)

    teams_result = await db.execute(
        select(Team).where(Team.competition_id == competition_id).order_by(Team.id.asc())
    )
    teams = list(teams_result.scalars().all())

    ledger_result = await db.execute(
        select(RatingLedgerEntry)
        .where(RatingLedgerEntry.competition_id == competition_id)
        .order_by(RatingLedgerEntry.id.asc())
    )
    entries = list(ledger_result.scalars().all())

    games_result = await db.execute(
        select(Game2v2).where(Game2v2.competition_id == competition_id)
    )
    games_by_id: Dict[str, Game2v2] = {g.id: g for g in games_result.scalars().all()}

    replayed: Dict[str, int] = {}
    seen_games: List[str] = []
    for entry in entries:
        if entry.team_id not in replayed:
            replayed[entry.team_id] = initial_elo if initial_elo is not None else entry.elo_before
        if entry.game_id not in seen_games:
            seen_games.append(entry.game_id)

        game = games_by_id.get(entry.game_id)
        if game is None:
            logger.warning(f"Ledger row {entry.id} references missing game {entry.game_id}")
            continue
        replayed[entry.team_id] += rating.delta_for_game(game).for_team(entry.team_id)

    report.games_replayed = len(seen_games)

    for team in teams:
        expected = replayed.get(team.id, initial_elo if initial_elo is not None else team.elo)
        if expected != team.elo:
            report.mismatches.append(RatingMismatch(team.id, team.elo, expected))
            logger.error(
                f"Rating mismatch for team {team.id}: stored={team.elo} replayed={expected}"
            )

    logger.info(
        f"Replayed {report.games_replayed} games for competition {competition_id}: "
        f"{len(report.mismatches)} mismatches"
    )
    return report
