"""
Swiss Matchmaker for 2v2 rounds

Deterministic pairing with:
- Standings order: elo DESC, team_id ASC (final tiebreaker)
- Bye for the lowest-ranked team that has not had one (odd counts)
- Rematch avoidance by bounded depth-first search
- Greedy fallback that accepts repeats as a last resort
- Waves of at most games_per_round concurrent fixtures

No randomness: identical input always yields identical output.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from botarena.exceptions import InsufficientTeamsError
from botarena.orm.game import Game2v2
from botarena.orm.round_engine import RoundBye, RoundFixture

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]

DEFAULT_SEARCH_BUDGET = 20000


@dataclass(frozen=True)
class RatedTeam:
    team_id: str
    elo: int


@dataclass
class PairingPlan:
    """
    Result of pairing one round.

    Each pair is (team1_id, team2_id) with team1 the higher-ranked team.
    """
    pairs: List[Pair] = field(default_factory=list)
    bye_team_id: Optional[str] = None
    waves: List[List[Pair]] = field(default_factory=list)
    repeat_pairs: List[Pair] = field(default_factory=list)

    @property
    def repeat_count(self) -> int:
        return len(self.repeat_pairs)

    @property
    def team_ids(self) -> Set[str]:
        ids = {team_id for pair in self.pairs for team_id in pair}
        if self.bye_team_id:
            ids.add(self.bye_team_id)
        return ids


# =============================================================================
# Helper Functions
# =============================================================================

def normalize_team_ids(team_a_id: str, team_b_id: str) -> Pair:
    """
    Normalize team IDs so the first is always the smaller ID.

    This ensures consistent keys in the pairing history.
    """
    if team_a_id < team_b_id:
        return (team_a_id, team_b_id)
    return (team_b_id, team_a_id)


def rank_teams(teams: Iterable[RatedTeam]) -> List[RatedTeam]:
    """Sort by elo DESC, then team_id ASC."""
    return sorted(teams, key=lambda t: (-t.elo, t.team_id))


def select_bye(ranked: Sequence[RatedTeam], bye_history: Set[str]) -> Optional[RatedTeam]:
    """
    Pick the bye team for an odd field.

    Lowest-ranked team without a previous bye; the lowest-ranked team if
    every team already had one.
    """
    if len(ranked) % 2 == 0:
        return None
    for team in reversed(ranked):
        if team.team_id not in bye_history:
            return team
    return ranked[-1]


def chunk_waves(pairs: Sequence[Pair], games_per_round: int) -> List[List[Pair]]:
    """Split pairs into consecutive waves of at most games_per_round fixtures."""
    if games_per_round < 1:
        raise ValueError("games_per_round must be at least 1")
    return [
        list(pairs[i:i + games_per_round])
        for i in range(0, len(pairs), games_per_round)
    ]


# =============================================================================
# Pairing Algorithms
# =============================================================================

class _BudgetExceeded(Exception):
    pass


def _search_pairing(
    order: List[str],
    history: Set[Pair],
    budget: int,
) -> Optional[List[Pair]]:
    """
    Depth-first search for a repeat-free pairing.

    The highest-ranked unpaired team is always paired first, trying
    opponents nearest in rank first, so the first solution found stays as
    close to adjacent pairing as possible. Returns None when no repeat-free
    assignment exists or the node budget runs out.
    """
    visited = [0]

    def dfs(remaining: List[str]) -> Optional[List[Pair]]:
        if not remaining:
            return []
        visited[0] += 1
        if visited[0] > budget:
            raise _BudgetExceeded()

        top = remaining[0]
        for idx in range(1, len(remaining)):
            opponent = remaining[idx]
            if normalize_team_ids(top, opponent) in history:
                continue
            rest = remaining[1:idx] + remaining[idx + 1:]
            found = dfs(rest)
            if found is not None:
                return [(top, opponent)] + found
        return None

    try:
        return dfs(order)
    except _BudgetExceeded:
        logger.warning(f"Pairing search budget of {budget} nodes exhausted")
        return None


def _greedy_pairing(order: List[str], history: Set[Pair]) -> List[Pair]:
    """
    Pair each top unpaired team with the nearest non-repeat opponent, or
    with the next team in rank when every remaining opponent is a repeat.
    """
    remaining = list(order)
    pairs: List[Pair] = []
    while remaining:
        top = remaining.pop(0)
        pick = 0
        for idx, opponent in enumerate(remaining):
            if normalize_team_ids(top, opponent) not in history:
                pick = idx
                break
        pairs.append((top, remaining.pop(pick)))
    return pairs


def pair_teams(
    teams: Iterable[RatedTeam],
    pairing_history: Set[Pair],
    games_per_round: int,
    bye_history: Optional[Set[str]] = None,
    search_budget: int = DEFAULT_SEARCH_BUDGET,
) -> PairingPlan:
    """
    Pair the eligible teams of one round.

    Args:
        teams: Eligible teams with their current elo
        pairing_history: Normalized pairs that already met in this competition
        games_per_round: Maximum concurrent fixtures per wave
        bye_history: Teams that already received a bye
        search_budget: Node budget of the repeat-free search

    Raises:
        ValueError: If games_per_round < 1
        InsufficientTeamsError: If fewer than 2 teams remain after the bye
    """
    if games_per_round < 1:
        raise ValueError("games_per_round must be at least 1")

    ranked = rank_teams(teams)
    ids = [t.team_id for t in ranked]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate team ids in pairing input")

    bye = select_bye(ranked, bye_history or set())
    if bye is not None:
        ranked = [t for t in ranked if t.team_id != bye.team_id]

    if len(ranked) < 2:
        raise InsufficientTeamsError(
            f"Need at least 2 teams to pair, have {len(ranked)}"
        )

    order = [t.team_id for t in ranked]
    pairs = _search_pairing(order, pairing_history, search_budget)
    if pairs is None:
        pairs = _greedy_pairing(order, pairing_history)

    repeats = [p for p in pairs if normalize_team_ids(*p) in pairing_history]
    if repeats:
        logger.warning(
            f"No repeat-free pairing found; accepting {len(repeats)} repeat pairing(s): {repeats}"
        )

    return PairingPlan(
        pairs=pairs,
        bye_team_id=bye.team_id if bye else None,
        waves=chunk_waves(pairs, games_per_round),
        repeat_pairs=repeats,
    )


# =============================================================================
# History Queries
# =============================================================================

async def load_pairing_history(db: AsyncSession, competition_id: str) -> Set[Pair]:
    """
    All pairs that met in the competition, normalized.

    Includes fixtures of every status and any recorded game, so games
    written before the engine tracked fixtures are covered too.
    """
    fixtures = await db.execute(
        select(RoundFixture.team_low_id, RoundFixture.team_high_id)
        .where(RoundFixture.competition_id == competition_id)
    )
    history = {(row[0], row[1]) for row in fixtures.all()}

    games = await db.execute(
        select(Game2v2.team1_id, Game2v2.team2_id)
        .where(Game2v2.competition_id == competition_id)
    )
    history.update(normalize_team_ids(row[0], row[1]) for row in games.all())
    return history


async def load_bye_history(db: AsyncSession, competition_id: str) -> Set[str]:
    result = await db.execute(
        select(RoundBye.team_id).where(RoundBye.competition_id == competition_id)
    )
    return set(result.scalars().all())
