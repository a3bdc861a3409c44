"""
Result Ingestion

Records a finished game exactly once and applies its rating change.

Order of checks for a reported outcome:
1. The unordered team pair must have a dispatched fixture in the round
   (otherwise UnknownFixtureError)
2. A game already recorded for the fixture -> DUPLICATE_IGNORED, unchanged
3. A fixture already voided by timeout -> VOID_IGNORED (late report)
4. Outcome validation against the fixture (otherwise InvalidOutcomeError)
5. Under per-team locks, in one transaction: snapshot both elos, insert
   the game in fixture orientation, apply deltas as atomic increments,
   append ledger rows, mark the fixture ingested

Validation happens before any write, and any persistence failure rolls the
whole transaction back. Losing a unique-constraint race is reported as
DUPLICATE_IGNORED.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from botarena.core.locks import TeamLockRegistry
from botarena.core.timeutils import utcnow
from botarena.exceptions import InvalidOutcomeError, UnknownFixtureError
from botarena.orm.base import new_id
from botarena.orm.game import Game2v2, WINNER_SENTINELS
from botarena.orm.rating_ledger import RatingLedgerEntry
from botarena.orm.round_engine import FixtureStatus, RoundFixture
from botarena.orm.team import Team
from botarena.schemas.outcome import FixtureKey, GameOutcome, TeamResult
from botarena.services.elo_rating_service import EloRatingService, RatingDelta

logger = logging.getLogger(__name__)


class IngestStatus(str, Enum):
    APPLIED = "applied"
    DUPLICATE_IGNORED = "duplicate_ignored"
    VOID_IGNORED = "void_ignored"


@dataclass(frozen=True)
class IngestionResult:
    status: IngestStatus
    competition_id: str
    round_number: int
    fixture_id: str
    game: Optional[Game2v2] = None
    delta: Optional[RatingDelta] = None

    @property
    def game_id(self) -> Optional[str]:
        return self.game.id if self.game is not None else None


IngestionListener = Callable[[IngestionResult], Any]


def _coerce_outcome(outcome: Union[GameOutcome, Dict[str, Any]]) -> GameOutcome:
    if isinstance(outcome, GameOutcome):
        return outcome
    try:
        return GameOutcome.model_validate(outcome)
    except ValidationError as exc:
        raise InvalidOutcomeError(f"Malformed outcome: {exc.errors()}") from exc


def _ordered_survival(team: TeamResult, pinned: Tuple[str, str]) -> Tuple[bool, bool]:
    """Survival flags in the pinned slot order of the fixture."""
    reported = team.bot_ids
    if reported == pinned:
        return (team.bots[0].survived, team.bots[1].survived)
    return (team.bots[1].survived, team.bots[0].survived)


def validate_outcome(fixture: RoundFixture, outcome: GameOutcome) -> None:
    """
    Check a reported outcome against its fixture.

    Raises:
        InvalidOutcomeError: Wrong teams, unknown winner, or bots other than
            the four pinned at dispatch
    """
    fixture_teams = {fixture.team1_id, fixture.team2_id}
    if set(outcome.team_ids) != fixture_teams:
        raise InvalidOutcomeError(
            f"Outcome teams {sorted(outcome.team_ids)} do not match fixture "
            f"{fixture.id} teams {sorted(fixture_teams)}"
        )

    if outcome.winner_id not in fixture_teams and outcome.winner_id not in WINNER_SENTINELS:
        raise InvalidOutcomeError(
            f"winner_id {outcome.winner_id!r} is neither a fixture team nor a sentinel"
        )

    for team_id, pinned in fixture.pinned_bots.items():
        reported = outcome.team_result(team_id).bot_ids
        if sorted(reported) != sorted(pinned):
            raise InvalidOutcomeError(
                f"Team {team_id} reported bots {list(reported)}, "
                f"fixture {fixture.id} pinned {list(pinned)}"
            )


class ResultIngestionService:
    """
    Exactly-once ingestion of game outcomes.

    One instance per process. Its TeamLockRegistry serializes rating
    updates per team, so concurrent fixtures sharing no team run in
    parallel while fixtures sharing a team are applied one at a time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        rating: Optional[EloRatingService] = None,
        locks: Optional[TeamLockRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.rating = rating or EloRatingService()
        self.locks = locks or TeamLockRegistry()
        self.clock = clock
        self._listeners: List[IngestionListener] = []

    def add_listener(self, listener: IngestionListener) -> None:
        """Register a callback invoked after each applied ingestion commits."""
        self._listeners.append(listener)

    async def report_outcome(
        self,
        fixture_handle: str,
        outcome: Union[GameOutcome, Dict[str, Any]],
    ) -> IngestionResult:
        """Collaborator callback: ingest the outcome of a dispatched fixture by handle."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(RoundFixture).where(RoundFixture.fixture_handle == fixture_handle)
            )
            fixture = result.scalar_one_or_none()

        if fixture is None:
            raise UnknownFixtureError(f"No fixture with handle {fixture_handle!r}")

        key = FixtureKey(
            competition_id=fixture.competition_id,
            round_number=fixture.round_number,
            team_a_id=fixture.team1_id,
            team_b_id=fixture.team2_id,
        )
        return await self.ingest_result(key, outcome)

    async def ingest_result(
        self,
        key: FixtureKey,
        outcome: Union[GameOutcome, Dict[str, Any]],
    ) -> IngestionResult:
        """
        Ingest the outcome of the fixture identified by key.

        Raises:
            UnknownFixtureError: No dispatched fixture for the pair
            InvalidOutcomeError: The outcome does not match the fixture
        """
        fixture = await self._find_fixture(key)

        async with self.locks.hold(fixture.team1_id, fixture.team2_id):
            result = await self._ingest_locked(fixture.id, outcome)

        if result.status == IngestStatus.APPLIED:
            self._notify(result)
        return result

    async def _find_fixture(self, key: FixtureKey) -> RoundFixture:
        low, high = key.normalized_pair
        async with self.session_factory() as db:
            result = await db.execute(
                select(RoundFixture).where(
                    RoundFixture.competition_id == key.competition_id,
                    RoundFixture.round_number == key.round_number,
                    RoundFixture.team_low_id == low,
                    RoundFixture.team_high_id == high,
                )
            )
            fixture = result.scalar_one_or_none()

        # A queued fixture was never handed to the executor
        if fixture is None or fixture.status == FixtureStatus.QUEUED.value:
            raise UnknownFixtureError(
                f"No dispatched fixture for {low} vs {high} in round {key.round_number} "
                f"of competition {key.competition_id}"
            )
        return fixture

    async def _existing_game(self, db: AsyncSession, fixture: RoundFixture) -> Optional[Game2v2]:
        result = await db.execute(
            select(Game2v2).where(
                Game2v2.competition_id == fixture.competition_id,
                Game2v2.round == fixture.round_number,
                Game2v2.team1_id == fixture.team1_id,
                Game2v2.team2_id == fixture.team2_id,
            )
        )
        return result.scalar_one_or_none()

    def _ignored(self, status: IngestStatus, fixture: RoundFixture, game: Optional[Game2v2] = None) -> IngestionResult:
        if status == IngestStatus.DUPLICATE_IGNORED:
            logger.info(f"Duplicate result for fixture {fixture.id} ignored")
        else:
            logger.info(f"Late result for voided fixture {fixture.id} ignored")
        return IngestionResult(
            status=status,
            competition_id=fixture.competition_id,
            round_number=fixture.round_number,
            fixture_id=fixture.id,
            game=game,
        )

    async def _ingest_locked(
        self,
        fixture_id: str,
        outcome: Union[GameOutcome, Dict[str, Any]],
    ) -> IngestionResult:
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    return await self._apply(db, fixture_id, outcome)
        except IntegrityError:
            # Race condition: another worker recorded the game first
            logger.warning(f"Unique constraint race on fixture {fixture_id}; treating as duplicate")
            async with self.session_factory() as db:
                fixture = (await db.execute(
                    select(RoundFixture).where(RoundFixture.id == fixture_id)
                )).scalar_one()
                game = await self._existing_game(db, fixture)
            return self._ignored(IngestStatus.DUPLICATE_IGNORED, fixture, game)

    async def _apply(
        self,
        db: AsyncSession,
        fixture_id: str,
        outcome: Union[GameOutcome, Dict[str, Any]],
    ) -> IngestionResult:
        result = await db.execute(
            select(RoundFixture).where(RoundFixture.id == fixture_id).with_for_update()
        )
        fixture = result.scalar_one()

        existing = await self._existing_game(db, fixture)
        if existing is not None:
            return self._ignored(IngestStatus.DUPLICATE_IGNORED, fixture, existing)
        if fixture.status == FixtureStatus.VOID.value:
            return self._ignored(IngestStatus.VOID_IGNORED, fixture)

        outcome = _coerce_outcome(outcome)
        validate_outcome(fixture, outcome)

        now = self.clock()
        game_id = new_id()

        # Compare-and-set: only a still-dispatched fixture can be ingested
        cas = await db.execute(
            update(RoundFixture)
            .where(
                RoundFixture.id == fixture.id,
                RoundFixture.status == FixtureStatus.DISPATCHED.value,
            )
            .values(status=FixtureStatus.INGESTED.value, resolved_at=now)
            .execution_options(synchronize_session=False)
        )
        if cas.rowcount != 1:
            current = (await db.execute(
                select(RoundFixture.status).where(RoundFixture.id == fixture.id)
            )).scalar_one()
            if current == FixtureStatus.VOID.value:
                return self._ignored(IngestStatus.VOID_IGNORED, fixture)
            return self._ignored(IngestStatus.DUPLICATE_IGNORED, fixture, await self._existing_game(db, fixture))

        teams_result = await db.execute(
            select(Team.id, Team.elo)
            .where(Team.id.in_([fixture.team1_id, fixture.team2_id]))
            .with_for_update()
        )
        elo_before: Dict[str, int] = {row[0]: row[1] for row in teams_result.all()}

        team1_survival = _ordered_survival(
            outcome.team_result(fixture.team1_id), (fixture.team1bot1_id, fixture.team1bot2_id)
        )
        team2_survival = _ordered_survival(
            outcome.team_result(fixture.team2_id), (fixture.team2bot1_id, fixture.team2bot2_id)
        )

        game = Game2v2(
            id=game_id,
            competition_id=fixture.competition_id,
            round=fixture.round_number,
            team1_id=fixture.team1_id,
            team2_id=fixture.team2_id,
            winner_id=outcome.winner_id,
            team1bot1_id=fixture.team1bot1_id,
            team1bot2_id=fixture.team1bot2_id,
            team2bot1_id=fixture.team2bot1_id,
            team2bot2_id=fixture.team2bot2_id,
            team1bot1_survived=team1_survival[0],
            team1bot2_survived=team1_survival[1],
            team2bot1_survived=team2_survival[0],
            team2bot2_survived=team2_survival[1],
            log_file_path=outcome.log_file_path,
            public=outcome.public,
            additional_data=outcome.additional_data,
            team1_elo=elo_before[fixture.team1_id],
            team2_elo=elo_before[fixture.team2_id],
            created=now,
        )
        db.add(game)
        await db.flush()

        await db.execute(
            update(RoundFixture)
            .where(RoundFixture.id == fixture.id)
            .values(game_id=game.id)
            .execution_options(synchronize_session=False)
        )

        delta = self.rating.delta_for_game(game)
        for team_id in (fixture.team1_id, fixture.team2_id):
            change = delta.for_team(team_id)
            await db.execute(
                update(Team)
                .where(Team.id == team_id)
                .values(elo=Team.elo + change)
                .execution_options(synchronize_session=False)
            )
            db.add(RatingLedgerEntry(
                competition_id=fixture.competition_id,
                game_id=game.id,
                team_id=team_id,
                elo_before=elo_before[team_id],
                delta=change,
                elo_after=elo_before[team_id] + change,
                created_at=now,
            ))
        await db.flush()

        logger.info(
            f"Ingested game {game.id} for fixture {fixture.id}: winner={outcome.winner_id} "
            f"{fixture.team1_id} {delta.delta_a:+d}, {fixture.team2_id} {delta.delta_b:+d}"
        )

        return IngestionResult(
            status=IngestStatus.APPLIED,
            competition_id=fixture.competition_id,
            round_number=fixture.round_number,
            fixture_id=fixture.id,
            game=game,
            delta=delta,
        )

    def _notify(self, result: IngestionResult) -> None:
        for listener in self._listeners:
            try:
                listener(result)
            except Exception:
                # The game is committed; a failing listener must not undo it
                logger.exception(f"Ingestion listener failed for fixture {result.fixture_id}")
