"""
Round Scheduler

Drives each (competition, round) through its lifecycle:

    pending -> pairing -> awaiting_results -> closing -> complete

- start_next_round: open round N+1 once round N is complete
- run_pairing: eligibility + matchmaking, persist fixtures and bye,
  dispatch wave 1 (a round that cannot be paired is skipped and the
  competition halts until an operator resumes it)
- advance: void timed-out fixtures, dispatch the next wave, close the round
  once every fixture is terminal
- wait_for_round: advance on ingestion signals until the round completes
- recover: resume every open competition from its persisted state

All progress is persisted, so any process can pick up where another left
off. Within one process, operations on the same competition are serialized.
"""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from botarena.config import EngineSettings, get_settings
from botarena.core.timeutils import utcnow
from botarena.exceptions import (
    ArenaError, CompetitionClosedError, CompetitionHaltedError, CompetitionNotFoundError,
    CompetitionNotStartedError,
    InsufficientTeamsError, InvalidTransitionError, NoEligibleTeamsError,
    RoundInProgressError, RoundNotFoundError,
)
from botarena.orm.competition import Competition
from botarena.orm.game import Game2v2
from botarena.orm.round_engine import (
    CompetitionRound, CompetitionSchedule, FixtureStatus, RoundBye, RoundFixture,
    RoundState, ScheduleStatus, StandingsSnapshot, TERMINAL_FIXTURE_STATUSES,
)
from botarena.orm.team import Team
from botarena.schemas.round_state import (
    ByeView, FixtureView, GameView, RoundStateView, StandingEntry,
)
from botarena.services.collaborators import (
    CompileStatusProvider, FixtureDispatch, GameExecutor, TeamLineup,
)
from botarena.services.elo_rating_service import EloRatingService
from botarena.services.eligibility_service import get_eligible_teams, refresh_compile_status
from botarena.services.matchmaker_service import (
    PairingPlan, RatedTeam, load_bye_history, load_pairing_history,
    normalize_team_ids, pair_teams,
)
from botarena.services.result_ingestion_service import IngestionResult, ResultIngestionService
from botarena.state_machines.round_state import RoundStateMachine

logger = logging.getLogger(__name__)


class RoundScheduler:
    """
    Round lifecycle driver for all competitions of one database.

    The scheduler owns no game logic: fixtures go out through the
    GameExecutor, outcomes come back through the ResultIngestionService,
    whose listener wakes wait_for_round().
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        executor: GameExecutor,
        settings: Optional[EngineSettings] = None,
        compile_status: Optional[CompileStatusProvider] = None,
        ingestion: Optional[ResultIngestionService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.executor = executor
        self.settings = settings or get_settings()
        self.compile_status = compile_status
        self.clock = clock
        self.rating = EloRatingService(self.settings.elo_k_factor)
        self.ingestion = ingestion or ResultIngestionService(
            session_factory, self.rating, clock=clock
        )
        self.ingestion.add_listener(self._on_ingested)

        self._competition_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._round_events: Dict[str, asyncio.Event] = defaultdict(asyncio.Event)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _on_ingested(self, result: IngestionResult) -> None:
        self._round_events[result.competition_id].set()

    async def _get_competition(
        self, db: AsyncSession, competition_id: str, for_update: bool = False
    ) -> Competition:
        query = select(Competition).where(Competition.id == competition_id)
        if for_update:
            query = query.with_for_update()
        competition = (await db.execute(query)).scalar_one_or_none()
        if not competition:
            raise CompetitionNotFoundError(f"Competition {competition_id} not found")
        return competition

    async def _get_schedule(self, db: AsyncSession, competition_id: str) -> CompetitionSchedule:
        """Schedule row of the competition, created OPEN on first use."""
        result = await db.execute(
            select(CompetitionSchedule).where(CompetitionSchedule.competition_id == competition_id)
        )
        schedule = result.scalar_one_or_none()
        if schedule is None:
            schedule = CompetitionSchedule(
                competition_id=competition_id,
                status=ScheduleStatus.OPEN.value,
                created_at=self.clock(),
            )
            db.add(schedule)
            await db.flush()
        return schedule

    async def _current_round_number(self, db: AsyncSession, competition_id: str) -> int:
        competition = await self._get_competition(db, competition_id)
        return competition.round_number

    async def _load_fixtures(
        self, db: AsyncSession, competition_id: str, round_number: int
    ) -> List[RoundFixture]:
        result = await db.execute(
            select(RoundFixture)
            .where(
                RoundFixture.competition_id == competition_id,
                RoundFixture.round_number == round_number,
            )
            .order_by(RoundFixture.wave.asc(), RoundFixture.table_number.asc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # Competition schedule
    # =========================================================================

    async def configure_competition(
        self, competition_id: str, final_round: Optional[int] = None
    ) -> CompetitionSchedule:
        """Create or update the schedule row; final_round closes the competition when reached."""
        if final_round is not None and final_round < 1:
            raise ValueError("final_round must be at least 1")
        async with self.session_factory() as db:
            async with db.begin():
                await self._get_competition(db, competition_id)
                schedule = await self._get_schedule(db, competition_id)
                schedule.final_round = final_round
                await db.flush()
        logger.info(f"Competition {competition_id} scheduled (final round: {final_round})")
        return schedule

    async def resume_competition(self, competition_id: str) -> CompetitionSchedule:
        """Operator action: clear a halt so the next round can be started."""
        async with self.session_factory() as db:
            async with db.begin():
                await self._get_competition(db, competition_id)
                schedule = await self._get_schedule(db, competition_id)
                if schedule.status == ScheduleStatus.CLOSED.value:
                    raise CompetitionClosedError(f"Competition {competition_id} is closed")
                if schedule.status == ScheduleStatus.HALTED.value:
                    logger.info(
                        f"Competition {competition_id} resumed (was halted: {schedule.halt_reason})"
                    )
                schedule.status = ScheduleStatus.OPEN.value
                schedule.halt_reason = None
        return schedule

    # =========================================================================
    # Round lifecycle
    # =========================================================================

    async def start_next_round(self, competition_id: str) -> CompetitionRound:
        """
        Open the next round in PENDING and bump Competition.round.

        Raises:
            CompetitionHaltedError / CompetitionClosedError: Competition not open
            CompetitionNotStartedError: Called before the competition start
            RoundInProgressError: The current round is not complete
        """
        current = 0
        async with self._competition_locks[competition_id]:
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        competition = await self._get_competition(db, competition_id, for_update=True)
                        schedule = await self._get_schedule(db, competition_id)
                        if schedule.status == ScheduleStatus.HALTED.value:
                            raise CompetitionHaltedError(
                                f"Competition {competition_id} is halted: {schedule.halt_reason}"
                            )
                        if schedule.status == ScheduleStatus.CLOSED.value:
                            raise CompetitionClosedError(f"Competition {competition_id} is closed")
                        if self.clock() < competition.start:
                            raise CompetitionNotStartedError(
                                f"Competition {competition_id} starts at {competition.start.isoformat()}"
                            )
                        if self.clock() >= competition.end:
                            raise CompetitionClosedError(
                                f"Competition {competition_id} ended at {competition.end.isoformat()}"
                            )

                        current = competition.round_number
                        if current > 0:
                            previous = (await db.execute(
                                select(CompetitionRound).where(
                                    CompetitionRound.competition_id == competition_id,
                                    CompetitionRound.round_number == current,
                                )
                            )).scalar_one_or_none()
                            if previous is not None and previous.state != RoundState.COMPLETE.value:
                                raise RoundInProgressError(
                                    f"Round {current} of competition {competition_id} is "
                                    f"still {previous.state}"
                                )

                        competition.round_number = current + 1
                        round_obj = await RoundStateMachine.create_round(
                            db, competition_id, current + 1, clock=self.clock
                        )
            except IntegrityError as exc:
                # Another process opened the same round first
                raise RoundInProgressError(
                    f"Round {current + 1} of competition {competition_id} already exists"
                ) from exc

        return round_obj

    async def run_pairing(self, competition_id: str) -> PairingPlan:
        """
        Pair the current round and dispatch its first wave.

        A round left in PAIRING by a crash is paired again from scratch;
        fixtures are only written together with the move to AWAITING_RESULTS.

        Raises:
            NoEligibleTeamsError / InsufficientTeamsError: The round was skipped
                and the competition halted
        """
        async with self._competition_locks[competition_id]:
            round_number = await self._enter_pairing(competition_id)

            if self.compile_status is not None:
                async with self.session_factory() as db:
                    async with db.begin():
                        failed = await refresh_compile_status(db, competition_id, self.compile_status)
                if failed:
                    logger.warning(f"{failed} bot(s) of competition {competition_id} failed to compile")

            try:
                plan = await self._pair_round(competition_id, round_number)
            except (NoEligibleTeamsError, InsufficientTeamsError) as exc:
                await self._skip_round(competition_id, round_number, exc)
                raise

            await self._dispatch_due(competition_id, round_number)
        return plan

    async def _enter_pairing(self, competition_id: str) -> int:
        async with self.session_factory() as db:
            async with db.begin():
                schedule = await self._get_schedule(db, competition_id)
                if schedule.status != ScheduleStatus.OPEN.value:
                    raise CompetitionHaltedError(
                        f"Competition {competition_id} is {schedule.status}"
                    )
                round_number = await self._current_round_number(db, competition_id)
                machine = await RoundStateMachine.get_machine(
                    db, competition_id, round_number, clock=self.clock
                )
                if machine.state == RoundState.PENDING:
                    await machine.transition(RoundState.PAIRING)
                elif machine.state == RoundState.PAIRING:
                    logger.warning(
                        f"Round {round_number} of competition {competition_id} was left in "
                        f"pairing; pairing again"
                    )
                else:
                    raise InvalidTransitionError(
                        f"Round {round_number} of competition {competition_id} is "
                        f"{machine.state.value}, cannot pair"
                    )
        return round_number

    async def _pair_round(self, competition_id: str, round_number: int) -> PairingPlan:
        async with self.session_factory() as db:
            async with db.begin():
                competition = await self._get_competition(db, competition_id)
                eligible = await get_eligible_teams(db, competition_id, round_number)

                teams_result = await db.execute(select(Team).where(Team.id.in_(sorted(eligible))))
                teams = {t.id: t for t in teams_result.scalars().all()}

                plan = pair_teams(
                    [RatedTeam(t.id, t.elo) for t in teams.values()],
                    await load_pairing_history(db, competition_id),
                    competition.games_per_round,
                    bye_history=await load_bye_history(db, competition_id),
                    search_budget=self.settings.pairing_search_budget,
                )

                table_number = 0
                for wave_number, wave in enumerate(plan.waves, start=1):
                    for team1_id, team2_id in wave:
                        table_number += 1
                        team1, team2 = teams[team1_id], teams[team2_id]
                        low, high = normalize_team_ids(team1_id, team2_id)
                        db.add(RoundFixture(
                            competition_id=competition_id,
                            round_number=round_number,
                            wave=wave_number,
                            table_number=table_number,
                            team1_id=team1_id,
                            team2_id=team2_id,
                            team_low_id=low,
                            team_high_id=high,
                            team1bot1_id=team1.bot1,
                            team1bot2_id=team1.bot2,
                            team2bot1_id=team2.bot1,
                            team2bot2_id=team2.bot2,
                            status=FixtureStatus.QUEUED.value,
                            created_at=self.clock(),
                        ))

                if plan.bye_team_id:
                    db.add(RoundBye(
                        competition_id=competition_id,
                        round_number=round_number,
                        team_id=plan.bye_team_id,
                        created_at=self.clock(),
                    ))

                machine = await RoundStateMachine.get_machine(
                    db, competition_id, round_number, clock=self.clock
                )
                machine.round.wave_count = len(plan.waves)
                machine.round.current_wave = 0
                await machine.transition(RoundState.AWAITING_RESULTS)

        logger.info(
            f"Round {round_number} of competition {competition_id} paired: "
            f"{len(plan.pairs)} fixtures in {len(plan.waves)} wave(s), "
            f"bye={plan.bye_team_id}, repeats={plan.repeat_count}"
        )
        return plan

    async def _skip_round(self, competition_id: str, round_number: int, error: ArenaError) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                machine = await RoundStateMachine.get_machine(
                    db, competition_id, round_number, clock=self.clock
                )
                await machine.skip(error.message)
                schedule = await self._get_schedule(db, competition_id)
                schedule.status = ScheduleStatus.HALTED.value
                schedule.halt_reason = f"{error.code}: {error.message}"
        logger.error(
            f"Round {round_number} of competition {competition_id} skipped and "
            f"competition halted: {error.message}"
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _dispatch_due(self, competition_id: str, round_number: int) -> int:
        """
        Dispatch queued fixtures of the current wave, opening the next wave
        when the current one is terminal. Returns the number dispatched.
        """
        async with self.session_factory() as db:
            async with db.begin():
                competition = await self._get_competition(db, competition_id)
                machine = await RoundStateMachine.get_machine(
                    db, competition_id, round_number, clock=self.clock
                )
                if machine.state != RoundState.AWAITING_RESULTS:
                    return 0
                round_obj = machine.round
                fixtures = await self._load_fixtures(db, competition_id, round_number)

                current_wave = round_obj.current_wave
                open_in_wave = [
                    f for f in fixtures
                    if f.wave <= current_wave and f.status not in TERMINAL_FIXTURE_STATUSES
                ]
                if not open_in_wave and current_wave < round_obj.wave_count:
                    current_wave += 1
                    await machine.open_wave(current_wave)

                # Includes fixtures a crash left queued in earlier waves
                due = [
                    f for f in fixtures
                    if f.wave <= current_wave and f.status == FixtureStatus.QUEUED.value
                ]
                game_pack = competition.game_pack

        dispatched = 0
        for fixture in due:
            await self._dispatch_fixture(fixture, game_pack)
            dispatched += 1
        return dispatched

    async def _dispatch_fixture(self, fixture: RoundFixture, game_pack: str) -> None:
        dispatch = FixtureDispatch(
            fixture_id=fixture.id,
            competition_id=fixture.competition_id,
            round_number=fixture.round_number,
            game_pack=game_pack,
            team1=TeamLineup(fixture.team1_id, (fixture.team1bot1_id, fixture.team1bot2_id)),
            team2=TeamLineup(fixture.team2_id, (fixture.team2bot1_id, fixture.team2bot2_id)),
        )
        # Executor failures propagate; the fixture stays queued for the next advance
        handle = await self.executor.dispatch_fixture(dispatch)

        now = self.clock()
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(RoundFixture)
                    .where(
                        RoundFixture.id == fixture.id,
                        RoundFixture.status == FixtureStatus.QUEUED.value,
                    )
                    .values(
                        status=FixtureStatus.DISPATCHED.value,
                        fixture_handle=handle,
                        dispatched_at=now,
                        deadline=now + timedelta(seconds=self.settings.fixture_timeout_seconds),
                    )
                    .execution_options(synchronize_session=False)
                )
        if result.rowcount != 1:
            logger.warning(f"Fixture {fixture.id} was dispatched concurrently; handle {handle} unused")
            return
        logger.info(
            f"Dispatched fixture {fixture.id} (wave {fixture.wave}, table {fixture.table_number}): "
            f"{fixture.team1_id} vs {fixture.team2_id}, handle {handle}"
        )

    async def _sweep_timeouts(self, competition_id: str, round_number: int) -> int:
        """Void dispatched fixtures whose deadline passed. Returns the number voided."""
        now = self.clock()
        async with self.session_factory() as db:
            async with db.begin():
                overdue = (await db.execute(
                    select(RoundFixture.id).where(
                        RoundFixture.competition_id == competition_id,
                        RoundFixture.round_number == round_number,
                        RoundFixture.status == FixtureStatus.DISPATCHED.value,
                        RoundFixture.deadline <= now,
                    )
                )).scalars().all()

                voided = 0
                for fixture_id in overdue:
                    # Compare-and-set against a concurrent ingestion
                    result = await db.execute(
                        update(RoundFixture)
                        .where(
                            RoundFixture.id == fixture_id,
                            RoundFixture.status == FixtureStatus.DISPATCHED.value,
                        )
                        .values(status=FixtureStatus.VOID.value, resolved_at=now)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        voided += 1
                        logger.warning(f"Fixture {fixture_id} timed out and was voided")
        return voided

    # =========================================================================
    # Advance / close
    # =========================================================================

    async def advance(self, competition_id: str) -> RoundState:
        """
        Move the current round forward as far as persisted state allows.

        Returns the round state afterwards. Rounds in PENDING or PAIRING are
        left alone; they need run_pairing().
        """
        async with self._competition_locks[competition_id]:
            return await self._advance_locked(competition_id)

    async def _advance_locked(self, competition_id: str) -> RoundState:
        async with self.session_factory() as db:
            round_number = await self._current_round_number(db, competition_id)
            if round_number == 0:
                raise RoundNotFoundError(f"Competition {competition_id} has no round yet")
            machine = await RoundStateMachine.get_machine(db, competition_id, round_number)
            state = machine.state

        if state == RoundState.AWAITING_RESULTS:
            await self._sweep_timeouts(competition_id, round_number)
            await self._dispatch_due(competition_id, round_number)
            state = await self._close_round(competition_id, round_number)
        elif state == RoundState.CLOSING:
            state = await self._close_round(competition_id, round_number)
        return state

    async def _close_round(self, competition_id: str, round_number: int) -> RoundState:
        """
        Close the round if every fixture is terminal and every wave was opened.

        The check, the standings snapshot and both transitions happen in one
        transaction.
        """
        async with self.session_factory() as db:
            async with db.begin():
                machine = await RoundStateMachine.get_machine(
                    db, competition_id, round_number, clock=self.clock, for_update=True
                )
                round_obj = machine.round
                if machine.state not in (RoundState.AWAITING_RESULTS, RoundState.CLOSING):
                    return machine.state

                open_count = (await db.execute(
                    select(func.count(RoundFixture.id)).where(
                        RoundFixture.competition_id == competition_id,
                        RoundFixture.round_number == round_number,
                        RoundFixture.status.notin_(list(TERMINAL_FIXTURE_STATUSES)),
                    )
                )).scalar_one()
                if open_count or round_obj.current_wave < round_obj.wave_count:
                    return machine.state

                if machine.state == RoundState.AWAITING_RESULTS:
                    await machine.transition(RoundState.CLOSING)

                bye = (await db.execute(
                    select(RoundBye).where(
                        RoundBye.competition_id == competition_id,
                        RoundBye.round_number == round_number,
                    )
                )).scalar_one_or_none()
                if bye is not None:
                    # A bye carries no rating change
                    logger.info(f"Team {bye.team_id} had a bye in round {round_number} (elo +0)")

                standings = await self._standings(db, competition_id)
                for entry in standings:
                    db.add(StandingsSnapshot(
                        competition_id=competition_id,
                        round_number=round_number,
                        team_id=entry.team_id,
                        rank=entry.rank,
                        elo=entry.elo,
                        created_at=self.clock(),
                    ))

                await machine.transition(RoundState.COMPLETE)

                competition = await self._get_competition(db, competition_id)
                schedule = await self._get_schedule(db, competition_id)
                is_final = schedule.final_round is not None and round_number >= schedule.final_round
                if is_final or self.clock() >= competition.end:
                    schedule.status = ScheduleStatus.CLOSED.value
                    schedule.closed_at = self.clock()
                    logger.info(f"Competition {competition_id} closed after round {round_number}")

        self._round_events[competition_id].set()
        return RoundState.COMPLETE

    # =========================================================================
    # Waiting
    # =========================================================================

    async def wait_for_round(
        self,
        competition_id: str,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> RoundState:
        """
        Advance the current round until it completes or the timeout expires.

        Wakes on every applied ingestion and at least every poll_interval
        seconds so fixture timeouts are swept. Returns the last round state.
        """
        loop = asyncio.get_running_loop()
        timeout = self.settings.round_wait_timeout_seconds if timeout is None else timeout
        poll_interval = self.settings.round_poll_interval_seconds if poll_interval is None else poll_interval
        deadline = loop.time() + timeout
        event = self._round_events[competition_id]

        while True:
            # Cleared before advancing so a signal during advance is not lost
            event.clear()
            state = await self.advance(competition_id)
            if state == RoundState.COMPLETE:
                return state

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    f"Gave up waiting for competition {competition_id} after {timeout}s "
                    f"(round state {state.value})"
                )
                return state
            try:
                await asyncio.wait_for(event.wait(), timeout=min(poll_interval, remaining))
            except asyncio.TimeoutError:
                pass

    async def run_round(self, competition_id: str) -> RoundState:
        """Start, pair and wait for one full round."""
        await self.start_next_round(competition_id)
        await self.run_pairing(competition_id)
        return await self.wait_for_round(competition_id)

    # =========================================================================
    # Recovery
    # =========================================================================

    async def recover(self) -> Dict[str, Any]:
        """
        Resume every open competition from persisted state.

        Should be called on process startup. Rounds left in PAIRING are
        paired again; rounds awaiting results get their leftovers dispatched
        and are closed if already finished.
        """
        logger.info("Round engine recovery: starting")
        async with self.session_factory() as db:
            result = await db.execute(
                select(CompetitionSchedule.competition_id)
                .where(CompetitionSchedule.status == ScheduleStatus.OPEN.value)
                .order_by(CompetitionSchedule.competition_id.asc())
            )
            competition_ids = list(result.scalars().all())

        recovered: Dict[str, Any] = {}
        for competition_id in competition_ids:
            async with self.session_factory() as db:
                round_number = await self._current_round_number(db, competition_id)
                round_obj = (await db.execute(
                    select(CompetitionRound).where(
                        CompetitionRound.competition_id == competition_id,
                        CompetitionRound.round_number == round_number,
                    )
                )).scalar_one_or_none()
            if round_obj is None:
                continue

            state = RoundState(round_obj.state)
            try:
                if state == RoundState.PAIRING:
                    await self.run_pairing(competition_id)
                    state = await self.advance(competition_id)
                elif state in (RoundState.AWAITING_RESULTS, RoundState.CLOSING):
                    state = await self.advance(competition_id)
                recovered[competition_id] = state.value
            except ArenaError as exc:
                logger.error(f"Recovery of competition {competition_id} failed: {exc.code}: {exc.message}")
                recovered[competition_id] = exc.code

        logger.info(f"Round engine recovery: {len(recovered)} competition(s) inspected")
        return recovered

    # =========================================================================
    # Read models
    # =========================================================================

    async def _standings(self, db: AsyncSession, competition_id: str) -> List[StandingEntry]:
        teams = (await db.execute(
            select(Team)
            .where(Team.competition_id == competition_id)
            .order_by(Team.elo.desc(), Team.id.asc())
        )).scalars().all()

        played: Dict[str, int] = defaultdict(int)
        games = await db.execute(
            select(Game2v2.team1_id, Game2v2.team2_id)
            .where(Game2v2.competition_id == competition_id)
        )
        for team1_id, team2_id in games.all():
            played[team1_id] += 1
            played[team2_id] += 1

        return [
            StandingEntry(
                rank=rank,
                team_id=team.id,
                name=team.name,
                elo=team.elo,
                games_played=played[team.id],
            )
            for rank, team in enumerate(teams, start=1)
        ]

    async def get_standings(self, competition_id: str) -> List[StandingEntry]:
        """Current standings: elo DESC, team id ASC."""
        async with self.session_factory() as db:
            await self._get_competition(db, competition_id)
            return await self._standings(db, competition_id)

    async def get_round_state(self, competition_id: str) -> RoundStateView:
        async with self.session_factory() as db:
            competition = await self._get_competition(db, competition_id)
            round_number = competition.round_number
            schedule = (await db.execute(
                select(CompetitionSchedule).where(CompetitionSchedule.competition_id == competition_id)
            )).scalar_one_or_none()
            view = RoundStateView(
                competition_id=competition_id,
                round_number=round_number,
                schedule_status=schedule.status if schedule else ScheduleStatus.OPEN.value,
            )

            round_obj = (await db.execute(
                select(CompetitionRound).where(
                    CompetitionRound.competition_id == competition_id,
                    CompetitionRound.round_number == round_number,
                )
            )).scalar_one_or_none()
            if round_obj is None:
                return view

            view.state = round_obj.state
            view.current_wave = round_obj.current_wave
            view.wave_count = round_obj.wave_count
            view.skip_reason = round_obj.skip_reason
            view.fixtures = [
                FixtureView.model_validate(f)
                for f in await self._load_fixtures(db, competition_id, round_number)
            ]
            games = (await db.execute(
                select(Game2v2)
                .where(Game2v2.competition_id == competition_id, Game2v2.round == round_number)
                .order_by(Game2v2.created.asc(), Game2v2.id.asc())
            )).scalars().all()
            view.games = [GameView.model_validate(g) for g in games]
            bye = (await db.execute(
                select(RoundBye).where(
                    RoundBye.competition_id == competition_id,
                    RoundBye.round_number == round_number,
                )
            )).scalar_one_or_none()
            if bye is not None:
                view.bye = ByeView.model_validate(bye)
        return view
