"""
Shared fixtures: a fresh file-backed SQLite database per test, seeding
helpers, a fake game executor and a controllable clock.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from botarena.config import EngineSettings
from botarena.database import build_engine, build_session_factory, init_db
from botarena.orm.base import new_id
from botarena.orm.bot import Bot
from botarena.orm.competition import Competition
from botarena.orm.team import Team
from botarena.orm.user import User, UserRole
from botarena.services.collaborators import FixtureDispatch
from botarena.services.round_scheduler_service import RoundScheduler


# =============================================================================
# Time
# =============================================================================

class FakeClock:
    """Naive UTC clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2030, 6, 1, 12, 0, 0))


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        database_url="sqlite+aiosqlite://",
        elo_k_factor=32,
        initial_elo=1000,
        fixture_timeout_seconds=60,
        round_poll_interval_seconds=0.05,
        round_wait_timeout_seconds=5.0,
        pairing_search_budget=20000,
    )


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# =============================================================================
# Seeding
# =============================================================================

class ArenaFactory:
    """Creates committed schema rows for tests."""

    def __init__(self, session_factory, clock: FakeClock):
        self.session_factory = session_factory
        self.clock = clock

    async def competition(
        self,
        games_per_round: int = 6,
        allowed_submissions: bool = True,
        name: str = "Spring Cup",
        type_: str = "2v2",
    ) -> str:
        now = self.clock()
        competition = Competition.new(
            name=name,
            start=now - timedelta(days=1),
            end=now + timedelta(days=30),
            type_=type_,
            games_per_round=games_per_round,
            allowed_submissions=allowed_submissions,
        )
        async with self.session_factory() as db:
            async with db.begin():
                db.add(competition)
        return competition.id

    async def team(
        self,
        competition_id: str,
        team_id: Optional[str] = None,
        elo: int = 1000,
        compile_errors: tuple = ("", ""),
        full_roster: bool = True,
        bots_created: Optional[datetime] = None,
    ) -> Team:
        team_id = team_id or new_id()
        created = bots_created or self.clock() - timedelta(hours=1)
        async with self.session_factory() as db:
            async with db.begin():
                owner = User(username=f"owner-{team_id}", ldap_dn=f"uid={team_id},ou=people",
                             role=UserRole.USER.value)
                db.add(owner)
                await db.flush()

                team = Team(
                    id=team_id,
                    name=f"Team {team_id}",
                    owner=owner.id,
                    competition_id=competition_id,
                    elo=elo,
                )
                db.add(team)
                await db.flush()

                bot_ids = []
                for slot, error in enumerate(compile_errors, start=1):
                    bot = Bot(
                        id=f"{team_id}-bot{slot}",
                        team_id=team_id,
                        bot_name=f"bot{slot}",
                        source_path=f"./resources/bots/{team_id}-bot{slot}.zip",
                        compile_error=error,
                        created=created,
                    )
                    db.add(bot)
                    bot_ids.append(bot.id)

                team.bot1 = bot_ids[0]
                team.bot2 = bot_ids[1] if full_roster else ""
        return team

    async def teams(self, competition_id: str, elos: Dict[str, int]) -> List[Team]:
        return [await self.team(competition_id, team_id, elo) for team_id, elo in elos.items()]


@pytest.fixture
def arena(session_factory, clock) -> ArenaFactory:
    return ArenaFactory(session_factory, clock)


# =============================================================================
# Collaborators
# =============================================================================

class FakeGameExecutor:
    """Records dispatches; optionally fails the next N of them."""

    def __init__(self):
        self.dispatches: List[FixtureDispatch] = []
        self.fail_next = 0

    async def dispatch_fixture(self, dispatch: FixtureDispatch) -> str:
        if self.fail_next:
            self.fail_next -= 1
            raise RuntimeError("executor unavailable")
        self.dispatches.append(dispatch)
        return f"handle-{dispatch.fixture_id}"

    def handle_for(self, dispatch: FixtureDispatch) -> str:
        return f"handle-{dispatch.fixture_id}"


@pytest.fixture
def executor() -> FakeGameExecutor:
    return FakeGameExecutor()


@pytest.fixture
def scheduler(session_factory, executor, settings, clock) -> RoundScheduler:
    return RoundScheduler(session_factory, executor, settings=settings, clock=clock)


def _outcome(dispatch: FixtureDispatch, winner_id: str, survived: bool = True) -> Dict[str, Any]:
    return {
        "winner_id": winner_id,
        "teams": [
            {
                "team_id": lineup.team_id,
                "bots": [{"bot_id": bot_id, "survived": survived} for bot_id in lineup.bot_ids],
            }
            for lineup in (dispatch.team1, dispatch.team2)
        ],
        "log_file_path": f"./resources/games/{dispatch.fixture_id}.txt",
        "additional_data": "{\"turns\": 120}",
    }


@pytest.fixture
def make_outcome():
    """Build a well-formed outcome dict for a dispatched fixture."""
    return _outcome
