"""
Settings, team locks, schemas, error codes, team registration and database setup.
"""
import asyncio
from datetime import datetime

import pytest
from sqlalchemy import select

from botarena.config import EngineSettings, get_bool_env, get_int_env, get_settings
from botarena.core.locks import TeamLockRegistry
from botarena.database import build_engine, build_session_factory, init_db
from botarena.exceptions import ArenaError, NoEligibleTeamsError
from botarena.orm.competition import Competition
from botarena.orm.team import Team
from botarena.orm.user import User, UserRole
from botarena.schemas.public import PublicCompetition, PublicTeam
from botarena.schemas.outcome import FixtureKey, GameOutcome


class TestSettings:

    def test_defaults(self, monkeypatch):
        for key in ("DATABASE_URL", "ELO_K_FACTOR", "FIXTURE_TIMEOUT_SECONDS", "SQL_ECHO"):
            monkeypatch.delenv(key, raising=False)

        settings = EngineSettings.from_env()

        assert settings.elo_k_factor == 32
        assert settings.initial_elo == 1000
        assert settings.sql_echo is False
        assert settings.database_url.startswith("sqlite+aiosqlite://")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ELO_K_FACTOR", "24")
        monkeypatch.setenv("FIXTURE_TIMEOUT_SECONDS", "120")
        monkeypatch.setenv("ROUND_POLL_INTERVAL_SECONDS", "0.5")
        monkeypatch.setenv("SQL_ECHO", "yes")

        settings = EngineSettings.from_env()

        assert settings.elo_k_factor == 24
        assert settings.fixture_timeout_seconds == 120
        assert settings.round_poll_interval_seconds == 0.5
        assert settings.sql_echo is True

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("ON", True), ("enabled", True),
        ("false", False), ("0", False), ("nope", False),
    ])
    def test_get_bool_env(self, monkeypatch, raw, expected):
        monkeypatch.setenv("ARENA_FLAG", raw)
        assert get_bool_env("ARENA_FLAG") is expected

    def test_get_int_env_blank_uses_default(self, monkeypatch):
        monkeypatch.setenv("ARENA_NUMBER", "  ")
        assert get_int_env("ARENA_NUMBER", 7) == 7


class TestTeamLocks:

    @pytest.mark.asyncio
    async def test_hold_and_release(self):
        locks = TeamLockRegistry()

        async with locks.hold("b", "a"):
            assert locks.is_locked("a") and locks.is_locked("b")

        assert not locks.is_locked("a")
        assert not locks.is_locked("b")

    @pytest.mark.asyncio
    async def test_shared_team_serializes(self):
        locks = TeamLockRegistry()
        order = []

        async def worker(name, *teams):
            async with locks.hold(*teams):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("x", "a", "b"), worker("y", "b", "c"))

        assert order in (
            ["x-in", "x-out", "y-in", "y-out"],
            ["y-in", "y-out", "x-in", "x-out"],
        )

    @pytest.mark.asyncio
    async def test_opposite_order_does_not_deadlock(self):
        locks = TeamLockRegistry()

        async def worker(*teams):
            async with locks.hold(*teams):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(
            asyncio.gather(worker("a", "b"), worker("b", "a")), timeout=1
        )

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = TeamLockRegistry()

        with pytest.raises(RuntimeError):
            async with locks.hold("a"):
                raise RuntimeError("boom")

        assert not locks.is_locked("a")


class TestOutcomeSchema:

    def test_same_team_twice_rejected(self):
        with pytest.raises(ValueError):
            GameOutcome.model_validate({
                "winner_id": "a",
                "teams": [
                    {"team_id": "a", "bots": [{"bot_id": "1", "survived": True}, {"bot_id": "2", "survived": True}]},
                    {"team_id": "a", "bots": [{"bot_id": "3", "survived": True}, {"bot_id": "4", "survived": True}]},
                ],
            })

    def test_three_bots_rejected(self):
        with pytest.raises(ValueError):
            GameOutcome.model_validate({
                "winner_id": "a",
                "teams": [
                    {"team_id": "a", "bots": [{"bot_id": str(i), "survived": True} for i in range(3)]},
                    {"team_id": "b", "bots": [{"bot_id": "3", "survived": True}, {"bot_id": "4", "survived": True}]},
                ],
            })

    def test_team_result_lookup(self):
        outcome = GameOutcome.model_validate({
            "winner_id": "draw",
            "teams": [
                {"team_id": "a", "bots": [{"bot_id": "1", "survived": False}, {"bot_id": "2", "survived": True}]},
                {"team_id": "b", "bots": [{"bot_id": "3", "survived": True}, {"bot_id": "4", "survived": True}]},
            ],
        })

        assert outcome.team_ids == ("a", "b")
        assert outcome.team_result("b").bot_ids == ("3", "4")
        assert outcome.public is True
        with pytest.raises(KeyError):
            outcome.team_result("c")

    def test_fixture_key_normalizes_pair(self):
        key = FixtureKey(competition_id="c", round_number=1, team_a_id="z", team_b_id="m")
        assert key.normalized_pair == ("m", "z")

    def test_fixture_key_round_must_be_positive(self):
        with pytest.raises(ValueError):
            FixtureKey(competition_id="c", round_number=0, team_a_id="a", team_b_id="b")


class TestErrors:

    def test_codes(self):
        err = NoEligibleTeamsError("only one team", eligible_count=1)
        assert isinstance(err, ArenaError)
        assert err.code == "NO_ELIGIBLE_TEAMS"
        assert err.eligible_count == 1
        assert str(err) == "only one team"

    def test_code_override(self):
        assert ArenaError("x", code="CUSTOM").code == "CUSTOM"


class TestPublicViews:

    def test_public_competition_types_string_columns(self):
        competition = Competition.new(
            name="Spring Cup",
            start=datetime(2030, 1, 1),
            end=datetime(2030, 2, 1),
            type_="2v2",
            allowed_submissions=False,
        )
        competition.round_number = 3

        view = PublicCompetition.from_orm_competition(competition)

        assert view.allowed_submissions is False
        assert view.round == 3
        assert view.type == "2v2"
        assert "game_pack" not in view.model_dump()

    def test_public_team_hides_elo(self):
        team = Team(
            id="t1", name="Team 1", owner="u1", partner="", competition_id="c1",
            bot1="b1", bot2="", elo=1000, created=datetime(2030, 1, 1),
        )

        view = PublicTeam.from_orm_team(team)

        assert view.bot2 == ""
        assert "elo" not in view.model_dump()


@pytest.fixture
def initial_elo(monkeypatch):
    monkeypatch.setenv("INITIAL_ELO", "1500")
    get_settings.cache_clear()
    yield 1500
    get_settings.cache_clear()


class TestTeamRegistration:

    def test_new_team_starts_empty_at_initial_elo(self, initial_elo):
        team = Team.new(owner="u1", competition_id="c1", name="Ghosts")

        assert team.id
        assert team.elo == initial_elo
        assert (team.partner, team.bot1, team.bot2) == ("", "", "")
        assert not team.has_full_roster

    def test_explicit_elo_wins(self, initial_elo):
        team = Team.new(owner="u1", competition_id="c1", name="Ghosts", elo=900)
        assert team.elo == 900

    @pytest.mark.asyncio
    async def test_insert_without_elo_uses_initial_elo(self, arena, session_factory, initial_elo):
        cid = await arena.competition()
        async with session_factory() as db:
            async with db.begin():
                owner = User(username="owner-x", ldap_dn="uid=x,ou=people", role=UserRole.USER.value)
                db.add(owner)
                await db.flush()
                db.add(Team(id="x", name="Team x", owner=owner.id, competition_id=cid))

        async with session_factory() as db:
            team = (await db.execute(select(Team).where(Team.id == "x"))).scalar_one()
        assert team.elo == initial_elo
        assert team.bot1 == "" and team.partner == ""


class TestDatabase:

    def test_import_builds_no_engine(self):
        import botarena.database as database

        assert not hasattr(database, "engine")
        assert not hasattr(database, "get_db")

    @pytest.mark.asyncio
    async def test_init_db_is_idempotent(self, tmp_path):
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'init.db'}")
        try:
            await init_db(engine)
            await init_db(engine)
            async with build_session_factory(engine)() as db:
                assert (await db.execute(select(Team))).scalars().all() == []
        finally:
            await engine.dispose()
