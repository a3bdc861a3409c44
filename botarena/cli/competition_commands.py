"""
Competition CLI Commands

Competition management: configure, show, standings, resume, replay, withdraw
"""
import asyncio
import json
from typing import Optional

from sqlalchemy import select

from botarena.cli.common import session_factory_for
from botarena.config import get_settings
from botarena.exceptions import ArenaError, CompetitionNotFoundError
from botarena.orm.competition import Competition
from botarena.orm.team import Team
from botarena.schemas.public import PublicCompetition, PublicTeam
from botarena.services.collaborators import DatabaseHandoffExecutor
from botarena.services.elo_rating_service import replay_ratings
from botarena.services.eligibility_service import withdraw_team
from botarena.services.round_scheduler_service import RoundScheduler


class CompetitionCommand:
    """Competition CLI command handler."""

    def __init__(self, dry_run: bool = False, database_url: Optional[str] = None):
        self.dry_run = dry_run
        self.database_url = database_url

    def execute(self, args) -> int:
        """Execute competition command."""
        actions = {
            "configure": self._configure,
            "show": self._show,
            "standings": self._standings,
            "resume": self._resume,
            "replay": self._replay,
            "withdraw": self._withdraw,
        }
        action = actions.get(args.competition_action)
        if action is None:
            print("Error: Unknown competition action")
            return 1

        if self.dry_run and args.competition_action in ("configure", "resume", "withdraw"):
            print(f"[DRY RUN] Would run competition {args.competition_action}")
            return 0

        try:
            return asyncio.run(action(args))
        except ArenaError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

    async def _configure(self, args) -> int:
        async with session_factory_for(self.database_url) as session_factory:
            scheduler = RoundScheduler(session_factory, DatabaseHandoffExecutor())
            schedule = await scheduler.configure_competition(args.competition, args.final_round)
        print(f"✓ Competition {schedule.competition_id}: final round {schedule.final_round}")
        return 0

    async def _show(self, args) -> int:
        async with session_factory_for(self.database_url) as session_factory:
            async with session_factory() as db:
                competition = (await db.execute(
                    select(Competition).where(Competition.id == args.competition)
                )).scalar_one_or_none()
                if competition is None:
                    raise CompetitionNotFoundError(f"Competition {args.competition} not found")
                teams = (await db.execute(
                    select(Team).where(Team.competition_id == competition.id).order_by(Team.id.asc())
                )).scalars().all()

        payload = PublicCompetition.from_orm_competition(competition).model_dump(mode="json")
        payload["teams"] = [PublicTeam.from_orm_team(t).model_dump(mode="json") for t in teams]
        print(json.dumps(payload, indent=2))
        return 0

    async def _standings(self, args) -> int:
        async with session_factory_for(self.database_url) as session_factory:
            scheduler = RoundScheduler(session_factory, DatabaseHandoffExecutor())
            standings = await scheduler.get_standings(args.competition)

        print(f"=== Standings {args.competition} ===")
        print(f"\n{'Rank':<5} {'Team':<40} {'Elo':>6} {'Games':>6}")
        print("-" * 60)
        for entry in standings:
            print(f"{entry.rank:<5} {entry.name[:38]:<40} {entry.elo:>6} {entry.games_played:>6}")
        return 0

    async def _resume(self, args) -> int:
        async with session_factory_for(self.database_url) as session_factory:
            scheduler = RoundScheduler(session_factory, DatabaseHandoffExecutor())
            schedule = await scheduler.resume_competition(args.competition)
        print(f"✓ Competition {schedule.competition_id} is {schedule.status}")
        return 0

    async def _replay(self, args) -> int:
        settings = get_settings()
        async with session_factory_for(self.database_url) as session_factory:
            async with session_factory() as db:
                report = await replay_ratings(db, args.competition, settings.elo_k_factor)

        print(f"Replayed {report.games_replayed} games")
        if report.ok:
            print("✓ Ratings match the ledger")
            return 0
        for mismatch in report.mismatches:
            print(f"✗ {mismatch.team_id}: stored {mismatch.stored_elo}, replayed {mismatch.replayed_elo}")
        return 2

    async def _withdraw(self, args) -> int:
        async with session_factory_for(self.database_url) as session_factory:
            async with session_factory() as db:
                async with db.begin():
                    await withdraw_team(db, args.team, args.reason or "")
        print(f"✓ Team {args.team} withdrawn")
        return 0
