"""
Round CLI Commands

Round lifecycle: start, pair, advance, wait, state, recover, report
"""
import asyncio
import json
from typing import Optional

from botarena.cli.common import session_factory_for
from botarena.exceptions import ArenaError
from botarena.services.collaborators import DatabaseHandoffExecutor
from botarena.services.round_scheduler_service import RoundScheduler


class RoundCommand:
    """Round CLI command handler."""

    def __init__(self, dry_run: bool = False, database_url: Optional[str] = None):
        self.dry_run = dry_run
        self.database_url = database_url

    def execute(self, args) -> int:
        """Execute round command."""
        actions = {
            "start": self._start,
            "pair": self._pair,
            "advance": self._advance,
            "wait": self._wait,
            "state": self._state,
            "recover": self._recover,
            "report": self._report,
        }
        action = actions.get(args.round_action)
        if action is None:
            print("Error: Unknown round action")
            return 1

        if self.dry_run and args.round_action not in ("state",):
            print(f"[DRY RUN] Would run round {args.round_action}")
            return 0

        try:
            asyncio.run(action(args))
            return 0
        except ArenaError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

    async def _with_scheduler(self, fn):
        async with session_factory_for(self.database_url) as session_factory:
            scheduler = RoundScheduler(session_factory, DatabaseHandoffExecutor())
            return await fn(scheduler)

    async def _start(self, args) -> None:
        round_obj = await self._with_scheduler(
            lambda s: s.start_next_round(args.competition)
        )
        print(f"✓ Round {round_obj.round_number} opened ({round_obj.state})")

    async def _pair(self, args) -> None:
        plan = await self._with_scheduler(lambda s: s.run_pairing(args.competition))
        print(f"✓ {len(plan.pairs)} fixtures in {len(plan.waves)} wave(s)")
        for team1_id, team2_id in plan.pairs:
            print(f"  {team1_id} vs {team2_id}")
        if plan.bye_team_id:
            print(f"  bye: {plan.bye_team_id}")
        if plan.repeat_count:
            print(f"  ⚠ {plan.repeat_count} repeat pairing(s)")

    async def _advance(self, args) -> None:
        state = await self._with_scheduler(lambda s: s.advance(args.competition))
        print(f"Round state: {state.value}")

    async def _wait(self, args) -> None:
        state = await self._with_scheduler(
            lambda s: s.wait_for_round(args.competition, timeout=args.timeout)
        )
        print(f"Round state: {state.value}")

    async def _state(self, args) -> None:
        view = await self._with_scheduler(lambda s: s.get_round_state(args.competition))
        print(f"=== Competition {view.competition_id} ({view.schedule_status}) ===")
        if view.state is None:
            print(f"Round {view.round_number}: not started")
            return
        print(f"Round {view.round_number}: {view.state} (wave {view.current_wave}/{view.wave_count})")
        if view.skip_reason:
            print(f"  skipped: {view.skip_reason}")
        print(f"\n{'Wave':<5} {'Table':<6} {'Team 1':<38} {'Team 2':<38} {'Status':<10}")
        print("-" * 100)
        for f in view.fixtures:
            print(f"{f.wave:<5} {f.table_number:<6} {f.team1_id:<38} {f.team2_id:<38} {f.status:<10}")
        if view.bye:
            print(f"\nBye: {view.bye.team_id}")
        print(f"Games ingested: {len(view.games)}")

    async def _recover(self, args) -> None:
        summary = await self._with_scheduler(lambda s: s.recover())
        if not summary:
            print("✓ Nothing to recover")
            return
        for competition_id, state in summary.items():
            print(f"  {competition_id}: {state}")

    async def _report(self, args) -> None:
        with open(args.outcome_file, "r", encoding="utf-8") as fh:
            outcome = json.load(fh)
        result = await self._with_scheduler(
            lambda s: s.ingestion.report_outcome(args.handle, outcome)
        )
        print(f"✓ {result.status.value} (fixture {result.fixture_id}, game {result.game_id})")
