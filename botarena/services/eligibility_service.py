"""
Eligibility Gate

Decides which teams of a competition may be paired in a round.

A team is eligible iff:
1. It belongs to the competition and has not withdrawn
2. Both bot references are non-empty and resolve to bot rows
3. Both bots have an empty compile_error
4. When submissions are closed, neither bot was created after the round's
   submission cutoff (the time the round was opened)

Fewer than two eligible teams is an error reported to the operator; it is
never retried automatically.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from botarena.exceptions import CompetitionNotFoundError, NoEligibleTeamsError, TeamNotFoundError
from botarena.orm.bot import Bot
from botarena.orm.competition import Competition
from botarena.orm.round_engine import CompetitionRound
from botarena.orm.team import Team, TeamWithdrawal
from botarena.services.collaborators import CompileStatusProvider

logger = logging.getLogger(__name__)


class ExclusionReason(str, Enum):
    WITHDRAWN = "withdrawn"
    INCOMPLETE_ROSTER = "incomplete_roster"
    MISSING_BOT = "missing_bot"
    COMPILE_ERROR = "compile_error"
    SUBMITTED_AFTER_CUTOFF = "submitted_after_cutoff"


@dataclass(frozen=True)
class EligibilityDecision:
    team_id: str
    eligible: bool
    reason: Optional[ExclusionReason] = None
    detail: str = ""


async def _get_competition(db: AsyncSession, competition_id: str) -> Competition:
    result = await db.execute(select(Competition).where(Competition.id == competition_id))
    competition = result.scalar_one_or_none()
    if not competition:
        raise CompetitionNotFoundError(f"Competition {competition_id} not found")
    return competition


async def _load_bots(db: AsyncSession, bot_ids: Set[str]) -> Dict[str, Bot]:
    if not bot_ids:
        return {}
    result = await db.execute(select(Bot).where(Bot.id.in_(sorted(bot_ids))))
    return {bot.id: bot for bot in result.scalars().all()}


async def submission_cutoff(
    db: AsyncSession,
    competition: Competition,
    round_number: int,
) -> Optional[datetime]:
    """
    Latest bot creation time accepted for the round.

    None while submissions are allowed, or when the round has no row yet.
    """
    if competition.submissions_allowed:
        return None
    result = await db.execute(
        select(CompetitionRound.opened_at).where(
            CompetitionRound.competition_id == competition.id,
            CompetitionRound.round_number == round_number,
        )
    )
    return result.scalar_one_or_none()


async def set_bot_error(db: AsyncSession, bot_id: str, message: str) -> None:
    """Record a compilation failure on the bot row. Does not commit."""
    result = await db.execute(select(Bot).where(Bot.id == bot_id))
    bot = result.scalar_one_or_none()
    if bot is None:
        logger.warning(f"Cannot record compile error: bot {bot_id} not found")
        return
    bot.compile_error = message
    await db.flush()


async def refresh_compile_status(
    db: AsyncSession,
    competition_id: str,
    provider: CompileStatusProvider,
) -> int:
    """
    Ask the compile-status collaborator about every current bot of the
    competition and store the result in compile_error.

    Returns the number of bots that failed. Does not commit.
    """
    result = await db.execute(select(Team).where(Team.competition_id == competition_id))
    teams = list(result.scalars().all())

    bot_ids: Set[str] = set()
    for team in teams:
        if team.has_full_roster:
            bot_ids.update(team.bot_ids)

    bots = await _load_bots(db, bot_ids)
    failed = 0
    for bot_id in sorted(bots):
        bot = bots[bot_id]
        status = await provider.get_compile_status(bot_id)
        if status.ok:
            if bot.compile_error:
                logger.info(f"Bot {bot_id} now compiles, clearing stored error")
            bot.compile_error = ""
        else:
            failed += 1
            bot.compile_error = status.error
            logger.warning(f"Bot {bot_id} failed to compile: {status.error}")

    await db.flush()
    return failed


async def evaluate_eligibility(
    db: AsyncSession,
    competition_id: str,
    round_number: int,
) -> List[EligibilityDecision]:
    """Per-team eligibility report, ordered by team id."""
    competition = await _get_competition(db, competition_id)
    cutoff = await submission_cutoff(db, competition, round_number)

    teams_result = await db.execute(
        select(Team).where(Team.competition_id == competition_id).order_by(Team.id.asc())
    )
    teams = list(teams_result.scalars().all())

    withdrawn_result = await db.execute(
        select(TeamWithdrawal.team_id).where(TeamWithdrawal.competition_id == competition_id)
    )
    withdrawn = set(withdrawn_result.scalars().all())

    bot_ids: Set[str] = set()
    for team in teams:
        bot_ids.update(b for b in team.bot_ids if b)
    bots = await _load_bots(db, bot_ids)

    decisions: List[EligibilityDecision] = []
    for team in teams:
        decisions.append(_decide(team, withdrawn, bots, cutoff))
    return decisions


def _decide(
    team: Team,
    withdrawn: Set[str],
    bots: Dict[str, Bot],
    cutoff: Optional[datetime],
) -> EligibilityDecision:
    if team.id in withdrawn:
        return EligibilityDecision(team.id, False, ExclusionReason.WITHDRAWN)

    if not team.has_full_roster:
        return EligibilityDecision(team.id, False, ExclusionReason.INCOMPLETE_ROSTER)

    for bot_id in team.bot_ids:
        bot = bots.get(bot_id)
        # A bot of another team does not count as this team's bot
        if bot is None or bot.team_id != team.id:
            return EligibilityDecision(team.id, False, ExclusionReason.MISSING_BOT, bot_id)
        if not bot.is_compiled:
            return EligibilityDecision(team.id, False, ExclusionReason.COMPILE_ERROR, bot_id)
        if cutoff is not None and bot.created > cutoff:
            return EligibilityDecision(
                team.id, False, ExclusionReason.SUBMITTED_AFTER_CUTOFF, bot_id
            )

    return EligibilityDecision(team.id, True)


async def get_eligible_teams(
    db: AsyncSession,
    competition_id: str,
    round_number: int,
) -> Set[str]:
    """
    Ids of the teams that may be paired in the round.

    Raises:
        CompetitionNotFoundError: If the competition does not exist
        NoEligibleTeamsError: If fewer than two teams are eligible
    """
    decisions = await evaluate_eligibility(db, competition_id, round_number)
    eligible = {d.team_id for d in decisions if d.eligible}

    excluded = [d for d in decisions if not d.eligible]
    for decision in excluded:
        logger.info(
            f"Team {decision.team_id} excluded from round {round_number}: "
            f"{decision.reason.value} {decision.detail}"
        )

    if len(eligible) < 2:
        raise NoEligibleTeamsError(
            f"Only {len(eligible)} eligible team(s) in competition {competition_id} "
            f"for round {round_number}",
            eligible_count=len(eligible),
        )

    return eligible


async def withdraw_team(db: AsyncSession, team_id: str, reason: str = "") -> TeamWithdrawal:
    """Withdraw a team from its competition. Idempotent; does not commit."""
    existing = await db.execute(select(TeamWithdrawal).where(TeamWithdrawal.team_id == team_id))
    withdrawal = existing.scalar_one_or_none()
    if withdrawal:
        return withdrawal

    team_result = await db.execute(select(Team).where(Team.id == team_id))
    team = team_result.scalar_one_or_none()
    if team is None:
        raise TeamNotFoundError(f"Team {team_id} not found")

    withdrawal = TeamWithdrawal(team_id=team.id, competition_id=team.competition_id, reason=reason)
    db.add(withdrawal)
    await db.flush()
    logger.info(f"Team {team_id} withdrawn from competition {team.competition_id}")
    return withdrawal
