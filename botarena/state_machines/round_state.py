"""
Round State Machine
Strict server-side state enforcement for competition rounds.

    pending -> pairing -> awaiting_results -> closing -> complete
                       \\-> complete (skipped: no eligible teams)

Every transition is validated against ALLOWED_TRANSITIONS, persisted with
optimistic locking on CompetitionRound.version, and logged.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from botarena.core.timeutils import utcnow
from botarena.exceptions import (
    ConcurrentModificationError, InvalidTransitionError, RoundNotFoundError
)
from botarena.orm.round_engine import CompetitionRound, RoundState

logger = logging.getLogger(__name__)


class RoundStateMachine:
    """
    Server-side state machine for one (competition, round).

    Enforces valid state transitions and stamps the time each state was
    entered. Does not commit; callers own the transaction.
    """

    # Valid state transitions: {current_state: [allowed_next_states]}
    ALLOWED_TRANSITIONS: Dict[RoundState, List[RoundState]] = {
        RoundState.PENDING: [
            RoundState.PAIRING
        ],
        RoundState.PAIRING: [
            RoundState.AWAITING_RESULTS,
            RoundState.COMPLETE
        ],
        RoundState.AWAITING_RESULTS: [
            RoundState.CLOSING
        ],
        RoundState.CLOSING: [
            RoundState.COMPLETE
        ],
        RoundState.COMPLETE: []
    }

    # Column stamped when a state is entered
    STATE_TIMESTAMPS: Dict[RoundState, str] = {
        RoundState.PAIRING: "pairing_started_at",
        RoundState.AWAITING_RESULTS: "results_started_at",
        RoundState.CLOSING: "closing_started_at",
        RoundState.COMPLETE: "completed_at",
    }

    def __init__(
        self,
        db: AsyncSession,
        round_obj: CompetitionRound,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.round = round_obj
        self.clock = clock

    @property
    def state(self) -> RoundState:
        return RoundState(self.round.state)

    def _is_valid_transition(self, from_state: RoundState, to_state: RoundState) -> bool:
        """Check if a state transition is valid."""
        allowed = self.ALLOWED_TRANSITIONS.get(from_state, [])
        return to_state in allowed

    def can_transition(self, to_state: RoundState) -> bool:
        return self._is_valid_transition(self.state, to_state)

    async def transition(
        self,
        new_state: RoundState,
        skip_reason: Optional[str] = None,
    ) -> CompetitionRound:
        """
        Transition round to new state with validation and logging.

        Raises:
            InvalidTransitionError: If transition is invalid
            ConcurrentModificationError: If another process changed the round
        """
        old_state = self.state
        competition_id = self.round.competition_id
        round_number = self.round.round_number
        if not self._is_valid_transition(old_state, new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {old_state.value} to {new_state.value}. "
                f"Allowed: {[s.value for s in self.ALLOWED_TRANSITIONS.get(old_state, [])]}"
            )

        self.round.state = new_state.value
        setattr(self.round, self.STATE_TIMESTAMPS[new_state], self.clock())
        if skip_reason is not None:
            self.round.skip_reason = skip_reason

        try:
            # UPDATE ... WHERE version = :expected; no row means a concurrent writer won
            await self.db.flush()
        except StaleDataError as exc:
            # The session rolled back and expired the round; only locals are safe here
            raise ConcurrentModificationError(
                f"Round {competition_id}/{round_number} was modified "
                f"by another process during {old_state.value} -> {new_state.value}"
            ) from exc

        logger.info(
            f"Round {round_number} of competition {competition_id} "
            f"transitioned: {old_state.value} -> {new_state.value}"
            + (f" (skipped: {skip_reason})" if skip_reason else "")
        )

        return self.round

    async def open_wave(self, wave: int) -> CompetitionRound:
        """Record that fixtures of the given wave may now be dispatched."""
        if self.state != RoundState.AWAITING_RESULTS:
            raise InvalidTransitionError(
                f"Cannot open a wave while round is {self.state.value}"
            )
        if wave > self.round.wave_count:
            raise InvalidTransitionError(
                f"Round has {self.round.wave_count} wave(s), cannot open wave {wave}"
            )

        competition_id = self.round.competition_id
        round_number = self.round.round_number
        wave_count = self.round.wave_count

        self.round.current_wave = wave
        try:
            await self.db.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(
                f"Round {competition_id}/{round_number} was modified "
                f"by another process while opening wave {wave}"
            ) from exc

        logger.info(
            f"Round {round_number} of competition {competition_id}: "
            f"wave {wave}/{wave_count} opened"
        )
        return self.round

    async def skip(self, reason: str) -> CompetitionRound:
        """Complete a round that could not be paired, with zero games."""
        return await self.transition(RoundState.COMPLETE, skip_reason=reason)

    @classmethod
    async def get_machine(
        cls,
        db: AsyncSession,
        competition_id: str,
        round_number: int,
        clock: Callable[[], datetime] = utcnow,
        for_update: bool = False,
    ) -> "RoundStateMachine":
        """Factory method to get state machine for a round."""
        query = select(CompetitionRound).where(
            CompetitionRound.competition_id == competition_id,
            CompetitionRound.round_number == round_number,
        )
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        round_obj = result.scalar_one_or_none()

        if not round_obj:
            raise RoundNotFoundError(
                f"Round {round_number} of competition {competition_id} not found"
            )

        return cls(db, round_obj, clock)

    @classmethod
    async def create_round(
        cls,
        db: AsyncSession,
        competition_id: str,
        round_number: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> CompetitionRound:
        """Factory method to create a new round in PENDING."""
        round_obj = CompetitionRound(
            competition_id=competition_id,
            round_number=round_number,
            state=RoundState.PENDING.value,
            opened_at=clock(),
        )

        db.add(round_obj)
        await db.flush()

        logger.info(f"Created round {round_number} for competition {competition_id}")

        return round_obj
