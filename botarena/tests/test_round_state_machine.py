"""
Round State Machine Tests

Tests for:
- Valid and invalid transitions
- Timestamps stamped on entry to each state
- Skipping a round that could not be paired
- Wave bookkeeping
- Optimistic locking between two sessions
"""
import pytest
import pytest_asyncio

from botarena.exceptions import (
    ConcurrentModificationError, InvalidTransitionError, RoundNotFoundError
)
from botarena.orm.round_engine import RoundState
from botarena.state_machines.round_state import RoundStateMachine


@pytest_asyncio.fixture
async def round_one(arena, session_factory, clock):
    cid = await arena.competition()
    async with session_factory() as db:
        async with db.begin():
            await RoundStateMachine.create_round(db, cid, 1, clock)
    return cid


async def load(session_factory, cid, clock):
    db = session_factory()
    machine = await RoundStateMachine.get_machine(db, cid, 1, clock=clock)
    return db, machine


class TestTransitions:

    @pytest.mark.asyncio
    async def test_created_round_is_pending(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            assert machine.state == RoundState.PENDING
            assert machine.round.opened_at == clock()
            assert machine.round.version == 1

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            for state in (
                RoundState.PAIRING,
                RoundState.AWAITING_RESULTS,
                RoundState.CLOSING,
                RoundState.COMPLETE,
            ):
                clock.advance(10)
                await machine.transition(state)
                assert machine.state == state
                column = RoundStateMachine.STATE_TIMESTAMPS[state]
                assert getattr(machine.round, column) == clock()
            await db.commit()

            assert machine.round.version == 5
            assert not machine.round.is_skipped

    @pytest.mark.parametrize("target", [
        RoundState.AWAITING_RESULTS,
        RoundState.CLOSING,
        RoundState.COMPLETE,
    ])
    @pytest.mark.asyncio
    async def test_pending_cannot_skip_ahead(self, round_one, session_factory, clock, target):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            assert not machine.can_transition(target)
            with pytest.raises(InvalidTransitionError):
                await machine.transition(target)
            assert machine.state == RoundState.PENDING

    @pytest.mark.asyncio
    async def test_complete_is_terminal(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            await machine.transition(RoundState.PAIRING)
            await machine.skip("no eligible teams")

            for state in RoundState:
                assert not machine.can_transition(state)

    @pytest.mark.asyncio
    async def test_skip_records_reason(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            await machine.transition(RoundState.PAIRING)
            await machine.skip("Only 1 eligible team(s)")
            await db.commit()

        db, machine = await load(session_factory, round_one, clock)
        async with db:
            assert machine.state == RoundState.COMPLETE
            assert machine.round.skip_reason == "Only 1 eligible team(s)"
            assert machine.round.is_skipped

    @pytest.mark.asyncio
    async def test_cannot_skip_after_results_started(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            await machine.transition(RoundState.PAIRING)
            await machine.transition(RoundState.AWAITING_RESULTS)

            with pytest.raises(InvalidTransitionError):
                await machine.skip("too late")

    @pytest.mark.asyncio
    async def test_missing_round(self, arena, session_factory, clock):
        cid = await arena.competition()
        async with session_factory() as db:
            with pytest.raises(RoundNotFoundError):
                await RoundStateMachine.get_machine(db, cid, 7, clock=clock)


class TestWaves:

    @pytest.mark.asyncio
    async def test_open_wave_requires_awaiting_results(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            with pytest.raises(InvalidTransitionError):
                await machine.open_wave(1)

    @pytest.mark.asyncio
    async def test_open_wave_bounded_by_wave_count(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            await machine.transition(RoundState.PAIRING)
            machine.round.wave_count = 2
            await machine.transition(RoundState.AWAITING_RESULTS)

            await machine.open_wave(1)
            await machine.open_wave(2)
            assert machine.round.current_wave == 2

            with pytest.raises(InvalidTransitionError):
                await machine.open_wave(3)


class TestOptimisticLocking:

    @pytest.mark.asyncio
    async def test_stale_writer_rejected(self, round_one, session_factory, clock):
        first_db, first = await load(session_factory, round_one, clock)
        second_db, second = await load(session_factory, round_one, clock)

        async with first_db, second_db:
            await first.transition(RoundState.PAIRING)
            await first_db.commit()

            with pytest.raises(ConcurrentModificationError) as excinfo:
                await second.transition(RoundState.PAIRING)

        assert excinfo.value.code == "CONCURRENT_MODIFICATION"
        assert f"Round {round_one}/1 was modified" in excinfo.value.message
        assert "pending -> pairing" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_stale_wave_opener_rejected(self, round_one, session_factory, clock):
        db, machine = await load(session_factory, round_one, clock)
        async with db:
            await machine.transition(RoundState.PAIRING)
            machine.round.wave_count = 2
            await machine.transition(RoundState.AWAITING_RESULTS)
            await db.commit()

        first_db, first = await load(session_factory, round_one, clock)
        second_db, second = await load(session_factory, round_one, clock)

        async with first_db, second_db:
            await first.open_wave(1)
            await first_db.commit()

            with pytest.raises(ConcurrentModificationError) as excinfo:
                await second.open_wave(1)

        assert "while opening wave 1" in excinfo.value.message
