"""Session timer tests: pure transitions, the asyncio driver and the per-user registry."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from skillforge.exceptions import ConflictError, NotFoundError
from skillforge.practice.timer import (
    Pause,
    Reset,
    Resume,
    SessionTimer,
    Start,
    Tick,
    TimerRegistry,
    TimerState,
    TimerStatus,
    transition,
)


def _run(state: TimerState, *actions) -> TimerState:
    for action in actions:
        state = transition(state, action)
    return state


class TestTransitions:
    def test_start_from_inactive(self):
        state = transition(TimerState(), Start(60))
        assert state == TimerState(TimerStatus.RUNNING, 60, 60)

    def test_start_ignored_while_running(self):
        running = transition(TimerState(), Start(60))
        assert transition(running, Start(10)) == running

    def test_start_rejects_non_positive_duration(self):
        with pytest.raises(ValueError):
            transition(TimerState(), Start(0))

    def test_tick_counts_down(self):
        state = _run(TimerState(), Start(60), Tick(), Tick(5))
        assert state.remaining == 54
        assert state.status is TimerStatus.RUNNING

    def test_tick_ignored_unless_running(self):
        paused = _run(TimerState(), Start(60), Pause())
        assert transition(paused, Tick()) == paused
        assert transition(TimerState(), Tick()) == TimerState()

    def test_pause_resume(self):
        paused = _run(TimerState(), Start(60), Tick(10), Pause())
        assert paused.status is TimerStatus.PAUSED
        assert paused.remaining == 50
        resumed = transition(paused, Resume())
        assert resumed.status is TimerStatus.RUNNING
        assert resumed.remaining == 50

    def test_resume_ignored_unless_paused(self):
        running = transition(TimerState(), Start(60))
        assert transition(running, Resume()) == running

    def test_completion_reported_once(self):
        state = _run(TimerState(), Start(3), Tick(), Tick())
        state = transition(state, Tick())
        assert state.completed
        assert state.just_completed
        assert state.progress == 1.0
        after = transition(state, Tick())
        assert after.completed
        assert not after.just_completed

    def test_overshooting_tick_clamps_to_zero(self):
        state = _run(TimerState(), Start(3), Tick(10))
        assert state.remaining == 0
        assert state.completed

    def test_reset_from_any_state(self):
        for actions in [(), (Start(30),), (Start(30), Pause()), (Start(30), Tick(30))]:
            state = _run(TimerState(), *actions, Reset(30))
            assert state == TimerState(TimerStatus.INACTIVE, 30, 30)

    def test_reset_keeps_duration_by_default(self):
        state = _run(TimerState(), Start(90), Tick(40), Reset())
        assert state.remaining == 90
        assert state.status is TimerStatus.INACTIVE

    def test_unknown_action(self):
        with pytest.raises(TypeError):
            transition(TimerState(), "start")  # type: ignore[arg-type]

    def test_pause_resume_scenario(self):
        """1500s session paused at 1200s remaining, resumed, run to zero, then reset."""
        state = _run(TimerState(), Start(1500), Tick(300), Pause())
        assert state.remaining == 1200

        state = transition(state, Resume())
        completions = 0
        while state.status is TimerStatus.RUNNING:
            state = transition(state, Tick())
            completions += state.just_completed
        assert completions == 1
        assert state.completed

        state = transition(state, Reset())
        assert state.remaining == 1500
        assert state.status is TimerStatus.INACTIVE
        assert not state.completed
        assert not state.just_completed


class TestSessionTimer:
    @pytest.mark.asyncio
    async def test_runs_to_completion_and_fires_once(self):
        on_complete = AsyncMock()
        timer = SessionTimer(tick_seconds=0.001, on_complete=on_complete)
        timer.dispatch(Start(3))
        assert timer.running
        for _ in range(200):
            if timer.state.completed:
                break
            await asyncio.sleep(0.005)
        assert timer.state.completed
        await asyncio.sleep(0.01)
        on_complete.assert_awaited_once()
        assert not timer.running

    @pytest.mark.asyncio
    async def test_pause_cancels_task(self):
        timer = SessionTimer(tick_seconds=0.001)
        timer.dispatch(Start(10_000))
        await asyncio.sleep(0.01)
        timer.dispatch(Pause())
        assert not timer.running
        remaining = timer.state.remaining
        await asyncio.sleep(0.01)
        assert timer.state.remaining == remaining
        timer.dispatch(Resume())
        assert timer.running
        await timer.close()
        assert not timer.running

    @pytest.mark.asyncio
    async def test_sync_callback_supported(self):
        calls = []
        timer = SessionTimer(tick_seconds=0.001, on_complete=calls.append)
        timer.dispatch(Start(1))
        for _ in range(200):
            if calls:
                break
            await asyncio.sleep(0.005)
        assert len(calls) == 1
        assert calls[0].completed

    @pytest.mark.asyncio
    async def test_callback_failure_is_contained(self):
        timer = SessionTimer(tick_seconds=0.001, on_complete=MagicMock(side_effect=RuntimeError("boom")))
        timer.dispatch(Start(1))
        for _ in range(200):
            if timer.state.completed:
                break
            await asyncio.sleep(0.005)
        assert timer.state.completed


class TestTimerRegistry:
    @pytest.mark.asyncio
    async def test_start_converts_minutes(self):
        registry = TimerRegistry(tick_seconds=60)
        active = await registry.start(1, skill_category_id=2, duration_minutes=25)
        assert active.state.duration == 1500
        assert active.state.status is TimerStatus.RUNNING
        assert registry.get(1) is active
        await registry.close()
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_one_timer_per_user(self):
        registry = TimerRegistry(tick_seconds=60)
        first = await registry.start(1, 2, 10)
        second = await registry.start(1, 3, 20)
        assert registry.get(1) is second
        assert first.state.status is TimerStatus.INACTIVE
        assert len(registry) == 1
        await registry.close()

    @pytest.mark.asyncio
    async def test_pause_resume_reset(self):
        registry = TimerRegistry(tick_seconds=60)
        await registry.start(1, 2, 10)
        assert (await registry.pause(1)).state.status is TimerStatus.PAUSED
        assert (await registry.resume(1)).state.status is TimerStatus.RUNNING
        reset = await registry.reset(1)
        assert reset.state.status is TimerStatus.INACTIVE
        assert reset.state.remaining == 600
        await registry.close()

    @pytest.mark.asyncio
    async def test_require_missing(self):
        registry = TimerRegistry()
        with pytest.raises(NotFoundError):
            await registry.pause(42)

    @pytest.mark.asyncio
    async def test_claim_hands_out_completed_timer_once(self):
        registry = TimerRegistry(tick_seconds=60)
        active = await registry.start(1, 2, 1)
        active.timer.dispatch(Tick(60))

        assert registry.claim(1) is active
        assert registry.get(1) is None
        with pytest.raises(NotFoundError):
            registry.claim(1)

    @pytest.mark.asyncio
    async def test_claim_requires_completion(self):
        registry = TimerRegistry(tick_seconds=60)
        await registry.start(1, 2, 10)
        with pytest.raises(ConflictError):
            registry.claim(1)
        assert registry.get(1) is not None
        await registry.close()

    @pytest.mark.asyncio
    async def test_restore_keeps_newer_timer(self):
        registry = TimerRegistry(tick_seconds=60)
        old = await registry.start(1, 2, 1)
        old.timer.dispatch(Tick(60))
        registry.claim(1)
        registry.restore(old)
        assert registry.get(1) is old

        registry.claim(1)
        newer = await registry.start(1, 3, 5)
        registry.restore(old)
        assert registry.get(1) is newer
        await registry.close()

    @pytest.mark.asyncio
    async def test_state_changes_announced_on_timer_channel(self):
        manager = MagicMock()
        manager.deliver = AsyncMock(return_value=1)
        registry = TimerRegistry(manager, tick_seconds=60)
        await registry.start(7, 2, 10)
        await registry.pause(7)
        await registry.pause(7)  # no-op, not announced

        assert manager.deliver.await_count == 2
        statuses = [call.args[1]["status"] for call in manager.deliver.await_args_list]
        assert statuses == ["running", "paused"]
        assert all(call.kwargs["channel"] == "timer" for call in manager.deliver.await_args_list)
        assert manager.deliver.await_args.args[1]["type"] == "timer_state"
        await registry.close()

    @pytest.mark.asyncio
    async def test_completion_pushed_to_user(self):
        manager = MagicMock()
        manager.deliver = AsyncMock(return_value=1)
        registry = TimerRegistry(manager, tick_seconds=0.0001)
        active = await registry.start(7, skill_category_id=2, duration_minutes=1)
        for _ in range(500):
            if manager.deliver.await_count >= 2:
                break
            await asyncio.sleep(0.005)

        assert active.state.completed
        assert manager.deliver.await_count == 2
        call = manager.deliver.await_args
        assert call.kwargs == {}
        user_id, message = call.args
        assert user_id == 7
        assert message["type"] == "practice_timer_completed"
        assert message["payload"]["status"] == "completed"
        assert message["payload"]["skill_category_id"] == 2
        assert message["payload"]["remaining_seconds"] == 0
        await registry.close()
