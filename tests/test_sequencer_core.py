from __future__ import annotations

from dataclasses import dataclass

import pytest

from tap_precision.clock import ClockScheduler
from tap_precision.hit_policy import GeometricPolicy
from tap_precision.placement import EdgeBiasSchedule
from tap_precision.precision_core import (
    Phase,
    SeededRng,
    TapEvent,
    TapOutcome,
    TestPlan,
    TrialConfig,
    Viewport,
)
from tap_precision.sequencer import TrialSequencer


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _build(
    clock: FakeClock,
    scheduler: ClockScheduler,
    *,
    miss_penalty_s: float = 0.5,
    hit_lock_s: float = 0.0,
) -> TrialSequencer:
    plan = TestPlan(
        configs=(
            TrialConfig(label="Big", target_diameter=80.0, required_trial_count=2),
            TrialConfig(label="Tiny", target_diameter=32.0, required_trial_count=1),
        )
    )
    return TrialSequencer(
        title="Unit",
        plan=plan,
        policy=GeometricPolicy(base_padding=50.0, schedule=EdgeBiasSchedule(((0, 0.0), (2, 0.5)))),
        clock=clock,
        scheduler=scheduler,
        rng=SeededRng(17),
        viewport=lambda: Viewport(800, 600),
        miss_penalty_s=miss_penalty_s,
        hit_lock_s=hit_lock_s,
        seed=17,
    )


def _hit(seq: TrialSequencer, *, dx: float = 0.0, dy: float = 0.0) -> TapOutcome:
    p = seq.presentation
    assert p is not None
    t = p.targets[0].position
    return seq.tap(TapEvent(x=t.x + dx, y=t.y + dy))


def _miss(seq: TrialSequencer) -> TapOutcome:
    p = seq.presentation
    assert p is not None
    t = p.targets[0]
    return seq.tap(TapEvent(x=t.position.x + t.diameter, y=t.position.y))


def test_idle_ignores_taps_until_started() -> None:
    clock = FakeClock()
    seq = _build(clock, ClockScheduler(clock))
    assert seq.phase is Phase.IDLE
    assert seq.presentation is None
    assert seq.tap(TapEvent(x=10.0, y=10.0)) is TapOutcome.IGNORED
    assert seq.snapshot().prompt == "Tap anywhere to begin."


def test_correct_hits_drive_session_to_complete() -> None:
    clock = FakeClock()
    seq = _build(clock, ClockScheduler(clock))
    seq.start_test()
    assert seq.phase is Phase.RUNNING

    clock.advance(1.0)
    assert _hit(seq, dx=3.0) is TapOutcome.HIT
    assert (seq.current_config_index, seq.current_trial_in_config) == (0, 1)
    clock.advance(1.0)
    assert _hit(seq) is TapOutcome.HIT
    assert (seq.current_config_index, seq.current_trial_in_config) == (1, 0)
    assert seq.presentation is not None
    assert seq.presentation.targets[0].diameter == 32.0
    clock.advance(1.0)
    assert _hit(seq, dy=-2.0) is TapOutcome.COMPLETE

    assert seq.phase is Phase.COMPLETE
    assert len(seq.records) == seq.plan.total_trials == 3
    assert [r.config_index for r in seq.records] == [0, 0, 1]
    assert [r.group for r in seq.records] == ["Big", "Big", "Tiny"]
    assert seq.records[0].error is not None and seq.records[0].error.dx == pytest.approx(3.0)
    assert seq.tap(TapEvent(x=0.0, y=0.0)) is TapOutcome.IGNORED

    stats = seq.summary()
    assert stats.trial_count == 3
    assert stats.total_time_s == pytest.approx(2.0)


def test_start_time_is_set_by_first_interaction_not_by_start() -> None:
    clock = FakeClock()
    seq = _build(clock, ClockScheduler(clock))
    seq.start_test()
    assert seq.start_time_s is None
    clock.advance(5.0)
    _miss(seq)
    assert seq.start_time_s == 5.0


def test_miss_locks_for_penalty_and_keeps_target() -> None:
    clock = FakeClock()
    scheduler = ClockScheduler(clock)
    seq = _build(clock, scheduler, miss_penalty_s=0.5)
    seq.start_test()
    before = seq.presentation

    clock.t = 2.0
    assert _miss(seq) is TapOutcome.MISS
    assert seq.phase is Phase.LOCKED
    assert seq.current_misses == 1
    assert seq.snapshot().prompt == "Miss! Wait..."
    assert seq.tap(TapEvent(x=0.0, y=0.0)) is TapOutcome.IGNORED

    clock.t = 2.25
    scheduler.run_due()
    assert seq.phase is Phase.LOCKED

    clock.t = 2.5
    scheduler.run_due()
    assert seq.phase is Phase.RUNNING
    assert seq.presentation == before

    _miss(seq)
    clock.t = 3.0
    scheduler.run_due()
    assert _hit(seq) is TapOutcome.HIT
    assert seq.records[0].misses_before_hit == 2
    assert len(seq.records) == 1
    assert seq.current_misses == 0
    assert seq.total_misses == 2


def test_restart_cancels_in_flight_lock_timer() -> None:
    clock = FakeClock()
    scheduler = ClockScheduler(clock)
    seq = _build(clock, scheduler, miss_penalty_s=0.5)
    seq.start_test()

    _miss(seq)  # lock until 0.5
    clock.t = 0.25
    seq.start_test()
    assert seq.phase is Phase.RUNNING
    assert scheduler.pending() == 0
    assert seq.records == ()
    assert seq.total_misses == 0

    _miss(seq)  # lock until 0.75
    clock.t = 0.6
    scheduler.run_due()
    assert seq.phase is Phase.LOCKED

    clock.t = 0.75
    scheduler.run_due()
    assert seq.phase is Phase.RUNNING


def test_restart_after_complete_begins_fresh_session() -> None:
    clock = FakeClock()
    seq = _build(clock, ClockScheduler(clock))
    seq.start_test()
    for _ in range(3):
        clock.advance(1.0)
        _hit(seq)
    assert seq.phase is Phase.COMPLETE

    seq.start_test()
    assert seq.phase is Phase.RUNNING
    assert seq.records == ()
    assert seq.start_time_s is None
    assert (seq.current_config_index, seq.current_trial_in_config) == (0, 0)


def test_hit_lock_briefly_blocks_input_after_a_hit() -> None:
    clock = FakeClock()
    scheduler = ClockScheduler(clock)
    seq = _build(clock, scheduler, hit_lock_s=0.25)
    seq.start_test()

    assert _hit(seq) is TapOutcome.HIT
    assert seq.phase is Phase.LOCKED
    assert seq.snapshot().prompt == "Tap the target."
    assert _hit(seq) is TapOutcome.IGNORED

    clock.t = 0.25
    scheduler.run_due()
    assert seq.phase is Phase.RUNNING


def test_zero_penalty_miss_does_not_lock() -> None:
    clock = FakeClock()
    scheduler = ClockScheduler(clock)
    seq = _build(clock, scheduler, miss_penalty_s=0.0)
    seq.start_test()
    assert _miss(seq) is TapOutcome.MISS
    assert seq.phase is Phase.RUNNING
    assert scheduler.pending() == 0


def test_summary_before_completion_is_rejected() -> None:
    clock = FakeClock()
    seq = _build(clock, ClockScheduler(clock))
    seq.start_test()
    _hit(seq)
    with pytest.raises(RuntimeError):
        seq.summary()


def test_configuration_errors() -> None:
    clock = FakeClock()
    with pytest.raises(ValueError):
        _build(clock, ClockScheduler(clock), miss_penalty_s=-1.0)
    with pytest.raises(ValueError):
        TestPlan(configs=())
