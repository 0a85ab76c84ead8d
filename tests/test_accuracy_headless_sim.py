from __future__ import annotations

from dataclasses import dataclass

import pytest

from tap_precision.accuracy import AccuracyConfig, build_accuracy_test
from tap_precision.clock import ClockScheduler
from tap_precision.precision_core import Phase, TapEvent, TapOutcome, Viewport
from tap_precision.render import PolygonPrim, Toggles, render_error_plot
from tap_precision.results import attempt_result_from_sequencer, format_readouts


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


VIEWPORT = Viewport(width=1024, height=768, device_pixel_ratio=2.0)


def _run(offset: tuple[float, float], *, seed: int = 314):
    clock = FakeClock()
    scheduler = ClockScheduler(clock)
    engine = build_accuracy_test(clock=clock, scheduler=scheduler, seed=seed, viewport=lambda: VIEWPORT)
    engine.start_test()
    outcomes = []
    while engine.phase is Phase.RUNNING:
        clock.advance(1.0)
        p = engine.presentation
        assert p is not None
        t = p.targets[0].position
        outcomes.append(engine.tap(TapEvent(x=t.x + offset[0], y=t.y + offset[1])))
    return engine, outcomes


def test_headless_scripted_run_with_constant_offset() -> None:
    engine, outcomes = _run((3.0, -4.0))

    assert engine.phase is Phase.COMPLETE
    assert outcomes[-1] is TapOutcome.COMPLETE
    assert outcomes.count(TapOutcome.HIT) == 19
    assert len(engine.records) == 20

    for r in engine.records:
        assert 40.0 <= r.target.position.x <= 984.0
        assert 40.0 <= r.target.position.y <= 728.0
        assert r.error_magnitude == pytest.approx(5.0)

    stats = engine.summary()
    err = stats.error
    assert err is not None
    assert err.avg_error == pytest.approx(5.0)
    assert (err.bias_x, err.bias_y) == (pytest.approx(3.0), pytest.approx(-4.0))
    assert stats.total_time_s == pytest.approx(19.0)
    assert stats.avg_time_s == pytest.approx(0.95)
    assert stats.overall_accuracy == pytest.approx(100.0)

    readouts = format_readouts(stats, VIEWPORT)
    assert readouts["avg_error"] == "5.0px"
    assert readouts["max_error"] == "5.0px"
    assert readouts["total_time"] == "19.0s"
    assert readouts["avg_time"] == "950ms"
    assert readouts["q90"] == "5px"
    assert readouts["screen_resolution"] == "1024×768 @ 2x"


def test_far_taps_still_count_in_free_form_accuracy() -> None:
    engine, outcomes = _run((150.0, 0.0))
    assert TapOutcome.MISS not in outcomes
    assert engine.summary().misses == 0


def test_on_target_session_renders_without_bias_arrow() -> None:
    engine, _ = _run((0.0, 0.0))
    stats = engine.summary()
    err = stats.error
    assert err is not None
    assert (err.avg_error, err.max_error, err.bias_magnitude) == (0.0, 0.0, 0.0)
    assert (err.quartiles.q25, err.quartiles.q50, err.quartiles.q75, err.quartiles.q90) == (0.0, 0.0, 0.0, 0.0)

    prims = render_error_plot(stats, engine.records, Toggles(heatmap=True, bias=True, quartiles=True), 400.0)
    assert not any(isinstance(p, PolygonPrim) for p in prims)

    # Re-rendering after a toggle change never touches the session.
    again = render_error_plot(engine.summary(), engine.records, Toggles(), 400.0)
    assert len(again) < len(prims)
    assert len(engine.records) == 20


def test_same_seed_same_target_sequence() -> None:
    a, _ = _run((1.0, 1.0), seed=9)
    b, _ = _run((1.0, 1.0), seed=9)
    assert [r.target for r in a.records] == [r.target for r in b.records]


def test_attempt_result_bundles_summary_and_readouts() -> None:
    engine, _ = _run((0.0, 2.0), seed=77)
    result = attempt_result_from_sequencer(engine, test_code="accuracy")
    assert result.seed == 77
    assert result.trial_count == 20
    assert result.plan_labels == ("Accuracy",)
    assert result.readouts["avg_error"] == "2.0px"
    # One second between presentation and tap for every trial.
    assert result.mean_time_to_hit_ms == pytest.approx(1000.0)
    assert result.median_time_to_hit_ms == pytest.approx(1000.0)
    assert result.records == engine.records


def test_custom_config_changes_trial_count() -> None:
    clock = FakeClock()
    engine = build_accuracy_test(
        clock=clock,
        scheduler=ClockScheduler(clock),
        seed=1,
        viewport=lambda: VIEWPORT,
        config=AccuracyConfig(total_taps=5),
    )
    assert engine.plan.total_trials == 5


def test_attempt_result_mean_and_median_time_to_hit() -> None:
    clock = FakeClock()
    engine = build_accuracy_test(
        clock=clock,
        scheduler=ClockScheduler(clock),
        seed=3,
        viewport=lambda: VIEWPORT,
        config=AccuracyConfig(total_taps=3),
    )
    engine.start_test()
    for t in (0.1, 0.3, 0.7):
        clock.t = t
        p = engine.presentation
        assert p is not None
        engine.tap(TapEvent(x=p.targets[0].position.x, y=p.targets[0].position.y))

    result = attempt_result_from_sequencer(engine, test_code="accuracy")
    # Per-trial times of 100, 200 and 400 ms.
    assert result.mean_time_to_hit_ms == pytest.approx(700.0 / 3.0)
    assert result.median_time_to_hit_ms == pytest.approx(200.0)
