from __future__ import annotations

from dataclasses import dataclass

from .clock import Clock, Scheduler
from .hit_policy import GeometricPolicy
from .placement import EdgeBiasSchedule
from .precision_core import SeededRng, TestPlan, TrialConfig, ViewportProvider
from .sequencer import TrialSequencer


@dataclass(frozen=True, slots=True)
class AccuracyConfig:
    total_taps: int = 20
    target_diameter: float = 80.0
    # Effective padding is base_padding + diameter / 2, i.e. 40 from the edge.
    base_padding: float = 0.0
    edge_schedule: tuple[tuple[int, float], ...] = ((0, 0.0), (10, 0.5), (15, 0.7))
    edge_depth: float = 0.2


def build_accuracy_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    seed: int,
    viewport: ViewportProvider,
    config: AccuracyConfig | None = None,
) -> TrialSequencer:
    cfg = config or AccuracyConfig()

    instructions = (
        "Touch Accuracy",
        "",
        "Tap the centre of each target as precisely as you can.",
        "Every tap is measured; the target moves after each one.",
        "Later targets drift toward the screen edges.",
        "",
        f"{cfg.total_taps} taps in total.",
    )

    plan = TestPlan(
        configs=(
            TrialConfig(
                label="Accuracy",
                target_diameter=cfg.target_diameter,
                required_trial_count=cfg.total_taps,
            ),
        )
    )
    policy = GeometricPolicy(
        base_padding=cfg.base_padding,
        schedule=EdgeBiasSchedule(cfg.edge_schedule),
        edge_depth=cfg.edge_depth,
        strict=False,
    )

    return TrialSequencer(
        title="Touch Accuracy",
        plan=plan,
        policy=policy,
        clock=clock,
        scheduler=scheduler,
        rng=SeededRng(seed),
        viewport=viewport,
        miss_penalty_s=0.0,
        seed=seed,
        instructions=instructions,
    )
