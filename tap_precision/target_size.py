from __future__ import annotations

from dataclasses import dataclass

from .clock import Clock, Scheduler
from .hit_policy import GeometricPolicy
from .metrics import SummaryStats
from .placement import EdgeBiasSchedule
from .precision_core import RandomSource, SeededRng, TestPlan, TrialConfig, ViewportProvider, fisher_yates
from .render import SIZE_COLORS, Bar, BarGroup
from .sequencer import TrialSequencer

SIZE_ORDER: tuple[str, ...] = ("small", "medium", "large")


@dataclass(frozen=True, slots=True)
class TargetSizeConfig:
    targets_per_size: int = 8
    sizes: tuple[tuple[str, float], ...] = (("small", 32.0), ("medium", 56.0), ("large", 80.0))
    miss_penalty_s: float = 0.5
    base_padding: float = 50.0
    edge_schedule: tuple[tuple[int, float], ...] = ((0, 0.0), (10, 0.5), (18, 0.7))
    edge_depth: float = 0.2


def size_sweep_plan(cfg: TargetSizeConfig, rng: RandomSource) -> TestPlan:
    """Shuffled one-trial configs, ``targets_per_size`` of each size.

    Sizes interleave randomly while config indices still advance one per trial;
    statistics group by size name.
    """

    ordered = [
        TrialConfig(label=f"{name} #{i + 1}", target_diameter=diameter, required_trial_count=1, group=name)
        for name, diameter in cfg.sizes
        for i in range(cfg.targets_per_size)
    ]
    return TestPlan(configs=fisher_yates(ordered, rng))


def size_chart_groups(stats: SummaryStats) -> tuple[BarGroup, ...]:
    groups: list[BarGroup] = []
    for name in SIZE_ORDER:
        g = stats.group(name)
        if g is None:
            continue
        label = name.capitalize()
        groups.append(BarGroup(label=label, bars=(Bar(label=label, value=g.misses, color=SIZE_COLORS[name]),)))
    return tuple(groups)


def build_target_size_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    seed: int,
    viewport: ViewportProvider,
    config: TargetSizeConfig | None = None,
) -> TrialSequencer:
    cfg = config or TargetSizeConfig()
    if cfg.targets_per_size < 1:
        raise ValueError("targets_per_size must be >= 1")

    rng = SeededRng(seed)
    plan = size_sweep_plan(cfg, rng)

    instructions = (
        "Target Size",
        "",
        "Tap each target as it appears.",
        "Targets come in three sizes, mixed in random order.",
        f"A miss locks input for {cfg.miss_penalty_s:g}s; the target stays put.",
        "",
        f"{plan.total_trials} targets in total.",
    )

    policy = GeometricPolicy(
        base_padding=cfg.base_padding,
        schedule=EdgeBiasSchedule(cfg.edge_schedule),
        edge_depth=cfg.edge_depth,
        strict=True,
    )

    return TrialSequencer(
        title="Target Size",
        plan=plan,
        policy=policy,
        clock=clock,
        scheduler=scheduler,
        rng=rng,
        viewport=viewport,
        miss_penalty_s=cfg.miss_penalty_s,
        seed=seed,
        instructions=instructions,
        plan_factory=lambda: size_sweep_plan(cfg, rng),
    )
