from __future__ import annotations

from dataclasses import dataclass

from .clock import Clock, Scheduler
from .hit_policy import IdentityPolicy
from .metrics import SummaryStats
from .precision_core import SeededRng, TestPlan, TrialConfig, ViewportProvider
from .render import SPACED_COLOR, TIGHT_COLOR, Bar, BarGroup, LegendEntry
from .sequencer import TrialSequencer

SIZES: dict[str, float] = {"large": 80.0, "medium": 56.0, "small": 32.0}
SPACING: dict[str, float] = {"spaced": 16.0, "tight": 0.0}
COLORS: tuple[str, ...] = ("orange", "purple", "cyan")


@dataclass(frozen=True, slots=True)
class SpacingLayout:
    size: str
    spacing: str
    label: str


DEFAULT_LAYOUTS: tuple[SpacingLayout, ...] = (
    SpacingLayout("large", "spaced", "Large"),
    SpacingLayout("large", "tight", "Large + Tight"),
    SpacingLayout("medium", "spaced", "Medium"),
    SpacingLayout("medium", "tight", "Medium + Tight"),
    SpacingLayout("small", "spaced", "Small"),
    SpacingLayout("small", "tight", "Small + Tight"),
)


@dataclass(frozen=True, slots=True)
class SpacingConfig:
    trials_per_config: int = 5
    miss_penalty_s: float = 1.0
    # Brief lock after a correct tap so a double tap cannot land on the next layout.
    hit_lock_s: float = 0.05
    layouts: tuple[SpacingLayout, ...] = DEFAULT_LAYOUTS
    colors: tuple[str, ...] = COLORS


def spacing_plan(cfg: SpacingConfig) -> TestPlan:
    return TestPlan(
        configs=tuple(
            TrialConfig(
                label=layout.label,
                target_diameter=SIZES[layout.size],
                required_trial_count=cfg.trials_per_config,
                spacing_gap=SPACING[layout.spacing],
            )
            for layout in cfg.layouts
        )
    )


def spacing_chart_groups(
    stats: SummaryStats,
    layouts: tuple[SpacingLayout, ...] = DEFAULT_LAYOUTS,
) -> tuple[BarGroup, ...]:
    """Errors per layout, one group per target size with spaced/tight bars."""

    groups: list[BarGroup] = []
    for size in ("large", "medium", "small"):
        bars: list[Bar] = []
        for spacing, color in (("spaced", SPACED_COLOR), ("tight", TIGHT_COLOR)):
            layout = next((lay for lay in layouts if lay.size == size and lay.spacing == spacing), None)
            if layout is None:
                continue
            g = stats.group(layout.label)
            bars.append(Bar(label=layout.label, value=0 if g is None else g.misses, color=color))
        if bars:
            groups.append(BarGroup(label=size.capitalize(), bars=tuple(bars)))
    return tuple(groups)


SPACING_LEGEND: tuple[LegendEntry, ...] = (
    LegendEntry("Spaced", SPACED_COLOR),
    LegendEntry("Tight", TIGHT_COLOR),
)


def build_spacing_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    seed: int,
    viewport: ViewportProvider,
    config: SpacingConfig | None = None,
) -> TrialSequencer:
    cfg = config or SpacingConfig()

    instructions = (
        "Target Spacing",
        "",
        "Three coloured targets appear side by side.",
        "Tap the one whose colour is requested.",
        "Targets shrink and move closer together as the test goes on.",
        f"A wrong tap locks input for {cfg.miss_penalty_s:g}s.",
    )

    return TrialSequencer(
        title="Target Spacing",
        plan=spacing_plan(cfg),
        policy=IdentityPolicy(cfg.colors),
        clock=clock,
        scheduler=scheduler,
        rng=SeededRng(seed),
        viewport=viewport,
        miss_penalty_s=cfg.miss_penalty_s,
        hit_lock_s=cfg.hit_lock_s,
        seed=seed,
        instructions=instructions,
    )
