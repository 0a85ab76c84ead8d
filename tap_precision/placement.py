from __future__ import annotations

from dataclasses import dataclass

from .precision_core import Point, RandomSource, Viewport, pick_index

DEFAULT_EDGE_DEPTH = 0.2  # outer fraction of the safe area


@dataclass(frozen=True, slots=True)
class EdgeBiasSchedule:
    """Step function from trial index to edge-targeting probability.

    ``steps`` holds ``(first_trial_index, probability)`` pairs. The first step starts
    at trial 0 with probability 0; later steps never lower the probability.
    """

    steps: tuple[tuple[int, float], ...]

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError("schedule needs at least one step")
        first_index, first_p = self.steps[0]
        if first_index != 0 or first_p != 0.0:
            raise ValueError("schedule must start at trial 0 with probability 0")
        prev_index, prev_p = -1, 0.0
        for index, p in self.steps:
            if index <= prev_index:
                raise ValueError("schedule thresholds must be strictly increasing")
            if not (prev_p <= p <= 1.0):
                raise ValueError("schedule probabilities must be non-decreasing and <= 1")
            prev_index, prev_p = index, p

    def probability(self, trial_index: int) -> float:
        p = 0.0
        for index, step_p in self.steps:
            if trial_index < index:
                break
            p = step_p
        return p


def place(
    trial_index: int,
    viewport: Viewport,
    diameter: float,
    base_padding: float,
    *,
    rng: RandomSource,
    schedule: EdgeBiasSchedule,
    edge_depth: float = DEFAULT_EDGE_DEPTH,
) -> Point:
    """Position for the next target centre, biased toward the edges as trials progress.

    Draw order is fixed (edge coin, side, x, y) so a seeded source replays exactly.
    """

    w = float(viewport.width)
    h = float(viewport.height)
    pad = base_padding + diameter / 2.0
    safe_w = w - pad * 2.0
    safe_h = h - pad * 2.0
    if safe_w <= 0.0 or safe_h <= 0.0:
        raise ValueError(
            f"viewport {w:g}x{h:g} too small for diameter {diameter:g} with padding {base_padding:g}"
        )

    if rng.random() < schedule.probability(trial_index):
        side = pick_index(4, rng)
        if side == 0:  # top
            x = pad + rng.random() * safe_w
            y = pad + rng.random() * safe_h * edge_depth
        elif side == 1:  # right
            x = w - pad - rng.random() * safe_w * edge_depth
            y = pad + rng.random() * safe_h
        elif side == 2:  # bottom
            x = pad + rng.random() * safe_w
            y = h - pad - rng.random() * safe_h * edge_depth
        else:  # left
            x = pad + rng.random() * safe_w * edge_depth
            y = pad + rng.random() * safe_h
    else:
        x = pad + rng.random() * safe_w
        y = pad + rng.random() * safe_h

    return Point(x=x, y=y)


def slot_row(viewport: Viewport, diameter: float, gap: float, count: int) -> tuple[Point, ...]:
    """Centres of ``count`` slots in one row, centred in the viewport, ``gap`` apart."""

    if count < 1:
        raise ValueError("count must be >= 1")
    total_w = count * diameter + (count - 1) * gap
    left = (float(viewport.width) - total_w) / 2.0
    cy = float(viewport.height) / 2.0
    return tuple(
        Point(x=left + diameter / 2.0 + i * (diameter + gap), y=cy) for i in range(count)
    )
