from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .placement import DEFAULT_EDGE_DEPTH, EdgeBiasSchedule, place, slot_row
from .precision_core import (
    ErrorVector,
    Point,
    RandomSource,
    TapEvent,
    Target,
    TrialConfig,
    Viewport,
    fisher_yates,
    pick_index,
)


@dataclass(frozen=True, slots=True)
class Presentation:
    """Active target set for one trial."""

    targets: tuple[Target, ...]
    requested: str | None = None  # identity policy only

    @property
    def primary(self) -> Target:
        if self.requested is not None:
            for target in self.targets:
                if target.identity == self.requested:
                    return target
        return self.targets[0]

    def slot_at(self, x: float, y: float) -> Target | None:
        """Slot containing a pointer, for surfaces without their own hit-testing."""

        for target in self.targets:
            dx = x - target.position.x
            dy = y - target.position.y
            if dx * dx + dy * dy <= target.radius * target.radius:
                return target
        return None


@dataclass(frozen=True, slots=True)
class Classification:
    hit: bool
    target: Target
    error: ErrorVector | None


class HitPolicy(Protocol):
    def present(
        self,
        *,
        trial_index: int,
        config: TrialConfig,
        viewport: Viewport,
        rng: RandomSource,
    ) -> Presentation: ...

    def classify(self, presentation: Presentation, event: TapEvent) -> Classification: ...


class GeometricPolicy:
    """Single target placed by ``place``; a hit is a tap within the target radius.

    With ``strict=False`` every tap counts as a hit (free-form accuracy measurement),
    but the error vector is measured either way.
    """

    def __init__(
        self,
        *,
        base_padding: float,
        schedule: EdgeBiasSchedule,
        edge_depth: float = DEFAULT_EDGE_DEPTH,
        strict: bool = True,
    ) -> None:
        if base_padding < 0:
            raise ValueError("base_padding must be >= 0")
        if not (0.0 < edge_depth <= 1.0):
            raise ValueError("edge_depth must be in (0.0, 1.0]")
        self._base_padding = float(base_padding)
        self._schedule = schedule
        self._edge_depth = float(edge_depth)
        self._strict = bool(strict)

    @property
    def strict(self) -> bool:
        return self._strict

    def present(
        self,
        *,
        trial_index: int,
        config: TrialConfig,
        viewport: Viewport,
        rng: RandomSource,
    ) -> Presentation:
        pos = place(
            trial_index,
            viewport,
            config.target_diameter,
            self._base_padding,
            rng=rng,
            schedule=self._schedule,
            edge_depth=self._edge_depth,
        )
        return Presentation(targets=(Target(position=pos, diameter=config.target_diameter),))

    def classify(self, presentation: Presentation, event: TapEvent) -> Classification:
        target = presentation.primary
        error = ErrorVector(dx=event.x - target.position.x, dy=event.y - target.position.y)
        hit = (not self._strict) or error.magnitude <= target.radius
        return Classification(hit=hit, target=target, error=error)


class IdentityPolicy:
    """A row of slots with shuffled identity tags; hit iff the tapped tag was requested."""

    def __init__(self, identities: tuple[str, ...] = ("orange", "purple", "cyan")) -> None:
        if len(identities) < 2:
            raise ValueError("identity policy needs at least two identities")
        if len(set(identities)) != len(identities):
            raise ValueError("identities must be distinct")
        self._identities = tuple(identities)

    @property
    def identities(self) -> tuple[str, ...]:
        return self._identities

    def present(
        self,
        *,
        trial_index: int,
        config: TrialConfig,
        viewport: Viewport,
        rng: RandomSource,
    ) -> Presentation:
        _ = trial_index
        assignment = fisher_yates(self._identities, rng)
        positions = slot_row(viewport, config.target_diameter, config.spacing_gap, len(assignment))
        targets = tuple(
            Target(position=pos, diameter=config.target_diameter, identity=tag)
            for pos, tag in zip(positions, assignment)
        )
        requested = assignment[pick_index(len(assignment), rng)]
        return Presentation(targets=targets, requested=requested)

    def classify(self, presentation: Presentation, event: TapEvent) -> Classification:
        tapped = None
        if event.identity is not None:
            tapped = next((t for t in presentation.targets if t.identity == event.identity), None)
        target = presentation.primary if tapped is None else tapped
        hit = tapped is not None and tapped.identity == presentation.requested
        return Classification(hit=hit, target=target, error=None)


def tap_point(event: TapEvent) -> Point:
    return Point(x=float(event.x), y=float(event.y))
