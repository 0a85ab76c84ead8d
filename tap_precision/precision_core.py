from __future__ import annotations

import math
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Uniform source over [0.0, 1.0)."""

    def random(self) -> float: ...


class Phase(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    LOCKED = "locked"
    COMPLETE = "complete"


class TapOutcome(StrEnum):
    IGNORED = "ignored"
    HIT = "hit"
    MISS = "miss"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class ErrorVector:
    dx: float
    dy: float

    @property
    def magnitude(self) -> float:
        return math.hypot(self.dx, self.dy)


@dataclass(frozen=True, slots=True)
class Viewport:
    width: float
    height: float
    device_pixel_ratio: float = 1.0


ViewportProvider = Callable[[], Viewport]


@dataclass(frozen=True, slots=True)
class TrialConfig:
    label: str
    target_diameter: float
    required_trial_count: int
    spacing_gap: float = 0.0
    group: str | None = None  # statistics key; defaults to label

    def __post_init__(self) -> None:
        if self.target_diameter <= 0:
            raise ValueError("target_diameter must be > 0")
        if self.required_trial_count < 1:
            raise ValueError("required_trial_count must be >= 1")
        if self.spacing_gap < 0:
            raise ValueError("spacing_gap must be >= 0")

    @property
    def group_key(self) -> str:
        return self.label if self.group is None else self.group


@dataclass(frozen=True, slots=True)
class TestPlan:
    """Ordered, immutable sequence of trial configs for one session."""

    __test__ = False  # not a pytest class

    configs: tuple[TrialConfig, ...]

    def __post_init__(self) -> None:
        if not self.configs:
            raise ValueError("a test plan needs at least one config")

    @property
    def total_trials(self) -> int:
        return sum(c.required_trial_count for c in self.configs)

    def labels(self) -> tuple[str, ...]:
        return tuple(c.label for c in self.configs)

    def __len__(self) -> int:
        return len(self.configs)

    def __getitem__(self, index: int) -> TrialConfig:
        return self.configs[index]


@dataclass(frozen=True, slots=True)
class Target:
    position: Point
    diameter: float
    identity: str | None = None

    @property
    def radius(self) -> float:
        return self.diameter / 2.0


@dataclass(frozen=True, slots=True)
class TapEvent:
    """Pointer interaction in viewport coordinates, or the tag of a tapped slot."""

    x: float = 0.0
    y: float = 0.0
    identity: str | None = None


@dataclass(frozen=True, slots=True)
class TrialRecord:
    config_index: int
    group: str
    target: Target
    pointer: Point
    error: ErrorVector | None  # None under the identity policy
    misses_before_hit: int
    presented_at_s: float
    timestamp_s: float
    identity: str | None = None

    @property
    def error_magnitude(self) -> float | None:
        return None if self.error is None else self.error.magnitude

    @property
    def time_to_hit_s(self) -> float:
        return max(0.0, self.timestamp_s - self.presented_at_s)


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def random(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)


def fisher_yates(items: Sequence[T], rng: RandomSource) -> tuple[T, ...]:
    """Unbiased shuffle returning a new tuple; the input is left untouched."""

    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(math.floor(rng.random() * (i + 1)))
        result[i], result[j] = result[j], result[i]
    return tuple(result)


def pick_index(count: int, rng: RandomSource) -> int:
    # floor(r * n) for r in [0, 1); clamp guards a source that returns exactly 1.0.
    return min(count - 1, int(math.floor(rng.random() * count)))


def round_half_up(x: float) -> int:
    # Whole-number readouts round .5 up, not to even.
    return int(math.floor(x + 0.5))
