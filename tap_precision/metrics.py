from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from .precision_core import ErrorVector, TrialRecord


@dataclass(frozen=True, slots=True)
class Quartiles:
    q25: float
    q50: float
    q75: float
    q90: float


@dataclass(frozen=True, slots=True)
class ErrorStats:
    avg_error: float
    max_error: float
    bias_x: float
    bias_y: float
    bias_magnitude: float
    quartiles: Quartiles


@dataclass(frozen=True, slots=True)
class GroupStats:
    group: str
    hits: int
    misses: int
    attempts: int
    accuracy: float  # percent
    avg_time_to_hit_s: float


@dataclass(frozen=True, slots=True)
class SummaryStats:
    trial_count: int
    hits: int
    misses: int
    attempts: int
    overall_accuracy: float  # percent
    total_time_s: float
    avg_time_s: float
    error: ErrorStats | None  # None when no record carries an error vector
    groups: tuple[GroupStats, ...]

    def group(self, name: str) -> GroupStats | None:
        for g in self.groups:
            if g.group == name:
                return g
        return None


def quantile(values: Sequence[float], q: float) -> float:
    """Value at index floor(n * q) of the sorted input (no interpolation)."""

    if not values:
        raise ValueError("quantile of an empty sequence")
    if not (0.0 <= q < 1.0):
        raise ValueError("q must be in [0.0, 1.0)")
    ordered = sorted(values)
    return ordered[int(math.floor(len(ordered) * q))]


def error_vectors(records: Sequence[TrialRecord]) -> list[ErrorVector]:
    return [r.error for r in records if r.error is not None]


def accuracy_pct(hits: int, misses: int) -> float:
    attempts = hits + misses
    return 0.0 if attempts == 0 else (hits / attempts) * 100.0


def error_stats(vectors: Sequence[ErrorVector]) -> ErrorStats | None:
    if not vectors:
        return None
    n = len(vectors)
    errors = [v.magnitude for v in vectors]
    bias_x = sum(v.dx for v in vectors) / n
    bias_y = sum(v.dy for v in vectors) / n
    return ErrorStats(
        avg_error=sum(errors) / n,
        max_error=max(errors),
        bias_x=bias_x,
        bias_y=bias_y,
        bias_magnitude=math.hypot(bias_x, bias_y),
        quartiles=Quartiles(
            q25=quantile(errors, 0.25),
            q50=quantile(errors, 0.50),
            q75=quantile(errors, 0.75),
            q90=quantile(errors, 0.90),
        ),
    )


def group_stats(records: Sequence[TrialRecord]) -> tuple[GroupStats, ...]:
    order: list[str] = []
    buckets: dict[str, list[TrialRecord]] = {}
    for r in records:
        if r.group not in buckets:
            order.append(r.group)
            buckets[r.group] = []
        buckets[r.group].append(r)

    out: list[GroupStats] = []
    for name in order:
        rs = buckets[name]
        hits = len(rs)
        misses = sum(r.misses_before_hit for r in rs)
        out.append(
            GroupStats(
                group=name,
                hits=hits,
                misses=misses,
                attempts=hits + misses,
                accuracy=accuracy_pct(hits, misses),
                avg_time_to_hit_s=sum(r.time_to_hit_s for r in rs) / hits,
            )
        )
    return tuple(out)


def summarize(records: Sequence[TrialRecord], start_time_s: float | None) -> SummaryStats:
    """Summary statistics for a finished session. Pure; safe to call repeatedly."""

    if not records:
        raise ValueError("cannot summarize an empty record set")
    start = records[0].timestamp_s if start_time_s is None else float(start_time_s)

    n = len(records)
    hits = n
    misses = sum(r.misses_before_hit for r in records)
    total_time_s = max(0.0, records[-1].timestamp_s - start)

    return SummaryStats(
        trial_count=n,
        hits=hits,
        misses=misses,
        attempts=hits + misses,
        overall_accuracy=accuracy_pct(hits, misses),
        total_time_s=total_time_s,
        avg_time_s=total_time_s / n,
        error=error_stats(error_vectors(records)),
        groups=group_stats(records),
    )
