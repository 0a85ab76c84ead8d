from __future__ import annotations

from dataclasses import dataclass

from .metrics import SummaryStats
from .precision_core import TrialRecord, Viewport, round_half_up
from .sequencer import TrialSequencer


def format_readouts(stats: SummaryStats, viewport: Viewport | None = None) -> dict[str, str]:
    """Flat name -> display string mapping for the results screen.

    Distances and seconds carry one decimal, percentages none, milliseconds are
    rounded half up to whole numbers.
    """

    out: dict[str, str] = {
        "hits": str(stats.hits),
        "misses": str(stats.misses),
        "overall_accuracy": f"{round_half_up(stats.overall_accuracy)}%",
        "total_time": f"{stats.total_time_s:.1f}s",
        "avg_time": f"{round_half_up(stats.avg_time_s * 1000.0)}ms",
    }

    err = stats.error
    if err is not None:
        out["avg_error"] = f"{err.avg_error:.1f}px"
        out["max_error"] = f"{err.max_error:.1f}px"
        out["bias"] = f"{err.bias_magnitude:.1f}px"
        q = err.quartiles
        out["q25"] = f"{round_half_up(q.q25)}px"
        out["q50"] = f"{round_half_up(q.q50)}px"
        out["q75"] = f"{round_half_up(q.q75)}px"
        out["q90"] = f"{round_half_up(q.q90)}px"

    for g in stats.groups:
        out[f"{g.group}_misses"] = f"{g.misses} misses"
        out[f"{g.group}_accuracy"] = f"{round_half_up(g.accuracy)}% accuracy"
        out[f"{g.group}_time"] = f"{g.avg_time_to_hit_s:.2f}s avg"

    if viewport is not None:
        out["screen_resolution"] = (
            f"{viewport.width:g}×{viewport.height:g} @ {viewport.device_pixel_ratio:g}x"
        )

    return out


@dataclass(frozen=True, slots=True)
class AttemptResult:
    """Summary + record log for a completed session, held in memory only."""

    test_code: str
    test_version: int
    seed: int
    plan_labels: tuple[str, ...]

    trial_count: int
    misses: int
    overall_accuracy: float
    total_time_s: float
    mean_time_to_hit_ms: float
    median_time_to_hit_ms: float

    summary: SummaryStats
    readouts: dict[str, str]
    records: tuple[TrialRecord, ...]


def attempt_result_from_sequencer(
    seq: TrialSequencer,
    *,
    test_code: str,
    test_version: int = 1,
    viewport: Viewport | None = None,
) -> AttemptResult:
    """Build an AttemptResult from a finished TrialSequencer."""

    summary = seq.summary()
    records = seq.records
    hit_ms = sorted(int(round(r.time_to_hit_s * 1000.0)) for r in records)

    mean_ms = float(sum(hit_ms)) / float(len(hit_ms))
    mid = len(hit_ms) // 2
    if len(hit_ms) % 2 == 1:
        median_ms = float(hit_ms[mid])
    else:
        median_ms = float(hit_ms[mid - 1] + hit_ms[mid]) / 2.0

    return AttemptResult(
        test_code=str(test_code),
        test_version=int(test_version),
        seed=int(seq.seed),
        plan_labels=seq.plan.labels(),
        trial_count=int(summary.trial_count),
        misses=int(summary.misses),
        overall_accuracy=float(summary.overall_accuracy),
        total_time_s=float(summary.total_time_s),
        mean_time_to_hit_ms=mean_ms,
        median_time_to_hit_ms=median_ms,
        summary=summary,
        readouts=format_readouts(summary, viewport),
        records=records,
    )
