from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .clock import Clock, ScheduledCall, Scheduler
from .hit_policy import HitPolicy, Presentation, tap_point
from .metrics import SummaryStats, summarize
from .precision_core import (
    Phase,
    RandomSource,
    TapEvent,
    TapOutcome,
    TestPlan,
    TrialConfig,
    TrialRecord,
    ViewportProvider,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SequencerSnapshot:
    """View model for the UI (pure data)."""

    title: str
    phase: Phase
    prompt: str
    completed_trials: int
    total_trials: int
    config_label: str | None
    presentation: Presentation | None
    misses: int


class TrialSequencer:
    """Owns one test session: idle -> running (<-> locked) -> complete.

    - Placement and classification are delegated to the injected HitPolicy.
    - Time comes from the injected Clock; the miss penalty is a cancellable
      callback on the injected Scheduler.
    - A record is appended exactly once per successful trial.
    """

    def __init__(
        self,
        *,
        title: str,
        plan: TestPlan,
        policy: HitPolicy,
        clock: Clock,
        scheduler: Scheduler,
        rng: RandomSource,
        viewport: ViewportProvider,
        miss_penalty_s: float,
        hit_lock_s: float = 0.0,
        seed: int = 0,
        instructions: tuple[str, ...] = (),
        plan_factory: Callable[[], TestPlan] | None = None,
    ) -> None:
        if miss_penalty_s < 0.0:
            raise ValueError("miss_penalty_s must be >= 0")
        if hit_lock_s < 0.0:
            raise ValueError("hit_lock_s must be >= 0")

        self._title = title
        self._plan = plan
        self._policy = policy
        self._clock = clock
        self._scheduler = scheduler
        self._rng = rng
        self._viewport = viewport
        self._miss_penalty_s = float(miss_penalty_s)
        self._hit_lock_s = float(hit_lock_s)
        self._seed = int(seed)
        self._instructions = tuple(instructions)
        self._plan_factory = plan_factory

        self._phase = Phase.IDLE
        self._generation = 0
        self._lock_call: ScheduledCall | None = None

        self._records: list[TrialRecord] = []
        self._start_time_s: float | None = None
        self._config_index = 0
        self._trial_in_config = 0
        self._presentation: Presentation | None = None
        self._presented_at_s = 0.0
        self._current_misses = 0
        self._total_misses = 0

    @property
    def title(self) -> str:
        return self._title

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def plan(self) -> TestPlan:
        return self._plan

    @property
    def records(self) -> tuple[TrialRecord, ...]:
        return tuple(self._records)

    @property
    def start_time_s(self) -> float | None:
        return self._start_time_s

    @property
    def current_config_index(self) -> int:
        return self._config_index

    @property
    def current_trial_in_config(self) -> int:
        return self._trial_in_config

    @property
    def current_config(self) -> TrialConfig | None:
        if self._config_index >= len(self._plan):
            return None
        return self._plan[self._config_index]

    @property
    def presentation(self) -> Presentation | None:
        return self._presentation

    @property
    def current_misses(self) -> int:
        return self._current_misses

    @property
    def total_misses(self) -> int:
        return self._total_misses

    @property
    def completed_trials(self) -> int:
        return len(self._records)

    def instructions(self) -> list[str]:
        return list(self._instructions)

    def can_exit(self) -> bool:
        return self._phase in (Phase.IDLE, Phase.COMPLETE)

    def start_test(self) -> None:
        """Begin a fresh session; also the explicit restart from any phase.

        With a ``plan_factory`` every restart draws a new plan (e.g. a reshuffled
        size order); otherwise the plan given at construction is replayed.
        """

        plan = self._plan
        if self._plan_factory is not None and self._generation > 0:
            plan = self._plan_factory()
        # Placement failures leave the previous session untouched.
        presentation = self._next_presentation(plan[0], 0)

        self._cancel_lock()
        self._generation += 1
        self._plan = plan
        self._records = []
        self._start_time_s = None
        self._config_index = 0
        self._trial_in_config = 0
        self._current_misses = 0
        self._total_misses = 0
        self._phase = Phase.RUNNING
        self._show(presentation)
        logger.info("%s: session started (%d trials planned)", self._title, self._plan.total_trials)

    def tap(self, event: TapEvent) -> TapOutcome:
        if self._phase is not Phase.RUNNING:
            return TapOutcome.IGNORED
        assert self._presentation is not None

        now = self._clock.now()
        result = self._policy.classify(self._presentation, event)
        if not result.hit:
            self._mark_started(now)
            self._current_misses += 1
            self._total_misses += 1
            logger.debug(
                "%s: miss %d on trial %d", self._title, self._current_misses, len(self._records) + 1
            )
            if self._miss_penalty_s > 0.0:
                self._lock(self._miss_penalty_s)
            return TapOutcome.MISS

        config = self._plan[self._config_index]
        next_index = self._config_index
        next_trial = self._trial_in_config + 1
        if next_trial >= config.required_trial_count:
            next_index, next_trial = next_index + 1, 0
        finished = next_index >= len(self._plan)

        # Place the next target before committing the hit, so a placement error
        # (viewport shrunk below the padded target) leaves the trial open.
        upcoming = None
        if not finished:
            upcoming = self._next_presentation(self._plan[next_index], len(self._records) + 1)

        self._mark_started(now)
        self._records.append(
            TrialRecord(
                config_index=self._config_index,
                group=config.group_key,
                target=result.target,
                pointer=tap_point(event),
                error=result.error,
                misses_before_hit=self._current_misses,
                presented_at_s=self._presented_at_s,
                timestamp_s=now,
                identity=self._presentation.requested,
            )
        )
        self._current_misses = 0
        self._config_index = next_index
        self._trial_in_config = next_trial

        if upcoming is None:
            self._phase = Phase.COMPLETE
            self._presentation = None
            logger.info(
                "%s: session complete (%d trials, %d misses)",
                self._title,
                len(self._records),
                self._total_misses,
            )
            return TapOutcome.COMPLETE

        self._show(upcoming)
        if self._hit_lock_s > 0.0:
            self._lock(self._hit_lock_s)
        return TapOutcome.HIT

    def summary(self) -> SummaryStats:
        if self._phase is not Phase.COMPLETE:
            raise RuntimeError("summary is only available once the session is complete")
        return summarize(self._records, self._start_time_s)

    def snapshot(self) -> SequencerSnapshot:
        config = self.current_config
        return SequencerSnapshot(
            title=self._title,
            phase=self._phase,
            prompt=self._prompt(),
            completed_trials=len(self._records),
            total_trials=self._plan.total_trials,
            config_label=None if config is None or self._phase is Phase.COMPLETE else config.label,
            presentation=self._presentation,
            misses=self._total_misses,
        )

    def _prompt(self) -> str:
        if self._phase is Phase.IDLE:
            return "Tap anywhere to begin."
        if self._phase is Phase.COMPLETE:
            return "Test complete."
        if self._phase is Phase.LOCKED and self._current_misses > 0:
            return "Miss! Wait..."
        p = self._presentation
        if p is not None and p.requested is not None:
            return f"Tap the {p.requested.upper()} target."
        return "Tap the target."

    def _mark_started(self, now: float) -> None:
        if self._start_time_s is None:
            self._start_time_s = now

    def _next_presentation(self, config: TrialConfig, trial_index: int) -> Presentation:
        # Viewport is re-queried every time; it may have been resized mid-session.
        return self._policy.present(
            trial_index=trial_index,
            config=config,
            viewport=self._viewport(),
            rng=self._rng,
        )

    def _show(self, presentation: Presentation) -> None:
        self._presentation = presentation
        self._presented_at_s = self._clock.now()

    def _lock(self, duration_s: float) -> None:
        self._cancel_lock()
        self._phase = Phase.LOCKED
        generation = self._generation
        self._lock_call = self._scheduler.schedule(lambda: self._unlock(generation), duration_s)

    def _unlock(self, generation: int) -> None:
        # A timer from an earlier session must not touch the current one.
        if generation != self._generation or self._phase is not Phase.LOCKED:
            return
        self._lock_call = None
        self._phase = Phase.RUNNING
        logger.debug("%s: input unlocked", self._title)

    def _cancel_lock(self) -> None:
        if self._lock_call is not None:
            self._lock_call.cancel()
            self._lock_call = None
