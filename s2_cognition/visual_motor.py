from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .clock import Clock
from .cognitive_core import CountdownSubtest, SeededRng, mean, round_half_up
from .stimuli import TargetPosition, VisualMotorGenerator
from .trial_timer import TrialClose, TrialTiming

MISS_DISTANCE = 999.0


@dataclass(frozen=True, slots=True)
class VisualMotorConfig:
    total_targets: int = 20
    target_s: float = 2.0
    inter_target_s: float = 0.5
    hit_radius_pct: float = 12.0
    distance_clamp_pct: float = 50.0


@dataclass(frozen=True, slots=True)
class VisualMotorOutcome:
    target: TargetPosition
    tap: TargetPosition | None  # None when the target timed out
    hit: bool
    distance: float
    response_time_ms: int


@dataclass(frozen=True, slots=True)
class VisualMotorPayload:
    target_index: int
    target: TargetPosition | None  # None between targets
    hit_radius_pct: float
    accepting_input: bool


def tap_distance(target: TargetPosition, tap: TargetPosition) -> float:
    return math.hypot(tap.x_pct - target.x_pct, tap.y_pct - target.y_pct)


def score_visual_motor(
    outcomes: Sequence[VisualMotorOutcome],
    *,
    total_targets: int,
    distance_clamp_pct: float = 50.0,
) -> int:
    """Accuracy (50) + precision (25) + speed (25).

    Precision averages every trial's distance clamped to ``distance_clamp_pct``
    (timeouts count at the clamp). Speed uses the mean response time of hits;
    with no hits there is no speed bonus.
    """

    hit_rts = [o.response_time_ms for o in outcomes if o.hit]
    accuracy_score = (len(hit_rts) / float(total_targets)) * 50.0

    avg_distance = mean([min(o.distance, distance_clamp_pct) for o in outcomes])
    precision_score = 0.0 if avg_distance is None else max(0.0, 25.0 - avg_distance * 0.5)

    avg_rt_ms = mean(hit_rts)
    speed_score = 0.0 if avg_rt_ms is None else max(0.0, 25.0 - avg_rt_ms / 80.0)

    return round_half_up(min(100.0, accuracy_score + precision_score + speed_score))


class VisualMotorTest(CountdownSubtest):
    """Tap each target before it disappears; distance and speed both count."""

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: VisualMotorConfig | None = None,
        on_complete: Callable[[int], None] | None = None,
    ) -> None:
        cfg = config or VisualMotorConfig()
        if cfg.hit_radius_pct <= 0.0:
            raise ValueError("hit_radius_pct must be > 0")
        super().__init__(
            title="Visual-Motor Integration",
            instructions=[
                "Visual-Motor Integration",
                "",
                "A target appears somewhere in the play area.",
                "Click / tap its centre as quickly and precisely as you can.",
                f"Each target disappears after {cfg.target_s:g} seconds.",
                "",
                f"{cfg.total_targets} targets.",
            ],
            clock=clock,
            timing=TrialTiming(
                lead_in_s=cfg.inter_target_s,
                display_s=0.0,
                window_s=cfg.target_s,
                stimulus_during_window=True,
            ),
            total_trials=cfg.total_targets,
            on_complete=on_complete,
        )
        self._config = cfg
        self._gen = VisualMotorGenerator(SeededRng(int(seed)))
        self._current: TargetPosition | None = None
        self._outcomes: list[VisualMotorOutcome] = []

    def outcomes(self) -> list[VisualMotorOutcome]:
        return list(self._outcomes)

    @property
    def current_target(self) -> TargetPosition | None:
        return self._current

    def tap_at(self, x_pct: float, y_pct: float, *, trial_seq: int | None = None) -> bool:
        """Register a tap at a position given in percent of the play surface."""

        return self._respond(trial_seq, TargetPosition(x_pct=float(x_pct), y_pct=float(y_pct)))

    def _prepare_trial(self, index: int) -> None:
        self._current = self._gen.next_position()

    def _record(self, close: TrialClose, response: object) -> None:
        assert self._current is not None
        if close.responded and isinstance(response, TargetPosition):
            distance = tap_distance(self._current, response)
            outcome = VisualMotorOutcome(
                target=self._current,
                tap=response,
                hit=distance < self._config.hit_radius_pct,
                distance=distance,
                response_time_ms=close.elapsed_ms,
            )
        else:
            outcome = VisualMotorOutcome(
                target=self._current,
                tap=None,
                hit=False,
                distance=MISS_DISTANCE,
                response_time_ms=close.elapsed_ms,
            )
        self._outcomes.append(outcome)

    def _compute_score(self) -> int:
        self._current = None
        return score_visual_motor(
            self._outcomes,
            total_targets=self._config.total_targets,
            distance_clamp_pct=self._config.distance_clamp_pct,
        )

    def _discard_outcomes(self) -> None:
        self._outcomes.clear()
        self._current = None

    def _payload(self) -> VisualMotorPayload:
        visible = self._timer.stimulus_visible()
        return VisualMotorPayload(
            target_index=self._trial_index,
            target=self._current if visible else None,
            hit_radius_pct=self._config.hit_radius_pct,
            accepting_input=self._timer.accepting_input(),
        )

    def _playing_prompt(self) -> str:
        return "TAP THE TARGET"

    def _input_hint(self) -> str:
        return "Click the target centre"


def build_visual_motor_test(
    *,
    clock: Clock,
    seed: int,
    config: VisualMotorConfig | None = None,
    on_complete: Callable[[int], None] | None = None,
) -> VisualMotorTest:
    return VisualMotorTest(clock=clock, seed=seed, config=config, on_complete=on_complete)
