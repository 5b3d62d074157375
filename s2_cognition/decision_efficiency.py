from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .clock import Clock
from .cognitive_core import CountdownSubtest, SeededRng, round_half_up
from .stimuli import DecisionEfficiencyGenerator, GoNoGoKind, GoNoGoStimulus
from .trial_timer import TrialClose, TrialTiming


@dataclass(frozen=True, slots=True)
class DecisionEfficiencyConfig:
    total_rounds: int = 25
    stimulus_s: float = 0.8
    inter_stimulus_s: float = 0.5
    post_stimulus_s: float = 0.2


@dataclass(frozen=True, slots=True)
class DecisionEfficiencyOutcome:
    kind: GoNoGoKind
    responded: bool
    response_time_ms: int
    is_correct: bool


@dataclass(frozen=True, slots=True)
class DecisionEfficiencyPayload:
    round_index: int
    stimulus: GoNoGoStimulus | None  # None between stimuli
    accepting_input: bool


def is_correct_go_no_go(kind: GoNoGoKind, responded: bool) -> bool:
    """Tap on GO, withhold on everything else."""

    if kind is GoNoGoKind.GO:
        return responded
    return not responded


def score_decision_efficiency(outcomes: Sequence[DecisionEfficiencyOutcome], *, total_rounds: int) -> int:
    """Accuracy (50) + hit rate (25) + inhibition (25)."""

    correct = sum(1 for o in outcomes if o.is_correct)
    go = [o for o in outcomes if o.kind is GoNoGoKind.GO]
    withhold = [o for o in outcomes if o.kind is not GoNoGoKind.GO]

    hit_rate = 0.0 if not go else sum(1 for o in go if o.responded) / float(len(go))
    false_alarm_rate = 0.0 if not withhold else sum(1 for o in withhold if o.responded) / float(len(withhold))

    accuracy_score = (correct / float(total_rounds)) * 50.0
    hit_score = hit_rate * 25.0
    inhibition_score = (1.0 - false_alarm_rate) * 25.0
    return round_half_up(min(100.0, accuracy_score + hit_score + inhibition_score))


class DecisionEfficiencyTest(CountdownSubtest):
    """Go/no-go: tap for the green circle only."""

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: DecisionEfficiencyConfig | None = None,
        on_complete: Callable[[int], None] | None = None,
    ) -> None:
        cfg = config or DecisionEfficiencyConfig()
        super().__init__(
            title="Decision Efficiency",
            instructions=[
                "Decision Efficiency",
                "",
                "Coloured circles appear one at a time.",
                "GREEN: tap (Space or click) as fast as you can.",
                "RED: do NOT tap.",
                "Any other colour: do NOT tap.",
                "",
                f"{cfg.total_rounds} stimuli, {int(cfg.stimulus_s * 1000)} ms each.",
            ],
            clock=clock,
            timing=TrialTiming(
                lead_in_s=cfg.inter_stimulus_s + cfg.post_stimulus_s,
                display_s=0.0,
                window_s=cfg.stimulus_s,
                stimulus_during_window=True,
                close_on_response=False,
            ),
            total_trials=cfg.total_rounds,
            on_complete=on_complete,
        )
        self._config = cfg
        self._sequence = DecisionEfficiencyGenerator(SeededRng(int(seed))).sequence(cfg.total_rounds)
        self._outcomes: list[DecisionEfficiencyOutcome] = []

    @property
    def sequence(self) -> tuple[GoNoGoStimulus, ...]:
        return self._sequence

    def outcomes(self) -> list[DecisionEfficiencyOutcome]:
        return list(self._outcomes)

    def tap(self, *, trial_seq: int | None = None) -> bool:
        """Register a tap; only the first tap inside the display window counts."""

        return self._respond(trial_seq, True)

    def _lead_in_for(self, index: int) -> float | None:
        return self._config.inter_stimulus_s if index == 0 else None

    def _prepare_trial(self, index: int) -> None:
        pass

    def _hold_response(self, response: object) -> None:
        # The timer keeps the first tap's latency; the stimulus stays up until it closes.
        pass

    def _record(self, close: TrialClose, response: object) -> None:
        stimulus = self._sequence[self._trial_index]
        self._outcomes.append(
            DecisionEfficiencyOutcome(
                kind=stimulus.kind,
                responded=close.responded,
                response_time_ms=close.elapsed_ms if close.responded else 0,
                is_correct=is_correct_go_no_go(stimulus.kind, close.responded),
            )
        )

    def _compute_score(self) -> int:
        return score_decision_efficiency(self._outcomes, total_rounds=self._config.total_rounds)

    def _discard_outcomes(self) -> None:
        self._outcomes.clear()

    def _payload(self) -> DecisionEfficiencyPayload:
        visible = self._timer.stimulus_visible()
        return DecisionEfficiencyPayload(
            round_index=self._trial_index,
            stimulus=self._sequence[self._trial_index] if visible else None,
            accepting_input=self._timer.accepting_input(),
        )

    def _playing_prompt(self) -> str:
        return "TAP ON GREEN ONLY"

    def _input_hint(self) -> str:
        return "Space / click to tap"


def build_decision_efficiency_test(
    *,
    clock: Clock,
    seed: int,
    config: DecisionEfficiencyConfig | None = None,
    on_complete: Callable[[int], None] | None = None,
) -> DecisionEfficiencyTest:
    return DecisionEfficiencyTest(clock=clock, seed=seed, config=config, on_complete=on_complete)
