from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .clock import Clock
from .cognitive_core import CountdownSubtest, SeededRng, mean, round_half_up
from .stimuli import Pattern, ProcessingSpeedGenerator, ProcessingSpeedTrial
from .trial_timer import TrialClose, TrialStage, TrialTiming


@dataclass(frozen=True, slots=True)
class ProcessingSpeedConfig:
    total_rounds: int = 20
    display_s: float = 1.5
    response_window_s: float = 3.0
    inter_round_s: float = 0.5


@dataclass(frozen=True, slots=True)
class ProcessingSpeedOutcome:
    target: Pattern
    match_count: int
    chosen_count: int | None  # None on timeout
    responded: bool
    response_time_ms: int
    is_correct: bool


@dataclass(frozen=True, slots=True)
class ProcessingSpeedPayload:
    round_index: int
    target: Pattern
    patterns: tuple[Pattern, ...] | None  # None once the grid is hidden
    accepting_input: bool
    choices: tuple[int, ...] = (0, 1, 2)


def score_processing_speed(outcomes: Sequence[ProcessingSpeedOutcome], *, total_rounds: int) -> int:
    """Accuracy (60) + speed bonus (40) from the mean response time of correct rounds.

    With no correct rounds there is no speed bonus.
    """

    correct_rts = [o.response_time_ms for o in outcomes if o.is_correct]
    accuracy_score = (len(correct_rts) / float(total_rounds)) * 60.0
    avg_rt_ms = mean(correct_rts)
    speed_score = 0.0 if avg_rt_ms is None else max(0.0, 40.0 - avg_rt_ms / 100.0)
    return round_half_up(min(100.0, accuracy_score + speed_score))


class ProcessingSpeedTest(CountdownSubtest):
    """Pattern-count rounds: memorise the grid, then say how many matched the target."""

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: ProcessingSpeedConfig | None = None,
        on_complete: Callable[[int], None] | None = None,
    ) -> None:
        cfg = config or ProcessingSpeedConfig()
        super().__init__(
            title="Processing Speed",
            instructions=[
                "Processing Speed",
                "",
                "A target pattern and a grid of 8 patterns flash on screen.",
                f"The grid disappears after {cfg.display_s:g} seconds.",
                "Then choose how many patterns exactly matched the target",
                "(same shape AND same colour): 0, 1 or 2.",
                f"You have {cfg.response_window_s:g} seconds to answer. Speed and accuracy both count.",
                "",
                f"{cfg.total_rounds} rounds.",
            ],
            clock=clock,
            timing=TrialTiming(
                lead_in_s=cfg.inter_round_s,
                display_s=cfg.display_s,
                window_s=cfg.response_window_s,
                stimulus_during_window=False,
            ),
            total_trials=cfg.total_rounds,
            on_complete=on_complete,
        )
        self._config = cfg
        self._gen = ProcessingSpeedGenerator(SeededRng(int(seed)))
        self._current: ProcessingSpeedTrial | None = None
        self._outcomes: list[ProcessingSpeedOutcome] = []

    def outcomes(self) -> list[ProcessingSpeedOutcome]:
        return list(self._outcomes)

    @property
    def current_trial(self) -> ProcessingSpeedTrial | None:
        return self._current

    def submit_count(self, count: int, *, trial_seq: int | None = None) -> bool:
        """Answer the current round. Returns True if the answer was accepted."""

        if int(count) not in (0, 1, 2):
            return False
        return self._respond(trial_seq, int(count))

    def _lead_in_for(self, index: int) -> float | None:
        # The first round starts straight out of the countdown.
        return 0.0 if index == 0 else None

    def _prepare_trial(self, index: int) -> None:
        self._current = self._gen.next_trial()

    def _record(self, close: TrialClose, response: object) -> None:
        assert self._current is not None
        chosen = response if close.responded and isinstance(response, int) else None
        is_correct = chosen is not None and chosen == self._current.match_count
        self._outcomes.append(
            ProcessingSpeedOutcome(
                target=self._current.target,
                match_count=self._current.match_count,
                chosen_count=chosen,
                responded=chosen is not None,
                response_time_ms=close.elapsed_ms if chosen is not None else 0,
                is_correct=is_correct,
            )
        )

    def _compute_score(self) -> int:
        self._current = None
        return score_processing_speed(self._outcomes, total_rounds=self._config.total_rounds)

    def _discard_outcomes(self) -> None:
        self._outcomes.clear()
        self._current = None

    def _payload(self) -> ProcessingSpeedPayload | None:
        if self._current is None or self._timer.stage is TrialStage.LEAD_IN:
            return None
        return ProcessingSpeedPayload(
            round_index=self._trial_index,
            target=self._current.target,
            patterns=self._current.patterns if self._timer.stimulus_visible() else None,
            accepting_input=self._timer.accepting_input(),
        )

    def _playing_prompt(self) -> str:
        if self._timer.stimulus_visible():
            return "MEMORISE"
        if self._timer.accepting_input():
            return "HOW MANY MATCHED THE TARGET?"
        return ""

    def _input_hint(self) -> str:
        return "Press 0, 1 or 2"


def build_processing_speed_test(
    *,
    clock: Clock,
    seed: int,
    config: ProcessingSpeedConfig | None = None,
    on_complete: Callable[[int], None] | None = None,
) -> ProcessingSpeedTest:
    return ProcessingSpeedTest(clock=clock, seed=seed, config=config, on_complete=on_complete)
