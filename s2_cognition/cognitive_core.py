from __future__ import annotations

import math
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from .clock import Clock
from .trial_timer import TrialClose, TrialTimer, TrialTiming

T = TypeVar("T")


class Phase(str, Enum):
    INSTRUCTIONS = "instructions"
    COUNTDOWN = "countdown"
    PLAYING = "playing"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class TestSnapshot:
    """View model for the UI (pure data)."""

    title: str
    phase: Phase
    prompt: str
    input_hint: str
    countdown: int | None
    trial_index: int
    total_trials: int
    trial_seq: int | None
    score: int | None
    payload: object | None = None


class CountdownSubtest:
    """Reusable subtest harness: instructions -> countdown -> playing -> done.

    - Time is entirely via injected Clock; ``update()`` is the single pump.
    - One trial is live at a time. Its outcome is committed only when the
      timer's sequence number still matches the current trial, and the next
      trial starts only after that commit.
    - When the last trial closes the score is computed, and after a short hold
      ``on_complete(score)`` fires exactly once.

    Subclasses provide the stimulus, the per-trial rule and the score formula.
    """

    def __init__(
        self,
        *,
        title: str,
        instructions: list[str],
        clock: Clock,
        timing: TrialTiming,
        total_trials: int,
        countdown_s: int = 3,
        completion_hold_s: float = 1.5,
        on_complete: Callable[[int], None] | None = None,
    ) -> None:
        if total_trials <= 0:
            raise ValueError("total_trials must be > 0")
        if countdown_s < 0:
            raise ValueError("countdown_s must be >= 0")
        if completion_hold_s < 0.0:
            raise ValueError("completion_hold_s must be >= 0")

        self._title = title
        self._instructions = instructions
        self._clock = clock
        self._timer = TrialTimer(clock=clock, timing=timing)
        self._total_trials = int(total_trials)
        self._countdown_s = int(countdown_s)
        self._completion_hold_s = float(completion_hold_s)
        self._on_complete = on_complete

        self._phase = Phase.INSTRUCTIONS
        self._countdown_started_at_s: float | None = None
        self._done_at_s: float | None = None
        self._trial_index = 0
        self._trial_seq: int | None = None
        self._score: int | None = None
        self._reported = False
        self._cancelled = False

    @property
    def title(self) -> str:
        return self._title

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def score(self) -> int | None:
        return self._score

    @property
    def trial_seq(self) -> int | None:
        return self._trial_seq

    @property
    def total_trials(self) -> int:
        return self._total_trials

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> bool:
        """Leave the instructions; a second start while running is ignored."""

        if self._phase is not Phase.INSTRUCTIONS or self._cancelled:
            return False
        self._phase = Phase.COUNTDOWN
        self._countdown_started_at_s = self._clock.now()
        return True

    def countdown_remaining(self) -> int | None:
        if self._phase is not Phase.COUNTDOWN:
            return None
        assert self._countdown_started_at_s is not None
        elapsed = self._clock.now() - self._countdown_started_at_s
        return max(0, int(math.ceil(self._countdown_s - elapsed)))

    def update(self) -> None:
        if self._cancelled:
            return

        if self._phase is Phase.COUNTDOWN:
            if self.countdown_remaining() == 0:
                self._phase = Phase.PLAYING
                self._begin_trial()
            return

        if self._phase is Phase.PLAYING:
            close = self._timer.poll()
            if close is not None:
                self._close_trial(close, None)
            return

        if self._phase is Phase.DONE and not self._reported:
            assert self._done_at_s is not None
            if self._clock.now() - self._done_at_s >= self._completion_hold_s:
                self._reported = True
                if self._on_complete is not None and self._score is not None:
                    self._on_complete(self._score)

    def cancel(self) -> None:
        """Abandon the run: pending timers are invalidated and trial data is lost."""

        self._cancelled = True
        self._timer.cancel()
        self._trial_seq = None
        self._discard_outcomes()

    def snapshot(self) -> TestSnapshot:
        return TestSnapshot(
            title=self._title,
            phase=self._phase,
            prompt=self._prompt_text(),
            input_hint=self._input_hint(),
            countdown=self.countdown_remaining(),
            trial_index=self._trial_index,
            total_trials=self._total_trials,
            trial_seq=self._trial_seq if self._phase is Phase.PLAYING else None,
            score=self._score,
            payload=self._payload() if self._phase is Phase.PLAYING else None,
        )

    # Shared trial plumbing

    def _respond(self, trial_seq: int | None, response: object) -> bool:
        if self._cancelled or self._phase is not Phase.PLAYING or self._trial_seq is None:
            return False
        seq = self._trial_seq if trial_seq is None else int(trial_seq)
        if seq != self._trial_seq:
            return False

        held_before = self._timer.has_response()
        close = self._timer.respond(seq)
        if close is not None:
            self._close_trial(close, response)
            return True
        if self._timer.has_response() and not held_before:
            self._hold_response(response)
            return True
        return False

    def _begin_trial(self) -> None:
        self._prepare_trial(self._trial_index)
        self._trial_seq = self._timer.begin(lead_in_s=self._lead_in_for(self._trial_index))

    def _close_trial(self, close: TrialClose, response: object) -> None:
        if close.seq != self._trial_seq:
            return
        self._record(close, response)
        self._trial_index += 1
        if self._trial_index >= self._total_trials:
            self._finish()
        else:
            self._begin_trial()

    def _finish(self) -> None:
        self._score = self._compute_score()
        self._trial_seq = None
        self._phase = Phase.DONE
        self._done_at_s = self._clock.now()

    # Hooks

    def _lead_in_for(self, index: int) -> float | None:
        return None

    def _prepare_trial(self, index: int) -> None:
        raise NotImplementedError

    def _hold_response(self, response: object) -> None:
        raise NotImplementedError

    def _record(self, close: TrialClose, response: object) -> None:
        raise NotImplementedError

    def _compute_score(self) -> int:
        raise NotImplementedError

    def _discard_outcomes(self) -> None:
        raise NotImplementedError

    def _payload(self) -> object | None:
        return None

    def _playing_prompt(self) -> str:
        return ""

    def _input_hint(self) -> str:
        return ""

    def _prompt_text(self) -> str:
        if self._phase is Phase.INSTRUCTIONS:
            return "\n".join([*self._instructions, "", "Press Enter to begin."])
        if self._phase is Phase.COUNTDOWN:
            return "Get ready..."
        if self._phase is Phase.DONE:
            return f"{self._title} complete.\nScore: {self._score}"
        return self._playing_prompt()


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def random(self) -> float:
        return self._rng.random()

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def shuffle(self, items: list[T]) -> None:
        # Deterministic in-place Fisher-Yates shuffle.
        for i in range(len(items) - 1, 0, -1):
            j = int(self._rng.randint(0, i))
            items[i], items[j] = items[j], items[i]


def mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return float(sum(values)) / float(len(values))


def round_half_up(x: float) -> int:
    # Scores round .5 up, never to even.
    return int(math.floor(x + 0.5))
