from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .clock import Clock


class TrialStage(str, Enum):
    IDLE = "idle"
    LEAD_IN = "lead_in"
    DISPLAY = "display"
    WINDOW = "window"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class TrialTiming:
    """Timing envelope of one trial.

    lead_in_s: blank gap before the stimulus appears.
    display_s: stimulus visible, input blocked (0 skips straight to the window).
    window_s: bounded response window.
    stimulus_during_window: whether the stimulus stays visible while input is open.
    close_on_response: end the trial on the first response; when False the
        window runs its full length and the first response is reported at close.
    """

    lead_in_s: float
    display_s: float
    window_s: float
    stimulus_during_window: bool = True
    close_on_response: bool = True

    def __post_init__(self) -> None:
        if self.lead_in_s < 0.0:
            raise ValueError("lead_in_s must be >= 0")
        if self.display_s < 0.0:
            raise ValueError("display_s must be >= 0")
        if self.window_s <= 0.0:
            raise ValueError("window_s must be > 0")


@dataclass(frozen=True, slots=True)
class TrialClose:
    """The single outcome of one trial's timing envelope."""

    seq: int
    responded: bool
    elapsed_ms: int


def to_ms(seconds: float) -> int:
    return int(round(float(seconds) * 1000.0))


class TrialTimer:
    """Runs one trial at a time: lead-in -> display -> response window -> closed.

    Every trial gets a fresh, monotonically increasing sequence number. Input
    and expiry are only accepted for the current sequence number, so anything
    captured for an earlier or cancelled trial is dropped instead of leaking
    into the next one. Elapsed time is measured on the injected monotonic
    clock from the moment the window was observed open.
    """

    def __init__(self, *, clock: Clock, timing: TrialTiming) -> None:
        self._clock = clock
        self._timing = timing

        self._seq = 0
        self._stage = TrialStage.IDLE
        self._stage_started_at_s: float | None = None
        self._lead_in_s = timing.lead_in_s
        self._window_opened_at_s: float | None = None
        self._responded_ms: int | None = None
        self._pending: TrialClose | None = None

    @property
    def seq(self) -> int:
        return self._seq

    @property
    def stage(self) -> TrialStage:
        return self._stage

    def stimulus_visible(self) -> bool:
        if self._stage is TrialStage.DISPLAY:
            return True
        return self._stage is TrialStage.WINDOW and self._timing.stimulus_during_window

    def accepting_input(self) -> bool:
        return self._stage is TrialStage.WINDOW and self._responded_ms is None

    def has_response(self) -> bool:
        """A response is being held until the window closes."""

        return self._responded_ms is not None

    def window_elapsed_ms(self) -> int | None:
        if self._stage is not TrialStage.WINDOW:
            return None
        assert self._window_opened_at_s is not None
        return to_ms(max(0.0, self._clock.now() - self._window_opened_at_s))

    def begin(self, *, lead_in_s: float | None = None) -> int:
        """Start the next trial and return its sequence number."""

        assert self._stage in (TrialStage.IDLE, TrialStage.CLOSED), "previous trial is still open"
        lead = self._timing.lead_in_s if lead_in_s is None else float(lead_in_s)
        if lead < 0.0:
            raise ValueError("lead_in_s must be >= 0")

        self._seq += 1
        self._lead_in_s = lead
        self._window_opened_at_s = None
        self._responded_ms = None
        self._pending = None

        now = self._clock.now()
        self._enter(TrialStage.LEAD_IN, now)
        self._advance(now)
        return self._seq

    def poll(self) -> TrialClose | None:
        """Advance stages; returns the trial's outcome once, when it closes on time."""

        if self._stage is TrialStage.IDLE:
            return None
        self._advance(self._clock.now())
        pending, self._pending = self._pending, None
        return pending

    def respond(self, seq: int) -> TrialClose | None:
        """Register a response for trial ``seq``.

        Returns the closing outcome when the response ends the trial, otherwise
        None. Responses for another trial, outside the window, after the
        deadline or after a first response are ignored.
        """

        if seq != self._seq or self._stage is TrialStage.IDLE:
            return None
        now = self._clock.now()
        self._advance(now)
        if not self.accepting_input():
            return None

        assert self._window_opened_at_s is not None
        elapsed_ms = to_ms(max(0.0, now - self._window_opened_at_s))
        if not self._timing.close_on_response:
            self._responded_ms = elapsed_ms
            return None

        self._stage = TrialStage.CLOSED
        return TrialClose(seq=self._seq, responded=True, elapsed_ms=elapsed_ms)

    def cancel(self) -> None:
        """Drop the in-flight trial; nothing it captured is reported afterwards."""

        self._seq += 1
        self._stage = TrialStage.IDLE
        self._stage_started_at_s = None
        self._window_opened_at_s = None
        self._responded_ms = None
        self._pending = None

    def _enter(self, stage: TrialStage, now: float) -> None:
        self._stage = stage
        self._stage_started_at_s = now
        if stage is TrialStage.WINDOW:
            self._window_opened_at_s = now

    def _advance(self, now: float) -> None:
        # Stage changes are stamped with the time they are observed, so only
        # zero-length stages chain within a single call.
        while True:
            if self._stage in (TrialStage.IDLE, TrialStage.CLOSED):
                return
            assert self._stage_started_at_s is not None
            elapsed = now - self._stage_started_at_s

            if self._stage is TrialStage.LEAD_IN:
                if elapsed < self._lead_in_s:
                    return
                self._enter(TrialStage.DISPLAY, now)
                continue

            if self._stage is TrialStage.DISPLAY:
                if elapsed < self._timing.display_s:
                    return
                self._enter(TrialStage.WINDOW, now)
                continue

            if elapsed < self._timing.window_s:
                return
            self._stage = TrialStage.CLOSED
            if self._responded_ms is not None:
                self._pending = TrialClose(seq=self._seq, responded=True, elapsed_ms=self._responded_ms)
            else:
                self._pending = TrialClose(seq=self._seq, responded=False, elapsed_ms=to_ms(self._timing.window_s))
            return
