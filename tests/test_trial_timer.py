from __future__ import annotations

from dataclasses import dataclass

import pytest

from s2_cognition.trial_timer import TrialClose, TrialStage, TrialTimer, TrialTiming


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _memory_timing() -> TrialTiming:
    return TrialTiming(lead_in_s=0.5, display_s=1.5, window_s=3.0, stimulus_during_window=False)


def test_timing_rejects_invalid_envelopes() -> None:
    with pytest.raises(ValueError):
        TrialTiming(lead_in_s=-0.1, display_s=0.0, window_s=1.0)
    with pytest.raises(ValueError):
        TrialTiming(lead_in_s=0.0, display_s=-1.0, window_s=1.0)
    with pytest.raises(ValueError):
        TrialTiming(lead_in_s=0.0, display_s=0.0, window_s=0.0)


def test_stages_advance_and_response_closes_with_latency_from_window_open() -> None:
    clock = FakeClock()
    timer = TrialTimer(clock=clock, timing=_memory_timing())

    seq = timer.begin()
    assert seq == 1
    assert timer.stage is TrialStage.LEAD_IN
    assert timer.stimulus_visible() is False
    assert timer.respond(seq) is None

    clock.advance(0.5)
    assert timer.poll() is None
    assert timer.stage is TrialStage.DISPLAY
    assert timer.stimulus_visible() is True
    assert timer.accepting_input() is False

    clock.advance(1.5)
    assert timer.poll() is None
    assert timer.stage is TrialStage.WINDOW
    assert timer.stimulus_visible() is False
    assert timer.accepting_input() is True

    clock.advance(0.25)
    assert timer.window_elapsed_ms() == 250
    close = timer.respond(seq)
    assert close == TrialClose(seq=1, responded=True, elapsed_ms=250)
    assert timer.stage is TrialStage.CLOSED

    # Nothing left to report for a trial closed by a response.
    assert timer.poll() is None
    assert timer.respond(seq) is None


def test_window_expiry_reports_timeout_exactly_once() -> None:
    clock = FakeClock()
    timer = TrialTimer(clock=clock, timing=_memory_timing())
    seq = timer.begin(lead_in_s=0.0)
    assert timer.stage is TrialStage.DISPLAY

    clock.advance(1.5)
    timer.poll()
    clock.advance(3.0)

    close = timer.poll()
    assert close == TrialClose(seq=seq, responded=False, elapsed_ms=3000)
    assert timer.poll() is None
    assert timer.respond(seq) is None


def test_response_for_another_trial_is_ignored() -> None:
    clock = FakeClock()
    timer = TrialTimer(clock=clock, timing=TrialTiming(lead_in_s=0.0, display_s=0.0, window_s=1.0))
    seq = timer.begin()
    assert timer.stage is TrialStage.WINDOW

    assert timer.respond(seq + 1) is None
    assert timer.respond(seq - 1) is None
    assert timer.accepting_input() is True


def test_held_response_keeps_window_open_until_deadline() -> None:
    clock = FakeClock()
    timer = TrialTimer(
        clock=clock,
        timing=TrialTiming(lead_in_s=0.5, display_s=0.0, window_s=0.75, close_on_response=False),
    )
    seq = timer.begin()
    clock.advance(0.5)
    timer.poll()
    assert timer.stage is TrialStage.WINDOW

    clock.advance(0.25)
    assert timer.respond(seq) is None
    assert timer.has_response() is True
    assert timer.accepting_input() is False
    assert timer.stimulus_visible() is True

    # A second tap is not a new response.
    clock.advance(0.25)
    assert timer.respond(seq) is None

    clock.advance(0.25)
    close = timer.poll()
    assert close == TrialClose(seq=seq, responded=True, elapsed_ms=250)


def test_cancel_invalidates_the_in_flight_trial() -> None:
    clock = FakeClock()
    timer = TrialTimer(clock=clock, timing=TrialTiming(lead_in_s=0.0, display_s=0.0, window_s=1.0))
    seq = timer.begin()

    timer.cancel()
    assert timer.stage is TrialStage.IDLE
    assert timer.seq > seq

    clock.advance(2.0)
    assert timer.poll() is None
    assert timer.respond(seq) is None

    nxt = timer.begin()
    assert nxt == timer.seq == seq + 2


def test_sequence_numbers_increase_per_trial() -> None:
    clock = FakeClock()
    timer = TrialTimer(clock=clock, timing=TrialTiming(lead_in_s=0.0, display_s=0.0, window_s=0.5))
    seen = []
    for _ in range(4):
        seq = timer.begin()
        seen.append(seq)
        clock.advance(0.5)
        assert timer.poll() is not None
    assert seen == sorted(set(seen))


def test_response_after_deadline_gets_no_credit_even_before_poll() -> None:
    clock = FakeClock()
    timer = TrialTimer(clock=clock, timing=TrialTiming(lead_in_s=0.0, display_s=0.0, window_s=0.75))
    seq = timer.begin()
    assert timer.stage is TrialStage.WINDOW

    # Deadline passes with no pump in between.
    clock.advance(1.0)
    assert timer.respond(seq) is None

    assert timer.poll() == TrialClose(seq=seq, responded=False, elapsed_ms=750)
    assert timer.poll() is None
