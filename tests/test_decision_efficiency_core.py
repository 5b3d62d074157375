from __future__ import annotations

from dataclasses import dataclass

from s2_cognition.cognitive_core import Phase
from s2_cognition.decision_efficiency import (
    DecisionEfficiencyConfig,
    DecisionEfficiencyOutcome,
    DecisionEfficiencyPayload,
    build_decision_efficiency_test,
    is_correct_go_no_go,
    score_decision_efficiency,
)
from s2_cognition.stimuli import GoNoGoKind


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _o(kind: GoNoGoKind, responded: bool) -> DecisionEfficiencyOutcome:
    return DecisionEfficiencyOutcome(
        kind=kind,
        responded=responded,
        response_time_ms=300 if responded else 0,
        is_correct=is_correct_go_no_go(kind, responded),
    )


def test_correctness_rule_taps_go_only() -> None:
    assert is_correct_go_no_go(GoNoGoKind.GO, True) is True
    assert is_correct_go_no_go(GoNoGoKind.GO, False) is False
    assert is_correct_go_no_go(GoNoGoKind.NO_GO, False) is True
    assert is_correct_go_no_go(GoNoGoKind.NO_GO, True) is False
    assert is_correct_go_no_go(GoNoGoKind.DISTRACTOR, False) is True
    assert is_correct_go_no_go(GoNoGoKind.DISTRACTOR, True) is False


def test_score_accuracy_hit_rate_and_inhibition() -> None:
    outcomes = (
        [_o(GoNoGoKind.GO, True) for _ in range(15)]
        + [_o(GoNoGoKind.NO_GO, True) for _ in range(2)]
        + [_o(GoNoGoKind.NO_GO, False) for _ in range(5)]
        + [_o(GoNoGoKind.DISTRACTOR, False) for _ in range(3)]
    )
    # 23/25 * 50 + 25 + (1 - 2/10) * 25
    assert score_decision_efficiency(outcomes, total_rounds=25) == 91


def test_score_with_no_go_trials_gets_no_hit_credit() -> None:
    outcomes = [_o(GoNoGoKind.NO_GO, False) for _ in range(4)]
    assert score_decision_efficiency(outcomes, total_rounds=4) == 75


def test_score_with_every_trial_wrong_is_zero() -> None:
    outcomes = [_o(GoNoGoKind.GO, False) for _ in range(3)] + [_o(GoNoGoKind.NO_GO, True) for _ in range(2)]
    assert score_decision_efficiency(outcomes, total_rounds=5) == 0


def test_stimulus_appears_after_gap_and_first_tap_only_counts() -> None:
    clock = FakeClock()
    engine = build_decision_efficiency_test(clock=clock, seed=1, config=DecisionEfficiencyConfig(total_rounds=2))
    engine.start()
    clock.advance(3.0)
    engine.update()
    assert engine.phase is Phase.PLAYING

    snap = engine.snapshot()
    assert isinstance(snap.payload, DecisionEfficiencyPayload)
    assert snap.payload.stimulus is None
    assert engine.tap() is False

    clock.advance(0.5)
    engine.update()
    snap = engine.snapshot()
    assert snap.payload.stimulus == engine.sequence[0]
    assert snap.payload.accepting_input is True

    clock.advance(0.25)
    assert engine.tap(trial_seq=snap.trial_seq) is True
    assert engine.tap(trial_seq=snap.trial_seq) is False

    # The stimulus stays up for its full duration after a tap.
    snap = engine.snapshot()
    assert snap.payload.stimulus == engine.sequence[0]
    assert engine.outcomes() == []

    clock.advance(0.625)
    engine.update()
    (outcome,) = engine.outcomes()
    assert outcome.responded is True
    assert outcome.response_time_ms == 250
    assert outcome.kind is engine.sequence[0].kind
    assert engine.snapshot().trial_index == 1


def test_sequence_is_fixed_by_seed() -> None:
    a = build_decision_efficiency_test(clock=FakeClock(), seed=55)
    b = build_decision_efficiency_test(clock=FakeClock(), seed=55)
    assert len(a.sequence) == 25
    assert a.sequence == b.sequence


def test_tap_after_stimulus_hides_is_not_credited() -> None:
    clock = FakeClock()
    engine = build_decision_efficiency_test(clock=clock, seed=3, config=DecisionEfficiencyConfig(total_rounds=2))
    engine.start()
    clock.advance(3.0)
    engine.update()
    clock.advance(0.5)
    engine.update()
    assert engine.snapshot().payload.accepting_input is True

    # 800 ms display is over; the late tap lands before the next pump.
    clock.advance(0.875)
    assert engine.tap() is False

    engine.update()
    (outcome,) = engine.outcomes()
    assert outcome.responded is False
    assert outcome.response_time_ms == 0
