from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import StrEnum

from .cognitive_core import round_half_up

RETEST_INTERVAL_DAYS = 112  # 16 weeks


class Sport(StrEnum):
    BASEBALL = "baseball"
    SOFTBALL = "softball"


class Subtest(StrEnum):
    PROCESSING_SPEED = "processing_speed"
    DECISION_EFFICIENCY = "decision_efficiency"
    VISUAL_MOTOR = "visual_motor"


SUBTEST_ORDER: tuple[Subtest, ...] = (
    Subtest.PROCESSING_SPEED,
    Subtest.DECISION_EFFICIENCY,
    Subtest.VISUAL_MOTOR,
)


@dataclass(frozen=True, slots=True)
class SubtestScores:
    processing_speed: int | None = None
    decision_efficiency: int | None = None
    visual_motor: int | None = None

    def get(self, subtest: Subtest) -> int | None:
        return getattr(self, subtest.value)

    def with_score(self, subtest: Subtest, score: int) -> SubtestScores:
        if not (0 <= int(score) <= 100):
            raise ValueError("subtest scores must be in [0, 100]")
        return replace(self, **{subtest.value: int(score)})

    def is_complete(self) -> bool:
        return all(self.get(s) is not None for s in SUBTEST_ORDER)


@dataclass(frozen=True, slots=True)
class ScoreComparison:
    processing_speed_change: int | None = None
    decision_efficiency_change: int | None = None
    visual_motor_change: int | None = None
    overall_change: int | None = None

    def is_empty(self) -> bool:
        return (
            self.processing_speed_change is None
            and self.decision_efficiency_change is None
            and self.visual_motor_change is None
            and self.overall_change is None
        )


@dataclass(frozen=True, slots=True)
class DiagnosticResult:
    """One completed assessment for a (user, sport) pair. Never mutated after insert."""

    user_id: str
    sport: Sport
    test_date: date
    processing_speed_score: int | None
    decision_efficiency_score: int | None
    visual_motor_score: int | None
    overall_score: int | None
    comparison_vs_prior: ScoreComparison | None
    next_test_date: date | None
    completed_at: datetime | None
    id: int | None = None

    @property
    def scores(self) -> SubtestScores:
        return SubtestScores(
            processing_speed=self.processing_speed_score,
            decision_efficiency=self.decision_efficiency_score,
            visual_motor=self.visual_motor_score,
        )

    def is_complete(self) -> bool:
        return self.completed_at is not None and self.scores.is_complete() and self.overall_score is not None


@dataclass(frozen=True, slots=True)
class RetestGate:
    can_take_test: bool
    days_remaining: int
    next_test_date: date | None


def overall_score(scores: SubtestScores) -> int:
    """Unweighted mean of the three subtest scores, rounded half up."""

    values = [scores.get(s) for s in SUBTEST_ORDER]
    if any(v is None for v in values):
        raise ValueError("overall score needs all three subtest scores")
    return round_half_up(sum(int(v) for v in values if v is not None) / float(len(values)))


def _delta(new: int | None, prior: int | None) -> int | None:
    if new is None or prior is None:
        return None
    return int(new) - int(prior)


def compare_with_prior(scores: SubtestScores, overall: int, prior: DiagnosticResult | None) -> ScoreComparison:
    if prior is None:
        return ScoreComparison()
    return ScoreComparison(
        processing_speed_change=_delta(scores.processing_speed, prior.processing_speed_score),
        decision_efficiency_change=_delta(scores.decision_efficiency, prior.decision_efficiency_score),
        visual_motor_change=_delta(scores.visual_motor, prior.visual_motor_score),
        overall_change=_delta(overall, prior.overall_score),
    )


def next_test_date(test_date: date) -> date:
    return test_date + timedelta(days=RETEST_INTERVAL_DAYS)


def retest_gate(latest: DiagnosticResult | None, today: date) -> RetestGate:
    """Eligibility for a new assessment; a first (baseline) assessment is always open."""

    if latest is None or latest.next_test_date is None:
        return RetestGate(can_take_test=True, days_remaining=0, next_test_date=None)
    days = (latest.next_test_date - today).days
    return RetestGate(
        can_take_test=days <= 0,
        days_remaining=max(0, days),
        next_test_date=latest.next_test_date,
    )


def build_result(
    *,
    user_id: str,
    sport: Sport,
    scores: SubtestScores,
    prior: DiagnosticResult | None,
    today: date,
    completed_at: datetime,
) -> DiagnosticResult:
    """Assemble the completed, not yet persisted, result of a full run."""

    overall = overall_score(scores)
    return DiagnosticResult(
        user_id=str(user_id),
        sport=Sport(sport),
        test_date=today,
        processing_speed_score=scores.processing_speed,
        decision_efficiency_score=scores.decision_efficiency,
        visual_motor_score=scores.visual_motor,
        overall_score=overall,
        comparison_vs_prior=compare_with_prior(scores, overall, prior),
        next_test_date=next_test_date(today),
        completed_at=completed_at,
    )
