from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .results import SUBTEST_ORDER, DiagnosticResult, ScoreComparison, Subtest, SubtestScores

HIGH_SCORE_THRESHOLD = 70


class ScoreTier(StrEnum):
    ELITE = "Elite"
    ADVANCED = "Advanced"
    DEVELOPING = "Developing"
    FOUNDATIONAL = "Foundational"


# (tier, minimum score), checked top-down.
_TIER_FLOORS: tuple[tuple[ScoreTier, int], ...] = (
    (ScoreTier.ELITE, 85),
    (ScoreTier.ADVANCED, 70),
    (ScoreTier.DEVELOPING, 55),
    (ScoreTier.FOUNDATIONAL, 0),
)


@dataclass(frozen=True, slots=True)
class AreaText:
    label: str
    low_score_message: str
    high_score_message: str
    strength_description: str
    limiter_description: str


AREA_TEXT: dict[Subtest, AreaText] = {
    Subtest.PROCESSING_SPEED: AreaText(
        label="Processing Speed",
        low_score_message=(
            "You may struggle to identify pitch type early out of the hand. Recognizing spin and "
            "trajectory takes longer, which can reduce your reaction window."
        ),
        high_score_message=(
            "You read pitches quickly out of the hand. Fast pattern recognition gives you more time "
            "to make swing decisions."
        ),
        strength_description="Quick pattern recognition and early pitch identification",
        limiter_description="Work on recognizing pitch types earlier in flight path",
    ),
    Subtest.DECISION_EFFICIENCY: AreaText(
        label="Decision Efficiency",
        low_score_message=(
            "Split-second decisions may take extra time. In high-pressure at-bats or defensive plays, "
            "this delay can affect outcomes."
        ),
        high_score_message="You make quick, accurate reads on plays. Your decision-making is sharp when it counts.",
        strength_description="Fast, accurate choices under pressure",
        limiter_description="Practice faster go/no-go decisions in game situations",
    ),
    Subtest.VISUAL_MOTOR: AreaText(
        label="Visual-Motor Integration",
        low_score_message=(
            "Translating what you see into physical action may have slight delays. This affects "
            "timing on swings and fielding reactions."
        ),
        high_score_message=(
            "Your eyes and hands work in sync. You execute physical responses to visual cues smoothly."
        ),
        strength_description="Seamless eye-to-hand coordination",
        limiter_description="Focus on hand-eye reaction drills",
    ),
}


@dataclass(frozen=True, slots=True)
class AreaReport:
    subtest: Subtest
    label: str
    score: int
    tier: ScoreTier
    change: str
    message: str


@dataclass(frozen=True, slots=True)
class ResultsReport:
    overall_score: int
    overall_tier: ScoreTier
    overall_change: str
    areas: tuple[AreaReport, ...]
    strength: AreaReport
    limiter: AreaReport


def score_tier(score: int) -> ScoreTier:
    for tier, floor in _TIER_FLOORS:
        if score >= floor:
            return tier
    return ScoreTier.FOUNDATIONAL


def area_message(subtest: Subtest, score: int) -> str:
    text = AREA_TEXT[subtest]
    return text.high_score_message if score >= HIGH_SCORE_THRESHOLD else text.low_score_message


def format_change(change: int | None) -> str:
    if change is None:
        return "NEW"
    if change > 0:
        return f"+{change}"
    return str(change)


def strength_and_limiter(scores: SubtestScores) -> tuple[Subtest, Subtest]:
    """Highest and lowest scoring areas; ties keep battery order."""

    ranked = sorted(SUBTEST_ORDER, key=lambda s: -int(scores.get(s) or 0))
    return ranked[0], ranked[-1]


def _change_for(comparison: ScoreComparison | None, subtest: Subtest) -> int | None:
    if comparison is None:
        return None
    return getattr(comparison, f"{subtest.value}_change")


def build_report(result: DiagnosticResult) -> ResultsReport:
    if not result.is_complete():
        raise ValueError("report needs a completed result")
    assert result.overall_score is not None

    scores = result.scores
    areas: list[AreaReport] = []
    for subtest in SUBTEST_ORDER:
        score = int(scores.get(subtest) or 0)
        areas.append(
            AreaReport(
                subtest=subtest,
                label=AREA_TEXT[subtest].label,
                score=score,
                tier=score_tier(score),
                change=format_change(_change_for(result.comparison_vs_prior, subtest)),
                message=area_message(subtest, score),
            )
        )

    by_subtest = {a.subtest: a for a in areas}
    strength, limiter = strength_and_limiter(scores)
    overall_change = None if result.comparison_vs_prior is None else result.comparison_vs_prior.overall_change
    return ResultsReport(
        overall_score=result.overall_score,
        overall_tier=score_tier(result.overall_score),
        overall_change=format_change(overall_change),
        areas=tuple(areas),
        strength=by_subtest[strength],
        limiter=by_subtest[limiter],
    )
