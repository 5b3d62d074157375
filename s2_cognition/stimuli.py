from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .cognitive_core import SeededRng


class Shape(StrEnum):
    CIRCLE = "circle"
    SQUARE = "square"
    TRIANGLE = "triangle"
    DIAMOND = "diamond"


class PatternColor(StrEnum):
    TEAL = "#14b8a6"
    AMBER = "#f59e0b"
    RED = "#ef4444"
    VIOLET = "#8b5cf6"


@dataclass(frozen=True, slots=True)
class Pattern:
    shape: Shape
    color: PatternColor


@dataclass(frozen=True, slots=True)
class ProcessingSpeedTrial:
    target: Pattern
    patterns: tuple[Pattern, ...]
    match_count: int


class GoNoGoKind(StrEnum):
    GO = "go"
    NO_GO = "nogo"
    DISTRACTOR = "distractor"


@dataclass(frozen=True, slots=True)
class GoNoGoStimulus:
    kind: GoNoGoKind
    color: str


GO_STIMULUS = GoNoGoStimulus(kind=GoNoGoKind.GO, color="#10b981")  # green
NO_GO_STIMULUS = GoNoGoStimulus(kind=GoNoGoKind.NO_GO, color="#ef4444")  # red
DISTRACTOR_STIMULI = (
    GoNoGoStimulus(kind=GoNoGoKind.DISTRACTOR, color="#f59e0b"),  # amber
    GoNoGoStimulus(kind=GoNoGoKind.DISTRACTOR, color="#8b5cf6"),  # violet
    GoNoGoStimulus(kind=GoNoGoKind.DISTRACTOR, color="#06b6d4"),  # cyan
)


@dataclass(frozen=True, slots=True)
class TargetPosition:
    """Target centre in percent of the play surface (0-100 on each axis)."""

    x_pct: float
    y_pct: float


class ProcessingSpeedGenerator:
    """Deterministic target + 8-pattern display sets with 0, 1 or 2 exact matches."""

    DISPLAY_SIZE = 8
    MAX_MATCHES = 2

    def __init__(self, rng: SeededRng) -> None:
        self._rng = rng

    def next_trial(self) -> ProcessingSpeedTrial:
        target = self._random_pattern()
        match_count = int(self._rng.randint(0, self.MAX_MATCHES))

        patterns = [target] * match_count
        while len(patterns) < self.DISPLAY_SIZE:
            candidate = self._random_pattern()
            if candidate == target:
                continue
            patterns.append(candidate)
        self._rng.shuffle(patterns)

        return ProcessingSpeedTrial(target=target, patterns=tuple(patterns), match_count=match_count)

    def _random_pattern(self) -> Pattern:
        return Pattern(shape=self._rng.choice(tuple(Shape)), color=self._rng.choice(tuple(PatternColor)))


class DecisionEfficiencyGenerator:
    """Independent per-trial draws: ~60% GO, ~25% NO-GO, ~15% distractor."""

    GO_THRESHOLD = 0.60
    NO_GO_THRESHOLD = 0.85

    def __init__(self, rng: SeededRng) -> None:
        self._rng = rng

    def next_stimulus(self) -> GoNoGoStimulus:
        r = self._rng.random()
        if r < self.GO_THRESHOLD:
            return GO_STIMULUS
        if r < self.NO_GO_THRESHOLD:
            return NO_GO_STIMULUS
        return self._rng.choice(DISTRACTOR_STIMULI)

    def sequence(self, count: int) -> tuple[GoNoGoStimulus, ...]:
        if count < 0:
            raise ValueError("count must be >= 0")
        return tuple(self.next_stimulus() for _ in range(count))


class VisualMotorGenerator:
    """Random target centres kept inside [15%, 85%] so targets never touch an edge."""

    INSET_MIN_PCT = 15.0
    INSET_MAX_PCT = 85.0

    def __init__(self, rng: SeededRng) -> None:
        self._rng = rng

    def next_position(self) -> TargetPosition:
        return TargetPosition(
            x_pct=self._rng.uniform(self.INSET_MIN_PCT, self.INSET_MAX_PCT),
            y_pct=self._rng.uniform(self.INSET_MIN_PCT, self.INSET_MAX_PCT),
        )
