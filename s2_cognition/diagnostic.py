"""Diagnostic orchestration: three subtests in order, then one persisted result.

The phase logic is a pure transition function over ``DiagnosticState`` so it
can be exercised without timers or UI. ``DiagnosticSession`` wires that
function to live subtest engines, the result repository and the retest gate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .analysis import ResultsReport, build_report
from .clock import Calendar, Clock
from .cognitive_core import CountdownSubtest, SeededRng
from .decision_efficiency import build_decision_efficiency_test
from .errors import InvalidTransitionError, PersistenceError
from .persistence import ResultRepository
from .processing_speed import build_processing_speed_test
from .results import (
    SUBTEST_ORDER,
    DiagnosticResult,
    RetestGate,
    Sport,
    Subtest,
    SubtestScores,
    build_result,
    retest_gate,
)
from .visual_motor import build_visual_motor_test

logger = logging.getLogger(__name__)


class DiagnosticPhase(str, Enum):
    INTRO = "intro"
    PROCESSING_SPEED = "processing_speed"
    DECISION_EFFICIENCY = "decision_efficiency"
    VISUAL_MOTOR = "visual_motor"
    SAVING = "saving"
    RESULTS = "results"


_PHASE_BY_SUBTEST: dict[Subtest, DiagnosticPhase] = {
    Subtest.PROCESSING_SPEED: DiagnosticPhase.PROCESSING_SPEED,
    Subtest.DECISION_EFFICIENCY: DiagnosticPhase.DECISION_EFFICIENCY,
    Subtest.VISUAL_MOTOR: DiagnosticPhase.VISUAL_MOTOR,
}


@dataclass(frozen=True, slots=True)
class DiagnosticState:
    phase: DiagnosticPhase = DiagnosticPhase.INTRO
    scores: SubtestScores = field(default_factory=SubtestScores)


def subtest_for(phase: DiagnosticPhase) -> Subtest | None:
    for subtest, subtest_phase in _PHASE_BY_SUBTEST.items():
        if subtest_phase is phase:
            return subtest
    return None


def begin(state: DiagnosticState) -> DiagnosticState:
    if state.phase is not DiagnosticPhase.INTRO:
        raise InvalidTransitionError(f"cannot start an assessment from {state.phase.value}")
    return DiagnosticState(phase=_PHASE_BY_SUBTEST[SUBTEST_ORDER[0]], scores=SubtestScores())


def advance(state: DiagnosticState, score: int) -> DiagnosticState:
    """Fold one completed subtest score in and move to the next phase."""

    subtest = subtest_for(state.phase)
    if subtest is None:
        raise InvalidTransitionError(f"no subtest is running in {state.phase.value}")

    scores = state.scores.with_score(subtest, score)
    idx = SUBTEST_ORDER.index(subtest)
    if idx + 1 < len(SUBTEST_ORDER):
        return DiagnosticState(phase=_PHASE_BY_SUBTEST[SUBTEST_ORDER[idx + 1]], scores=scores)
    return DiagnosticState(phase=DiagnosticPhase.SAVING, scores=scores)


def saved(state: DiagnosticState) -> DiagnosticState:
    if state.phase is not DiagnosticPhase.SAVING:
        raise InvalidTransitionError(f"nothing to save in {state.phase.value}")
    return DiagnosticState(phase=DiagnosticPhase.RESULTS, scores=state.scores)


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    """What the completion handler receives: scores always, plus result or error."""

    scores: SubtestScores
    overall_score: int
    result: DiagnosticResult | None
    error: PersistenceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None


EngineFactory = Callable[[Subtest, int, Callable[[int], None]], CountdownSubtest]


def default_engine_factory(clock: Clock) -> EngineFactory:
    def build(subtest: Subtest, seed: int, on_complete: Callable[[int], None]) -> CountdownSubtest:
        if subtest is Subtest.PROCESSING_SPEED:
            return build_processing_speed_test(clock=clock, seed=seed, on_complete=on_complete)
        if subtest is Subtest.DECISION_EFFICIENCY:
            return build_decision_efficiency_test(clock=clock, seed=seed, on_complete=on_complete)
        return build_visual_motor_test(clock=clock, seed=seed, on_complete=on_complete)

    return build


class DiagnosticSession:
    """Runs one (user, sport) assessment end to end.

    The latest stored result is read once by ``load()`` and drives both the
    retest gate and the comparison. A result is written once, after the third
    subtest; a failed write keeps the scores and the previous gate state and
    can be retried.
    """

    def __init__(
        self,
        *,
        repository: ResultRepository,
        user_id: str,
        sport: Sport,
        clock: Clock,
        calendar: Calendar,
        seed: int,
        engine_factory: EngineFactory | None = None,
        on_finished: Callable[[SaveOutcome], None] | None = None,
    ) -> None:
        self._repository = repository
        self._user_id = str(user_id)
        self._sport = Sport(sport)
        self._calendar = calendar
        self._rng = SeededRng(int(seed))
        self._engine_factory = engine_factory or default_engine_factory(clock)
        self._on_finished = on_finished

        self._state = DiagnosticState()
        self._loaded = False
        self._latest: DiagnosticResult | None = None
        self._engine: CountdownSubtest | None = None
        self._run_id = 0
        self._last_outcome: SaveOutcome | None = None

    @property
    def phase(self) -> DiagnosticPhase:
        return self._state.phase

    @property
    def scores(self) -> SubtestScores:
        return self._state.scores

    @property
    def sport(self) -> Sport:
        return self._sport

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def latest_result(self) -> DiagnosticResult | None:
        return self._latest

    @property
    def engine(self) -> CountdownSubtest | None:
        return self._engine

    @property
    def last_outcome(self) -> SaveOutcome | None:
        return self._last_outcome

    @property
    def save_error(self) -> PersistenceError | None:
        outcome = self._last_outcome
        return None if outcome is None else outcome.error

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self) -> DiagnosticResult | None:
        """Read the latest result; raises ResultFetchError and leaves the session unloaded."""

        self._latest = self._repository.fetch_latest_result(self._user_id, self._sport)
        self._loaded = True
        logger.info(
            "Loaded S2 history for %s/%s: %s",
            self._user_id,
            self._sport,
            "none" if self._latest is None else self._latest.test_date.isoformat(),
        )
        return self._latest

    def gate(self) -> RetestGate:
        return retest_gate(self._latest, self._calendar.today())

    def can_start(self) -> bool:
        return self._loaded and self._state.phase is DiagnosticPhase.INTRO and self.gate().can_take_test

    def start(self) -> bool:
        if self._state.phase is not DiagnosticPhase.INTRO:
            return False
        if not self._loaded:
            logger.warning("S2 start refused: history not loaded")
            return False
        gate = self.gate()
        if not gate.can_take_test:
            logger.info("S2 start refused: locked for %d more days", gate.days_remaining)
            return False

        self._state = begin(self._state)
        self._run_id += 1
        self._last_outcome = None
        self._spawn_engine()
        logger.info("S2 assessment started for %s/%s", self._user_id, self._sport)
        return True

    def update(self) -> None:
        if self._engine is not None:
            self._engine.update()

    def cancel(self) -> None:
        """Abandon the run; nothing is persisted and the gate is untouched."""

        if self._state.phase in (DiagnosticPhase.INTRO, DiagnosticPhase.RESULTS):
            return
        if self._engine is not None:
            self._engine.cancel()
        self._engine = None
        self._run_id += 1
        logger.info("S2 assessment abandoned in %s", self._state.phase.value)
        self._state = DiagnosticState()

    def retry_save(self) -> SaveOutcome | None:
        if self._state.phase is not DiagnosticPhase.SAVING:
            return None
        return self._save()

    def finish(self) -> None:
        if self._state.phase is DiagnosticPhase.RESULTS:
            self._state = DiagnosticState()

    def report(self) -> ResultsReport | None:
        outcome = self._last_outcome
        if self._state.phase is not DiagnosticPhase.RESULTS or outcome is None or outcome.result is None:
            return None
        return build_report(outcome.result)

    def _spawn_engine(self) -> None:
        subtest = subtest_for(self._state.phase)
        assert subtest is not None
        run_id = self._run_id

        def on_complete(score: int) -> None:
            self._on_subtest_complete(run_id, subtest, score)

        engine = self._engine_factory(subtest, int(self._rng.randint(1, 2**31 - 1)), on_complete)
        self._engine = engine

    def _on_subtest_complete(self, run_id: int, subtest: Subtest, score: int) -> None:
        # Completions from an abandoned run or an already-replaced engine are dropped.
        if run_id != self._run_id or subtest_for(self._state.phase) is not subtest:
            return

        logger.info("S2 %s complete: %d", subtest.value, score)
        self._state = advance(self._state, score)
        self._engine = None
        if self._state.phase is DiagnosticPhase.SAVING:
            self._save()
        else:
            self._spawn_engine()

    def _save(self) -> SaveOutcome:
        scores = self._state.scores
        result = build_result(
            user_id=self._user_id,
            sport=self._sport,
            scores=scores,
            prior=self._latest,
            today=self._calendar.today(),
            completed_at=self._calendar.utc_now(),
        )
        assert result.overall_score is not None

        try:
            persisted = self._repository.insert_result(result)
        except PersistenceError as exc:
            logger.warning("S2 result not recorded (overall %d): %s", result.overall_score, exc)
            outcome = SaveOutcome(scores=scores, overall_score=result.overall_score, result=None, error=exc)
        else:
            self._latest = persisted
            self._state = saved(self._state)
            outcome = SaveOutcome(scores=scores, overall_score=result.overall_score, result=persisted)

        self._last_outcome = outcome
        if self._on_finished is not None:
            self._on_finished(outcome)
        return outcome
