from __future__ import annotations

from dataclasses import dataclass

from s2_cognition.cognitive_core import Phase, SeededRng
from s2_cognition.processing_speed import ProcessingSpeedConfig, build_processing_speed_test
from s2_cognition.stimuli import ProcessingSpeedGenerator


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_headless_sim_full_run_with_one_timeout() -> None:
    seed = 314
    clock = FakeClock()
    mirror = ProcessingSpeedGenerator(SeededRng(seed))
    trials = [mirror.next_trial() for _ in range(4)]

    reported: list[int] = []
    engine = build_processing_speed_test(
        clock=clock,
        seed=seed,
        config=ProcessingSpeedConfig(total_rounds=4),
        on_complete=reported.append,
    )
    engine.start()
    clock.advance(3.0)
    engine.update()

    for i, trial in enumerate(trials):
        if i > 0:
            clock.advance(0.5)
            engine.update()
        assert engine.current_trial == trial

        clock.advance(1.5)
        engine.update()

        if i == 2:
            clock.advance(3.0)
            engine.update()
            continue

        clock.advance(0.5)
        assert engine.submit_count(trial.match_count) is True

    assert engine.phase is Phase.DONE
    outcomes = engine.outcomes()
    assert [o.is_correct for o in outcomes] == [True, True, False, True]
    assert [o.response_time_ms for o in outcomes] == [500, 500, 0, 500]

    # 3/4 * 60 + (40 - 5)
    assert engine.score == 80

    clock.advance(1.5)
    engine.update()
    assert reported == [80]
