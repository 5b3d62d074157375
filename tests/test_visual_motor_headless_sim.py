from __future__ import annotations

from dataclasses import dataclass

from s2_cognition.cognitive_core import Phase, SeededRng
from s2_cognition.stimuli import VisualMotorGenerator
from s2_cognition.visual_motor import VisualMotorConfig, build_visual_motor_test


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_headless_sim_hits_and_a_timeout() -> None:
    seed = 1234
    clock = FakeClock()
    mirror = VisualMotorGenerator(SeededRng(seed))
    targets = [mirror.next_position() for _ in range(4)]

    reported: list[int] = []
    engine = build_visual_motor_test(
        clock=clock, seed=seed, config=VisualMotorConfig(total_targets=4), on_complete=reported.append
    )
    engine.start()
    clock.advance(3.0)
    engine.update()

    for i, target in enumerate(targets):
        clock.advance(0.5)
        engine.update()
        assert engine.current_target == target

        if i == 3:
            clock.advance(2.0)
            engine.update()
            continue

        clock.advance(0.5)
        assert engine.tap_at(target.x_pct, target.y_pct) is True

    assert engine.phase is Phase.DONE
    outcomes = engine.outcomes()
    assert [o.hit for o in outcomes] == [True, True, True, False]

    # 3/4 * 50 + (25 - 0.5 * 50 / 4) + (25 - 500 / 80) = 37.5 + 18.75 + 18.75
    assert engine.score == 75

    clock.advance(1.5)
    engine.update()
    assert reported == [75]
