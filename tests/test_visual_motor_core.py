from __future__ import annotations

from dataclasses import dataclass

import pytest

from s2_cognition.cognitive_core import Phase, SeededRng
from s2_cognition.stimuli import TargetPosition, VisualMotorGenerator
from s2_cognition.visual_motor import (
    MISS_DISTANCE,
    VisualMotorConfig,
    VisualMotorOutcome,
    VisualMotorPayload,
    build_visual_motor_test,
    score_visual_motor,
    tap_distance,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


_CENTRE = TargetPosition(50.0, 50.0)


def _hit(distance: float, rt_ms: int) -> VisualMotorOutcome:
    return VisualMotorOutcome(target=_CENTRE, tap=_CENTRE, hit=True, distance=distance, response_time_ms=rt_ms)


def _timeout() -> VisualMotorOutcome:
    return VisualMotorOutcome(target=_CENTRE, tap=None, hit=False, distance=MISS_DISTANCE, response_time_ms=2000)


def test_tap_distance_is_euclidean_in_percent_units() -> None:
    assert tap_distance(TargetPosition(20.0, 20.0), TargetPosition(23.0, 24.0)) == pytest.approx(5.0)


def test_score_accuracy_precision_and_speed() -> None:
    assert score_visual_motor([_hit(0.0, 400) for _ in range(20)], total_targets=20) == 95
    # 25 + (25 - 0.5 * 27) + (25 - 800 / 80) = 51.5
    mixed = [_hit(4.0, 800) for _ in range(10)] + [_timeout() for _ in range(10)]
    assert score_visual_motor(mixed, total_targets=20) == 52


def test_score_all_timeouts_is_zero() -> None:
    assert score_visual_motor([_timeout() for _ in range(20)], total_targets=20) == 0


def _to_first_target(clock: FakeClock, engine) -> TargetPosition:
    engine.start()
    clock.advance(3.0)
    engine.update()
    assert engine.phase is Phase.PLAYING
    assert engine.snapshot().payload.target is None
    clock.advance(0.5)
    engine.update()
    payload = engine.snapshot().payload
    assert isinstance(payload, VisualMotorPayload)
    assert payload.target is not None
    return payload.target


def test_tap_on_target_is_a_hit_with_latency() -> None:
    seed = 21
    clock = FakeClock()
    expected = VisualMotorGenerator(SeededRng(seed)).next_position()
    engine = build_visual_motor_test(clock=clock, seed=seed, config=VisualMotorConfig(total_targets=2))

    target = _to_first_target(clock, engine)
    assert target == expected

    clock.advance(0.5)
    assert engine.tap_at(target.x_pct + 3.0, target.y_pct + 4.0) is True
    (outcome,) = engine.outcomes()
    assert outcome.hit is True
    assert outcome.distance == pytest.approx(5.0)
    assert outcome.response_time_ms == 500


def test_tap_outside_radius_is_a_recorded_miss() -> None:
    clock = FakeClock()
    engine = build_visual_motor_test(clock=clock, seed=3, config=VisualMotorConfig(total_targets=2))
    target = _to_first_target(clock, engine)

    clock.advance(0.25)
    assert engine.tap_at(target.x_pct, target.y_pct + 12.5) is True
    (outcome,) = engine.outcomes()
    assert outcome.hit is False
    assert outcome.distance == pytest.approx(12.5)
    assert outcome.tap is not None


def test_timeout_records_miss_distance_and_full_window() -> None:
    clock = FakeClock()
    engine = build_visual_motor_test(clock=clock, seed=3, config=VisualMotorConfig(total_targets=2))
    _to_first_target(clock, engine)

    clock.advance(2.0)
    engine.update()
    (outcome,) = engine.outcomes()
    assert outcome.hit is False
    assert outcome.tap is None
    assert outcome.distance == MISS_DISTANCE
    assert outcome.response_time_ms == 2000
    assert engine.tap_at(50.0, 50.0) is False


def test_non_positive_hit_radius_is_rejected() -> None:
    with pytest.raises(ValueError):
        build_visual_motor_test(clock=FakeClock(), seed=1, config=VisualMotorConfig(hit_radius_pct=0.0))
