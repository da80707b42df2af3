import math

import pytest

from repcount.config import RepConfig
from repcount.counters import (
    JOINT_TRIPLES,
    ExerciseMode,
    PoseState,
    RepCounter,
    joint_triple,
    next_state,
)
from repcount.utils import Point2D


def pose_with_angle(mode, degrees, size=33):
    """33 landmarks with the mode's joint bent to `degrees`."""
    points = [Point2D(0.5, 0.5)] * size
    prox, hinge, dist = JOINT_TRIPLES[mode]
    theta = math.radians(-90.0 + degrees)
    points[prox] = Point2D(0.5, 0.3)
    points[hinge] = Point2D(0.5, 0.5)
    points[dist] = Point2D(0.5 + 0.2 * math.cos(theta), 0.5 + 0.2 * math.sin(theta))
    return points


def feed(counter, angles, start=0.0, step=0.1):
    results = []
    for i, angle in enumerate(angles):
        results.append(counter.update_angle(angle, now=start + i * step))
    return results


NO_DEBOUNCE = RepConfig(debounce_s=0)


@pytest.mark.parametrize("mode", list(ExerciseMode))
class TestNextState:
    def test_low_angle_is_down_from_any_state(self, mode):
        assert next_state(85, PoseState.DOWN, mode) is PoseState.DOWN
        assert next_state(85, PoseState.UP, mode) is PoseState.DOWN

    def test_high_angle_closes_cycle_from_down(self, mode):
        assert next_state(170, PoseState.DOWN, mode) is PoseState.UP

    def test_high_angle_while_up_stays_up(self, mode):
        assert next_state(170, PoseState.UP, mode) is PoseState.UP

    def test_band_holds_state(self, mode):
        assert next_state(120, PoseState.UP, mode) is PoseState.UP
        assert next_state(120, PoseState.DOWN, mode) is PoseState.DOWN

    def test_thresholds_are_exclusive(self, mode):
        assert next_state(90, PoseState.UP, mode) is PoseState.UP
        assert next_state(160, PoseState.DOWN, mode) is PoseState.DOWN

    def test_custom_thresholds(self, mode):
        cfg = RepConfig(down_angle=70, up_angle=150)
        assert next_state(80, PoseState.UP, mode, cfg) is PoseState.UP
        assert next_state(155, PoseState.DOWN, mode, cfg) is PoseState.UP


def test_parse_mode():
    assert ExerciseMode.parse("Pushups") is ExerciseMode.PUSHUPS
    assert ExerciseMode.parse(" push-up ") is ExerciseMode.PUSHUPS
    assert ExerciseMode.parse("SQUAT") is ExerciseMode.SQUATS
    with pytest.raises(ValueError):
        ExerciseMode.parse("curl")


def test_joint_triple_picks_mode_indices():
    landmarks = [Point2D(i / 100, i / 100) for i in range(33)]
    assert joint_triple(landmarks, ExerciseMode.PUSHUPS) == (landmarks[11], landmarks[13], landmarks[15])
    assert joint_triple(landmarks, ExerciseMode.SQUATS) == (landmarks[23], landmarks[25], landmarks[27])


def test_joint_triple_missing_points():
    landmarks = [Point2D(0.5, 0.5)] * 33
    assert joint_triple(None, ExerciseMode.PUSHUPS) is None
    assert joint_triple(landmarks[:20], ExerciseMode.SQUATS) is None
    landmarks = list(landmarks)
    landmarks[13] = None
    assert joint_triple(landmarks, ExerciseMode.PUSHUPS) is None
    assert joint_triple(landmarks, ExerciseMode.SQUATS) is not None


def test_full_cycle_counts_once():
    counter = RepCounter(config=NO_DEBOUNCE)
    results = feed(counter, [170, 100, 80, 70, 95, 165])

    assert counter.counter == 1
    assert counter.state.state is PoseState.UP
    assert [r.rep_counted for r in results] == [False, False, False, False, False, True]


def test_jitter_in_band_does_not_count():
    counter = RepCounter(config=NO_DEBOUNCE)
    feed(counter, [170, 150, 165, 140, 170, 155, 175])
    assert counter.counter == 0


def test_two_cycles_count_twice():
    counter = RepCounter(config=NO_DEBOUNCE)
    feed(counter, [170, 80, 170, 80, 170])
    assert counter.counter == 2


def test_debounce_suppresses_close_reps():
    counter = RepCounter(config=RepConfig(debounce_s=0.5))
    counter.update_angle(80, now=0.0)
    first = counter.update_angle(170, now=0.05)
    counter.update_angle(80, now=0.1)
    second = counter.update_angle(170, now=0.15)

    assert first.rep_counted
    assert not second.rep_counted
    assert counter.counter == 1
    # the rejected transition still lands in UP
    assert counter.state.state is PoseState.UP


def test_debounce_allows_spaced_reps():
    counter = RepCounter(config=RepConfig(debounce_s=0.5))
    counter.update_angle(80, now=0.0)
    counter.update_angle(170, now=0.05)
    counter.update_angle(80, now=0.4)
    counter.update_angle(170, now=0.65)
    assert counter.counter == 2


def test_clock_going_backwards_does_not_block_reps():
    counter = RepCounter(config=RepConfig(debounce_s=0.5))
    counter.update_angle(80, now=1000.0)
    counter.update_angle(170, now=1000.1)
    # later frames on a different clock that starts near zero
    counter.update_angle(80, now=3.0)
    result = counter.update_angle(170, now=3.1)
    assert result.rep_counted
    assert counter.counter == 2
    counter.update_angle(80, now=3.2)
    assert not counter.update_angle(170, now=3.3).rep_counted


def test_default_debounce_is_half_second():
    counter = RepCounter()
    assert counter.config.debounce_s == 0.5


def test_feedback_labels_pushups():
    counter = RepCounter(ExerciseMode.PUSHUPS, config=NO_DEBOUNCE)
    assert counter.state.feedback == "Position yourself"
    assert counter.update_angle(170, now=0).feedback == "Go lower!"
    assert counter.update_angle(80, now=1).feedback == "Push up!"
    assert counter.update_angle(120, now=2).feedback == "Push up!"
    assert counter.update_angle(170, now=3).feedback == "Good rep!"
    assert counter.update_angle(170, now=4).feedback == "Go lower!"


def test_feedback_labels_squats():
    counter = RepCounter(ExerciseMode.SQUATS, config=NO_DEBOUNCE)
    assert counter.update_angle(175, now=0).feedback == "Squat lower!"
    assert counter.update_angle(85, now=1).feedback == "Stand up!"


def test_missing_landmarks_skip_frame():
    counter = RepCounter(config=NO_DEBOUNCE)
    counter.update(pose_with_angle(ExerciseMode.PUSHUPS, 80), now=0)
    assert counter.state.state is PoseState.DOWN

    result = counter.update(None, now=1)
    assert result.skipped
    assert result.angle is None
    assert counter.state.state is PoseState.DOWN

    partial = pose_with_angle(ExerciseMode.PUSHUPS, 170)
    partial[15] = None
    assert counter.update(partial, now=2).skipped
    assert counter.state.state is PoseState.DOWN
    assert counter.counter == 0


def test_update_from_landmarks_counts_rep():
    counter = RepCounter(ExerciseMode.SQUATS, config=NO_DEBOUNCE)
    for i, deg in enumerate([170, 120, 80, 120, 170]):
        result = counter.update(pose_with_angle(ExerciseMode.SQUATS, deg), now=i)
        assert result.angle == pytest.approx(deg, abs=1e-6)
    assert counter.counter == 1


def test_mode_uses_its_own_joints():
    # straight elbow, bent knee
    landmarks = pose_with_angle(ExerciseMode.PUSHUPS, 170)
    knee = pose_with_angle(ExerciseMode.SQUATS, 80)
    for idx in JOINT_TRIPLES[ExerciseMode.SQUATS]:
        landmarks[idx] = knee[idx]

    pushups = RepCounter(ExerciseMode.PUSHUPS, config=NO_DEBOUNCE)
    squats = RepCounter(ExerciseMode.SQUATS, config=NO_DEBOUNCE)
    assert pushups.update(landmarks, now=0).angle == pytest.approx(170)
    assert squats.update(landmarks, now=0).angle == pytest.approx(80)
    assert pushups.state.state is PoseState.UP
    assert squats.state.state is PoseState.DOWN


def test_set_mode_resets():
    counter = RepCounter(config=NO_DEBOUNCE)
    feed(counter, [170, 80, 170, 80])
    assert counter.counter == 1
    assert counter.state.state is PoseState.DOWN

    counter.set_mode(ExerciseMode.SQUATS)
    assert counter.mode is ExerciseMode.SQUATS
    assert counter.counter == 0
    assert counter.state.state is PoseState.UP
    assert counter.state.last_count_time is None
    assert counter.state.feedback == "Position yourself"
    # custom config survives a mode switch
    assert counter.config.debounce_s == 0


def test_reset_keeps_mode():
    counter = RepCounter(ExerciseMode.SQUATS, config=NO_DEBOUNCE)
    feed(counter, [80, 170, 80])
    counter.reset()
    assert counter.mode is ExerciseMode.SQUATS
    assert counter.counter == 0
    assert counter.state.state is PoseState.UP


def test_snapshot():
    counter = RepCounter(config=NO_DEBOUNCE)
    feed(counter, [80, 170])
    assert counter.snapshot() == {
        "exercise": "Pushups",
        "reps": 1,
        "state": "up",
        "feedback": "Good rep!",
    }
