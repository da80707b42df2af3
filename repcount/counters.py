import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import MODE_CONFIGS, RepConfig
from .utils import calculate_angle

logger = logging.getLogger(__name__)


class ExerciseMode(Enum):
    PUSHUPS = "Pushups"
    SQUATS = "Squats"

    @classmethod
    def parse(cls, text: str) -> "ExerciseMode":
        key = str(text).strip().lower()
        for mode, aliases in _MODE_ALIASES.items():
            if key in aliases:
                return mode
        raise ValueError(f"Unsupported exercise: {text!r}")


_MODE_ALIASES = {
    ExerciseMode.PUSHUPS: ("pushups", "pushup", "push-up", "push-ups"),
    ExerciseMode.SQUATS: ("squats", "squat"),
}


class PoseState(Enum):
    UP = "up"
    DOWN = "down"


# MediaPipe Pose indices, (proximal, hinge, distal)
JOINT_TRIPLES = {
    ExerciseMode.PUSHUPS: (11, 13, 15),    # left shoulder, elbow, wrist
    ExerciseMode.SQUATS: (23, 25, 27),     # left hip, knee, ankle
}

START_FEEDBACK = "Position yourself"
REP_FEEDBACK = "Good rep!"

# (after going down, when still extended)
MODE_FEEDBACK = {
    ExerciseMode.PUSHUPS: ("Push up!", "Go lower!"),
    ExerciseMode.SQUATS: ("Stand up!", "Squat lower!"),
}


def joint_triple(landmarks, mode: ExerciseMode):
    """
    Picks (proximal, hinge, distal) for the mode out of a per-frame landmark list.
    Returns None if there are no landmarks or any of the three is missing.
    """
    if landmarks is None:
        return None
    points = []
    for idx in JOINT_TRIPLES[mode]:
        if idx >= len(landmarks) or landmarks[idx] is None:
            return None
        points.append(landmarks[idx])
    return tuple(points)


def next_state(angle: float, current_state: PoseState, mode: ExerciseMode,
               config: Optional[RepConfig] = None) -> PoseState:
    """
    Two thresholds with a hold band between them.
    Below down_angle is always DOWN; above up_angle goes UP only from DOWN.
    """
    cfg = config or MODE_CONFIGS[mode.value]()
    if angle < cfg.down_angle:
        return PoseState.DOWN
    if angle > cfg.up_angle and current_state is PoseState.DOWN:
        return PoseState.UP
    return current_state


@dataclass
class RepState:
    mode: ExerciseMode = ExerciseMode.PUSHUPS
    state: PoseState = PoseState.UP
    counter: int = 0
    last_count_time: Optional[float] = None
    feedback: str = START_FEEDBACK


@dataclass
class FrameResult:
    angle: Optional[float]
    state: PoseState
    counter: int
    feedback: str
    rep_counted: bool = False
    skipped: bool = False


class RepCounter:
    """
    Drives next_state frame by frame and owns everything around it:
    counter, debounce timestamp, active mode and feedback text.
    """
    def __init__(self, mode: ExerciseMode = ExerciseMode.PUSHUPS,
                 config: Optional[RepConfig] = None):
        self._custom_config = config
        self.config = config or MODE_CONFIGS[mode.value]()
        self.state = RepState(mode=mode)

    @property
    def mode(self) -> ExerciseMode:
        return self.state.mode

    @property
    def counter(self) -> int:
        return self.state.counter

    def update(self, landmarks, now: Optional[float] = None) -> FrameResult:
        """
        landmarks: index-addressable points for this frame (None entries = not detected),
        or None when no pose was found. Frames without the mode's joints are skipped.
        """
        triple = joint_triple(landmarks, self.state.mode)
        if triple is None:
            logger.debug("frame skipped: %s joints not available", self.state.mode.value)
            return self._result(None, skipped=True)
        return self.update_angle(calculate_angle(*triple), now)

    def update_angle(self, angle: float, now: Optional[float] = None) -> FrameResult:
        if now is None:
            now = time.monotonic()

        s = self.state
        old = s.state
        new = next_state(angle, old, s.mode, self.config)
        counted = False
        drive_up, go_lower = MODE_FEEDBACK[s.mode]

        if new is not old:
            if old is PoseState.DOWN and new is PoseState.UP:
                if self._debounce_ok(now):
                    s.counter += 1
                    s.last_count_time = now
                    s.feedback = REP_FEEDBACK
                    counted = True
                    logger.info("%s rep %d (angle %.1f)", s.mode.value, s.counter, angle)
                else:
                    logger.debug("rep ignored, %.3fs since last count", now - s.last_count_time)
            else:
                s.feedback = drive_up
            s.state = new
        elif old is PoseState.UP and angle > self.config.up_angle:
            s.feedback = go_lower

        return self._result(angle, rep_counted=counted)

    def _debounce_ok(self, now: float) -> bool:
        last = self.state.last_count_time
        if self.config.debounce_s <= 0 or last is None:
            return True
        elapsed = now - last
        # clock went backwards (e.g. client and server clocks mixed), nothing to compare
        return elapsed < 0 or elapsed > self.config.debounce_s

    def set_mode(self, mode: ExerciseMode):
        """Switching exercise always starts from zero."""
        self.state = RepState(mode=mode)
        if self._custom_config is None:
            self.config = MODE_CONFIGS[mode.value]()
        logger.info("mode set to %s", mode.value)

    def reset(self):
        self.state = RepState(mode=self.state.mode)
        logger.info("counter reset")

    def snapshot(self) -> dict:
        return {
            "exercise": self.state.mode.value,
            "reps": self.state.counter,
            "state": self.state.state.value,
            "feedback": self.state.feedback,
        }

    def _result(self, angle, rep_counted=False, skipped=False) -> FrameResult:
        return FrameResult(
            angle=angle,
            state=self.state.state,
            counter=self.state.counter,
            feedback=self.state.feedback,
            rep_counted=rep_counted,
            skipped=skipped,
        )
