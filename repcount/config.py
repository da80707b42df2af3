from dataclasses import dataclass

@dataclass
class PoseConfig:
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    camera_index: int = 0
    visibility_threshold: float = 0.5   # below this a landmark counts as missing

@dataclass
class RepConfig:
    down_angle: float = 90.0    # joint angle below this is "down"
    up_angle: float = 160.0     # joint angle above this closes the cycle
    debounce_s: float = 0.5     # min seconds between two counted reps, <= 0 disables

@dataclass
class PushupConfig(RepConfig):
    pass                        # elbow angle (shoulder-elbow-wrist)

@dataclass
class SquatConfig(RepConfig):
    pass                        # knee angle (hip-knee-ankle)

# keyed by ExerciseMode value
MODE_CONFIGS = {
    "Pushups": PushupConfig,
    "Squats": SquatConfig,
}
