import logging

import cv2

from repcount.config import PoseConfig
from repcount.counters import ExerciseMode, PoseState, RepCounter
from repcount.pose_tracker import PoseTracker

logger = logging.getLogger(__name__)

WINDOW_NAME = "Rep Counter"


class RepCounterApp:
    # =========================
    # REP COUNTER (pushups/squats)
    # Mirrored webcam view, skeleton overlay
    # Keys: q quit, r reset, m switch exercise
    # =========================

    def __init__(self, pose_cfg=None, tracker=None):
        self.pose_cfg = pose_cfg or PoseConfig()
        self.tracker = tracker
        self.counter = None
        self.last_angle = None

    def get_user_input_and_setup(self, answer=None):
        if answer is None:
            answer = input("Enter exercise (pushups/squats): ")
        self.counter = RepCounter(ExerciseMode.parse(answer))

    def toggle_mode(self):
        mode = ExerciseMode.SQUATS if self.counter.mode is ExerciseMode.PUSHUPS else ExerciseMode.PUSHUPS
        self.counter.set_mode(mode)
        self.last_angle = None

    def handle_key(self, key):
        """Returns "break" on quit, otherwise "continue"."""
        if key == ord('q'):
            return "break"
        if key == ord('r'):
            self.counter.reset()
            self.last_angle = None
        elif key == ord('m'):
            self.toggle_mode()
        return "continue"

    def draw_header(self, annotated):
        snap = self.counter.snapshot()
        color = (0, 255, 0) if self.counter.state.state is PoseState.UP else (0, 165, 255)

        cv2.putText(annotated, f"Exercise: {snap['exercise']}", (10, 30),
                    cv2.FONT_HERSHEY_SIMPLEX, 1, (255, 255, 255), 2)
        cv2.putText(annotated, f"Reps: {snap['reps']}", (10, 70),
                    cv2.FONT_HERSHEY_SIMPLEX, 1, (255, 255, 255), 2)
        cv2.putText(annotated, snap["feedback"], (10, 110),
                    cv2.FONT_HERSHEY_SIMPLEX, 1, color, 2)
        if self.last_angle is not None:
            cv2.putText(annotated, f"Angle: {self.last_angle:.1f}", (10, 150),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.8, (255, 255, 255), 2)
        else:
            cv2.putText(annotated, "Pose lost - stay in frame", (10, 150),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 0, 255), 2)

    def process_frame(self, frame):
        # mirror so the user sees themselves like in a mirror
        frame = cv2.flip(frame, 1)
        landmarks, annotated = self.tracker.landmarks(frame)

        result = self.counter.update(landmarks)
        self.last_angle = None if result.skipped else result.angle

        self.draw_header(annotated)
        return annotated

    def print_final_report(self):
        print("\n===== SESSION =====")
        print(f"Exercise : {self.counter.mode.value}")
        print(f"Reps     : {self.counter.counter}")
        print("===================\n")

    def run(self):
        self.get_user_input_and_setup()

        if self.tracker is None:
            self.tracker = PoseTracker(
                min_det_conf=self.pose_cfg.min_detection_confidence,
                min_track_conf=self.pose_cfg.min_tracking_confidence,
                visibility_threshold=self.pose_cfg.visibility_threshold,
            )

        cap = cv2.VideoCapture(self.pose_cfg.camera_index)
        if not cap.isOpened():
            raise RuntimeError("Camera could not be opened. Try changing PoseConfig.camera_index to 0 or 1.")

        try:
            while cap.isOpened():
                ret, frame = cap.read()
                if not ret:
                    logger.warning("camera returned no frame, stopping")
                    break

                annotated = self.process_frame(frame)
                cv2.imshow(WINDOW_NAME, annotated)
                key = cv2.waitKey(10) & 0xFF
                if self.handle_key(key) == "break":
                    break
        finally:
            cap.release()
            cv2.destroyAllWindows()
            self.tracker.close()

        self.print_final_report()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = RepCounterApp()
    app.run()
