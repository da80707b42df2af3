import cv2

from .utils import Point2D


def landmarks_from_results(results, visibility_threshold=0.5):
    """
    MediaPipe results -> list of Point2D indexed like PoseLandmark.
    Landmarks below the visibility threshold come back as None.
    Returns None when no pose was detected.
    """
    if results is None or results.pose_landmarks is None:
        return None

    points = []
    for lm in results.pose_landmarks.landmark:
        if getattr(lm, "visibility", 1.0) < visibility_threshold:
            points.append(None)
        else:
            points.append(Point2D(lm.x, lm.y))
    return points


class PoseTracker:
    def __init__(self, min_det_conf=0.5, min_track_conf=0.5, visibility_threshold=0.5):
        import mediapipe as mp

        self.mp_pose = mp.solutions.pose
        self.mp_drawing = mp.solutions.drawing_utils
        self.visibility_threshold = visibility_threshold
        self.pose = self.mp_pose.Pose(
            min_detection_confidence=min_det_conf,
            min_tracking_confidence=min_track_conf
        )

    def process_bgr(self, frame_bgr):
        """
        Returns (results, frame_bgr_annotated)
        """
        image_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        image_rgb.flags.writeable = False
        results = self.pose.process(image_rgb)

        image_rgb.flags.writeable = True
        annotated = frame_bgr.copy()

        if results.pose_landmarks:
            self.mp_drawing.draw_landmarks(
                annotated,
                results.pose_landmarks,
                self.mp_pose.POSE_CONNECTIONS
            )

        return results, annotated

    def landmarks(self, frame_bgr):
        """Returns (landmark list or None, annotated frame)."""
        results, annotated = self.process_bgr(frame_bgr)
        return landmarks_from_results(results, self.visibility_threshold), annotated

    def close(self):
        self.pose.close()
