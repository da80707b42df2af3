# =========================
# FastAPI rep counter session API
#   - frames as binary messages (pose estimated here)
#   - or landmarks as JSON (pose estimated in the browser)
# One RepCounter per websocket.
# =========================

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
import numpy as np
import cv2
import json
import logging
from typing import Any, Dict, Optional

from repcount.config import PoseConfig
from repcount.counters import ExerciseMode, RepCounter
from repcount.pose_tracker import PoseTracker
from repcount.utils import Point2D

logger = logging.getLogger(__name__)

app = FastAPI()

pose_cfg = PoseConfig()


def new_pose_tracker() -> PoseTracker:
    return PoseTracker(
        min_det_conf=pose_cfg.min_detection_confidence,
        min_track_conf=pose_cfg.min_tracking_confidence,
        visibility_threshold=pose_cfg.visibility_threshold,
    )


def parse_timestamp(raw) -> Optional[float]:
    """Client timestamp in seconds, or None to use the server clock."""
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError("timestamp must be a number")
    return float(raw)


def parse_landmarks(raw, visibility_threshold: float = pose_cfg.visibility_threshold):
    """
    JSON landmark array -> list of Point2D / None.
    Entries may be {"x", "y", "visibility"?}, [x, y] or null.
    """
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValueError("landmarks must be a list or null")

    points = []
    for item in raw:
        if item is None:
            points.append(None)
        elif isinstance(item, dict):
            if float(item.get("visibility", 1.0)) < visibility_threshold:
                points.append(None)
            else:
                points.append(Point2D(float(item["x"]), float(item["y"])))
        else:
            points.append(Point2D(float(item[0]), float(item[1])))
    return points


def live_payload(counter: RepCounter, result=None) -> Dict[str, Any]:
    payload = {"type": "live", **counter.snapshot()}
    payload["angle"] = None if result is None or result.angle is None else round(result.angle, 1)
    payload["rep_counted"] = bool(result and result.rep_counted)
    payload["skipped"] = bool(result and result.skipped)
    return payload


def error_payload(detail: str) -> Dict[str, Any]:
    return {"type": "error", "detail": detail}


class RepSession:
    def __init__(self, exercise: str, tracker_factory=new_pose_tracker):
        self.counter = RepCounter(ExerciseMode.parse(exercise))
        # one MediaPipe tracker per subject, built on the first frame
        self.tracker_factory = tracker_factory
        self.tracker = None

    def handle_text(self, data: Dict[str, Any]) -> Dict[str, Any]:
        kind = data.get("type")
        if kind == "mode":
            self.counter.set_mode(ExerciseMode.parse(data["exercise"]))
            return live_payload(self.counter)
        if kind == "reset":
            self.counter.reset()
            return live_payload(self.counter)
        if kind == "landmarks":
            landmarks = parse_landmarks(data.get("landmarks"))
            now = parse_timestamp(data.get("timestamp"))
            result = self.counter.update(landmarks, now=now)
            return live_payload(self.counter, result)
        raise ValueError(f"Unknown message type: {kind!r}")

    def handle_frame(self, frame_bytes: bytes) -> Dict[str, Any]:
        np_frame = np.frombuffer(frame_bytes, np.uint8)
        try:
            frame = cv2.imdecode(np_frame, cv2.IMREAD_COLOR)
        except cv2.error:
            frame = None
        if frame is None:
            raise ValueError("Could not decode frame")

        if self.tracker is None:
            self.tracker = self.tracker_factory()
        landmarks, _ = self.tracker.landmarks(frame)
        result = self.counter.update(landmarks)
        return live_payload(self.counter, result)

    def close(self):
        if self.tracker is not None:
            self.tracker.close()
            self.tracker = None


def handle_message(session: Optional[RepSession], message) -> tuple:
    """Returns (session, reply) for one raw websocket message."""
    if message.get("text"):
        data = json.loads(message["text"])
        if not isinstance(data, dict):
            raise ValueError("Message must be a JSON object")
        if data.get("type") == "start":
            new_session = RepSession(data["exercise"])
            if session is not None:
                session.close()
            session = new_session
            return session, live_payload(session.counter)
        if session is None:
            raise ValueError("Send a start message first")
        return session, session.handle_text(data)

    if message.get("bytes"):
        if session is None:
            raise ValueError("Send a start message first")
        return session, session.handle_frame(message["bytes"])

    return session, None


# ======= WEBSOCKET =======
@app.websocket("/ws/session")
async def session_ws(websocket: WebSocket):
    await websocket.accept()
    session = None

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            try:
                session, reply = handle_message(session, message)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("bad client message: %s", e)
                reply = error_payload(str(e))

            if reply is not None:
                await websocket.send_text(json.dumps(reply))

    except WebSocketDisconnect:
        pass

    if session is not None:
        session.close()
        logger.info("session closed: %s", session.counter.snapshot())
    else:
        logger.info("client disconnected")


@app.get("/")
def root():
    return {"status": "Rep counter API running"}
