from typing import NamedTuple

import numpy as np


class Point2D(NamedTuple):
    """Normalized image coordinates, origin top-left."""
    x: float
    y: float


def _xy(p):
    if hasattr(p, "x") and hasattr(p, "y"):
        return float(p.x), float(p.y)
    x, y = p[0], p[1]
    return float(x), float(y)


def calculate_angle(a, b, c) -> float:
    """
    Returns angle at point b formed by points a-b-c in degrees, in [0, 180].
    a, b, c are Point2D, (x, y) tuples or anything with .x/.y (MediaPipe landmarks).
    Coincident points give 0.
    """
    a = np.array(_xy(a), dtype=float)
    b = np.array(_xy(b), dtype=float)
    c = np.array(_xy(c), dtype=float)

    radians = np.arctan2(c[1] - b[1], c[0] - b[0]) - np.arctan2(a[1] - b[1], a[0] - b[0])
    angle = np.abs(radians * 180.0 / np.pi)
    if angle > 180.0:
        angle = 360.0 - angle
    return float(angle)