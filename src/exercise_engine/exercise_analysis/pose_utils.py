"""
pose_utils.py - Shared geometry helpers for landmark-based exercise analysis.

All functions read landmark coordinates only; visibility is handled by the analyzers.
"""
from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..pose_detection.landmarks import FrameBundle, Landmark

DEGENERATE_ANGLE = 180.0  # Returned when two of the three points coincide
_MIN_SEGMENT_LENGTH = 1e-6


# --- Math & Geometry Utilities ---
def _as_vector(point: Landmark) -> np.ndarray:
    return np.array([point.x, point.y, point.z], dtype=float)


def is_degenerate(first: Landmark, middle: Landmark, last: Landmark) -> bool:
    """True when one of the two segments meeting at `middle` has (near) zero length."""
    center = _as_vector(middle)
    return (
        np.linalg.norm(_as_vector(first) - center) < _MIN_SEGMENT_LENGTH
        or np.linalg.norm(_as_vector(last) - center) < _MIN_SEGMENT_LENGTH
    )


def calculate_angle(first: Landmark, middle: Landmark, last: Landmark) -> float:
    """
    Calculate the interior angle at `middle` between the segments to `first` and `last`.

    Point ordering convention:
    - first: e.g. shoulder for the elbow angle
    - middle: e.g. elbow, the vertex of the angle
    - last: e.g. wrist for the elbow angle

    Args:
        first: First point
        middle: Vertex point
        last: Last point
    Returns:
        Angle in degrees within [0, 180], or DEGENERATE_ANGLE if a segment has zero length
    """
    center = _as_vector(middle)
    ba = _as_vector(first) - center
    bc = _as_vector(last) - center
    norm_ba = np.linalg.norm(ba)
    norm_bc = np.linalg.norm(bc)
    if norm_ba < _MIN_SEGMENT_LENGTH or norm_bc < _MIN_SEGMENT_LENGTH:
        return DEGENERATE_ANGLE
    cosine_angle = np.clip(np.dot(ba, bc) / (norm_ba * norm_bc), -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine_angle)))


def vertical_alignment(p1: Landmark, p2: Landmark) -> float:
    """Signed vertical offset; positive means p1 is lower in the image than p2."""
    return p1.y - p2.y


def horizontal_alignment(p1: Landmark, p2: Landmark) -> float:
    """Signed horizontal offset; positive means p1 is right of p2."""
    return p1.x - p2.x


def is_close_to(value: float, target: float, tolerance: float) -> bool:
    return abs(value - target) <= tolerance


def calculate_distance(p1: Landmark, p2: Landmark) -> float:
    """Calculate Euclidean distance between two points in the image plane."""
    return float(np.linalg.norm(np.array([p1.x - p2.x, p1.y - p2.y])))


def midpoint(p1: Landmark, p2: Landmark) -> Landmark:
    """Center point of two landmarks, as visible as the weaker of the two."""
    return Landmark(
        (p1.x + p2.x) / 2,
        (p1.y + p2.y) / 2,
        (p1.z + p2.z) / 2,
        min(p1.visibility, p2.visibility),
    )


# --- Visibility Helpers ---
def get_visibilities(frame: FrameBundle, indices: Iterable[int]) -> List[float]:
    return [frame.visibility(index) for index in indices]


def check_landmark_visibility(frame: FrameBundle, indices: Sequence[int], min_visibility: float = 0.5) -> bool:
    """Check that every listed landmark is present, finite and visible enough."""
    for index in indices:
        point = frame.landmark(index)
        if point is None or not point.is_visible(min_visibility):
            return False
    return True


def get_landmarks(frame: FrameBundle, indices: Sequence[int], min_visibility: float) -> Optional[List[Landmark]]:
    """Return the listed landmarks if all of them pass the visibility check, otherwise None."""
    if not check_landmark_visibility(frame, indices, min_visibility):
        return None
    return [frame.landmark(index) for index in indices]
