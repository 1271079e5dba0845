from dataclasses import dataclass
from enum import IntEnum
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

# Handler and level are configured by json_source through setup_logger
logger = logging.getLogger("LandmarkSource")


class PoseLandmark(IntEnum):  # Index of each of the 33 MediaPipe pose joints inside a frame.
    """MediaPipe pose landmark indices."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


LANDMARK_COUNT = len(PoseLandmark)
LANDMARK_NAMES = [landmark.name.lower() for landmark in PoseLandmark]  # "nose", "left_eye_inner", ...


@dataclass(frozen=True)
class Landmark:
    """A normalized 3D pose point with its detection visibility."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z))

    def is_visible(self, min_visibility: float) -> bool:
        return self.is_finite() and math.isfinite(self.visibility) and self.visibility >= min_visibility

    @classmethod
    def from_values(cls, values: Union[Sequence[float], Dict[str, float]]) -> "Landmark":
        """
        Build a landmark from a `[x, y, z, visibility]` list or an `{x, y, z, visibility}` dict.

        A missing z defaults to 0 and a missing visibility to 1, as in recordings that only carry coordinates.
        """
        if isinstance(values, dict):
            return cls(
                float(values.get("x", 0.0)),
                float(values.get("y", 0.0)),
                float(values.get("z", 0.0)),
                float(values.get("visibility", 1.0)),
            )
        values = list(values)
        z = values[2] if len(values) > 2 else 0.0
        visibility = values[3] if len(values) > 3 else 1.0
        return cls(float(values[0]), float(values[1]), float(z), float(visibility))


MISSING_LANDMARK = Landmark(0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class FrameBundle:
    """
    One frame of pose-detector output.

    Landmarks are index-addressed by PoseLandmark. A malformed frame (short landmark
    list, None entries, NaN coordinates, entries that cannot be parsed) is accepted;
    the affected joints simply read back as invisible.
    """
    landmarks: Tuple[Optional[Landmark], ...]
    world_landmarks: Tuple[Optional[Landmark], ...] = ()
    timestamp_ms: int = 0
    inference_time_ms: float = 0.0
    image_width: int = 0
    image_height: int = 0

    def landmark(self, index: int) -> Optional[Landmark]:
        """Return the landmark at `index`, or None if the frame does not carry it."""
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    def visibility(self, index: int) -> float:
        """Visibility of a landmark; missing or non-finite points count as 0."""
        point = self.landmark(index)
        if point is None or not point.is_finite() or not math.isfinite(point.visibility):
            return 0.0
        return float(point.visibility)

    @classmethod
    def from_landmark_list(
        cls,
        landmarks: Iterable[Any],
        world_landmarks: Optional[Iterable[Any]] = None,
        **kwargs,
    ) -> "FrameBundle":
        """
        Build a frame from a list of landmark values in PoseLandmark order.

        Args:
            landmarks: Sequence of `[x, y, z, visibility]` lists, `{x, y, z, visibility}` dicts or Landmark objects
            world_landmarks: Optional world-space landmarks in the same format
            **kwargs: timestamp_ms, inference_time_ms, image_width, image_height

        Returns:
            FrameBundle padded to LANDMARK_COUNT entries
        """
        return cls(
            landmarks=_to_landmark_tuple(landmarks),
            world_landmarks=_to_landmark_tuple(world_landmarks) if world_landmarks else (),
            **kwargs,
        )

    @classmethod
    def from_named_landmarks(cls, landmarks: Dict[str, List[float]], **kwargs) -> "FrameBundle":
        """Build a frame from a detector dict of the form `{"left_shoulder": [x, y, z, visibility], ...}`."""
        points: List[Landmark] = [MISSING_LANDMARK] * LANDMARK_COUNT
        for name, values in landmarks.items():
            try:
                index = PoseLandmark[name.upper()]
            except KeyError:
                continue
            points[index] = _parse_landmark(values, name)
        return cls(landmarks=tuple(points), **kwargs)


def _to_landmark_tuple(values: Iterable[Any]) -> Tuple[Landmark, ...]:
    points: List[Landmark] = []
    for value in values:
        if len(points) == LANDMARK_COUNT:
            break
        if isinstance(value, Landmark):
            points.append(value)
        elif value is None:
            points.append(MISSING_LANDMARK)
        else:
            points.append(_parse_landmark(value, len(points)))
    points.extend([MISSING_LANDMARK] * (LANDMARK_COUNT - len(points)))
    return tuple(points)


def _parse_landmark(value: Any, where: Union[int, str]) -> Landmark:
    """Parse one landmark entry; an entry that cannot be read becomes MISSING_LANDMARK."""
    try:
        return Landmark.from_values(value)
    except (TypeError, ValueError, IndexError) as e:
        logger.warning(f"[POSE] Ignoring malformed landmark {where}: {value!r} ({e})")
        return MISSING_LANDMARK
