import json
from typing import Any, Dict, Iterator, List

from ..exercise_analysis.config_utils import setup_logger
from .base_source import BaseLandmarkSource
from .landmarks import FrameBundle

logger = setup_logger("LandmarkSource")

DEFAULT_FRAME_INTERVAL_MS = 33  # ~30fps, used when a recording has no timestamps


class JsonLandmarkSource(BaseLandmarkSource):
    """
    Replays a landmark recording saved as JSON.

    Accepted layouts:
        {"exercise": "pushup", "frames": [frame, ...]}
        [frame, ...]

    Each frame is a dict with "landmarks" given either as a list in PoseLandmark order
    (`[x, y, z, visibility]` or `{x, y, z, visibility}` entries) or as a detector-style
    dict keyed by landmark name. "world_landmarks", "timestamp_ms", "inference_time_ms",
    "image_width" and "image_height" are optional.
    """

    def __init__(self, path: str):
        self.path = path
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, list):
            self._exercise = ""
            self._frames = data
        elif isinstance(data, dict) and isinstance(data.get("frames"), list):
            self._exercise = str(data.get("exercise", ""))
            self._frames = data["frames"]
        else:
            raise ValueError(f"Unrecognized landmark recording layout in {path}")

    def __len__(self) -> int:
        return len(self._frames)

    def get_exercise_hint(self) -> str:
        return self._exercise

    def frames(self) -> Iterator[FrameBundle]:
        last_timestamp = None
        for index, raw in enumerate(self._frames):
            frame = self._parse_frame(index, raw)
            if last_timestamp is not None and frame.timestamp_ms < last_timestamp:
                logger.warning(f"[REPLAY] Frame {index} goes back in time ({frame.timestamp_ms} < {last_timestamp} ms)")
            last_timestamp = frame.timestamp_ms
            yield frame

    def _parse_frame(self, index: int, raw: Any) -> FrameBundle:
        if not isinstance(raw, dict):
            logger.warning(f"[REPLAY] Frame {index} is not an object, treating it as empty")
            raw = {}
        metadata: Dict[str, Any] = {
            "timestamp_ms": int(raw.get("timestamp_ms", index * DEFAULT_FRAME_INTERVAL_MS)),
            "inference_time_ms": float(raw.get("inference_time_ms", 0.0)),
            "image_width": int(raw.get("image_width", 0)),
            "image_height": int(raw.get("image_height", 0)),
        }
        landmarks = raw.get("landmarks")
        if landmarks is None:
            logger.warning(f"[REPLAY] Frame {index} has no landmarks")
            landmarks = []
        if isinstance(landmarks, dict):
            return FrameBundle.from_named_landmarks(landmarks, **metadata)
        world: List[Any] = raw.get("world_landmarks") or []
        return FrameBundle.from_landmark_list(landmarks, world_landmarks=world, **metadata)
