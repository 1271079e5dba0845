from typing import List, Optional

from ..pose_detection.landmarks import FrameBundle, Landmark, PoseLandmark
from .base_analyzer import BaseExerciseAnalyzer, ExerciseState, register_analyzer
from .config_utils import setup_logger
from .pose_utils import calculate_distance, get_landmarks, midpoint, vertical_alignment

logger = setup_logger("PullupAnalyzer")


@register_analyzer("pullup", "pullups")
class PullupAnalyzer(BaseExerciseAnalyzer):
    """
    Pull-up counter driven by the elbow angle.

    Up is the dead hang (elbow >= 160 deg) and Down is the pulled position
    (elbow <= 90 deg). The rep is counted once the athlete lowers back into the
    hang. While pulled, the nose has to clear the wrist line (the bar) by
    CHIN_OVER_BAR_MARGIN for the rep to be free of a height issue. When the
    hips are visible, their drift relative to the shoulders over the rep is
    checked against KIPPING_THRESHOLD.
    """

    EXERCISE_NAME = "pullup"
    REQUIRED_LANDMARKS = (
        PoseLandmark.NOSE,
        PoseLandmark.LEFT_SHOULDER, PoseLandmark.RIGHT_SHOULDER,
        PoseLandmark.LEFT_ELBOW, PoseLandmark.RIGHT_ELBOW,
        PoseLandmark.LEFT_WRIST, PoseLandmark.RIGHT_WRIST,
    )
    ANGLE_JOINTS = (
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_ELBOW, PoseLandmark.LEFT_WRIST),
        (PoseLandmark.RIGHT_SHOULDER, PoseLandmark.RIGHT_ELBOW, PoseLandmark.RIGHT_WRIST),
    )

    REQUIRED_VISIBILITY = 0.6
    DOWN_THRESHOLD = 90.0
    UP_THRESHOLD = 160.0
    IDEAL_DOWN_ANGLE = 80.0
    CHIN_OVER_BAR_MARGIN = 0.05
    KIPPING_THRESHOLD = 0.10  # Hip drift relative to the shoulders, in normalized image units

    TUNABLE_SETTINGS = BaseExerciseAnalyzer.TUNABLE_SETTINGS + ("chin_over_bar_margin", "kipping_threshold")

    SETUP_HINT = "Hang from the bar with arms extended"
    CHIN_BELOW_BAR = "Pull higher - chin above bar"
    KIPPING = "Excessive hip movement detected"
    PARTIAL_REP_MESSAGES = {
        ExerciseState.UP: CHIN_BELOW_BAR,
        ExerciseState.DOWN: "Arms not fully extended at bottom",
    }

    def _reset_exercise_trackers(self) -> None:
        self._chin_cleared = False
        self._best_chin_clearance: Optional[float] = None
        self._hip_reference: Optional[Landmark] = None
        self._max_hip_deviation = 0.0

    def check_form(self, frame: FrameBundle) -> List[str]:
        return []

    def chin_clearance(self, frame: FrameBundle) -> float:
        """Height of the nose above the wrist line; positive when the nose is above the bar."""
        wrists = midpoint(frame.landmark(PoseLandmark.LEFT_WRIST), frame.landmark(PoseLandmark.RIGHT_WRIST))
        return vertical_alignment(wrists, frame.landmark(PoseLandmark.NOSE))

    def is_chin_over_bar(self, frame: FrameBundle) -> bool:
        return self.chin_clearance(frame) >= self.CHIN_OVER_BAR_MARGIN

    def hip_offset(self, frame: FrameBundle) -> Optional[Landmark]:
        """
        Position of the hips relative to the shoulders.

        A strict pull-up moves the body as one block, so this offset barely
        changes; a kip swings the hips away from under the shoulders.

        Returns:
            Offset as a Landmark, or None if the hips are not visible enough
        """
        hips = get_landmarks(frame, (PoseLandmark.LEFT_HIP, PoseLandmark.RIGHT_HIP), self.REQUIRED_VISIBILITY)
        if hips is None:
            return None
        hip_mid = midpoint(*hips)
        shoulders = midpoint(frame.landmark(PoseLandmark.LEFT_SHOULDER), frame.landmark(PoseLandmark.RIGHT_SHOULDER))
        return Landmark(hip_mid.x - shoulders.x, hip_mid.y - shoulders.y)

    def _on_phase_entered(self, phase: ExerciseState) -> None:
        # Each rep is measured from the hang it starts from
        if phase is ExerciseState.UP:
            self._reset_exercise_trackers()

    def _track_frame(self, frame: FrameBundle, angle: float, zone: Optional[ExerciseState]) -> None:
        offset = self.hip_offset(frame)
        if offset is not None:
            if self._hip_reference is None:
                self._hip_reference = offset
            self._max_hip_deviation = max(self._max_hip_deviation, calculate_distance(offset, self._hip_reference))

        if zone is not ExerciseState.DOWN:
            return
        clearance = self.chin_clearance(frame)
        if self._best_chin_clearance is None or clearance > self._best_chin_clearance:
            self._best_chin_clearance = clearance
        if clearance >= self.CHIN_OVER_BAR_MARGIN:
            self._chin_cleared = True

    def _rep_form_issues(self) -> List[str]:
        issues = []
        if not self._chin_cleared:
            logger.debug(f"[FORM] pullup chin stayed below the bar (best clearance={self._best_chin_clearance})")
            issues.append(self.CHIN_BELOW_BAR)
        if self._max_hip_deviation > self.KIPPING_THRESHOLD:
            logger.debug(f"[FORM] pullup hips drifted {self._max_hip_deviation:.3f} from the hang")
            issues.append(self.KIPPING)
        return issues
