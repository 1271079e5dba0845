from typing import List, Optional

from ..pose_detection.landmarks import FrameBundle, PoseLandmark
from .base_analyzer import BaseExerciseAnalyzer, ExerciseState, register_analyzer
from .config_utils import setup_logger
from .pose_utils import calculate_distance, get_landmarks, vertical_alignment

logger = setup_logger("SitupAnalyzer")


@register_analyzer("situp", "situps")
class SitupAnalyzer(BaseExerciseAnalyzer):
    """
    Sit-up counter driven by the hip angle (shoulder-hip-knee).

    Down is lying back with the hip open (>= 110 deg) and Up is the curled
    position (<= 70 deg). The rep is counted as soon as the athlete curls up
    after having lain back. The knees only feed the angle; the gate covers
    shoulders and hips.

    Arms should stay crossed over the chest, each wrist near the opposite
    shoulder. Frames with visible arms are tallied over the rep, and the rep is
    flagged when the arms were uncrossed on most of them.
    """

    EXERCISE_NAME = "situp"
    REQUIRED_LANDMARKS = (
        PoseLandmark.LEFT_SHOULDER, PoseLandmark.RIGHT_SHOULDER,
        PoseLandmark.LEFT_HIP, PoseLandmark.RIGHT_HIP,
    )
    ANGLE_JOINTS = (
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_HIP, PoseLandmark.LEFT_KNEE),
        (PoseLandmark.RIGHT_SHOULDER, PoseLandmark.RIGHT_HIP, PoseLandmark.RIGHT_KNEE),
    )

    REQUIRED_VISIBILITY = 0.5
    DOWN_THRESHOLD = 110.0
    UP_THRESHOLD = 70.0
    IDEAL_DOWN_ANGLE = 130.0
    MAX_ROM_PENALTY = 50
    SHOULDER_ALIGNMENT_TOLERANCE = 0.15
    ARMS_CROSSED_THRESHOLD = 0.15  # Max wrist to opposite shoulder distance
    MAX_ELBOW_REACH = 0.3          # Max elbow to own shoulder distance with arms folded

    TUNABLE_SETTINGS = BaseExerciseAnalyzer.TUNABLE_SETTINGS + (
        "shoulder_alignment_tolerance",
        "arms_crossed_threshold",
        "max_elbow_reach",
    )

    ARM_LANDMARKS = (
        PoseLandmark.LEFT_ELBOW, PoseLandmark.RIGHT_ELBOW,
        PoseLandmark.LEFT_WRIST, PoseLandmark.RIGHT_WRIST,
    )

    SETUP_HINT = "Lie back with knees bent"
    SHOULDERS_NOT_LEVEL = "Keep shoulders level"
    ARMS_NOT_CROSSED = "Arms should be crossed over chest"
    PARTIAL_REP_MESSAGES = {
        ExerciseState.DOWN: "Curl up higher",
        ExerciseState.UP: "Not fully extended at the bottom",
    }

    def check_form(self, frame: FrameBundle) -> List[str]:
        tilt = vertical_alignment(
            frame.landmark(PoseLandmark.LEFT_SHOULDER),
            frame.landmark(PoseLandmark.RIGHT_SHOULDER),
        )
        if abs(tilt) > self.SHOULDER_ALIGNMENT_TOLERANCE:
            logger.debug(f"[FORM] situp shoulder tilt {tilt:.3f}")
            return [self.SHOULDERS_NOT_LEVEL]
        return []

    def _reset_exercise_trackers(self) -> None:
        self._arm_frames = 0
        self._uncrossed_frames = 0

    def arms_crossed(self, frame: FrameBundle) -> Optional[bool]:
        """Whether the arms are folded over the chest; None if elbows or wrists are not visible enough."""
        arms = get_landmarks(frame, self.ARM_LANDMARKS, self.REQUIRED_VISIBILITY)
        if arms is None:
            return None
        left_elbow, right_elbow, left_wrist, right_wrist = arms
        left_shoulder = frame.landmark(PoseLandmark.LEFT_SHOULDER)
        right_shoulder = frame.landmark(PoseLandmark.RIGHT_SHOULDER)
        wrists_on_shoulders = (
            calculate_distance(left_wrist, right_shoulder) < self.ARMS_CROSSED_THRESHOLD
            or calculate_distance(right_wrist, left_shoulder) < self.ARMS_CROSSED_THRESHOLD
        )
        elbows_tucked = (
            calculate_distance(left_elbow, left_shoulder) < self.MAX_ELBOW_REACH
            and calculate_distance(right_elbow, right_shoulder) < self.MAX_ELBOW_REACH
        )
        return wrists_on_shoulders and elbows_tucked

    def _on_phase_entered(self, phase: ExerciseState) -> None:
        # The rep was judged just before the curl is confirmed
        if phase is ExerciseState.UP:
            self._reset_exercise_trackers()

    def _track_frame(self, frame: FrameBundle, angle: float, zone: Optional[ExerciseState]) -> None:
        crossed = self.arms_crossed(frame)
        if crossed is None:
            return
        self._arm_frames += 1
        if not crossed:
            self._uncrossed_frames += 1

    def _rep_form_issues(self) -> List[str]:
        if self._uncrossed_frames * 2 > self._arm_frames:
            logger.debug(f"[FORM] situp arms uncrossed on {self._uncrossed_frames}/{self._arm_frames} frames")
            return [self.ARMS_NOT_CROSSED]
        return []
