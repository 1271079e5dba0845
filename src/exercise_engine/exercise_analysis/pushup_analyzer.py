from typing import List

from ..pose_detection.landmarks import FrameBundle, PoseLandmark
from .base_analyzer import BaseExerciseAnalyzer, ExerciseState, register_analyzer
from .config_utils import setup_logger
from .pose_utils import is_close_to, midpoint, vertical_alignment

logger = setup_logger("PushupAnalyzer")


@register_analyzer("pushup", "pushups")
class PushupAnalyzer(BaseExerciseAnalyzer):
    """
    Push-up counter driven by the elbow angle.

    Up is the plank with straight arms (elbow >= 160 deg), Down is the bottom
    position (elbow <= 80 deg). A rep is counted when the athlete pushes back
    up after reaching the bottom. Every frame is also checked for level
    shoulders and a straight body line between shoulders and hips. An elbow
    angle that jumps by more than MAX_ANGLE_CHANGE_PER_FRAME between
    consecutive frames is flagged as uncontrolled.
    """

    EXERCISE_NAME = "pushup"
    REQUIRED_LANDMARKS = (
        PoseLandmark.LEFT_SHOULDER, PoseLandmark.RIGHT_SHOULDER,
        PoseLandmark.LEFT_ELBOW, PoseLandmark.RIGHT_ELBOW,
        PoseLandmark.LEFT_WRIST, PoseLandmark.RIGHT_WRIST,
        PoseLandmark.LEFT_HIP, PoseLandmark.RIGHT_HIP,
    )
    ANGLE_JOINTS = (
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_ELBOW, PoseLandmark.LEFT_WRIST),
        (PoseLandmark.RIGHT_SHOULDER, PoseLandmark.RIGHT_ELBOW, PoseLandmark.RIGHT_WRIST),
    )

    REQUIRED_VISIBILITY = 0.5
    DOWN_THRESHOLD = 80.0
    UP_THRESHOLD = 160.0
    IDEAL_DOWN_ANGLE = 70.0
    SHOULDER_ALIGNMENT_TOLERANCE = 0.15
    HIP_SAG_TOLERANCE = 0.08   # Hips below the shoulder line
    HIP_PIKE_TOLERANCE = 0.12  # Hips above the shoulder line
    MAX_ANGLE_CHANGE_PER_FRAME = 30.0  # Larger elbow swings between frames read as jerky

    TUNABLE_SETTINGS = BaseExerciseAnalyzer.TUNABLE_SETTINGS + (
        "shoulder_alignment_tolerance",
        "hip_sag_tolerance",
        "hip_pike_tolerance",
        "max_angle_change_per_frame",
    )

    SETUP_HINT = "Get into plank position with arms extended"
    PARTIAL_REP_MESSAGES = {
        ExerciseState.UP: "Go deeper, bend your elbows to {down:.0f}°",
        ExerciseState.DOWN: "Push all the way up until your arms are straight",
    }
    SHOULDERS_NOT_LEVEL = "Keep shoulders level"
    HIPS_SAGGING = "Keep your core tight, hips are sagging"
    HIPS_PIKED = "Lower your hips in line with your body"
    MOVE_SLOWER = "Keep movements slow and controlled"

    def check_form(self, frame: FrameBundle) -> List[str]:
        issues = []
        left_shoulder = frame.landmark(PoseLandmark.LEFT_SHOULDER)
        right_shoulder = frame.landmark(PoseLandmark.RIGHT_SHOULDER)
        if not is_close_to(vertical_alignment(left_shoulder, right_shoulder), 0.0, self.SHOULDER_ALIGNMENT_TOLERANCE):
            issues.append(self.SHOULDERS_NOT_LEVEL)

        shoulders = midpoint(left_shoulder, right_shoulder)
        hips = midpoint(frame.landmark(PoseLandmark.LEFT_HIP), frame.landmark(PoseLandmark.RIGHT_HIP))
        hip_drop = vertical_alignment(hips, shoulders)
        if hip_drop > self.HIP_SAG_TOLERANCE:
            issues.append(self.HIPS_SAGGING)
        elif hip_drop < -self.HIP_PIKE_TOLERANCE:
            issues.append(self.HIPS_PIKED)

        # _last_angle still holds the previous valid frame's angle here
        angle = self.calculate_primary_angle(frame)
        if angle is not None and self._last_angle is not None \
                and abs(angle - self._last_angle) > self.MAX_ANGLE_CHANGE_PER_FRAME:
            issues.append(self.MOVE_SLOWER)
        if issues:
            logger.debug(f"[FORM] pushup issues: {issues} (hip drop={hip_drop:.3f})")
        return issues
