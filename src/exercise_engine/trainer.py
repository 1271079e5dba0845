from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .exercise_analysis.analyzer_factory import create_analyzer
from .exercise_analysis.apft_scoring import calculate_apft_score
from .exercise_analysis.base_analyzer import AnalysisResult, ExerciseState
from .exercise_analysis.config_utils import setup_logger
from .feedback.feedback_throttle import FeedbackThrottle
from .pose_detection.base_source import BaseLandmarkSource
from .pose_detection.landmarks import FrameBundle

logger = setup_logger("ExerciseTrainer")

MISSING_POSE_WARNING = "We can't see your full body. Please adjust your position or camera."


@dataclass(frozen=True)
class WorkoutSummary:
    """What a finished session reports to the workout history."""
    exercise: str
    rep_count: int
    duration_seconds: float
    completed_at: datetime
    average_form_score: Optional[float] = None
    apft_points: Optional[int] = None  # None for exercises without an APFT scale


class ExerciseTrainer:
    """Drives one analyzer over a stream of pose frames for a single workout session."""

    def __init__(
        self,
        exercise_type: str = "pushup",
        config_path: Optional[str] = None,
        settings: Optional[Mapping[str, Any]] = None,
        feedback_throttle: Optional[FeedbackThrottle] = None,
    ):
        """
        Initialize the trainer.

        Args:
            exercise_type: Exercise name or alias, e.g. "pushup" or "sit-ups"
            config_path: Optional JSON config with per-exercise settings
            settings: Optional overrides for the analyzer
            feedback_throttle: Optional throttle; a default one is created otherwise
        """
        self.exercise_analyzer = create_analyzer(exercise_type, config_path=config_path, settings=settings)
        self.feedback_throttle = feedback_throttle or FeedbackThrottle()

        # Recent results for the presentation layer
        self.result_buffer = deque(maxlen=30)  # ~1 second at 30fps

        self.is_running = False
        self.missing_landmarks_counter = 0
        self.missing_landmarks_threshold = 30  # ~1 second at 30fps
        self._first_timestamp_ms: Optional[int] = None
        self._last_timestamp_ms: Optional[int] = None
        self._summary: Optional[WorkoutSummary] = None

    def begin(self) -> None:
        """Start a new session without consuming a source (for callers that push frames themselves)."""
        self.exercise_analyzer.start()
        self.feedback_throttle.reset()
        self.result_buffer.clear()
        self.missing_landmarks_counter = 0
        self._first_timestamp_ms = None
        self._last_timestamp_ms = None
        self._summary = None
        self.is_running = True

    def start(self, source: BaseLandmarkSource) -> WorkoutSummary:
        """
        Run a full session over every frame of `source`.

        Args:
            source: Landmark source yielding frames in capture order

        Returns:
            Summary of the finished session
        """
        self.begin()
        try:
            for frame in source.frames():
                if not self.is_running:
                    break
                self.process_frame(frame)
        finally:
            summary = self.stop()
        return summary

    def stop(self) -> WorkoutSummary:
        """Finish the session and build its summary. Calling it twice returns the same summary."""
        if self._summary is not None:
            return self._summary
        self.is_running = False
        self.exercise_analyzer.stop()
        duration_ms = 0
        if self._first_timestamp_ms is not None:
            duration_ms = max(0, self._last_timestamp_ms - self._first_timestamp_ms)
        exercise = self.exercise_analyzer.get_exercise_name()
        rep_count = self.exercise_analyzer.rep_count
        self._summary = WorkoutSummary(
            exercise=exercise,
            rep_count=rep_count,
            duration_seconds=duration_ms / 1000.0,
            completed_at=datetime.now(timezone.utc),
            average_form_score=self.exercise_analyzer.average_form_score,
            apft_points=calculate_apft_score(exercise, rep_count),
        )
        logger.info(
            f"[SESSION] {self._summary.exercise}: {self._summary.rep_count} reps in "
            f"{self._summary.duration_seconds:.1f}s"
        )
        return self._summary

    def process_frame(self, frame: FrameBundle) -> Dict[str, Any]:
        """
        Process a single frame.

        Args:
            frame: Pose frame

        Returns:
            Dictionary with the analysis result, an optional announcement and an optional warning
        """
        if self._first_timestamp_ms is None:
            self._first_timestamp_ms = frame.timestamp_ms
        self._last_timestamp_ms = frame.timestamp_ms

        result: AnalysisResult = self.exercise_analyzer.analyze(frame)
        self.result_buffer.append(result)

        warning = None
        if result.state is ExerciseState.INVALID:
            self.missing_landmarks_counter += 1
            if self.missing_landmarks_counter == self.missing_landmarks_threshold:
                logger.warning(f"[POSE] No usable pose for {self.missing_landmarks_counter} frames")
            if self.missing_landmarks_counter >= self.missing_landmarks_threshold:
                warning = MISSING_POSE_WARNING
        else:
            self.missing_landmarks_counter = 0

        announcement = self.feedback_throttle.generate_feedback(result, frame.timestamp_ms)
        return {
            "result": result,
            "announcement": announcement,
            "warning": warning,
        }
