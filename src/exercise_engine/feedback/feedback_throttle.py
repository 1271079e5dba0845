from typing import Optional

from ..exercise_analysis.base_analyzer import AnalysisResult, ExerciseState


class FeedbackThrottle:
    """Turns the per-frame feedback stream into occasional announcements for the user."""

    def __init__(self, cooldown_ms: int = 4000, debounce_frames: int = 2):
        """
        Initialize the throttle.

        Args:
            cooldown_ms: Minimum time before the same message is announced again
            debounce_frames: Consecutive frames a message must persist before it is announced
        """
        self.cooldown_ms = cooldown_ms
        self.debounce_frames = debounce_frames
        self.reset()

    def reset(self) -> None:
        self._last_rep_count = 0
        self._last_message: Optional[str] = None
        self._last_announcement_ms: Optional[int] = None
        self._pending_message: Optional[str] = None
        self._persist_count = 0

    def generate_feedback(self, result: AnalysisResult, timestamp_ms: int) -> Optional[str]:
        """
        Decide whether this frame should produce an announcement.

        Args:
            result: Analyzer output for the frame
            timestamp_ms: Capture time of the frame
        Returns:
            Message to announce, or None
        """
        if result.rep_count < self._last_rep_count:
            # The analyzer was reset underneath us.
            self.reset()
        if result.rep_count > self._last_rep_count:
            self._last_rep_count = result.rep_count
            message = f"Rep {result.rep_count} complete"
            if result.feedback and result.state is not ExerciseState.INVALID:
                # Form issues of the finished rep only surface on this frame
                message = f"{message}. {result.feedback}"
            return self._announce(message, timestamp_ms)

        feedback = result.feedback
        if result.state is ExerciseState.INVALID or not feedback:
            self._pending_message = None
            self._persist_count = 0
            return None

        # Debounce: only announce a message that persists for several frames
        if feedback == self._pending_message:
            self._persist_count += 1
        else:
            self._pending_message = feedback
            self._persist_count = 1
        if self._persist_count < self.debounce_frames:
            return None

        if feedback == self._last_message and self._last_announcement_ms is not None \
                and timestamp_ms - self._last_announcement_ms < self.cooldown_ms:
            return None
        return self._announce(feedback, timestamp_ms)

    def _announce(self, message: str, timestamp_ms: int) -> str:
        self._last_message = message
        self._last_announcement_ms = timestamp_ms
        return message
