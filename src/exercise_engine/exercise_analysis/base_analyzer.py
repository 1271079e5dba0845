import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..pose_detection.landmarks import FrameBundle, PoseLandmark
from .config_utils import setup_logger
from .pose_utils import calculate_angle, check_landmark_visibility, get_landmarks, get_visibilities, is_degenerate

logger = setup_logger("ExerciseAnalyzer")

_THRESHOLD_EPSILON = 1e-6  # Angles computed from landmarks land a few ULPs off an exact threshold


# --- Analyzer Registry ---
ANALYZER_REGISTRY: Dict[str, type] = {}  # Maps normalized exercise names and aliases to analyzer classes.


def normalize_exercise_type(exercise_type: str) -> str:
    """Drop case and separators, so "Push-Ups" and "push_ups" both become "pushups"."""
    return "".join(ch for ch in exercise_type.strip().lower() if ch not in " _-")


def register_analyzer(*exercise_types: str):  # Decorator adding an analyzer class to the registry under each name.
    def decorator(cls):
        for exercise_type in exercise_types:
            ANALYZER_REGISTRY[normalize_exercise_type(exercise_type)] = cls
        return cls
    return decorator


class ExerciseState(Enum):  # Discrete classification of the athlete's position in the current frame.
    """Exercise states shared by every analyzer."""
    IDLE = "idle"            # Constructed or reset, no session running
    STARTING = "starting"    # Session started, no Down/Up position seen yet
    DOWN = "down"
    UP = "up"
    FINISHED = "finished"    # Session stopped
    INVALID = "invalid"      # Required landmarks not visible enough this frame


@dataclass(frozen=True)
class AnalysisResult:
    """Per-frame snapshot returned by analyze()."""
    rep_count: int
    feedback: Optional[str]
    state: ExerciseState
    confidence: float  # Pose-detection confidence for the frame, 0..1
    form_score: int    # 0..100
    angle: Optional[float] = None  # Primary joint angle used this frame, if any


class BaseExerciseAnalyzer(ABC):  # Abstract base class for the per-exercise state machines.
    """
    Base class for threshold-driven rep counters.

    Subclasses declare their landmarks, angle joints and thresholds as class
    constants. Each frame goes through the same pipeline: visibility gate,
    primary angle, threshold classification, hysteresis-guarded rep counting,
    form checks and scoring. Whether "Up" means an open or a closed joint is
    inferred from the thresholds: UP_THRESHOLD > DOWN_THRESHOLD means Up is the
    extended position.
    """

    EXERCISE_NAME = ""
    REQUIRED_LANDMARKS: Tuple[PoseLandmark, ...] = ()
    ANGLE_JOINTS: Tuple[Tuple[PoseLandmark, PoseLandmark, PoseLandmark], ...] = ()  # (first, vertex, last) per side

    REQUIRED_VISIBILITY = 0.5
    DOWN_THRESHOLD = 90.0
    UP_THRESHOLD = 160.0
    IDEAL_DOWN_ANGLE = 80.0  # Full range of motion for scoring, at or beyond DOWN_THRESHOLD
    REP_START_MARGIN = 15.0  # Degrees outside a phase before the move counts as a rep attempt
    MIN_PHASE_FRAMES = 2     # Consecutive frames inside a zone before the phase changes
    ROM_PENALTY_PER_DEGREE = 1.5
    MAX_ROM_PENALTY = 40
    ISSUE_PENALTY = 10
    MAX_FORM_ISSUES = 5

    SETUP_HINT: Optional[str] = None
    PARTIAL_REP_MESSAGES: Dict[ExerciseState, str] = {}  # Keyed by the phase the athlete fell back into; {down}/{up} expand to thresholds

    TUNABLE_SETTINGS: Tuple[str, ...] = (
        "required_visibility",
        "down_threshold",
        "up_threshold",
        "ideal_down_angle",
        "rep_start_margin",
        "min_phase_frames",
        "rom_penalty_per_degree",
        "max_rom_penalty",
        "issue_penalty",
    )

    def __init__(self, settings: Optional[Mapping[str, Any]] = None):
        """
        Initialize the analyzer.

        Args:
            settings: Optional overrides keyed by lower-case constant name, e.g. {"down_threshold": 85}
        Raises:
            ValueError: If a setting is unknown, non-numeric or leaves the thresholds unusable
        """
        if settings:
            self._apply_settings(settings)
        if math.isclose(self.UP_THRESHOLD, self.DOWN_THRESHOLD):
            raise ValueError(f"{self.EXERCISE_NAME} up and down thresholds must differ")
        if self.MIN_PHASE_FRAMES < 1:
            raise ValueError(f"{self.EXERCISE_NAME} min_phase_frames must be at least 1")
        self._up_is_extended = self.UP_THRESHOLD > self.DOWN_THRESHOLD
        self.reset()

    def _apply_settings(self, settings: Mapping[str, Any]) -> None:
        for key, value in settings.items():
            if key not in self.TUNABLE_SETTINGS:
                raise ValueError(f"Unknown {self.EXERCISE_NAME} setting: {key}")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Setting {key} for {self.EXERCISE_NAME} must be a number, got {value!r}")
            attr = key.upper()
            setattr(self, attr, type(getattr(self, attr))(value))

    # --- Session lifecycle ---
    def reset(self) -> None:
        """Clear counters, trackers and issues; return to Idle."""
        self._state = ExerciseState.IDLE
        self._settled_state: Optional[ExerciseState] = None
        self._rep_count = 0
        self._phase_extreme: Optional[float] = None
        self._excursion: Optional[float] = None
        self._attempt_started = False
        self._clear_pending()
        self._form_issues: List[str] = []
        self._last_rep_score: Optional[int] = None
        self._score_total = 0
        self._last_confidence = 0.0
        self._last_angle: Optional[float] = None
        self._reset_exercise_trackers()

    def start(self) -> None:
        self.reset()
        self._state = ExerciseState.STARTING
        logger.info(f"[SESSION] {self.EXERCISE_NAME} analysis started")

    def stop(self) -> None:
        self._state = ExerciseState.FINISHED
        logger.info(f"[SESSION] {self.EXERCISE_NAME} analysis finished with {self._rep_count} reps")

    # --- Read-only session info ---
    @property
    def state(self) -> ExerciseState:
        return self._state

    @property
    def rep_count(self) -> int:
        return self._rep_count

    @property
    def form_issues(self) -> Tuple[str, ...]:
        return tuple(self._form_issues)

    @property
    def last_rep_score(self) -> Optional[int]:
        return self._last_rep_score

    @property
    def average_form_score(self) -> Optional[float]:
        """Mean form score of the completed reps, None before the first rep."""
        if self._rep_count == 0:
            return None
        return self._score_total / self._rep_count

    def get_exercise_name(self) -> str:
        return self.EXERCISE_NAME

    def get_required_landmarks(self) -> Tuple[PoseLandmark, ...]:
        return self.REQUIRED_LANDMARKS

    # --- Exercise-specific hooks ---
    @abstractmethod
    def check_form(self, frame: FrameBundle) -> List[str]:
        """
        Run the per-frame alignment checks.

        Args:
            frame: A frame that already passed the visibility gate
        Returns:
            List of human-readable issues found in this frame
        """
        pass

    def _rep_form_issues(self) -> List[str]:
        """Issues judged once per rep, when the rep completes."""
        return []

    def _track_frame(self, frame: FrameBundle, angle: float, zone: Optional[ExerciseState]) -> None:
        pass

    def _on_phase_entered(self, phase: ExerciseState) -> None:
        pass

    def _reset_exercise_trackers(self) -> None:
        pass

    # --- Classification ---
    def is_valid_pose(self, frame: FrameBundle) -> bool:
        """Whether all required landmarks are visible enough to analyze the frame."""
        return check_landmark_visibility(frame, self.REQUIRED_LANDMARKS, self.REQUIRED_VISIBILITY)

    def determine_state(self, angle: float) -> ExerciseState:
        """
        Classify a primary angle.

        Angles at or beyond a threshold map to that phase; the band between the
        thresholds keeps the last Down/Up phase (Starting if none was seen yet).
        """
        zone = self._classify(angle)
        if zone is not None:
            return zone
        return self._settled_state or ExerciseState.STARTING

    def _classify(self, angle: float) -> Optional[ExerciseState]:
        if self._distance_outside(angle, ExerciseState.DOWN) <= _THRESHOLD_EPSILON:
            return ExerciseState.DOWN
        if self._distance_outside(angle, ExerciseState.UP) <= _THRESHOLD_EPSILON:
            return ExerciseState.UP
        return None

    def _distance_outside(self, angle: float, phase: ExerciseState, threshold: Optional[float] = None) -> float:
        # Degrees by which `angle` falls short of the phase's threshold; <= 0 means inside the phase.
        if threshold is None:
            threshold = self.UP_THRESHOLD if phase is ExerciseState.UP else self.DOWN_THRESHOLD
        up_direction = 1 if self._up_is_extended else -1
        direction = up_direction if phase is ExerciseState.UP else -up_direction
        return (threshold - angle) * direction

    def calculate_primary_angle(self, frame: FrameBundle) -> Optional[float]:
        """Average of the usable per-side angles, None if no side gives a reliable angle."""
        side_angles = self._side_angles(frame)
        if not side_angles:
            return None
        return float(np.mean(side_angles))

    def _side_angles(self, frame: FrameBundle) -> Optional[List[float]]:
        # None when no side is visible; an empty list when visible sides are all degenerate.
        visible_sides = 0
        angles = []
        for joints in self.ANGLE_JOINTS:
            points = get_landmarks(frame, joints, self.REQUIRED_VISIBILITY)
            if points is None:
                continue
            visible_sides += 1
            if is_degenerate(*points):
                continue
            angles.append(calculate_angle(*points))
        if visible_sides == 0:
            return None
        return angles

    # --- Scoring ---
    def calculate_form_score(self, extremal_angle: Optional[float], issues: Sequence[str]) -> int:
        """
        Score a repetition from 0 to 100.

        Args:
            extremal_angle: Deepest angle of the Down phase, or None to skip the range-of-motion term
            issues: Form issues found during the repetition
        Returns:
            Integer score clamped to [0, 100]
        """
        score = 100
        if extremal_angle is not None and math.isfinite(extremal_angle):
            deficit = max(0.0, self._distance_outside(extremal_angle, ExerciseState.DOWN, self.IDEAL_DOWN_ANGLE))
            score -= min(self.MAX_ROM_PENALTY, int(deficit * self.ROM_PENALTY_PER_DEGREE))
        score -= self.ISSUE_PENALTY * len(issues)
        return int(max(0, min(100, score)))

    def _current_form_score(self) -> int:
        if self._form_issues:
            return self.calculate_form_score(None, self._form_issues)
        if self._last_rep_score is not None:
            return self._last_rep_score
        return 100

    # --- Frame analysis ---
    def analyze(self, frame: FrameBundle) -> AnalysisResult:
        """
        Analyze one frame and advance the state machine.

        Never raises: unusable frames come back as ExerciseState.INVALID.
        """
        if self._state is ExerciseState.FINISHED:
            return self._snapshot()
        try:
            return self._analyze(frame)
        except Exception as e:
            logger.exception(f"Unexpected error while analyzing {self.EXERCISE_NAME} frame: {e}")
            return self._invalid_result(0.0)

    def _analyze(self, frame: FrameBundle) -> AnalysisResult:
        if self._state is ExerciseState.IDLE:
            logger.debug(f"{self.EXERCISE_NAME} frame received before start(), starting implicitly")
            self._state = ExerciseState.STARTING

        if not self.is_valid_pose(frame):
            return self._invalid_result(min(get_visibilities(frame, self.REQUIRED_LANDMARKS), default=0.0))
        side_angles = self._side_angles(frame)
        if side_angles is None:
            angle_landmarks = sorted(set(self.REQUIRED_LANDMARKS).union(*self.ANGLE_JOINTS))
            return self._invalid_result(min(get_visibilities(frame, angle_landmarks), default=0.0))

        if self._state is ExerciseState.INVALID:
            logger.debug(f"{self.EXERCISE_NAME} pose visible again, resuming")
        self._state = self._settled_state or ExerciseState.STARTING
        confidence = float(np.mean(get_visibilities(frame, self.REQUIRED_LANDMARKS))) if self.REQUIRED_LANDMARKS else 1.0

        messages = self.check_form(frame)
        for issue in messages:
            self._record_issue(issue)

        if not side_angles:
            # Degenerate geometry: no reliable angle this frame, hold the state.
            return self._result(messages, confidence, None)

        angle = float(np.mean(side_angles))
        zone = self._classify(angle)
        messages = messages + self._advance(angle, zone)
        self._track_frame(frame, angle, zone)
        self._state = self._settled_state or ExerciseState.STARTING
        return self._result(messages, confidence, angle)

    def _advance(self, angle: float, zone: Optional[ExerciseState]) -> List[str]:
        settled = self._settled_state
        if zone is None or zone is settled:
            self._clear_pending()

        if settled is None:
            if zone is not None and self._confirm_zone(zone, angle):
                self._enter_phase(zone, self._pending_extreme)
            return []

        if zone is None:
            self._track_excursion(angle, settled)
            return []

        if zone is settled:
            messages = []
            if self._attempt_started:
                logger.debug(f"[PARTIAL] {self.EXERCISE_NAME} turned back at {self._excursion:.1f} deg")
                message = self.PARTIAL_REP_MESSAGES.get(settled)
                if message:
                    message = message.format(down=self.DOWN_THRESHOLD, up=self.UP_THRESHOLD)
                    self._record_issue(message)
                    messages.append(message)
            self._attempt_started = False
            self._excursion = None
            if self._distance_outside(angle, settled) < self._distance_outside(self._phase_extreme, settled):
                self._phase_extreme = angle
            return messages

        # The opposite zone: a single frame there is noise until it has been held.
        self._track_excursion(angle, settled)
        if not self._confirm_zone(zone, angle):
            return []
        messages = []
        if settled is ExerciseState.DOWN and zone is ExerciseState.UP:
            messages = self._complete_rep()
        self._enter_phase(zone, self._pending_extreme)
        return messages

    def _track_excursion(self, angle: float, settled: ExerciseState) -> None:
        if self._excursion is None or self._distance_outside(angle, settled) > self._distance_outside(self._excursion, settled):
            self._excursion = angle
        if not self._attempt_started and self._distance_outside(angle, settled) >= self.REP_START_MARGIN:
            self._attempt_started = True

    def _confirm_zone(self, zone: ExerciseState, angle: float) -> bool:
        """Count one more frame inside `zone`; True once it has been held for MIN_PHASE_FRAMES."""
        if zone is not self._pending_zone:
            self._pending_zone = zone
            self._pending_frames = 0
            self._pending_extreme = angle
        self._pending_frames += 1
        if self._distance_outside(angle, zone) < self._distance_outside(self._pending_extreme, zone):
            self._pending_extreme = angle
        return self._pending_frames >= self.MIN_PHASE_FRAMES

    def _clear_pending(self) -> None:
        self._pending_zone: Optional[ExerciseState] = None
        self._pending_frames = 0
        self._pending_extreme: Optional[float] = None

    def _enter_phase(self, phase: ExerciseState, angle: float) -> None:
        self._settled_state = phase
        self._phase_extreme = angle
        self._excursion = None
        self._attempt_started = False
        self._clear_pending()
        self._on_phase_entered(phase)

    def _complete_rep(self) -> List[str]:
        issues = list(self._form_issues)
        for issue in self._rep_form_issues():
            if issue not in issues:
                issues.append(issue)
        score = self.calculate_form_score(self._phase_extreme, issues)
        self._rep_count += 1
        self._last_rep_score = score
        self._score_total += score
        self._form_issues = []
        logger.info(
            f"[REP] {self.EXERCISE_NAME} rep {self._rep_count} completed "
            f"(extreme={self._phase_extreme:.1f} deg, score={score}, issues={len(issues)})"
        )
        return issues

    def _record_issue(self, issue: str) -> None:
        if issue not in self._form_issues and len(self._form_issues) < self.MAX_FORM_ISSUES:
            self._form_issues.append(issue)

    # --- Results ---
    def _compose_feedback(self, messages: Sequence[str]) -> Optional[str]:
        unique = list(dict.fromkeys(messages))
        if unique:
            return ". ".join(unique)
        if self._state is ExerciseState.STARTING:
            return self.SETUP_HINT
        return None

    def _result(self, messages: Sequence[str], confidence: float, angle: Optional[float]) -> AnalysisResult:
        self._last_confidence = _clamp_unit(confidence)
        self._last_angle = angle
        return AnalysisResult(
            rep_count=self._rep_count,
            feedback=self._compose_feedback(messages),
            state=self._state,
            confidence=self._last_confidence,
            form_score=self._current_form_score(),
            angle=angle,
        )

    def _invalid_result(self, confidence: float) -> AnalysisResult:
        self._state = ExerciseState.INVALID
        self._clear_pending()
        self._last_confidence = _clamp_unit(confidence)
        self._last_angle = None
        logger.debug(f"{self.EXERCISE_NAME} pose not visible enough (confidence={self._last_confidence:.2f})")
        return AnalysisResult(
            rep_count=self._rep_count,
            feedback=None,
            state=ExerciseState.INVALID,
            confidence=self._last_confidence,
            form_score=0,
        )

    def _snapshot(self) -> AnalysisResult:
        return AnalysisResult(
            rep_count=self._rep_count,
            feedback=None,
            state=self._state,
            confidence=self._last_confidence,
            form_score=self._current_form_score(),
            angle=self._last_angle,
        )


def _clamp_unit(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return float(min(1.0, max(0.0, value)))
