"""Behaviour shared by every analyzer: lifecycle, visibility gate, recovery and determinism."""

import dataclasses

import pytest

from exercise_engine.exercise_analysis import (
    ExerciseState,
    PullupAnalyzer,
    PushupAnalyzer,
    SitupAnalyzer,
)
from exercise_engine.pose_detection.landmarks import FrameBundle, Landmark, PoseLandmark

from frame_factory import angle_sequence, frames_for, pullup_frame, pushup_frame, run, situp_frame

ANALYZERS = [
    (PushupAnalyzer, pushup_frame, (170.0, 70.0, 170.0)),
    (PullupAnalyzer, pullup_frame, (170.0, 70.0, 170.0)),
    (SitupAnalyzer, situp_frame, (140.0, 60.0, 140.0)),
]


def _started(analyzer_cls):
    analyzer = analyzer_cls()
    analyzer.start()
    return analyzer


# ---------------------------------------------------------------------------
# 1. Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    @pytest.mark.parametrize("analyzer_cls, builder, waypoints", ANALYZERS)
    def test_constructed_idle_and_started(self, analyzer_cls, builder, waypoints):
        analyzer = analyzer_cls()
        assert analyzer.state is ExerciseState.IDLE
        assert analyzer.rep_count == 0
        analyzer.start()
        assert analyzer.state is ExerciseState.STARTING

    def test_first_phase_needs_to_be_held(self):
        analyzer = _started(PullupAnalyzer)
        results = run(analyzer, frames_for(pullup_frame, [170.0, 170.0]))
        assert [r.state for r in results] == [ExerciseState.STARTING, ExerciseState.UP]

    @pytest.mark.parametrize("analyzer_cls, builder, waypoints", ANALYZERS)
    def test_stop_freezes_counting(self, analyzer_cls, builder, waypoints):
        analyzer = _started(analyzer_cls)
        frames = frames_for(builder, angle_sequence(*waypoints))
        run(analyzer, frames)
        analyzer.stop()
        results = run(analyzer, frames)
        assert all(r.state is ExerciseState.FINISHED for r in results)
        assert all(r.rep_count == 1 for r in results)

    def test_analyze_without_start_still_counts(self):
        analyzer = PushupAnalyzer()
        results = run(analyzer, frames_for(pushup_frame, angle_sequence(170.0, 70.0, 170.0)))
        assert results[-1].rep_count == 1

    def test_start_begins_a_fresh_session(self):
        analyzer = _started(PushupAnalyzer)
        run(analyzer, frames_for(pushup_frame, angle_sequence(170.0, 70.0, 170.0)))
        analyzer.stop()
        analyzer.start()
        assert analyzer.rep_count == 0
        assert analyzer.state is ExerciseState.STARTING

    @pytest.mark.parametrize("analyzer_cls, builder, waypoints", ANALYZERS)
    def test_reset_matches_fresh_instance(self, analyzer_cls, builder, waypoints):
        used = _started(analyzer_cls)
        frames = frames_for(builder, angle_sequence(*waypoints, *waypoints[1:]))
        run(used, frames)
        used.analyze(builder(waypoints[0], visibility=0.1))
        used.reset()
        assert used.rep_count == 0
        assert used.state is ExerciseState.IDLE
        assert used.form_issues == ()
        assert used.last_rep_score is None

        fresh = analyzer_cls()
        assert vars(used) == vars(fresh)
        assert run(used, frames) == run(fresh, frames)

    def test_reset_is_idempotent(self):
        analyzer = _started(PushupAnalyzer)
        run(analyzer, frames_for(pushup_frame, angle_sequence(170.0, 70.0, 170.0), shoulder_tilt=0.3))
        analyzer.reset()
        snapshot = dict(vars(analyzer))
        analyzer.reset()
        assert vars(analyzer) == snapshot


# ---------------------------------------------------------------------------
# 2. Visibility gate and recovery
# ---------------------------------------------------------------------------

class TestVisibilityGate:
    @pytest.mark.parametrize("analyzer_cls, builder, waypoints", ANALYZERS)
    def test_low_visibility_is_always_invalid(self, analyzer_cls, builder, waypoints):
        analyzer = _started(analyzer_cls)
        results = run(analyzer, frames_for(builder, angle_sequence(*waypoints), visibility=0.2))
        assert all(r.state is ExerciseState.INVALID for r in results)
        assert all(r.rep_count == 0 for r in results)
        assert all(r.feedback is None for r in results)
        assert all(r.confidence == pytest.approx(0.2) for r in results)

    def test_confidence_is_lowest_required_visibility(self):
        analyzer = _started(PushupAnalyzer)
        frame = pushup_frame(170.0, overrides={PoseLandmark.LEFT_WRIST: 0.3, PoseLandmark.RIGHT_HIP: 0.4})
        result = analyzer.analyze(frame)
        assert result.state is ExerciseState.INVALID
        assert result.confidence == pytest.approx(0.3)
        assert result.form_score == 0

    def test_irrelevant_landmarks_do_not_matter(self):
        analyzer = _started(PushupAnalyzer)
        frame = pushup_frame(170.0, overrides={PoseLandmark.LEFT_ANKLE: 0.0, PoseLandmark.NOSE: 0.0})
        assert run(analyzer, [frame, frame])[-1].state is ExerciseState.UP

    def test_is_valid_pose_does_not_change_state(self):
        analyzer = _started(PushupAnalyzer)
        assert not analyzer.is_valid_pose(pushup_frame(170.0, visibility=0.1))
        assert analyzer.is_valid_pose(pushup_frame(170.0))
        assert analyzer.state is ExerciseState.STARTING

    def test_recovers_to_last_phase(self):
        analyzer = _started(PushupAnalyzer)
        run(analyzer, frames_for(pushup_frame, angle_sequence(170.0, 70.0)))
        assert analyzer.analyze(pushup_frame(70.0, visibility=0.1)).state is ExerciseState.INVALID
        assert analyzer.analyze(pushup_frame(120.0)).state is ExerciseState.DOWN

    def test_occlusion_mid_rep_keeps_the_cycle(self):
        analyzer = _started(PushupAnalyzer)
        run(analyzer, frames_for(pushup_frame, angle_sequence(170.0, 70.0)))
        run(analyzer, frames_for(pushup_frame, [90.0, 120.0, 150.0], visibility=0.0))
        results = run(analyzer, frames_for(pushup_frame, [170.0, 170.0]))
        assert [r.rep_count for r in results] == [0, 1]

    def test_invalid_before_any_phase_recovers_to_starting(self):
        analyzer = _started(PushupAnalyzer)
        analyzer.analyze(pushup_frame(120.0, visibility=0.0))
        assert analyzer.analyze(pushup_frame(120.0)).state is ExerciseState.STARTING


# ---------------------------------------------------------------------------
# 3. Malformed input
# ---------------------------------------------------------------------------

class TestMalformedFrames:
    def test_empty_frame(self):
        result = _started(PushupAnalyzer).analyze(FrameBundle(landmarks=()))
        assert result.state is ExerciseState.INVALID
        assert result.confidence == 0.0

    def test_nan_landmark(self):
        frame = pushup_frame(170.0)
        landmarks = list(frame.landmarks)
        landmarks[PoseLandmark.LEFT_ELBOW] = Landmark(float("nan"), 0.5, 0.0, 0.99)
        result = _started(PushupAnalyzer).analyze(dataclasses.replace(frame, landmarks=tuple(landmarks)))
        assert result.state is ExerciseState.INVALID

    def test_out_of_range_visibility_is_clamped(self):
        result = _started(PushupAnalyzer).analyze(pushup_frame(170.0, visibility=3.0))
        assert result.confidence == 1.0

    def test_degenerate_geometry_holds_state(self):
        analyzer = _started(PushupAnalyzer)
        run(analyzer, frames_for(pushup_frame, angle_sequence(170.0, 70.0)))
        frame = pushup_frame(70.0)
        landmarks = list(frame.landmarks)
        for side in ("LEFT", "RIGHT"):
            landmarks[PoseLandmark[f"{side}_WRIST"]] = landmarks[PoseLandmark[f"{side}_ELBOW"]]
        result = analyzer.analyze(dataclasses.replace(frame, landmarks=tuple(landmarks)))
        assert result.state is ExerciseState.DOWN
        assert result.angle is None
        assert result.rep_count == 0

    def test_errors_inside_checks_become_invalid(self, monkeypatch):
        analyzer = _started(PushupAnalyzer)

        def broken(frame):
            raise RuntimeError("boom")

        monkeypatch.setattr(analyzer, "check_form", broken)
        result = analyzer.analyze(pushup_frame(170.0))
        assert result.state is ExerciseState.INVALID
        assert result.rep_count == 0


# ---------------------------------------------------------------------------
# 4. Determinism and bounds
# ---------------------------------------------------------------------------

class TestDeterminism:
    @pytest.mark.parametrize("analyzer_cls, builder, waypoints", ANALYZERS)
    def test_same_frames_same_results(self, analyzer_cls, builder, waypoints):
        angles = angle_sequence(*waypoints, *waypoints[1:], step=3.0)
        frames = frames_for(builder, angles)
        first = _started(analyzer_cls)
        second = _started(analyzer_cls)
        first_results = run(first, frames)
        assert first_results == run(second, frames)
        first.reset()
        first.start()
        assert run(first, frames) == first_results

    @pytest.mark.parametrize("analyzer_cls, builder, waypoints", ANALYZERS)
    def test_scores_and_confidence_in_range(self, analyzer_cls, builder, waypoints):
        analyzer = _started(analyzer_cls)
        angles = angle_sequence(*waypoints, 100.0, *waypoints, step=13.0)
        results = run(analyzer, frames_for(builder, angles, visibility=0.7))
        results += run(analyzer, frames_for(builder, angles, visibility=0.05))
        for r in results:
            assert 0 <= r.form_score <= 100
            assert 0.0 <= r.confidence <= 1.0


# ---------------------------------------------------------------------------
# 5. Settings
# ---------------------------------------------------------------------------

class TestSettings:
    def test_override_is_per_instance(self):
        tuned = PushupAnalyzer(settings={"down_threshold": 95})
        assert tuned.DOWN_THRESHOLD == 95.0
        assert PushupAnalyzer().DOWN_THRESHOLD == 80.0

    def test_exercise_specific_setting(self):
        assert PullupAnalyzer(settings={"chin_over_bar_margin": 0.1}).CHIN_OVER_BAR_MARGIN == 0.1

    def test_unknown_setting(self):
        with pytest.raises(ValueError, match="Unknown pushup setting"):
            PushupAnalyzer(settings={"chin_over_bar_margin": 0.1})

    def test_non_numeric_setting(self):
        with pytest.raises(ValueError):
            SitupAnalyzer(settings={"up_threshold": "low"})

    def test_equal_thresholds_rejected(self):
        with pytest.raises(ValueError):
            PushupAnalyzer(settings={"down_threshold": 160, "up_threshold": 160})

    def test_phase_must_last_at_least_one_frame(self):
        with pytest.raises(ValueError, match="min_phase_frames"):
            SitupAnalyzer(settings={"min_phase_frames": 0})
