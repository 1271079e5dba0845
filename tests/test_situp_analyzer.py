"""Sit-up counting on the hip angle, where the thresholds run the other way."""

import pytest

from exercise_engine.exercise_analysis import ExerciseState, SitupAnalyzer
from exercise_engine.pose_detection.landmarks import PoseLandmark

from frame_factory import angle_sequence, cues, frames_for, run, situp_frame


def _started():
    analyzer = SitupAnalyzer()
    analyzer.start()
    return analyzer


class TestSitupCounting:
    def test_open_hip_is_down_closed_hip_is_up(self):
        analyzer = SitupAnalyzer()
        assert analyzer.determine_state(110.0) is ExerciseState.DOWN
        assert analyzer.determine_state(150.0) is ExerciseState.DOWN
        assert analyzer.determine_state(70.0) is ExerciseState.UP
        assert analyzer.determine_state(90.0) is ExerciseState.STARTING

    def test_rep_counted_when_curling_up(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(140.0, 60.0)))
        assert results[-1].rep_count == 1
        assert results[-1].state is ExerciseState.UP

    def test_lying_back_again_does_not_count(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(140.0, 60.0, 140.0)))
        assert results[-1].rep_count == 1
        assert results[-1].state is ExerciseState.DOWN

    def test_repeated_sit_ups(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(140.0, 60.0, 140.0, 60.0, 140.0, 60.0)))
        assert results[-1].rep_count == 3

    def test_single_frame_of_lying_back_does_not_count(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, [60.0, 60.0, 111.0, 60.0]))
        assert [r.rep_count for r in results] == [0, 0, 0, 0]

    def test_curl_without_lying_back_does_not_count(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(60.0, 100.0, 60.0)))
        assert results[-1].rep_count == 0

    def test_range_of_motion_scored_on_lying_angle(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(120.0, 60.0)))
        # Lay back to 120 deg, 10 short of the ideal 130
        assert results[-1].form_score == 85
        assert analyzer.calculate_form_score(180.0, []) == 100
        assert analyzer.calculate_form_score(90.0, []) == 50  # capped at 50 points

    def test_partial_curl_feedback(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(140.0, 85.0, 130.0)))
        assert results[-1].rep_count == 0
        assert cues(results) == ["Curl up higher"]

    def test_shoulder_alignment(self):
        analyzer = _started()
        result = analyzer.analyze(situp_frame(140.0, shoulder_tilt=0.2))
        assert result.feedback == SitupAnalyzer.SHOULDERS_NOT_LEVEL

    def test_knees_are_not_gated_but_needed_for_the_angle(self):
        analyzer = _started()
        hidden_knees = {PoseLandmark.LEFT_KNEE: 0.1, PoseLandmark.RIGHT_KNEE: 0.1}
        assert analyzer.is_valid_pose(situp_frame(140.0, overrides=hidden_knees))
        result = analyzer.analyze(situp_frame(140.0, overrides=hidden_knees))
        assert result.state is ExerciseState.INVALID
        assert result.confidence == pytest.approx(0.1)

    def test_one_visible_knee_is_enough(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, [140.0, 140.0], overrides={PoseLandmark.RIGHT_KNEE: 0.0}))
        assert results[-1].state is ExerciseState.DOWN
        assert results[-1].angle == pytest.approx(140.0)


class TestCrossedArms:
    def test_crossed_arms_pass(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(140.0, 60.0)))
        assert results[-1].feedback is None
        assert results[-1].form_score == 100

    def test_uncrossed_arms_are_flagged_on_the_rep(self):
        analyzer = _started()
        results = run(analyzer, frames_for(situp_frame, angle_sequence(140.0, 60.0), arms_crossed=False))
        assert results[-1].rep_count == 1
        assert results[-1].feedback == SitupAnalyzer.ARMS_NOT_CROSSED
        assert results[-1].form_score == 90

    def test_most_frames_decide(self):
        analyzer = _started()
        angles = angle_sequence(140.0, 60.0)
        frames = frames_for(situp_frame, angles[:3], arms_crossed=False)
        frames += frames_for(situp_frame, angles[3:], start_ms=100)
        results = run(analyzer, frames)
        assert results[-1].rep_count == 1
        assert results[-1].feedback is None

    def test_hidden_arms_are_not_judged(self):
        analyzer = _started()
        hidden = {PoseLandmark.LEFT_WRIST: 0.1, PoseLandmark.RIGHT_WRIST: 0.1}
        results = run(analyzer, frames_for(situp_frame, angle_sequence(140.0, 60.0), arms_crossed=False, overrides=hidden))
        assert results[-1].rep_count == 1
        assert results[-1].feedback is None
        assert analyzer.arms_crossed(situp_frame(140.0, overrides=hidden)) is None

    @pytest.mark.parametrize("hip_angle", [60.0, 90.0, 140.0])
    def test_arms_crossed(self, hip_angle):
        analyzer = SitupAnalyzer()
        assert analyzer.arms_crossed(situp_frame(hip_angle)) is True
        assert analyzer.arms_crossed(situp_frame(hip_angle, arms_crossed=False)) is False
