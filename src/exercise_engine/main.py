import argparse
import logging
import os
import sys
import traceback

from .exercise_analysis.analyzer_factory import supported_exercises
from .pose_detection.json_source import JsonLandmarkSource
from .trainer import ExerciseTrainer

# Every logger the replay can reach
VERBOSE_LOGGERS = (
    "ExerciseAnalyzer",
    "PushupAnalyzer",
    "PullupAnalyzer",
    "SitupAnalyzer",
    "ExerciseTrainer",
    "LandmarkSource",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Exercise Analysis Engine - replay a pose landmark recording")
    parser.add_argument(
        "--recording",
        type=str,
        required=True,
        help="Path to a JSON landmark recording"
    )
    parser.add_argument(
        "--exercise",
        type=str,
        default=None,
        choices=supported_exercises(),
        help="Exercise to analyze (defaults to the one stored in the recording, then pushup)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON file with per-exercise settings"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print every frame's analysis result"
    )
    return parser


def main(argv=None) -> int:
    """Main entry point for replaying a recording through an analyzer."""
    args = build_parser().parse_args(argv)

    if not os.path.isfile(args.recording):
        print(f"Recording not found: {args.recording}")
        return 1

    try:
        source = JsonLandmarkSource(args.recording)
        exercise = args.exercise or source.get_exercise_hint() or "pushup"
        if args.verbose:
            for name in VERBOSE_LOGGERS:
                logging.getLogger(name).setLevel(logging.DEBUG)
        print(f"Replaying {len(source)} frames as {exercise}...")
        trainer = ExerciseTrainer(exercise_type=exercise, config_path=args.config)

        trainer.begin()
        try:
            for frame in source.frames():
                output = trainer.process_frame(frame)
                result = output["result"]
                if args.verbose:
                    angle = f"{result.angle:.1f}" if result.angle is not None else "-"
                    print(f"[{frame.timestamp_ms:>8} ms] state={result.state.value:<8} reps={result.rep_count:<3} "
                          f"angle={angle:<6} score={result.form_score:<3} conf={result.confidence:.2f}")
                if output["announcement"]:
                    print(f"[FEEDBACK] {output['announcement']}")
                if output["warning"] and trainer.missing_landmarks_counter == trainer.missing_landmarks_threshold:
                    print(f"[WARNING] {output['warning']}")
        finally:
            summary = trainer.stop()
    except Exception as e:
        print(f"Error replaying recording: {e}")
        traceback.print_exc()
        return 1

    print(f"Exercise: {summary.exercise}")
    print(f"Reps: {summary.rep_count}")
    print(f"Duration: {summary.duration_seconds:.1f}s")
    if summary.average_form_score is not None:
        print(f"Average form score: {summary.average_form_score:.0f}")
    if summary.apft_points is not None:
        print(f"APFT points: {summary.apft_points}")
    print(f"Completed at: {summary.completed_at.isoformat()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
