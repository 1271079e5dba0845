from typing import Any, List, Mapping, Optional

from .base_analyzer import ANALYZER_REGISTRY, BaseExerciseAnalyzer, normalize_exercise_type
from .config_utils import get_exercise_settings, load_exercise_config


def supported_exercises() -> List[str]:
    """Canonical names of the registered exercises."""
    return sorted({cls.EXERCISE_NAME for cls in ANALYZER_REGISTRY.values()})


def create_analyzer(
    exercise_type: str,
    config_path: Optional[str] = None,
    settings: Optional[Mapping[str, Any]] = None,
) -> BaseExerciseAnalyzer:
    """
    Build the analyzer for an exercise name or alias.

    Args:
        exercise_type: e.g. "pushup", "Push-Ups", "situps"
        config_path: Optional JSON config; defaults to the packaged exercise_config.json
        settings: Optional overrides applied on top of the config section
    Returns:
        A fresh analyzer in the Idle state
    Raises:
        ValueError: If the exercise type is unknown or a setting is invalid
    """
    analyzer_cls = ANALYZER_REGISTRY.get(normalize_exercise_type(exercise_type))
    if analyzer_cls is None:
        raise ValueError(f"Unsupported exercise type: {exercise_type}")
    merged = get_exercise_settings(load_exercise_config(config_path), analyzer_cls.EXERCISE_NAME)
    if settings:
        merged.update(settings)
    return analyzer_cls(settings=merged)
