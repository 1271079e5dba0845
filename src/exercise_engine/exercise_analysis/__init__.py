"""
Exercise analysis package: geometry helpers, the analyzer contract and the per-exercise rep counters.
"""

from .base_analyzer import (
    ANALYZER_REGISTRY,
    AnalysisResult,
    BaseExerciseAnalyzer,
    ExerciseState,
    normalize_exercise_type,
    register_analyzer,
)
from .pushup_analyzer import PushupAnalyzer
from .pullup_analyzer import PullupAnalyzer
from .situp_analyzer import SitupAnalyzer
from .analyzer_factory import create_analyzer, supported_exercises
from .config_utils import load_exercise_config

__all__ = [
    'ANALYZER_REGISTRY',
    'AnalysisResult',
    'BaseExerciseAnalyzer',
    'ExerciseState',
    'normalize_exercise_type',
    'register_analyzer',
    'PushupAnalyzer',
    'PullupAnalyzer',
    'SitupAnalyzer',
    'create_analyzer',
    'supported_exercises',
    'load_exercise_config',
]
