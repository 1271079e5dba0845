import json
import logging
import os
from typing import Any, Dict, Optional

CONFIG_ENV_VAR = "EXERCISE_ENGINE_CONFIG"
LOG_LEVEL_ENV_VAR = "EXERCISE_ENGINE_LOG_LEVEL"


def load_exercise_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load per-exercise settings from a JSON file.

    The lookup order is the explicit path, then $EXERCISE_ENGINE_CONFIG, then
    exercise_config.json next to this module. The file maps exercise names to
    dicts of lower-case setting names, e.g. {"pushup": {"down_threshold": 80}}.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or os.path.join(os.path.dirname(__file__), "exercise_config.json")
    with open(config_path, "r") as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ValueError(f"Exercise config must be a JSON object: {config_path}")
    return config


def get_exercise_settings(config: Dict[str, Any], exercise_name: str) -> Dict[str, Any]:
    """Return the settings section for one exercise (empty if the config has none)."""
    section = config.get(exercise_name, {})
    if not isinstance(section, dict):
        raise ValueError(f"Settings for {exercise_name} must be a JSON object")
    return dict(section)


def setup_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.hasHandlers():
        handler = logging.StreamHandler()
        formatter = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    level_name = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger
