"""
Pose input types: the landmark model and sources that replay landmark frames.
"""

from .landmarks import LANDMARK_COUNT, LANDMARK_NAMES, FrameBundle, Landmark, PoseLandmark
from .base_source import BaseLandmarkSource
from .json_source import JsonLandmarkSource

__all__ = [
    'LANDMARK_COUNT',
    'LANDMARK_NAMES',
    'FrameBundle',
    'Landmark',
    'PoseLandmark',
    'BaseLandmarkSource',
    'JsonLandmarkSource',
]
