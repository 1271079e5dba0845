from abc import ABC, abstractmethod
from typing import Iterator

from .landmarks import FrameBundle


class BaseLandmarkSource(ABC):
    """Base class for anything that feeds pose frames to an analyzer."""

    @abstractmethod
    def frames(self) -> Iterator[FrameBundle]:
        """
        Yield pose frames in capture order.

        Returns:
            Iterator of FrameBundle objects with non-decreasing timestamps
        """
        pass

    def get_exercise_hint(self) -> str:
        """
        Exercise type recorded alongside the frames, if the source knows it.

        Returns:
            Exercise type string, or an empty string when unknown
        """
        return ""
