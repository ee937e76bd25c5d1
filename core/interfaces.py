
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from schemas import Frame, FaceDetection, SegmentationMask


class FaceDetector(ABC):

    @property
    def is_ready(self) -> bool:
        return True

    @abstractmethod
    def detect(self, frame: Frame) -> List[FaceDetection]:
        raise NotImplementedError


class PersonSegmenter(ABC):

    @property
    def is_ready(self) -> bool:
        return True

    @abstractmethod
    def segment(self, frame: Frame) -> Optional[SegmentationMask]:
        raise NotImplementedError
