from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import cv2
import numpy as np

from core.errors import GeometryError


@dataclass(frozen=True, eq=False)
class SegmentationMask:
    width: int
    height: int
    data: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise GeometryError(f"Mask dimensions must be positive, got {self.width}x{self.height}")
        arr = np.asarray(self.data)
        if arr.size != self.width * self.height:
            raise GeometryError(
                f"Mask has {arr.size} entries, expected {self.width}x{self.height}"
            )
        object.__setattr__(self, "data", arr.reshape(self.height, self.width))

    @classmethod
    def from_array(cls, data: Any) -> "SegmentationMask":
        arr = np.asarray(data)
        if arr.ndim != 2:
            raise GeometryError(f"Expected a 2-D mask, got shape {arr.shape}")
        return cls(width=int(arr.shape[1]), height=int(arr.shape[0]), data=arr)

    @property
    def positive(self) -> np.ndarray:
        return self.data > 0

    @property
    def positive_count(self) -> int:
        return int(np.count_nonzero(self.positive))

    def coverage(self) -> float:
        total = self.width * self.height
        if total == 0:
            return 0.0
        return self.positive_count / total

    def is_person_present(self, threshold: float) -> bool:
        return self.coverage() > threshold

    def dilated(self, px: int) -> "SegmentationMask":
        if px <= 0:
            return self
        ksize = px * 2 + 1
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (ksize, ksize))
        grown = cv2.dilate(self.positive.astype(np.uint8) * 255, kernel, iterations=1)
        return SegmentationMask(width=self.width, height=self.height, data=grown)
