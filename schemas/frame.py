from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import cv2
import numpy as np

from core.errors import GeometryError


def as_rgba_view(buffer: Any, width: int, height: int) -> np.ndarray:
    if width <= 0 or height <= 0:
        raise GeometryError(f"Frame dimensions must be positive, got {width}x{height}")

    arr = np.asarray(buffer)
    if arr.dtype != np.uint8:
        raise GeometryError(f"Pixel buffer must be uint8, got {arr.dtype}")

    if arr.ndim == 1:
        if arr.size != width * height * 4:
            raise GeometryError(
                f"Buffer length {arr.size} does not match {width}x{height}x4"
            )
        return arr.reshape(height, width, 4)

    if arr.shape != (height, width, 4):
        raise GeometryError(
            f"Buffer shape {arr.shape} does not match ({height}, {width}, 4)"
        )
    return arr


@dataclass(frozen=True, eq=False)
class Frame:
    element_id: str
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise GeometryError(f"Frame pixels must be (H, W, 4), got {self.pixels.shape}")
        as_rgba_view(self.pixels, self.pixels.shape[1], self.pixels.shape[0])

    @classmethod
    def from_buffer(cls, element_id: str, buffer: Any, width: int, height: int) -> "Frame":
        return cls(element_id=element_id, pixels=as_rgba_view(buffer, width, height))

    @classmethod
    def from_bgr(cls, element_id: str, image: np.ndarray) -> "Frame":
        if image.ndim == 3 and image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        elif image.ndim == 3 and image.shape[2] == 3:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        else:
            raise GeometryError(f"Expected a BGR or BGRA image, got shape {image.shape}")
        return cls(element_id=element_id, pixels=rgba)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple:
        return (self.width, self.height)

    def to_bgr(self) -> np.ndarray:
        return cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGR)
