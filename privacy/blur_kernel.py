"""Separable box blur used as a fast approximation of a Gaussian.

Each pass slides a ``2 * radius + 1`` window along one axis. Samples that fall
outside the image replicate the nearest edge pixel. Window sums come from a
cumulative sum, so the cost of a pass does not depend on the radius.
"""
from __future__ import annotations

import math
from typing import Any, Tuple

import numpy as np

from schemas.face_detection import FaceRegion
from schemas.frame import as_rgba_view


def _axis_slice(axis: int, start: int, stop: int, ndim: int) -> Tuple[slice, ...]:
    index = [slice(None)] * ndim
    index[axis] = slice(start, stop)
    return tuple(index)


def _box_pass(channels: np.ndarray, radius: int, axis: int) -> np.ndarray:
    n = channels.shape[axis]
    div = 2 * radius + 1

    pad_width = [(0, 0)] * channels.ndim
    pad_width[axis] = (radius, radius)
    padded = np.pad(channels, pad_width, mode="edge")

    csum = np.cumsum(padded, axis=axis, dtype=np.int64)
    zero_shape = list(csum.shape)
    zero_shape[axis] = 1
    csum = np.concatenate([np.zeros(zero_shape, dtype=np.int64), csum], axis=axis)

    ndim = channels.ndim
    sums = csum[_axis_slice(axis, div, div + n, ndim)] - csum[_axis_slice(axis, 0, n, ndim)]

    # round half up: floor(sums / div + 0.5)
    return (2 * sums + div) // (2 * div)


def box_blur(buffer: Any, width: int, height: int, radius: float) -> Any:
    """Blur an RGBA buffer in place and return it.

    ``buffer`` is a uint8 numpy array, either flat (``width * height * 4``)
    or shaped ``(height, width, 4)``. Alpha is left untouched. A radius below
    1 returns the buffer unchanged.
    """
    radius = int(math.floor(radius))
    if radius < 1:
        return buffer

    view = as_rgba_view(buffer, width, height)

    rgb = view[..., :3].astype(np.int64)
    rgb = _box_pass(rgb, radius, axis=1)
    rgb = _box_pass(rgb, radius, axis=0)

    view[..., :3] = rgb.astype(np.uint8)
    return buffer


def blur_region(pixels: np.ndarray, region: FaceRegion, radius: float) -> FaceRegion:
    height, width = pixels.shape[:2]
    region = region.clip(width, height)
    if region.is_empty:
        return region

    rows = slice(region.y1, region.y2)
    cols = slice(region.x1, region.x2)

    roi = np.ascontiguousarray(pixels[rows, cols])
    box_blur(roi, region.width, region.height, radius)
    pixels[rows, cols] = roi

    return region
