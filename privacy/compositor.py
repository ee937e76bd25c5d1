"""Blur compositing onto RGBA buffers and the per-element redaction table."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from core.errors import GeometryError
from schemas.face_detection import FaceRegion
from schemas.frame import as_rgba_view
from schemas.policy_settings import PolicySettings

from .blur_kernel import blur_region, box_blur
from .decision_engine import RedactionPlan

log = logging.getLogger("privacy.compositor")


@dataclass
class RedactionRecord:
    element_id: str
    is_fallback: bool = False
    radius: int = 0
    regions: Tuple[FaceRegion, ...] = ()
    masked_pixels: int = 0
    visible: bool = True
    composite_count: int = 0


class BlurCompositor:
    """Applies redaction plans to pixel buffers and tracks redacted elements.

    Exactly one record exists per element that currently has blurred output.
    A repeated ``composite`` for the same element replaces its record.
    """

    def __init__(self, cfg: Any = None) -> None:
        self._face_padding_ratio = float(getattr(cfg, "face_padding_ratio", 0.2))
        self._mask_dilate_px = int(getattr(cfg, "mask_dilate_px", 0))

        self._records: Dict[str, RedactionRecord] = {}
        self._lock = threading.Lock()

        self._composites_total = 0
        self._fallbacks_total = 0
        self._cleared_total = 0

        log.info(
            "BlurCompositor initialized | face_padding_ratio=%.2f, mask_dilate_px=%d",
            self._face_padding_ratio,
            self._mask_dilate_px,
        )

    def composite(
        self,
        element_id: str,
        buffer: Any,
        width: int,
        height: int,
        plan: RedactionPlan,
        settings: PolicySettings,
    ) -> Optional[np.ndarray]:
        source = as_rgba_view(buffer, width, height)

        if not plan.should_redact:
            self.clear(element_id)
            return None

        radius = settings.blur_intensity
        out = source.copy()

        if plan.is_fallback:
            box_blur(out, width, height, radius)
            record = RedactionRecord(
                element_id=element_id,
                is_fallback=True,
                radius=radius,
                regions=(FaceRegion(0, 0, width, height),),
            )
        else:
            applied = []
            for face in plan.faces:
                padded = face.pad(self._face_padding_ratio, width, height)
                if padded.is_empty:
                    continue
                blur_region(out, padded, radius)
                applied.append(padded)

            masked_pixels = 0
            if plan.mask is not None:
                masked_pixels = self._composite_mask(out, plan, width, height, radius)

            record = RedactionRecord(
                element_id=element_id,
                is_fallback=False,
                radius=radius,
                regions=tuple(applied),
                masked_pixels=masked_pixels,
            )

        with self._lock:
            previous = self._records.get(element_id)
            if previous is not None:
                record.visible = previous.visible
                record.composite_count = previous.composite_count
            record.composite_count += 1
            self._records[element_id] = record

            self._composites_total += 1
            if record.is_fallback:
                self._fallbacks_total += 1

        log.debug(
            "Composited element=%s fallback=%s regions=%d masked_pixels=%d radius=%d",
            element_id, record.is_fallback, len(record.regions), record.masked_pixels, radius,
        )

        return out.reshape(np.shape(buffer))

    def _composite_mask(
        self,
        out: np.ndarray,
        plan: RedactionPlan,
        width: int,
        height: int,
        radius: int,
    ) -> int:
        mask = plan.mask
        if (mask.width, mask.height) != (width, height):
            raise GeometryError(
                f"Mask is {mask.width}x{mask.height} but buffer is {width}x{height}"
            )

        if self._mask_dilate_px > 0:
            mask = mask.dilated(self._mask_dilate_px)

        selected = mask.positive
        count = int(np.count_nonzero(selected))
        if count == 0:
            return 0

        blurred = out.copy()
        box_blur(blurred, width, height, radius)
        out[selected, :3] = blurred[selected, :3]
        return count

    def clear(self, element_id: str) -> bool:
        with self._lock:
            removed = self._records.pop(element_id, None)
            if removed is not None:
                self._cleared_total += 1

        if removed is not None:
            log.debug("Cleared redaction for element=%s", element_id)
        return removed is not None

    def clear_all(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records.clear()
            self._cleared_total += count

        if count:
            log.info("Cleared redaction for %d elements", count)
        return count

    def is_redacted(self, element_id: str) -> bool:
        with self._lock:
            return element_id in self._records

    def is_visible(self, element_id: str) -> bool:
        with self._lock:
            record = self._records.get(element_id)
            return record is not None and record.visible

    def toggle(self, element_id: str) -> bool:
        with self._lock:
            record = self._records.get(element_id)
            if record is None:
                raise KeyError(f"Element {element_id!r} is not redacted")
            record.visible = not record.visible
            visible = record.visible

        log.debug("Toggled element=%s visible=%s", element_id, visible)
        return visible

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.tracked_count

    def __contains__(self, element_id: object) -> bool:
        with self._lock:
            return element_id in self._records

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "tracked_elements": len(self._records),
                "hidden_elements": sum(1 for r in self._records.values() if not r.visible),
                "composites_total": self._composites_total,
                "fallbacks_total": self._fallbacks_total,
                "cleared_total": self._cleared_total,
                "config": {
                    "face_padding_ratio": self._face_padding_ratio,
                    "mask_dilate_px": self._mask_dilate_px,
                },
            }
