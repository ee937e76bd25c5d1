"""
Policy decisions: which faces and which body mask of a frame get blurred.

Pure with respect to its inputs. ``DecisionEngine`` only adds counters.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from core.errors import GeometryError
from schemas.face_detection import FaceDetection, FaceRegion, Gender
from schemas.policy_settings import PolicySettings
from schemas.segmentation_mask import SegmentationMask

log = logging.getLogger("privacy.decision_engine")


class BodyReason:
    DISABLED = "disabled"
    NO_MASK = "no_mask"
    FLAGGED_FACE = "flagged_face"
    NO_FACES = "no_faces"
    FACES_SAFE = "faces_safe"
    BELOW_COVERAGE = "below_coverage"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class RedactionPlan:
    faces: Tuple[FaceRegion, ...] = ()
    mask: Optional[SegmentationMask] = None
    should_redact: bool = False
    is_fallback: bool = False

    faces_detected: int = 0
    low_confidence_faces: int = 0
    mask_coverage: Optional[float] = None
    body_reason: str = BodyReason.DISABLED

    @property
    def redacts_body(self) -> bool:
        return self.mask is not None

    @property
    def redaction_method(self) -> str:
        if self.is_fallback:
            return "full_frame"
        if not self.should_redact:
            return "none"
        if self.faces and self.mask is not None:
            return "face_and_body"
        if self.mask is not None:
            return "body_mask"
        return "face_bbox"

    def to_audit_dict(self) -> Dict[str, Any]:
        return {
            "should_redact": self.should_redact,
            "is_fallback": self.is_fallback,
            "redaction_method": self.redaction_method,
            "faces_detected": self.faces_detected,
            "faces_redacted": len(self.faces),
            "low_confidence_faces": self.low_confidence_faces,
            "face_regions": [r.as_list() for r in self.faces],
            "body_reason": self.body_reason,
            "mask_coverage": round(self.mask_coverage, 4) if self.mask_coverage is not None else None,
        }


FALLBACK_PLAN = RedactionPlan(
    should_redact=True,
    is_fallback=True,
    body_reason=BodyReason.FALLBACK,
)


def _is_face_flagged(face: FaceDetection, settings: PolicySettings) -> Tuple[bool, Gender]:
    effective = face.effective_gender(settings.gender_confidence_threshold)

    if settings.blur_faces:
        return True, effective

    # UNKNOWN never matches a gender-specific target
    if settings.blur_men and effective is Gender.MALE:
        return True, effective
    if settings.blur_women and effective is Gender.FEMALE:
        return True, effective

    return False, effective


def decide(
    faces: Iterable[FaceDetection],
    mask: Optional[SegmentationMask],
    settings: PolicySettings,
    detector_available: bool,
    frame_size: Optional[Tuple[int, int]] = None,
) -> RedactionPlan:
    """Turn one frame's detections into a redaction plan.

    With no working detector the whole frame is redacted. Otherwise faces are
    flagged per the gender policy and the body mask is selected by the
    flagged-face / no-face / all-safe ladder. ``frame_size`` is
    ``(width, height)``; when known, face rectangles are clipped to it.
    Without it (and without a mask) only negative coordinates are clamped to 0,
    so rectangles may still extend past the right or bottom edge.
    """
    if not detector_available:
        log.warning("Detector unavailable, falling back to full-frame redaction")
        return FALLBACK_PLAN

    if not settings.any_target_enabled:
        return RedactionPlan(should_redact=False, is_fallback=False)

    if mask is not None:
        if frame_size is None:
            frame_size = (mask.width, mask.height)
        elif (mask.width, mask.height) != tuple(frame_size):
            raise GeometryError(
                f"Mask is {mask.width}x{mask.height} but frame is {frame_size[0]}x{frame_size[1]}"
            )

    detections: Sequence[FaceDetection] = list(faces)

    regions = []
    low_confidence = 0
    for face in detections:
        flagged, effective = _is_face_flagged(face, settings)

        if effective is Gender.UNKNOWN and face.gender is not Gender.UNKNOWN:
            low_confidence += 1
            log.debug(
                "Low confidence face (%s %.2f < %.2f), treating as unknown",
                face.gender.value, face.confidence, settings.gender_confidence_threshold,
            )

        if not flagged:
            continue

        region = face.to_region()
        if frame_size is not None:
            region = region.clip(frame_size[0], frame_size[1])
        else:
            region = FaceRegion(max(0, region.x1), max(0, region.y1), region.x2, region.y2)
        if region.is_empty:
            log.debug("Flagged face %s lies outside the frame, dropping", face.to_audit_dict()["bbox"])
            continue

        log.debug("Flagged %s face for redaction: %s", effective.value, region.as_list())
        regions.append(region)

    selected_mask: Optional[SegmentationMask] = None
    coverage: Optional[float] = None

    if not settings.blur_bodies:
        body_reason = BodyReason.DISABLED
    elif mask is None:
        body_reason = BodyReason.NO_MASK
    else:
        coverage = mask.coverage()

        if regions:
            body_reason = BodyReason.FLAGGED_FACE
        elif not detections:
            body_reason = BodyReason.NO_FACES
        else:
            body_reason = BodyReason.FACES_SAFE

        if body_reason != BodyReason.FACES_SAFE:
            if coverage > settings.body_coverage_threshold:
                selected_mask = mask
            else:
                body_reason = BodyReason.BELOW_COVERAGE

    should_redact = bool(regions) or selected_mask is not None

    plan = RedactionPlan(
        faces=tuple(regions),
        mask=selected_mask,
        should_redact=should_redact,
        is_fallback=False,
        faces_detected=len(detections),
        low_confidence_faces=low_confidence,
        mask_coverage=coverage,
        body_reason=body_reason,
    )

    log.debug(
        "Decision: redact=%s faces=%d/%d body=%s coverage=%s",
        should_redact, len(regions), len(detections), body_reason, coverage,
    )
    return plan


class DecisionEngine:

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._decisions = 0
        self._fallbacks = 0
        self._redactions = 0

    def decide(
        self,
        faces: Iterable[FaceDetection],
        mask: Optional[SegmentationMask],
        settings: PolicySettings,
        detector_available: bool,
        frame_size: Optional[Tuple[int, int]] = None,
    ) -> RedactionPlan:
        plan = decide(faces, mask, settings, detector_available, frame_size=frame_size)

        with self._lock:
            self._decisions += 1
            if plan.is_fallback:
                self._fallbacks += 1
            if plan.should_redact:
                self._redactions += 1

        return plan

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "decisions": self._decisions,
                "fallbacks": self._fallbacks,
                "redactions": self._redactions,
            }
