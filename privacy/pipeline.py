"""
Frame-level redaction: detectors, decision and compositing in one call.

An element whose frame is skipped or whose settings are disabled loses any
blur it had before.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from core.errors import DetectorUnavailable
from core.interfaces import FaceDetector, PersonSegmenter
from schemas.face_detection import FaceDetection
from schemas.frame import Frame
from schemas.policy_settings import PolicySettings
from schemas.segmentation_mask import SegmentationMask

from .audit import AuditWriter, build_audit_entry
from .compositor import BlurCompositor
from .decision_engine import DecisionEngine, RedactionPlan

log = logging.getLogger("privacy.pipeline")


class RedactionPipeline:
    """Runs detection, decision and compositing for one frame at a time.

    Detector failures never reach the caller: they turn into a
    ``detector_available=False`` decision, which redacts the whole frame.
    """

    def __init__(
        self,
        face_detector: Optional[FaceDetector],
        person_segmenter: Optional[PersonSegmenter] = None,
        compositor: Optional[BlurCompositor] = None,
        audit_writer: Optional[AuditWriter] = None,
        min_frame_size: int = 50,
    ) -> None:
        self._face_detector = face_detector
        self._person_segmenter = person_segmenter
        self._compositor = compositor if compositor is not None else BlurCompositor()
        self._audit_writer = audit_writer
        self._min_frame_size = min_frame_size

        self._engine = DecisionEngine()

        self._stats_lock = threading.Lock()
        self._frames_processed = 0
        self._frames_skipped = 0
        self._frames_redacted = 0
        self._frames_fallback = 0

        log.info(
            "RedactionPipeline initialized | face_detector=%s, segmenter=%s, min_frame_size=%d, audit=%s",
            type(face_detector).__name__ if face_detector is not None else None,
            type(person_segmenter).__name__ if person_segmenter is not None else None,
            min_frame_size,
            audit_writer is not None and audit_writer.is_open,
        )

    @classmethod
    def from_config(
        cls,
        cfg: Any,
        face_detector: Optional[FaceDetector],
        person_segmenter: Optional[PersonSegmenter] = None,
    ) -> "RedactionPipeline":
        audit_cfg = getattr(cfg, "audit", None)
        audit_writer = None
        if audit_cfg is not None and getattr(audit_cfg, "enabled", False):
            audit_writer = AuditWriter.from_config(audit_cfg)

        pipeline_cfg = getattr(cfg, "pipeline", None)
        return cls(
            face_detector=face_detector,
            person_segmenter=person_segmenter,
            compositor=BlurCompositor(getattr(cfg, "compositor", None)),
            audit_writer=audit_writer,
            min_frame_size=getattr(pipeline_cfg, "min_frame_size", 50),
        )

    @property
    def compositor(self) -> BlurCompositor:
        return self._compositor

    def is_frame_eligible(self, frame: Frame) -> bool:
        return frame.width >= self._min_frame_size and frame.height >= self._min_frame_size

    def process(self, frame: Frame, settings: PolicySettings) -> Optional[np.ndarray]:
        if not settings.enabled:
            self._compositor.clear(frame.element_id)
            return None

        if not self.is_frame_eligible(frame):
            log.debug(
                "Skipping element=%s, %dx%d below minimum %d",
                frame.element_id, frame.width, frame.height, self._min_frame_size,
            )
            self._compositor.clear(frame.element_id)
            with self._stats_lock:
                self._frames_skipped += 1
            return None

        faces, mask, detector_error = self._run_detectors(frame, settings)

        plan = self._engine.decide(
            faces,
            mask,
            settings,
            detector_available=detector_error is None,
            frame_size=frame.size,
        )

        result = self._compositor.composite(
            frame.element_id,
            frame.pixels,
            frame.width,
            frame.height,
            plan,
            settings,
        )

        self._record(frame, plan, result is not None, detector_error)
        return result

    def _run_detectors(
        self,
        frame: Frame,
        settings: PolicySettings,
    ) -> Tuple[List[FaceDetection], Optional[SegmentationMask], Optional[str]]:
        try:
            if self._face_detector is None:
                raise DetectorUnavailable("no face detector configured")
            if not self._face_detector.is_ready:
                raise DetectorUnavailable("face detector not ready")

            faces = list(self._face_detector.detect(frame))

            mask = None
            if settings.blur_bodies and self._person_segmenter is not None:
                if self._person_segmenter.is_ready:
                    mask = self._person_segmenter.segment(frame)
                else:
                    log.debug("Segmenter not ready, skipping body mask for element=%s", frame.element_id)

            return faces, mask, None

        except DetectorUnavailable as e:
            log.warning("Detector unavailable for element=%s: %s", frame.element_id, e)
            return [], None, str(e)
        except Exception as e:
            log.exception("Detection failed for element=%s (falling back): %s", frame.element_id, e)
            return [], None, f"{type(e).__name__}: {e}"

    def _record(
        self,
        frame: Frame,
        plan: RedactionPlan,
        composited: bool,
        detector_error: Optional[str],
    ) -> None:
        with self._stats_lock:
            self._frames_processed += 1
            if composited:
                self._frames_redacted += 1
            if plan.is_fallback:
                self._frames_fallback += 1

        if self._audit_writer is not None:
            self._audit_writer.write_entry(
                build_audit_entry(
                    frame.element_id,
                    plan,
                    composited,
                    ts=time.time(),
                    detector_error=detector_error,
                )
            )

    def on_settings_changed(self, settings: PolicySettings) -> int:
        if settings.enabled:
            return 0
        cleared = self._compositor.clear_all()
        log.info("Redaction disabled, cleared %d elements", cleared)
        return cleared

    def shutdown(self) -> None:
        if self._audit_writer is not None:
            self._audit_writer.close()
        log.info("RedactionPipeline shutdown | stats=%s", self.get_stats())

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = {
                "frames_processed": self._frames_processed,
                "frames_skipped": self._frames_skipped,
                "frames_redacted": self._frames_redacted,
                "frames_fallback": self._frames_fallback,
            }
        stats["decisions"] = self._engine.get_stats()
        stats["compositor"] = self._compositor.get_stats()
        return stats
