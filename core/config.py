from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from schemas.policy_settings import PolicySettings

logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class CompositorConfig:
    face_padding_ratio: float = 0.2
    mask_dilate_px: int = 0


@dataclass
class PipelineConfig:
    min_frame_size: int = 50


@dataclass
class AuditConfig:
    enabled: bool = False
    dir: str = "redaction_output"
    filename: str = "redaction_audit.jsonl"
    flush_interval_sec: float = 1.0


@dataclass
class Config:
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    policy: PolicySettings = field(default_factory=PolicySettings)
    compositor: CompositorConfig = field(default_factory=CompositorConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)


def _update_dataclass_from_dict(obj: Any, data: Dict[str, Any]) -> Any:
    for k, v in data.items():
        if hasattr(obj, k):
            setattr(obj, k, v)
    return obj


def load_config(path: str | Path = "config/default.yaml") -> Config:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return parse_config(raw, source=str(path))


def parse_config(raw: Any, source: str = "<dict>") -> Config:
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a dict, got: {type(raw)}")

    logging_data = raw.get("logging", {}) or {}
    policy_data = raw.get("policy", {}) or {}
    compositor_data = raw.get("compositor", {}) or {}
    pipeline_data = raw.get("pipeline", {}) or {}
    audit_data = raw.get("audit", {}) or {}

    cfg = Config(
        logging=_update_dataclass_from_dict(LoggingConfig(), logging_data),
        policy=PolicySettings.from_dict(policy_data),
        compositor=_parse_compositor_config(compositor_data),
        pipeline=_update_dataclass_from_dict(PipelineConfig(), pipeline_data),
        audit=_update_dataclass_from_dict(AuditConfig(), audit_data),
    )

    logger.info(
        "Config loaded from %s | policy.enabled=%s, blur_faces=%s, blur_men=%s, blur_women=%s, "
        "blur_bodies=%s, blur_intensity=%d, audit.enabled=%s",
        source,
        cfg.policy.enabled,
        cfg.policy.blur_faces,
        cfg.policy.blur_men,
        cfg.policy.blur_women,
        cfg.policy.blur_bodies,
        cfg.policy.blur_intensity,
        cfg.audit.enabled,
    )

    return cfg


def _parse_compositor_config(data: Dict[str, Any]) -> CompositorConfig:
    comp = CompositorConfig()

    comp.face_padding_ratio = float(data.get("face_padding_ratio", comp.face_padding_ratio))
    comp.mask_dilate_px = int(data.get("mask_dilate_px", comp.mask_dilate_px))

    if comp.face_padding_ratio < 0:
        raise ValueError(f"compositor.face_padding_ratio must be >= 0, got {comp.face_padding_ratio}")
    if comp.mask_dilate_px < 0:
        raise ValueError(f"compositor.mask_dilate_px must be >= 0, got {comp.mask_dilate_px}")

    return comp
