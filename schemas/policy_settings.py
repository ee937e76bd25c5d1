from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional


_CAMEL_KEYS = {
    "enabled": "enabled",
    "blurFaces": "blur_faces",
    "blurMen": "blur_men",
    "blurWomen": "blur_women",
    "blurBodies": "blur_bodies",
    "blurIntensity": "blur_intensity",
    "genderConfidenceThreshold": "gender_confidence_threshold",
    "detectionSensitivity": "gender_confidence_threshold",
    "bodyCoverageThreshold": "body_coverage_threshold",
}


@dataclass(frozen=True)
class PolicySettings:
    enabled: bool = True
    blur_faces: bool = True
    blur_men: bool = True
    blur_women: bool = True
    blur_bodies: bool = True
    blur_intensity: int = 25
    gender_confidence_threshold: float = 0.7
    body_coverage_threshold: float = 0.005

    def __post_init__(self) -> None:
        if self.blur_intensity < 0:
            raise ValueError(f"blur_intensity must be >= 0, got {self.blur_intensity}")
        object.__setattr__(self, "blur_intensity", int(self.blur_intensity))
        if not 0.0 <= self.gender_confidence_threshold <= 1.0:
            raise ValueError(
                f"gender_confidence_threshold must be in [0, 1], got {self.gender_confidence_threshold}"
            )
        if not 0.0 <= self.body_coverage_threshold <= 1.0:
            raise ValueError(
                f"body_coverage_threshold must be in [0, 1], got {self.body_coverage_threshold}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PolicySettings":
        """Build settings from a config section or a settings-store payload.

        Both snake_case and the store's camelCase keys are accepted; unknown
        keys (whitelists, UI preferences, ...) are ignored.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            name = _CAMEL_KEYS.get(key, key)
            if name in known and value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    def with_overrides(self, **overrides: Any) -> "PolicySettings":
        return replace(self, **overrides)

    @property
    def any_target_enabled(self) -> bool:
        return self.blur_faces or self.blur_men or self.blur_women or self.blur_bodies

    @property
    def any_face_target_enabled(self) -> bool:
        return self.blur_faces or self.blur_men or self.blur_women
