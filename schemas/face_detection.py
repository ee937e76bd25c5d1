from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, label: Optional[str]) -> "Gender":
        if label is None:
            return cls.UNKNOWN
        if isinstance(label, Gender):
            return label
        key = str(label).strip().lower()
        if not key:
            return cls.UNKNOWN
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown gender label: {label!r}") from None


@dataclass(frozen=True)
class FaceRegion:
    """Integer half-open pixel rectangle [x1, x2) x [y1, y2)."""

    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return max(0, self.x2 - self.x1)

    @property
    def height(self) -> int:
        return max(0, self.y2 - self.y1)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def clip(self, width: int, height: int) -> "FaceRegion":
        x1 = min(max(0, self.x1), width)
        y1 = min(max(0, self.y1), height)
        x2 = min(max(x1, self.x2), width)
        y2 = min(max(y1, self.y2), height)
        return FaceRegion(x1, y1, x2, y2)

    def pad(self, ratio: float, width: int, height: int) -> "FaceRegion":
        padding = max(self.width, self.height) * ratio
        return FaceRegion(
            int(math.floor(self.x1 - padding)),
            int(math.floor(self.y1 - padding)),
            int(math.ceil(self.x2 + padding)),
            int(math.ceil(self.y2 + padding)),
        ).clip(width, height)

    def as_list(self) -> list:
        return [self.x1, self.y1, self.x2, self.y2]


@dataclass(frozen=True)
class FaceDetection:
    x1: float
    y1: float
    x2: float
    y2: float
    gender: Gender = Gender.UNKNOWN
    confidence: float = 0.0

    def __post_init__(self) -> None:
        for name in ("x1", "y1", "x2", "y2"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"FaceDetection.{name} must be finite, got {value!r}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"FaceDetection.confidence must be in [0, 1], got {self.confidence!r}")
        if not isinstance(self.gender, Gender):
            object.__setattr__(self, "gender", Gender.parse(self.gender))

    @classmethod
    def from_box(
        cls,
        x: float,
        y: float,
        width: float,
        height: float,
        gender: Any = Gender.UNKNOWN,
        confidence: float = 0.0,
    ) -> "FaceDetection":
        return cls(
            x1=float(x),
            y1=float(y),
            x2=float(x) + float(width),
            y2=float(y) + float(height),
            gender=Gender.parse(gender),
            confidence=float(confidence),
        )

    @property
    def top_left(self) -> Tuple[float, float]:
        return (self.x1, self.y1)

    @property
    def bottom_right(self) -> Tuple[float, float]:
        return (self.x2, self.y2)

    def effective_gender(self, threshold: float) -> Gender:
        if self.confidence < threshold:
            return Gender.UNKNOWN
        return self.gender

    def to_region(self) -> FaceRegion:
        return FaceRegion(
            int(math.floor(self.x1)),
            int(math.floor(self.y1)),
            int(math.ceil(self.x2)),
            int(math.ceil(self.y2)),
        )

    def to_audit_dict(self) -> Dict[str, Any]:
        return {
            "bbox": [round(self.x1, 1), round(self.y1, 1), round(self.x2, 1), round(self.y2, 1)],
            "gender": self.gender.value,
            "confidence": round(self.confidence, 3),
        }
