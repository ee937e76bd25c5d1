
from .frame import Frame
from .face_detection import FaceDetection, FaceRegion, Gender
from .segmentation_mask import SegmentationMask
from .policy_settings import PolicySettings

__all__ = [
    "Frame",
    "FaceDetection",
    "FaceRegion",
    "Gender",
    "SegmentationMask",
    "PolicySettings",
]
