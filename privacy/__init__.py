
from .blur_kernel import box_blur, blur_region
from .decision_engine import DecisionEngine, RedactionPlan, BodyReason, decide
from .compositor import BlurCompositor, RedactionRecord
from .audit import AuditWriter, build_audit_entry
from .pipeline import RedactionPipeline

blur = box_blur

__all__ = [
    "box_blur",
    "blur",
    "blur_region",
    "DecisionEngine",
    "RedactionPlan",
    "BodyReason",
    "decide",
    "BlurCompositor",
    "RedactionRecord",
    "AuditWriter",
    "build_audit_entry",
    "RedactionPipeline",
]
