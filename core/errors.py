from __future__ import annotations


class RedactionError(Exception):
    pass


class GeometryError(RedactionError, ValueError):
    """Rectangle, mask or buffer dimensions inconsistent with the frame."""


class DetectorUnavailable(RedactionError):
    """The face or person detector could not run for this frame."""
