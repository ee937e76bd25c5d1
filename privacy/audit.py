
from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .decision_engine import RedactionPlan

log = logging.getLogger("privacy.audit")


class AuditWriter:
    """Append-only JSONL trail of redaction decisions, one line per frame."""

    def __init__(
        self,
        output_dir: str,
        filename: str = "redaction_audit.jsonl",
        flush_interval_sec: float = 1.0,
        enabled: bool = True,
    ) -> None:
        self._enabled = enabled
        self._output_dir = Path(output_dir)
        self._filename = filename
        self._flush_interval_sec = flush_interval_sec
        self._file_handle: Optional[Any] = None
        self._file_path: Optional[Path] = None
        self._last_flush_ts = 0.0
        self._total_entries = 0

        if self._enabled:
            self._open_file()

    @classmethod
    def from_config(cls, cfg: Any) -> "AuditWriter":
        return cls(
            output_dir=getattr(cfg, "dir", "redaction_output"),
            filename=getattr(cfg, "filename", "redaction_audit.jsonl"),
            flush_interval_sec=getattr(cfg, "flush_interval_sec", 1.0),
            enabled=getattr(cfg, "enabled", True),
        )

    def _open_file(self) -> None:
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            self._file_path = self._output_dir / self._filename
            self._file_handle = open(self._file_path, "a", encoding="utf-8")
            self._last_flush_ts = time.perf_counter()
            log.info("Audit log opened: %s", self._file_path)
        except OSError as e:
            log.error("Failed to open audit file, audit disabled: %s", e)
            self._file_handle = None
            self._enabled = False

    def write_entry(self, entry: Dict[str, Any]) -> bool:
        if not self.is_open:
            return False

        try:
            self._file_handle.write(json.dumps(entry, separators=(",", ":"), default=str) + "\n")
        except (OSError, TypeError, ValueError) as e:
            log.error("Failed to write audit entry: %s", e)
            return False

        self._total_entries += 1

        now = time.perf_counter()
        if self._flush_interval_sec <= 0 or now - self._last_flush_ts >= self._flush_interval_sec:
            self.flush()

        return True

    def flush(self) -> None:
        if self._file_handle is None:
            return
        try:
            self._file_handle.flush()
            os.fsync(self._file_handle.fileno())
            self._last_flush_ts = time.perf_counter()
        except OSError as e:
            log.warning("Failed to flush audit log: %s", e)

    def close(self) -> None:
        if self._file_handle is None:
            return
        try:
            self._file_handle.flush()
            self._file_handle.close()
            log.info("Audit log closed: %s (total entries: %d)", self._file_path, self._total_entries)
        except OSError as e:
            log.error("Error closing audit file: %s", e)
        finally:
            self._file_handle = None

    def __enter__(self) -> "AuditWriter":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path

    @property
    def total_entries(self) -> int:
        return self._total_entries

    @property
    def is_open(self) -> bool:
        return self._file_handle is not None and self._enabled


def build_audit_entry(
    element_id: str,
    plan: RedactionPlan,
    composited: bool,
    ts: Optional[float] = None,
    detector_error: Optional[str] = None,
) -> Dict[str, Any]:
    entry = {
        "ts": time.time() if ts is None else ts,
        "element_id": element_id,
        "composited": composited,
    }
    entry.update(plan.to_audit_dict())

    if detector_error is not None:
        entry["detector_error"] = detector_error

    return entry
