from __future__ import annotations

import logging
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(
    level: Union[int, str] = logging.INFO,
    fmt: Optional[str] = None,
    force: bool = False,
) -> None:
    global _configured

    if _configured and not force:
        return

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    logging.basicConfig(level=level, format=fmt or DEFAULT_FORMAT, force=force)
    _configured = True

    logging.getLogger(__name__).debug("Logging configured | level=%s", logging.getLevelName(level))
