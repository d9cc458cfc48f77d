"""Logging helpers for preservation catalog workers."""

from __future__ import annotations

import logging
from pathlib import Path


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class AuditFindingFilter(logging.Filter):
    """Keeps warnings and anything emitted by the results reporters."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if record.levelno >= logging.WARNING:
            return True
        return record.name.startswith("preservation_catalog.results")


def parse_level(value: str | int | None, default: int = logging.INFO) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    return resolved if isinstance(resolved, int) else default


def configure_logging(level: int = logging.INFO, log_paths: list[str] | None = None) -> None:
    """Configure default logging if no handlers are present.

    The first path receives every record; a second path, when given, only
    receives audit findings and warnings.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    paths = list(log_paths or [])
    if paths:
        full_path = Path(paths[0])
        full_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(full_path, encoding="utf-8"))
    if len(paths) > 1:
        findings_path = Path(paths[1])
        findings_path.parent.mkdir(parents=True, exist_ok=True)
        findings_handler = logging.FileHandler(findings_path, encoding="utf-8")
        findings_handler.addFilter(AuditFindingFilter())
        handlers.append(findings_handler)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
    )
