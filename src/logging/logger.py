# src/logging/logger.py — v1
"""Logger setup with JSON and text formatters.

All pkgweaver modules log through ``logging.getLogger(__name__)``, which
places them under the ``pkgweaver`` logger configured here.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from pkgweaver.logging.context import get_context

ROOT_LOGGER = "pkgweaver"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with the logging context inlined."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        ctx = get_context().as_dict()
        if ctx:
            entry["context"] = ctx
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable single-line format."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        if ctx.package:
            label = ctx.package
            if ctx.platform:
                label += f"@{ctx.platform}"
            parts.append(f"[{label}]")
        if ctx.step:
            parts.append(f"({ctx.step})")
        parts.append(f"- {record.getMessage()}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Named logger under the pkgweaver root."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | Path | None = None,
    rotation: str = "10MB",
    retention: int = 5,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure the pkgweaver logger. Safe to call more than once.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional rotating log file in addition to the console.
        rotation: Max file size before rotation.
        retention: Rotated files kept.
        stream: Console stream (stderr by default).
    """
    from pkgweaver.logging.handlers import create_console_handler, create_rotating_handler

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    console = create_console_handler(stream)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = create_rotating_handler(log_file, rotation=rotation, retention=retention)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    return root
