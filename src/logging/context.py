# src/logging/context.py — v1
"""Contextual logging: attach invocation, package, platform and step to records.

The scheduler runs each package in its own asyncio task, and tasks copy
the current contextvars on creation, so a value set inside one package's
task never leaks into a sibling's log lines.
"""

from __future__ import annotations

import contextvars
import uuid
from dataclasses import dataclass
from typing import Any

_invocation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "invocation_id", default=None
)
_package: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "package", default=None
)
_platform: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "platform", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    invocation_id: str | None = None
    package: str | None = None
    platform: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        invocation_id=_invocation_id.get(),
        package=_package.get(),
        platform=_platform.get(),
        step=_step.get(),
    )


def new_invocation(invocation_id: str | None = None) -> str:
    """Start a build/resolve invocation and return its id."""
    value = invocation_id or uuid.uuid4().hex[:12]
    _invocation_id.set(value)
    return value


def set_package_context(package: str, platform: str | None = None) -> None:
    """Set per-package context (called inside the package's task)."""
    _package.set(package)
    _platform.set(platform)
    _step.set(None)


def set_step(step: str | None) -> None:
    """Mark the phase being run for the current package: compile, link, ..."""
    _step.set(step)


def clear_context() -> None:
    _invocation_id.set(None)
    _package.set(None)
    _platform.set(None)
    _step.set(None)
