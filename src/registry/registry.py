# src/registry/registry.py — v1
"""Format registry: capabilities discoverable by a byte-prefix probe.

The registry has a one-shot write phase. Capability modules register
during startup (state ``initializing``); the registry is then sealed and
is read-only for the rest of the process. The first dispatch seals it
implicitly, and any later register() call is rejected.

Lookups scan entries in registration order; the first entry whose probe
is a prefix of the candidate bytes wins. A ``?`` byte in a probe matches
any byte.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

WILDCARD_BYTE = ord("?")
MAX_DECODE_DEPTH = 4

Decoder = Callable[[bytes], Any]
Encoder = Callable[[Any], bytes]


class RegistryError(Exception):
    """Raised on invalid registrations."""


class RegistrySealedError(RegistryError):
    """Raised when registering after the initialisation phase."""


class FormatNotFound(LookupError):
    """No registered probe matches the candidate bytes."""

    def __init__(self, candidate: bytes) -> None:
        self.candidate = candidate[:16]
        super().__init__(f"no registered format matches prefix {self.candidate!r}")


@dataclass(frozen=True)
class FormatHandlers:
    """Callables attached to one registered format."""

    name: str
    decode: Decoder
    encode: Encoder | None = None


@dataclass(frozen=True)
class RegistrationEntry:
    """One row of the registry table."""

    name: str
    probe: bytes
    handlers: FormatHandlers

    def matches(self, candidate: bytes) -> bool:
        if len(candidate) < len(self.probe):
            return False
        return all(
            p == WILDCARD_BYTE or p == c
            for p, c in zip(self.probe, candidate)
        )


class FormatRegistry:
    """Process-scoped, append-only table of format registrations."""

    def __init__(self) -> None:
        self._entries: list[RegistrationEntry] = []
        self._snapshot: tuple[RegistrationEntry, ...] = ()
        self._state: Literal["initializing", "sealed"] = "initializing"
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        return self._state

    @property
    def sealed(self) -> bool:
        return self._state == "sealed"

    @property
    def names(self) -> list[str]:
        return [e.name for e in self._entries]

    def register(
        self,
        name: str,
        probe: bytes,
        decode: Decoder,
        encode: Encoder | None = None,
    ) -> RegistrationEntry:
        """Append a registration. Only valid while initialising.

        Raises:
            RegistrySealedError: The registry is sealed.
            RegistryError: Empty name or probe.
        """
        if not name:
            raise RegistryError("Format name must not be empty")
        if not probe:
            raise RegistryError(f"Format {name!r} needs a non-empty probe")
        entry = RegistrationEntry(
            name=name,
            probe=bytes(probe),
            handlers=FormatHandlers(name=name, decode=decode, encode=encode),
        )
        with self._lock:
            if self._state == "sealed":
                raise RegistrySealedError(
                    f"Cannot register {name!r}: registry is sealed"
                )
            self._entries.append(entry)
            logger.debug("Registered format %s (probe=%r)", name, entry.probe)
        return entry

    def seal(self) -> None:
        """End the initialisation phase. Idempotent."""
        with self._lock:
            if self._state != "sealed":
                self._snapshot = tuple(self._entries)
                self._state = "sealed"
                logger.debug("Format registry sealed with %d entries", len(self._snapshot))

    def dispatch(self, candidate: bytes) -> FormatHandlers:
        """Handlers of the first entry whose probe prefixes ``candidate``.

        Raises:
            FormatNotFound: Nothing matches.
        """
        if self._state != "sealed":
            self.seal()
        for entry in self._snapshot:
            if entry.matches(candidate):
                return entry.handlers
        raise FormatNotFound(candidate)

    def get(self, name: str) -> FormatHandlers | None:
        """Handlers registered under ``name`` (first registration wins)."""
        for entry in self._entries:
            if entry.name == name:
                return entry.handlers
        return None


def decode_payload(data: bytes, registry: FormatRegistry) -> Any:
    """Decode ``data``, unwrapping layered encodings (e.g. gzip over JSON).

    Each decoder returning bytes is dispatched again, up to a fixed depth.

    Raises:
        FormatNotFound: A layer matches no registered format.
        RegistryError: Nesting is deeper than MAX_DECODE_DEPTH.
    """
    value: Any = data
    for _ in range(MAX_DECODE_DEPTH):
        handlers = registry.dispatch(value)
        value = handlers.decode(value)
        if not isinstance(value, (bytes, bytearray)):
            return value
        value = bytes(value)
    raise RegistryError(f"Encoding nested deeper than {MAX_DECODE_DEPTH} layers")


def encode_payload(value: Any, encoding: str, registry: FormatRegistry) -> bytes:
    """Encode ``value`` with a registered format's encoder."""
    handlers = registry.get(encoding)
    if handlers is None or handlers.encode is None:
        raise RegistryError(f"No encoder registered for format {encoding!r}")
    return handlers.encode(value)


_DEFAULT_REGISTRY = FormatRegistry()


def default_registry() -> FormatRegistry:
    """The process-wide registry."""
    return _DEFAULT_REGISTRY
