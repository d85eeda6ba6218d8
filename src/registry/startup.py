# src/registry/startup.py — v1
"""Capability startup: run each capability module's register() once.

Module paths come from config/capabilities.py (or the CAPABILITIES
setting). Initialisation is deterministic: modules register in list
order, then the registry is sealed.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Sequence

from pkgweaver.registry.registry import FormatRegistry, RegistryError, default_registry

logger = logging.getLogger(__name__)


def initialize_capabilities(
    module_paths: Sequence[str],
    registry: FormatRegistry | None = None,
    seal: bool = True,
) -> FormatRegistry:
    """Import and register every capability module.

    A registry that is already sealed is returned untouched, so repeated
    startup calls in one process are harmless.

    Args:
        module_paths: Dotted module paths, e.g.
            'pkgweaver.registry.formats.gzip_format'.
        registry: Target registry. Defaults to the process-wide one.
        seal: Seal the registry afterwards.

    Returns:
        The populated registry.

    Raises:
        RegistryError: A module cannot be imported or has no register().
    """
    registry = registry if registry is not None else default_registry()
    if registry.sealed:
        logger.debug("Capabilities already initialised: %s", registry.names)
        return registry

    for module_path in module_paths:
        register = _load_register(module_path)
        register(registry)

    if seal:
        registry.seal()
    logger.info("Capabilities initialised: %s", registry.names)
    return registry


def _load_register(module_path: str):
    """Import a capability module and return its register() callable."""
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise RegistryError(f"Cannot import capability {module_path}: {exc}") from exc

    register = getattr(module, "register", None)
    if register is None or not callable(register):
        raise RegistryError(f"Capability {module_path} has no register() function")
    return register
