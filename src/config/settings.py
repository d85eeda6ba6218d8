# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: workspace
roots, target platform, cache backend, toolchain, capabilities, logging.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pkgweaver.config.capabilities import DEFAULT_CAPABILITIES
from pkgweaver.core.models import Platform

_HOST = Platform.host()

# Capability module required by each artifact encoding.
_ENCODING_CAPABILITY: dict[str, str] = {
    "gzip": "pkgweaver.registry.formats.gzip_format",
    "bzip2": "pkgweaver.registry.formats.bzip2_format",
}


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Workspace ===
    workspace_roots: str = "."
    source_extension: str = ".src"

    # === Target ===
    target_os: str = _HOST.os
    target_arch: str = _HOST.arch
    build_tags: str = ""

    # === Scheduler ===
    max_concurrency: int = 4

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["json", "sqlite", "redis"] = "json"
    cache_root: Path = Path("~/.pkgweaver/cache")
    cache_redis_url: str = ""

    # === Outputs ===
    artifact_root: Path = Path("~/.pkgweaver/pkg")
    bin_dir: Path = Path("./bin")
    artifact_encoding: Literal["none", "gzip", "bzip2"] = "none"

    # === Toolchain ===
    toolchain: Literal["manifest", "command"] = "manifest"
    toolchain_id: str = "manifest-1"
    compile_command: str = ""
    link_command: str = ""

    # === Capabilities ===
    capabilities: str = ",".join(DEFAULT_CAPABILITIES)

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be >= 1")
        return v

    @field_validator("source_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        v = v.strip()
        if not v or v == ".":
            raise ValueError("source_extension must not be empty")
        return v if v.startswith(".") else f".{v}"

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.toolchain == "command":
            if not self.compile_command:
                errors.append("TOOLCHAIN=command requires COMPILE_COMMAND")
            if not self.link_command:
                errors.append("TOOLCHAIN=command requires LINK_COMMAND")

        required = _ENCODING_CAPABILITY.get(self.artifact_encoding)
        if required and required not in self.capabilities_list:
            errors.append(
                f"ARTIFACT_ENCODING={self.artifact_encoding} requires capability {required}"
            )

        if not self.workspace_roots_list:
            errors.append("WORKSPACE_ROOTS must name at least one directory")

        try:
            self.target_platform
        except ValueError as exc:
            errors.append(f"Invalid target platform: {exc}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def workspace_roots_list(self) -> list[Path]:
        """Parse os.pathsep- or comma-separated workspace roots."""
        raw = self.workspace_roots.replace(",", os.pathsep)
        return [Path(r.strip()).expanduser() for r in raw.split(os.pathsep) if r.strip()]

    @property
    def target_platform(self) -> Platform:
        return Platform(os=self.target_os, arch=self.target_arch)

    @property
    def build_tags_list(self) -> list[str]:
        """Parse comma-separated build tags."""
        return [t.strip() for t in self.build_tags.split(",") if t.strip()]

    @property
    def capabilities_list(self) -> list[str]:
        """Parse comma-separated capability modules."""
        return [c.strip() for c in self.capabilities.split(",") if c.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (CLI flags, tests).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
