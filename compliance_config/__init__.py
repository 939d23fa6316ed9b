"""
compliance_config -- single public entrypoint for runtime settings.

Responsibility:
    ``load_settings()`` builds a ``ComplianceSettings`` from the packaged
    defaults, an optional override file and ``COMPLIANCE_*`` environment
    variables.  ``get_settings()`` caches the result for the process.

Architecture position:
    Configuration.  This package sits beside ``compliance_kernel``; the
    kernel's services receive settings objects as arguments and never read
    files or the environment themselves.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``ValueError`` -- a value fails validation (unknown grade, bad timeout).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from compliance_config.loader import (
    DEFAULTS_PATH,
    apply_env_overrides,
    deep_merge,
    load_yaml_file,
    parse_settings,
)
from compliance_config.schema import (
    CheckFixSettings,
    ComplianceSettings,
    DatabaseSettings,
    LoggingSettings,
    PolicySettings,
)

_logger = logging.getLogger("compliance_kernel.config")

_cached: ComplianceSettings | None = None


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ComplianceSettings:
    """Load settings: defaults, then ``path`` (if given), then environment."""
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = deep_merge(data, load_yaml_file(Path(path)))
    data = apply_env_overrides(data, os.environ if environ is None else environ)
    settings = parse_settings(data)
    _logger.info(
        "COMPLIANCE_CONFIG_LOADED",
        extra={
            "environment": settings.environment,
            "override_file": str(path) if path is not None else None,
            "checkfix_stub": settings.checkfix.use_stub,
        },
    )
    return settings


def get_settings() -> ComplianceSettings:
    global _cached
    if _cached is None:
        _cached = load_settings(os.environ.get("COMPLIANCE_CONFIG_FILE"))
    return _cached


def reset_settings() -> None:
    """Drop the cached settings (tests)."""
    global _cached
    _cached = None


__all__ = [
    "CheckFixSettings",
    "ComplianceSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "PolicySettings",
    "get_settings",
    "load_settings",
    "reset_settings",
]
