"""
Configuration Loader (``compliance_config.loader``).

Responsibility
--------------
Reads the packaged ``defaults.yaml``, deep-merges an optional override file
on top, applies ``COMPLIANCE_*`` environment variables last, and parses the
result into the frozen ``compliance_config.schema`` dataclasses.

Invariants enforced
-------------------
* Precedence is defaults < override file < environment.
* All parse errors raise ``ValueError`` with the offending key; nothing is
  silently coerced to a default.
* Every parsed object is a frozen dataclass from ``schema.py``.

Failure modes
-------------
* Missing override file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown grade letter, non-positive timeout or day count  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import (
    CheckFixSettings,
    ComplianceSettings,
    DatabaseSettings,
    LoggingSettings,
    PolicySettings,
)
from compliance_kernel.domain.verification import Grade

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
SYSTEM_TEMPLATES_PATH = Path(__file__).parent / "system_templates.yaml"

# Environment variable -> (section, key).  Section None means top level.
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "COMPLIANCE_ENVIRONMENT": (None, "environment"),
    "COMPLIANCE_DATABASE_URL": ("database", "url"),
    "COMPLIANCE_DATABASE_ECHO": ("database", "echo"),
    "COMPLIANCE_CHECKFIX_API_URL": ("checkfix", "api_url"),
    "COMPLIANCE_CHECKFIX_API_KEY": ("checkfix", "api_key"),
    "COMPLIANCE_CHECKFIX_TIMEOUT_SECONDS": ("checkfix", "timeout_seconds"),
    "COMPLIANCE_CHECKFIX_USE_STUB": ("checkfix", "use_stub"),
    "COMPLIANCE_DEFAULT_MINIMUM_GRADE": ("policy", "default_minimum_grade"),
    "COMPLIANCE_DEFAULT_MAX_REPORT_AGE_DAYS": ("policy", "default_max_report_age_days"),
    "COMPLIANCE_LOG_LEVEL": ("logging", "level"),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def load_system_templates(path: Path = SYSTEM_TEMPLATES_PATH) -> list[dict[str, Any]]:
    """Template documents from the ``templates`` list of a YAML file."""
    templates = load_yaml_file(path).get("templates") or []
    if not isinstance(templates, list) or not all(isinstance(t, dict) for t in templates):
        raise ValueError(f"{path}: templates must be a list of mappings")
    return templates


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    result = deep_merge(data, {})
    for var, (section, key) in ENV_OVERRIDES.items():
        if var not in environ:
            continue
        if section is None:
            result[key] = environ[var]
        else:
            result[section] = {**result.get(section, {}), key: environ[var]}
    return result


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValueError(f"{name}: expected a boolean, got {value!r}")


def _as_int(name: str, value: Any, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name}: expected an integer, got {value!r}") from exc
    if minimum is not None and number < minimum:
        raise ValueError(f"{name}: must be >= {minimum}, got {number}")
    return number


def _as_grade(name: str, value: Any) -> str:
    letter = str(value).strip().upper()
    try:
        Grade(letter)
    except ValueError as exc:
        raise ValueError(f"{name}: unknown grade {value!r}") from exc
    return letter


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=str(data.get("url", DatabaseSettings.url)),
        echo=_as_bool("database.echo", data.get("echo", False)),
        pool_size=_as_int("database.pool_size", data.get("pool_size", 5), minimum=1),
        max_overflow=_as_int("database.max_overflow", data.get("max_overflow", 10), minimum=0),
    )


def parse_checkfix(data: Mapping[str, Any]) -> CheckFixSettings:
    raw_timeout = data.get("timeout_seconds", 30)
    try:
        timeout = float(raw_timeout)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"checkfix.timeout_seconds: expected a number, got {raw_timeout!r}"
        ) from exc
    if timeout <= 0:
        raise ValueError(f"checkfix.timeout_seconds: must be positive, got {timeout}")
    return CheckFixSettings(
        api_url=str(data.get("api_url") or ""),
        api_key=str(data.get("api_key") or ""),
        timeout_seconds=timeout,
        use_stub=_as_bool("checkfix.use_stub", data.get("use_stub", True)),
    )


def parse_policy(data: Mapping[str, Any]) -> PolicySettings:
    return PolicySettings(
        default_minimum_grade=_as_grade(
            "policy.default_minimum_grade", data.get("default_minimum_grade", "C"),
        ),
        default_max_report_age_days=_as_int(
            "policy.default_max_report_age_days",
            data.get("default_max_report_age_days", 90), minimum=0,
        ),
        verification_validity_days=_as_int(
            "policy.verification_validity_days",
            data.get("verification_validity_days", 30), minimum=1,
        ),
        reminder_days_before=_as_int(
            "policy.reminder_days_before", data.get("reminder_days_before", 3), minimum=0,
        ),
        refresh_days_before_expiry=_as_int(
            "policy.refresh_days_before_expiry",
            data.get("refresh_days_before_expiry", 7), minimum=0,
        ),
    )


def parse_logging(data: Mapping[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ValueError(f"logging.level: unknown level {level!r}")
    return LoggingSettings(level=level)


def parse_settings(data: Mapping[str, Any]) -> ComplianceSettings:
    return ComplianceSettings(
        environment=str(data.get("environment", "development")),
        database=parse_database(data.get("database") or {}),
        checkfix=parse_checkfix(data.get("checkfix") or {}),
        policy=parse_policy(data.get("policy") or {}),
        logging=parse_logging(data.get("logging") or {}),
    )
