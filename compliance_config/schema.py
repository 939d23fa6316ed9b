"""
ComplianceSettings schema.

Frozen dataclasses the loader parses YAML into.  Every field has a default
so an empty document still produces a usable configuration; the packaged
``defaults.yaml`` states the same values explicitly for reviewers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10


@dataclass(frozen=True)
class CheckFixSettings:
    """Connection to the external security-grade report API."""

    api_url: str = ""
    api_key: str = ""
    timeout_seconds: float = 30.0
    use_stub: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Workflow policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolicySettings:
    """Defaults applied when a requirement does not override them."""

    default_minimum_grade: str = "C"
    default_max_report_age_days: int = 90
    verification_validity_days: int = 30
    reminder_days_before: int = 3
    refresh_days_before_expiry: int = 7


@dataclass(frozen=True)
class ComplianceSettings:
    environment: str = "development"
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    checkfix: CheckFixSettings = field(default_factory=CheckFixSettings)
    policy: PolicySettings = field(default_factory=PolicySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
