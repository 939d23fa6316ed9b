"""
Config -> Kernel Bridges.

Functions that turn ``ComplianceSettings`` into the objects kernel services
are constructed with.  They live here because the kernel must never import
``compliance_config``.

Usage:
    from compliance_config import get_settings
    from compliance_config.bridges import build_checkfix_client, build_verification_policy
    from compliance_kernel.db.engine import session_scope

    settings = get_settings()
    client = build_checkfix_client(settings)
    policy = build_verification_policy(settings)

    with session_scope() as session:
        orchestrator = build_submission_orchestrator(settings, session)
        seed_system_templates(session)
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from compliance_config.loader import SYSTEM_TEMPLATES_PATH, load_system_templates
from compliance_config.schema import ComplianceSettings
from compliance_kernel.db.engine import init_engine_from_url
from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.template import QuestionnaireTemplate
from compliance_kernel.domain.verification import Grade, VerificationPolicy
from compliance_kernel.integrations.checkfix_client import (
    CheckFixClient,
    HttpCheckFixClient,
    StaticCheckFixClient,
)
from compliance_kernel.logging_config import configure_logging
from compliance_kernel.services.checkfix_service import CheckFixService
from compliance_kernel.services.requirement_service import RequirementService
from compliance_kernel.services.submission_orchestrator import SubmissionOrchestrator
from compliance_kernel.services.template_service import TemplateService


def build_verification_policy(settings: ComplianceSettings) -> VerificationPolicy:
    return VerificationPolicy(
        default_minimum_grade=Grade(settings.policy.default_minimum_grade),
        default_max_report_age_days=settings.policy.default_max_report_age_days,
    )


def build_checkfix_client(
    settings: ComplianceSettings, clock: Clock | None = None,
) -> CheckFixClient:
    """The HTTP client, or the deterministic stand-in when stubbed or unconfigured."""
    checkfix = settings.checkfix
    if checkfix.use_stub or not checkfix.api_url:
        return StaticCheckFixClient(clock=clock)
    return HttpCheckFixClient(
        base_url=checkfix.api_url,
        api_key=checkfix.api_key,
        timeout=checkfix.timeout_seconds,
    )


def apply_logging_settings(settings: ComplianceSettings) -> None:
    configure_logging(level=settings.logging.level)


def init_engine(settings: ComplianceSettings) -> Engine:
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )


def build_submission_orchestrator(
    settings: ComplianceSettings,
    session: Session,
    clock: Clock | None = None,
    client: CheckFixClient | None = None,
) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(
        session,
        clock=clock,
        client=client or build_checkfix_client(settings, clock),
        policy=build_verification_policy(settings),
        validity_days=settings.policy.verification_validity_days,
    )


def build_checkfix_service(
    settings: ComplianceSettings,
    session: Session,
    clock: Clock | None = None,
    client: CheckFixClient | None = None,
) -> CheckFixService:
    return CheckFixService(
        session,
        client or build_checkfix_client(settings, clock),
        clock=clock,
        policy=build_verification_policy(settings),
        refresh_days_before_expiry=settings.policy.refresh_days_before_expiry,
    )


def build_requirement_service(
    settings: ComplianceSettings, session: Session, clock: Clock | None = None,
) -> RequirementService:
    return RequirementService(
        session, clock=clock, reminder_days_before=settings.policy.reminder_days_before,
    )


def seed_system_templates(
    session: Session,
    clock: Clock | None = None,
    path: Path = SYSTEM_TEMPLATES_PATH,
) -> list[QuestionnaireTemplate]:
    """Create the packaged system templates that are not in the database yet."""
    return TemplateService(session, clock=clock).seed_system_templates(
        load_system_templates(path),
    )
