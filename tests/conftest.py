"""
Pytest fixtures for the compliance kernel test suite.

Provides:
- A session-scoped engine with tables created once (in-memory SQLite by
  default, PostgreSQL when DATABASE_URL points at one)
- Per-test sessions isolated by an outer transaction that is rolled back
- Deterministic clock, service fixtures and small factories
- Structured log capture

Environment Variables:
- DATABASE_URL: optional database URL; defaults to ``sqlite://``.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from compliance_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from compliance_kernel.domain.clock import DeterministicClock
from compliance_kernel.domain.organization import OrganizationType
from compliance_kernel.domain.questionnaire import QuestionOption, QuestionType
from compliance_kernel.domain.requirement import CheckFixConfig, QuestionnaireConfig
from compliance_kernel.integrations.checkfix_client import StaticCheckFixClient
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from compliance_kernel.services.checkfix_service import CheckFixService
from compliance_kernel.services.organization_service import OrganizationService
from compliance_kernel.services.questionnaire_service import QuestionnaireService
from compliance_kernel.services.relationship_service import RelationshipService
from compliance_kernel.services.requirement_service import RequirementService
from compliance_kernel.services.review_service import ReviewService
from compliance_kernel.services.submission_orchestrator import SubmissionOrchestrator
from compliance_kernel.services.template_service import TemplateService

# Actors used across tests
COMPANY_USER_ID = UUID("00000000-0000-4000-a000-000000000001")
SUPPLIER_USER_ID = UUID("00000000-0000-4000-a000-000000000002")
REVIEWER_ID = UUID("00000000-0000-4000-a000-000000000003")

DEFAULT_DATABASE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.start_response(...)
            logs = captured_logs()
            assert any(r["message"] == "response_started" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the whole test session."""
    eng = init_engine_from_url(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Session joined to an outer transaction that is rolled back at teardown.

    ``session.commit()`` inside a test only releases a savepoint, so every
    test sees an empty database.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock and services
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def checkfix_client(clock) -> StaticCheckFixClient:
    return StaticCheckFixClient(clock=clock)


@pytest.fixture
def organization_service(session, clock) -> OrganizationService:
    return OrganizationService(session, clock)


@pytest.fixture
def relationship_service(session, clock) -> RelationshipService:
    return RelationshipService(session, clock)


@pytest.fixture
def requirement_service(session, clock) -> RequirementService:
    return RequirementService(session, clock)


@pytest.fixture
def questionnaire_service(session, clock) -> QuestionnaireService:
    return QuestionnaireService(session, clock)


@pytest.fixture
def template_service(session, clock) -> TemplateService:
    return TemplateService(session, clock)


@pytest.fixture
def orchestrator(session, clock, checkfix_client) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(session, clock=clock, client=checkfix_client)


@pytest.fixture
def review_service(session, clock) -> ReviewService:
    return ReviewService(session, clock)


@pytest.fixture
def checkfix_service(session, clock, checkfix_client) -> CheckFixService:
    return CheckFixService(session, checkfix_client, clock=clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def company(organization_service):
    return organization_service.register("Acme Corp", OrganizationType.COMPANY, domain="acme.test")


@pytest.fixture
def supplier(organization_service):
    return organization_service.register(
        "Example Supplies", OrganizationType.SUPPLIER, domain="example.com",
    )


@pytest.fixture
def linked_supplier(checkfix_service, supplier):
    return checkfix_service.link_account(supplier.organization_id, "acct-001")


@pytest.fixture
def active_relationship(relationship_service, company, supplier):
    invited = relationship_service.invite_supplier(
        company.organization_id, "security@example.com", COMPANY_USER_ID,
    )
    return relationship_service.accept_invitation(
        invited.relationship_id, supplier.organization_id, SUPPLIER_USER_ID,
    )


@pytest.fixture
def create_questionnaire(questionnaire_service, company):
    """
    Build and publish a two-question questionnaire.

    Questions:
    - TEXT worth 1 point
    - MULTIPLE_CHOICE worth 4 points (two correct options at 2 each, one wrong)

    Returns ``(questionnaire, text_question, choice_question)``.
    """

    def _create(passing_score: int = 70, publish: bool = True):
        questionnaire = questionnaire_service.create_questionnaire(
            company.organization_id, "Vendor security review", COMPANY_USER_ID,
            passing_score=passing_score,
        )
        qid = questionnaire.questionnaire_id
        questionnaire_service.add_topic(qid, company.organization_id, "access", "Access control")
        text_q = questionnaire_service.add_question(
            qid, company.organization_id,
            "Describe your incident response process.",
            QuestionType.TEXT,
            topic_id="access",
        )
        choice_q = questionnaire_service.add_question(
            qid, company.organization_id,
            "Which controls are enforced?",
            QuestionType.MULTIPLE_CHOICE,
            options=[
                QuestionOption("mfa", "MFA", points=2, is_correct=True, order=0),
                QuestionOption("sso", "SSO", points=2, is_correct=True, order=1),
                QuestionOption("none", "None", points=0, is_correct=False, order=2),
            ],
            topic_id="access",
        )
        if publish:
            questionnaire = questionnaire_service.publish(qid, company.organization_id)
        else:
            questionnaire = questionnaire_service.get_questionnaire(qid, company.organization_id)
        return questionnaire, text_q, choice_q

    return _create


@pytest.fixture
def create_requirement(requirement_service, active_relationship, company):
    """Factory for requirements under the active relationship."""

    def _create(config, title: str = "Annual security review", **kwargs):
        return requirement_service.create_requirement(
            active_relationship.relationship_id,
            company.organization_id,
            title,
            config,
            COMPANY_USER_ID,
            **kwargs,
        )

    return _create


@pytest.fixture
def questionnaire_requirement(create_questionnaire, create_requirement):
    """A PENDING questionnaire requirement plus its questions."""
    questionnaire, text_q, choice_q = create_questionnaire()
    requirement = create_requirement(QuestionnaireConfig(questionnaire.questionnaire_id))
    return requirement, text_q, choice_q


@pytest.fixture
def checkfix_requirement(create_requirement):
    return create_requirement(CheckFixConfig(), title="External security grade")
