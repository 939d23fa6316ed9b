"""Tests for RequirementService: assignment guards, edits, expiry, reminders, queries."""

from datetime import timedelta
from uuid import uuid4

import pytest

from compliance_kernel.domain.requirement import (
    CheckFixConfig,
    Priority,
    QuestionnaireConfig,
    RequirementStatus,
    RequirementType,
)
from compliance_kernel.domain.verification import Grade
from compliance_kernel.exceptions import (
    InvalidRequirementConfigError,
    QuestionnaireNotFoundError,
    QuestionnaireNotPublishedError,
    RelationshipNotActiveError,
    RequirementNotEditableError,
    RequirementNotFoundError,
)
from tests.conftest import COMPANY_USER_ID, SUPPLIER_USER_ID


class TestCreate:
    def test_new_requirement_is_pending(
        self, create_requirement, active_relationship, supplier, clock,
    ):
        requirement = create_requirement(
            CheckFixConfig(minimum_grade=Grade.B), priority="high",
            due_date=clock.now() + timedelta(days=30),
        )
        assert requirement.status == RequirementStatus.PENDING
        assert requirement.requirement_type == RequirementType.CHECKFIX
        assert requirement.priority == Priority.HIGH
        assert requirement.supplier_id == supplier.organization_id
        assert requirement.relationship_id == active_relationship.relationship_id
        assert len(requirement.status_history) == 1

    def test_relationship_must_be_active(
        self, requirement_service, relationship_service, company,
    ):
        pending = relationship_service.invite_supplier(
            company.organization_id, "new@vendor.example", COMPANY_USER_ID,
        )
        with pytest.raises(RelationshipNotActiveError):
            requirement_service.create_requirement(
                pending.relationship_id, company.organization_id, "Scan",
                CheckFixConfig(), COMPANY_USER_ID,
            )

    def test_suspended_relationship(
        self, requirement_service, relationship_service, active_relationship, company,
    ):
        relationship_service.suspend(
            active_relationship.relationship_id, company.organization_id,
            COMPANY_USER_ID, "Paused",
        )
        with pytest.raises(RelationshipNotActiveError):
            requirement_service.create_requirement(
                active_relationship.relationship_id, company.organization_id, "Scan",
                CheckFixConfig(), COMPANY_USER_ID,
            )

    def test_questionnaire_must_be_published(self, create_questionnaire, create_requirement):
        draft, _, _ = create_questionnaire(publish=False)
        with pytest.raises(QuestionnaireNotPublishedError):
            create_requirement(QuestionnaireConfig(draft.questionnaire_id))

    def test_questionnaire_must_exist(self, create_requirement):
        with pytest.raises(QuestionnaireNotFoundError):
            create_requirement(QuestionnaireConfig(uuid4()))

    def test_empty_title(self, create_requirement):
        with pytest.raises(InvalidRequirementConfigError):
            create_requirement(CheckFixConfig(), title="  ")


class TestEdit:
    def test_update_pending(self, requirement_service, checkfix_requirement, company):
        updated = requirement_service.update_requirement(
            checkfix_requirement.requirement_id, company.organization_id,
            title="Quarterly scan", priority="low",
        )
        assert updated.title == "Quarterly scan"
        assert updated.priority == Priority.LOW
        assert updated.version == checkfix_requirement.version + 1

    def test_clear_due_date(self, requirement_service, create_requirement, company, clock):
        requirement = create_requirement(CheckFixConfig(), due_date=clock.now() + timedelta(days=5))
        unchanged = requirement_service.update_requirement(
            requirement.requirement_id, company.organization_id, title="Renamed",
        )
        assert unchanged.due_date == clock.now() + timedelta(days=5)

        cleared = requirement_service.update_requirement(
            requirement.requirement_id, company.organization_id, clear_due_date=True,
        )
        assert cleared.due_date is None
        assert requirement_service.get_requirement(
            requirement.requirement_id, company.organization_id,
        ).due_date is None

    def test_set_and_clear_due_date_together(
        self, requirement_service, checkfix_requirement, company, clock,
    ):
        with pytest.raises(InvalidRequirementConfigError):
            requirement_service.update_requirement(
                checkfix_requirement.requirement_id, company.organization_id,
                due_date=clock.now(), clear_due_date=True,
            )

    def test_started_requirement_is_locked(
        self, requirement_service, orchestrator, questionnaire_requirement, company, supplier,
    ):
        requirement, _, _ = questionnaire_requirement
        orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        with pytest.raises(RequirementNotEditableError):
            requirement_service.update_requirement(
                requirement.requirement_id, company.organization_id, title="Changed",
            )

    def test_other_company(self, requirement_service, checkfix_requirement):
        with pytest.raises(RequirementNotFoundError):
            requirement_service.get_requirement(checkfix_requirement.requirement_id, uuid4())


class TestExpiry:
    def test_expire_overdue_only_open_past_due(
        self, requirement_service, create_requirement, clock, supplier,
    ):
        due = clock.now() + timedelta(days=2)
        overdue_pending = create_requirement(CheckFixConfig(), title="A", due_date=due)
        not_yet_due = create_requirement(
            CheckFixConfig(), title="B", due_date=clock.now() + timedelta(days=10),
        )
        no_due_date = create_requirement(CheckFixConfig(), title="C")

        clock.advance(days=3)
        expired = requirement_service.expire_overdue(COMPANY_USER_ID)

        assert [r.requirement_id for r in expired] == [overdue_pending.requirement_id]
        assert expired[0].status == RequirementStatus.EXPIRED
        assert expired[0].status_history[-1].reason == "Due date passed"
        for untouched in (not_yet_due, no_due_date):
            reloaded = requirement_service.get_requirement_for_supplier(
                untouched.requirement_id, supplier.organization_id,
            )
            assert reloaded.status == RequirementStatus.PENDING

    def test_submitted_requirement_is_not_auto_expired(
        self, requirement_service, orchestrator, create_requirement, linked_supplier, clock,
    ):
        requirement = create_requirement(
            CheckFixConfig(), due_date=clock.now() + timedelta(days=1),
        )
        orchestrator.submit_checkfix(
            requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-1",
        )
        clock.advance(days=2)
        assert requirement_service.expire_overdue(COMPANY_USER_ID) == []


class TestReminders:
    def test_due_for_reminder_and_mark_sent(self, requirement_service, create_requirement, clock):
        soon = create_requirement(
            CheckFixConfig(), title="Soon", due_date=clock.now() + timedelta(days=2),
        )
        create_requirement(
            CheckFixConfig(), title="Later", due_date=clock.now() + timedelta(days=20),
        )

        due = requirement_service.due_for_reminder()
        assert [r.requirement_id for r in due] == [soon.requirement_id]
        assert requirement_service.due_for_reminder(days_before=30) != due

        requirement_service.mark_reminder_sent(soon.requirement_id)
        assert requirement_service.due_for_reminder() == []


class TestQueries:
    def test_lists_and_stats(
        self, requirement_service, create_requirement, questionnaire_requirement,
        company, supplier, active_relationship, clock,
    ):
        create_requirement(
            CheckFixConfig(), title="Overdue", due_date=clock.now() - timedelta(days=1),
        )

        by_type = requirement_service.list_for_company(
            company.organization_id, requirement_type="checkfix",
        )
        assert by_type.total == 1

        for_supplier = requirement_service.list_for_supplier(
            supplier.organization_id, status=RequirementStatus.PENDING,
        )
        assert for_supplier.total == 2

        assert len(requirement_service.list_for_relationship(
            active_relationship.relationship_id, company.organization_id,
        )) == 2

        stats = requirement_service.requirement_stats(company_id=company.organization_id)
        assert stats.total == 2
        assert stats.overdue == 1
        assert stats.by_status[RequirementStatus.PENDING] == 2
