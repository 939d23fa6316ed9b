"""
RequirementService -- assigning and administering compliance requirements.

Responsibility:
    Creates requirements against ACTIVE relationships, edits them while
    PENDING, expires overdue ones, and answers the listing and reminder
    queries an external notifier polls.  Response-driven transitions
    (start, submit, review) belong to ``SubmissionOrchestrator`` and
    ``ReviewService``.

Architecture position:
    Kernel > Services.  Uses RelationshipRepository (precondition),
    QuestionnaireRepository (questionnaire config check) and
    RequirementRepository (storage).

Invariants enforced:
    - A requirement is created only when the relationship
      ``can_receive_requirements()``.
    - A questionnaire requirement references a PUBLISHED questionnaire of
      the same company.
    - Only PENDING and IN_PROGRESS requirements expire automatically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.requirement import (
    Priority,
    QuestionnaireConfig,
    Requirement,
    RequirementConfig,
    RequirementStatus,
    RequirementType,
)
from compliance_kernel.domain.workflow import parse_enum
from compliance_kernel.exceptions import (
    QuestionnaireNotPublishedError,
    RelationshipNotActiveError,
)
from compliance_kernel.logging_config import get_logger
from compliance_kernel.repositories.base import Page, PaginationOptions
from compliance_kernel.repositories.questionnaire_repository import QuestionnaireRepository
from compliance_kernel.repositories.relationship_repository import RelationshipRepository
from compliance_kernel.repositories.requirement_repository import RequirementRepository
from compliance_kernel.services.base import BaseService

logger = get_logger("services.requirement")

DEFAULT_REMINDER_DAYS_BEFORE = 3

_AUTO_EXPIRABLE = frozenset({RequirementStatus.PENDING, RequirementStatus.IN_PROGRESS})


@dataclass(frozen=True)
class RequirementStats:
    total: int
    overdue: int
    by_status: dict[RequirementStatus, int] = field(default_factory=dict)


class RequirementService(BaseService):
    """Company-side requirement administration."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        reminder_days_before: int = DEFAULT_REMINDER_DAYS_BEFORE,
    ):
        super().__init__(session, clock)
        self.reminder_days_before = reminder_days_before
        self.requirements = RequirementRepository(session)
        self.relationships = RelationshipRepository(session)
        self.questionnaires = QuestionnaireRepository(session)

    def _check_questionnaire(self, config: RequirementConfig, company_id: UUID) -> None:
        if not isinstance(config, QuestionnaireConfig):
            return
        questionnaire = self.questionnaires.get_for_company(
            config.questionnaire_id, company_id,
        )
        if not questionnaire.is_published:
            raise QuestionnaireNotPublishedError(
                questionnaire.questionnaire_id, questionnaire.status.value,
            )

    def create_requirement(
        self,
        relationship_id: UUID,
        company_id: UUID,
        title: str,
        config: RequirementConfig,
        assigned_by: UUID,
        description: str = "",
        priority: Priority | str = Priority.MEDIUM,
        due_date: datetime | None = None,
    ) -> Requirement:
        """
        Assign a new PENDING requirement under a relationship.

        Raises:
            RelationshipNotFoundError: unknown id or another company's relationship.
            RelationshipNotActiveError: relationship cannot receive requirements.
            QuestionnaireNotFoundError / QuestionnaireNotPublishedError.
            InvalidRequirementConfigError: empty title or bad passing score.
        """
        relationship = self.relationships.get_for_company(relationship_id, company_id)
        if not relationship.can_receive_requirements():
            raise RelationshipNotActiveError(relationship_id, relationship.status.value)
        self._check_questionnaire(config, company_id)

        requirement = Requirement.assign(
            relationship_id=relationship_id,
            company_id=company_id,
            supplier_id=relationship.supplier_id,
            title=title,
            config=config,
            assigned_by=assigned_by,
            at=self._clock.now(),
            description=description,
            priority=parse_enum(Priority, priority),
            due_date=due_date,
        )
        created = self.requirements.create(requirement)
        logger.info(
            "requirement_created",
            extra={
                "requirement_id": str(created.requirement_id),
                "relationship_id": str(relationship_id),
                "requirement_type": created.requirement_type.value,
            },
        )
        return created

    def update_requirement(
        self,
        requirement_id: UUID,
        company_id: UUID,
        title: str | None = None,
        description: str | None = None,
        priority: Priority | str | None = None,
        due_date: datetime | None = None,
        config: RequirementConfig | None = None,
        clear_due_date: bool = False,
    ) -> Requirement:
        """
        Edit a PENDING requirement; raises RequirementNotEditableError otherwise.

        ``None`` leaves a field unchanged; pass ``clear_due_date=True`` to
        remove the due date.
        """
        requirement = self.requirements.get_for_company(requirement_id, company_id)
        updated = requirement.with_details(
            self._clock.now(),
            title=title,
            description=description,
            priority=parse_enum(Priority, priority) if priority is not None else None,
            due_date=due_date,
            config=config,
            clear_due_date=clear_due_date,
        )
        if config is not None:
            self._check_questionnaire(config, company_id)
        return self.requirements.update(updated)

    def expire_requirement(
        self,
        requirement_id: UUID,
        company_id: UUID,
        user_id: UUID,
        reason: str = "Expired by company",
    ) -> Requirement:
        requirement = self.requirements.get_for_company(requirement_id, company_id)
        expired = self.requirements.update(
            requirement.expire(user_id, self._clock.now(), reason),
        )
        logger.info("requirement_expired", extra={"requirement_id": str(requirement_id)})
        return expired

    def expire_overdue(self, actor_id: UUID) -> list[Requirement]:
        """Expire every PENDING/IN_PROGRESS requirement whose due date has passed."""
        now = self._clock.now()
        expired: list[Requirement] = []
        for requirement in self.requirements.list_open_due_before(now):
            if requirement.status not in _AUTO_EXPIRABLE:
                continue
            expired.append(self.requirements.update(requirement.expire(actor_id, now)))
        if expired:
            logger.info("overdue_requirements_expired", extra={"count": len(expired)})
        return expired

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_requirement(self, requirement_id: UUID, company_id: UUID) -> Requirement:
        return self.requirements.get_for_company(requirement_id, company_id)

    def get_requirement_for_supplier(
        self, requirement_id: UUID, supplier_id: UUID,
    ) -> Requirement:
        return self.requirements.get_for_supplier(requirement_id, supplier_id)

    def list_for_company(
        self,
        company_id: UUID,
        status: RequirementStatus | str | None = None,
        requirement_type: RequirementType | str | None = None,
        priority: Priority | str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Requirement]:
        return self.requirements.list_by_company(
            company_id,
            PaginationOptions(page=page, page_size=page_size),
            **self._filters(status, requirement_type, priority),
        )

    def list_for_supplier(
        self,
        supplier_id: UUID,
        status: RequirementStatus | str | None = None,
        requirement_type: RequirementType | str | None = None,
        priority: Priority | str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Requirement]:
        return self.requirements.list_by_supplier(
            supplier_id,
            PaginationOptions(page=page, page_size=page_size),
            **self._filters(status, requirement_type, priority),
        )

    def list_for_relationship(
        self, relationship_id: UUID, company_id: UUID,
    ) -> list[Requirement]:
        self.relationships.get_for_company(relationship_id, company_id)
        return self.requirements.list_by_relationship(relationship_id)

    @staticmethod
    def _filters(status, requirement_type, priority) -> dict:
        return {
            "status": parse_enum(RequirementStatus, status) if status is not None else None,
            "requirement_type": (
                parse_enum(RequirementType, requirement_type)
                if requirement_type is not None else None
            ),
            "priority": parse_enum(Priority, priority) if priority is not None else None,
        }

    def requirement_stats(
        self,
        company_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> RequirementStats:
        by_status = self.requirements.count_by_status(company_id, supplier_id)
        overdue = self.requirements.list_open_due_before(
            self._clock.now(), company_id=company_id, supplier_id=supplier_id,
        )
        return RequirementStats(
            total=sum(by_status.values()),
            overdue=len(overdue),
            by_status=by_status,
        )

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def due_for_reminder(self, days_before: int | None = None) -> list[Requirement]:
        """Requirements an external notifier should remind about now."""
        threshold = self.reminder_days_before if days_before is None else days_before
        now = self._clock.now()
        return [
            r for r in self.requirements.list_unreminded_with_due_date()
            if r.needs_reminder(threshold, now)
        ]

    def mark_reminder_sent(self, requirement_id: UUID) -> Requirement:
        requirement = self.requirements.get_by_id(requirement_id)
        return self.requirements.update(requirement.mark_reminder_sent(self._clock.now()))
