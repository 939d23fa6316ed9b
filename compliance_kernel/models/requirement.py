"""
Module: compliance_kernel.models.requirement
Responsibility: ORM persistence for requirements and their append-only
    status history.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - DB check constraints limit status, type and priority values.
    - The kind-specific columns agree with requirement_type: questionnaire
      rows carry a questionnaire_id and no grade settings; checkfix rows the
      reverse.  The flat columns are mapped back to the tagged config variant
      in to_dto().
    - Status-change rows are append-only (ImmutabilityViolationError on
      UPDATE/DELETE).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compliance_kernel.db.base import Base, UUIDString
from compliance_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from compliance_kernel.domain.requirement import Requirement, RequirementConfig
    from compliance_kernel.domain.workflow import StatusChange


class RequirementModel(Base):
    """Persistent requirement.  ``id`` is the domain requirement_id."""

    __tablename__ = "requirements"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'submitted', 'under_review', "
            "'rejected', 'approved', 'expired')",
            name="ck_requirements_valid_status",
        ),
        CheckConstraint(
            "requirement_type IN ('questionnaire', 'checkfix')",
            name="ck_requirements_valid_type",
        ),
        CheckConstraint(
            "priority IN ('low', 'medium', 'high')",
            name="ck_requirements_valid_priority",
        ),
        CheckConstraint(
            "(requirement_type = 'questionnaire' AND questionnaire_id IS NOT NULL "
            "AND minimum_grade IS NULL AND max_report_age_days IS NULL) OR "
            "(requirement_type = 'checkfix' AND questionnaire_id IS NULL "
            "AND passing_score IS NULL)",
            name="ck_requirements_config_matches_type",
        ),
        Index("ix_requirements_company_status", "company_id", "status"),
        Index("ix_requirements_supplier_status", "supplier_id", "status"),
        Index("ix_requirements_relationship", "relationship_id"),
        Index("ix_requirements_due_date", "status", "due_date"),
    )

    relationship_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("relationships.id"), nullable=False,
    )
    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requirement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    questionnaire_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    passing_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    minimum_grade: Mapped[str | None] = mapped_column(String(1), nullable=True)
    max_report_age_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    assigned_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(nullable=False)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    history: Mapped[list["RequirementStatusChangeModel"]] = relationship(
        "RequirementStatusChangeModel",
        back_populates="requirement_row",
        order_by="RequirementStatusChangeModel.seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Requirement {self.id} type={self.requirement_type} "
            f"status={self.status}>"
        )

    def _config(self) -> RequirementConfig:
        from compliance_kernel.domain.requirement import (
            CheckFixConfig,
            QuestionnaireConfig,
            RequirementType,
        )
        from compliance_kernel.domain.verification import Grade

        if RequirementType(self.requirement_type) == RequirementType.QUESTIONNAIRE:
            return QuestionnaireConfig(
                questionnaire_id=self.questionnaire_id,
                passing_score=self.passing_score,
            )
        return CheckFixConfig(
            minimum_grade=Grade(self.minimum_grade) if self.minimum_grade else None,
            max_report_age_days=self.max_report_age_days,
        )

    def to_dto(self) -> Requirement:
        """Convert ORM model to frozen domain object."""
        from compliance_kernel.domain.requirement import (
            Priority,
            Requirement as RequirementDTO,
            RequirementStatus,
        )

        return RequirementDTO(
            requirement_id=self.id,
            relationship_id=self.relationship_id,
            company_id=self.company_id,
            supplier_id=self.supplier_id,
            title=self.title,
            config=self._config(),
            assigned_by=self.assigned_by_id,
            assigned_at=self.assigned_at,
            description=self.description,
            priority=Priority(self.priority),
            due_date=self.due_date,
            status=RequirementStatus(self.status),
            reminder_sent_at=self.reminder_sent_at,
            updated_at=self.updated_at,
            status_history=tuple(
                h.to_dto(RequirementStatus) for h in self.history
            ),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Requirement) -> RequirementModel:
        model = cls(id=dto.requirement_id, version=0)
        model.apply(dto)
        return model

    def apply(self, dto: Requirement) -> None:
        """Copy mutable fields and append any new history entries."""
        from compliance_kernel.domain.requirement import QuestionnaireConfig

        self.relationship_id = dto.relationship_id
        self.company_id = dto.company_id
        self.supplier_id = dto.supplier_id
        self.requirement_type = dto.requirement_type.value
        self.title = dto.title
        self.description = dto.description
        self.priority = dto.priority.value
        self.due_date = dto.due_date
        self.status = dto.status.value
        self.assigned_by_id = dto.assigned_by
        self.assigned_at = dto.assigned_at
        self.reminder_sent_at = dto.reminder_sent_at
        self.updated_at = dto.updated_at

        config = dto.config
        if isinstance(config, QuestionnaireConfig):
            self.questionnaire_id = config.questionnaire_id
            self.passing_score = config.passing_score
            self.minimum_grade = None
            self.max_report_age_days = None
        else:
            self.questionnaire_id = None
            self.passing_score = None
            self.minimum_grade = config.minimum_grade.value if config.minimum_grade else None
            self.max_report_age_days = config.max_report_age_days

        persisted = len(self.history)
        if len(dto.status_history) < persisted:
            raise ImmutabilityViolationError(
                entity_type="Requirement",
                entity_id=str(self.id),
                reason="status history cannot shrink",
            )
        for seq, change in enumerate(dto.status_history[persisted:], start=persisted):
            self.history.append(
                RequirementStatusChangeModel.from_dto(self.id, seq, change)
            )


class RequirementStatusChangeModel(Base):
    """One requirement status-history entry.  Append-only."""

    __tablename__ = "requirement_status_changes"

    __table_args__ = (
        UniqueConstraint(
            "requirement_id", "seq",
            name="uq_requirement_status_changes_seq",
        ),
    )

    requirement_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("requirements.id"), nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    changed_at: Mapped[datetime] = mapped_column(nullable=False)

    requirement_row: Mapped["RequirementModel"] = relationship(
        "RequirementModel", back_populates="history",
    )

    def to_dto(self, status_type):
        from compliance_kernel.domain.workflow import StatusChange as StatusChangeDTO

        return StatusChangeDTO(
            from_status=status_type(self.from_status) if self.from_status else None,
            to_status=status_type(self.to_status),
            changed_by=self.changed_by_id,
            reason=self.reason,
            changed_at=self.changed_at,
        )

    @classmethod
    def from_dto(
        cls, requirement_id: UUID, seq: int, change: StatusChange,
    ) -> RequirementStatusChangeModel:
        return cls(
            requirement_id=requirement_id,
            seq=seq,
            from_status=change.from_status.value if change.from_status else None,
            to_status=change.to_status.value,
            changed_by_id=change.changed_by,
            reason=change.reason,
            changed_at=change.changed_at,
        )


@event.listens_for(RequirementStatusChangeModel, "before_update")
def prevent_requirement_history_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="RequirementStatusChange",
        entity_id=str(target.id),
        reason="Status history is append-only -- cannot modify",
    )


@event.listens_for(RequirementStatusChangeModel, "before_delete")
def prevent_requirement_history_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="RequirementStatusChange",
        entity_id=str(target.id),
        reason="Status history is append-only -- cannot delete",
    )
