"""
Module: compliance_kernel.models.response
Responsibility: ORM persistence for supplier responses.

Invariants enforced:
    - At most one live response per requirement: a partial unique index on
      requirement_id over rows with superseded_at IS NULL.  A concurrent second
      start fails with IntegrityError, which the repository maps to
      ResponseAlreadyExistsError.
    - UNIQUE(requirement_id, attempt) numbers retries and resubmissions.
    - submission_id and verification_id are mutually exclusive.

Failure modes:
    - IntegrityError on a second live response for the same requirement.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from compliance_kernel.domain.response import SupplierResponse


class SupplierResponseModel(Base):
    __tablename__ = "supplier_responses"

    __table_args__ = (
        Index(
            "ix_supplier_responses_live_unique",
            "requirement_id",
            unique=True,
            postgresql_where=text("superseded_at IS NULL"),
            sqlite_where=text("superseded_at IS NULL"),
        ),
        UniqueConstraint(
            "requirement_id", "attempt",
            name="uq_supplier_responses_attempt",
        ),
        CheckConstraint(
            "submission_id IS NULL OR verification_id IS NULL",
            name="ck_supplier_responses_single_result",
        ),
        Index("ix_supplier_responses_supplier", "supplier_id"),
    )

    requirement_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("requirements.id"), nullable=False,
    )
    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    draft_answers: Mapped[list] = mapped_column(nullable=False, default=list)
    submission_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    verification_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    percentage_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    grade: Mapped[str | None] = mapped_column(String(1), nullable=True)
    started_at: Mapped[datetime] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    review_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    superseded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<SupplierResponse {self.id} requirement={self.requirement_id} "
            f"attempt={self.attempt}>"
        )

    def to_dto(self) -> SupplierResponse:
        from compliance_kernel.domain.response import (
            SupplierResponse as SupplierResponseDTO,
        )
        from compliance_kernel.domain.scoring import AnswerInput
        from compliance_kernel.domain.verification import Grade

        return SupplierResponseDTO(
            response_id=self.id,
            requirement_id=self.requirement_id,
            supplier_id=self.supplier_id,
            started_at=self.started_at,
            attempt=self.attempt,
            draft_answers=tuple(
                AnswerInput(
                    question_id=UUID(d["question_id"]),
                    selected_options=tuple(d.get("selected_options", ())),
                    text_answer=d.get("text_answer", ""),
                )
                for d in self.draft_answers or ()
            ),
            submission_id=self.submission_id,
            verification_id=self.verification_id,
            score=self.score,
            max_score=self.max_score,
            percentage_score=self.percentage_score,
            passed=self.passed,
            grade=Grade(self.grade) if self.grade else None,
            submitted_at=self.submitted_at,
            reviewed_by=self.reviewed_by_id,
            reviewed_at=self.reviewed_at,
            review_notes=self.review_notes,
            superseded_at=self.superseded_at,
            updated_at=self.updated_at,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: SupplierResponse) -> SupplierResponseModel:
        model = cls(id=dto.response_id, version=0)
        model.apply(dto)
        return model

    def apply(self, dto: SupplierResponse) -> None:
        self.requirement_id = dto.requirement_id
        self.supplier_id = dto.supplier_id
        self.attempt = dto.attempt
        self.draft_answers = [
            {
                "question_id": str(d.question_id),
                "selected_options": list(d.selected_options),
                "text_answer": d.text_answer,
            }
            for d in dto.draft_answers
        ]
        self.submission_id = dto.submission_id
        self.verification_id = dto.verification_id
        self.score = dto.score
        self.max_score = dto.max_score
        self.percentage_score = dto.percentage_score
        self.passed = dto.passed
        self.grade = dto.grade.value if dto.grade else None
        self.started_at = dto.started_at
        self.submitted_at = dto.submitted_at
        self.reviewed_by_id = dto.reviewed_by
        self.reviewed_at = dto.reviewed_at
        self.review_notes = dto.review_notes
        self.superseded_at = dto.superseded_at
        self.updated_at = dto.updated_at
