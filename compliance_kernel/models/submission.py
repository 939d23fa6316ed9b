"""
Module: compliance_kernel.models.submission
Responsibility: ORM persistence for questionnaire submissions and CheckFix
    verifications -- the two immutable snapshots a response can point at.

Invariants enforced:
    - UNIQUE(response_id) on both tables: a retried submit cannot score the
      same response twice.
    - Both tables are write-once: UPDATE/DELETE raise
      ImmutabilityViolationError at the ORM level.
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
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base, UUIDString
from compliance_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from compliance_kernel.domain.submission import QuestionnaireSubmission
    from compliance_kernel.domain.verification import CheckFixVerification


class QuestionnaireSubmissionModel(Base):
    __tablename__ = "questionnaire_submissions"

    __table_args__ = (
        CheckConstraint(
            "total_score >= 0 AND total_score <= max_possible_score",
            name="ck_questionnaire_submissions_score_range",
        ),
        Index("ix_questionnaire_submissions_supplier", "supplier_id"),
    )

    response_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("supplier_responses.id"), nullable=False, unique=True,
    )
    questionnaire_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("questionnaires.id"), nullable=False,
    )
    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    answers: Mapped[list] = mapped_column(nullable=False)
    topic_scores: Mapped[list] = mapped_column(nullable=False)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_possible_score: Mapped[int] = mapped_column(Integer, nullable=False)
    percentage_score: Mapped[float] = mapped_column(Float, nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    must_pass_failed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    started_at: Mapped[datetime] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    completion_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    answers_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<QuestionnaireSubmission {self.id} response={self.response_id} "
            f"{self.total_score}/{self.max_possible_score} passed={self.passed}>"
        )

    def to_dto(self) -> QuestionnaireSubmission:
        from compliance_kernel.domain.scoring import ScoredAnswer, TopicScore
        from compliance_kernel.domain.submission import (
            QuestionnaireSubmission as SubmissionDTO,
        )

        return SubmissionDTO(
            submission_id=self.id,
            response_id=self.response_id,
            questionnaire_id=self.questionnaire_id,
            supplier_id=self.supplier_id,
            answers=tuple(
                ScoredAnswer(
                    question_id=UUID(a["question_id"]),
                    topic_id=a["topic_id"],
                    points_earned=a["points_earned"],
                    max_points=a["max_points"],
                    is_must_pass=a["is_must_pass"],
                    must_pass_met=a.get("must_pass_met"),
                    selected_options=tuple(a.get("selected_options", ())),
                    text_answer=a.get("text_answer", ""),
                    answered=a.get("answered", True),
                )
                for a in self.answers
            ),
            topic_scores=tuple(
                TopicScore(
                    topic_id=t["topic_id"],
                    topic_name=t["topic_name"],
                    points_earned=t["points_earned"],
                    max_points=t["max_points"],
                    percentage=t["percentage"],
                    question_count=t.get("question_count", 0),
                )
                for t in self.topic_scores
            ),
            total_score=self.total_score,
            max_possible_score=self.max_possible_score,
            percentage_score=self.percentage_score,
            passing_score=self.passing_score,
            passed=self.passed,
            must_pass_failed=self.must_pass_failed,
            started_at=self.started_at,
            submitted_at=self.submitted_at,
            answers_hash=self.answers_hash,
        )

    @classmethod
    def from_dto(cls, dto: QuestionnaireSubmission) -> QuestionnaireSubmissionModel:
        return cls(
            id=dto.submission_id,
            response_id=dto.response_id,
            questionnaire_id=dto.questionnaire_id,
            supplier_id=dto.supplier_id,
            answers=[
                {
                    "question_id": str(a.question_id),
                    "topic_id": a.topic_id,
                    "points_earned": a.points_earned,
                    "max_points": a.max_points,
                    "is_must_pass": a.is_must_pass,
                    "must_pass_met": a.must_pass_met,
                    "selected_options": list(a.selected_options),
                    "text_answer": a.text_answer,
                    "answered": a.answered,
                }
                for a in dto.answers
            ],
            topic_scores=[
                {
                    "topic_id": t.topic_id,
                    "topic_name": t.topic_name,
                    "points_earned": t.points_earned,
                    "max_points": t.max_points,
                    "percentage": t.percentage,
                    "question_count": t.question_count,
                }
                for t in dto.topic_scores
            ],
            total_score=dto.total_score,
            max_possible_score=dto.max_possible_score,
            percentage_score=dto.percentage_score,
            passing_score=dto.passing_score,
            passed=dto.passed,
            must_pass_failed=dto.must_pass_failed,
            started_at=dto.started_at,
            submitted_at=dto.submitted_at,
            completion_time_minutes=dto.completion_time_minutes,
            answers_hash=dto.answers_hash,
        )


class CheckFixVerificationModel(Base):
    __tablename__ = "checkfix_verifications"

    __table_args__ = (
        CheckConstraint(
            "overall_grade IN ('A', 'B', 'C', 'D', 'F')",
            name="ck_checkfix_verifications_valid_grade",
        ),
        Index("ix_checkfix_verifications_supplier", "supplier_id", "verified_at"),
    )

    response_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("supplier_responses.id"), nullable=False, unique=True,
    )
    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    registered_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    verified_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    domain_match: Mapped[bool] = mapped_column(Boolean, nullable=False)
    report_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    report_date: Mapped[datetime] = mapped_column(nullable=False)
    overall_grade: Mapped[str] = mapped_column(String(1), nullable=False)
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False)
    category_grades: Mapped[list] = mapped_column(nullable=False, default=list)
    critical_findings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_findings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium_findings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_findings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    verification_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CheckFixVerification {self.id} response={self.response_id} "
            f"grade={self.overall_grade}>"
        )

    def to_dto(self) -> CheckFixVerification:
        from compliance_kernel.domain.verification import (
            CategoryGrade,
            CheckFixVerification as VerificationDTO,
            Grade,
        )

        return VerificationDTO(
            verification_id=self.id,
            response_id=self.response_id,
            supplier_id=self.supplier_id,
            registered_domain=self.registered_domain,
            verified_domain=self.verified_domain,
            domain_match=self.domain_match,
            report_hash=self.report_hash,
            report_date=self.report_date,
            overall_grade=Grade(self.overall_grade),
            overall_score=self.overall_score,
            verified_at=self.verified_at,
            expires_at=self.expires_at,
            verification_valid=self.verification_valid,
            category_grades=tuple(
                CategoryGrade(
                    category=c["category"], grade=c["grade"], score=c["score"],
                )
                for c in self.category_grades or ()
            ),
            critical_findings=self.critical_findings,
            high_findings=self.high_findings,
            medium_findings=self.medium_findings,
            low_findings=self.low_findings,
        )

    @classmethod
    def from_dto(cls, dto: CheckFixVerification) -> CheckFixVerificationModel:
        return cls(
            id=dto.verification_id,
            response_id=dto.response_id,
            supplier_id=dto.supplier_id,
            registered_domain=dto.registered_domain,
            verified_domain=dto.verified_domain,
            domain_match=dto.domain_match,
            report_hash=dto.report_hash,
            report_date=dto.report_date,
            overall_grade=dto.overall_grade.value,
            overall_score=dto.overall_score,
            category_grades=[
                {"category": c.category, "grade": c.grade, "score": c.score}
                for c in dto.category_grades
            ],
            critical_findings=dto.critical_findings,
            high_findings=dto.high_findings,
            medium_findings=dto.medium_findings,
            low_findings=dto.low_findings,
            verified_at=dto.verified_at,
            expires_at=dto.expires_at,
            verification_valid=dto.verification_valid,
        )


# =============================================================================
# ORM-Level Immutability for Snapshots (Write-Once)
# =============================================================================


@event.listens_for(QuestionnaireSubmissionModel, "before_update")
def prevent_submission_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="QuestionnaireSubmission",
        entity_id=str(target.id),
        reason="Submissions are immutable -- cannot modify",
    )


@event.listens_for(QuestionnaireSubmissionModel, "before_delete")
def prevent_submission_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="QuestionnaireSubmission",
        entity_id=str(target.id),
        reason="Submissions are immutable -- cannot delete",
    )


@event.listens_for(CheckFixVerificationModel, "before_update")
def prevent_verification_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="CheckFixVerification",
        entity_id=str(target.id),
        reason="Verifications are immutable -- cannot modify",
    )


@event.listens_for(CheckFixVerificationModel, "before_delete")
def prevent_verification_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="CheckFixVerification",
        entity_id=str(target.id),
        reason="Verifications are immutable -- cannot delete",
    )
