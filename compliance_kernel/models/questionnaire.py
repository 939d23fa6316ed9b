"""
Module: compliance_kernel.models.questionnaire
Responsibility: ORM persistence for questionnaires and their questions.

Invariants enforced:
    - DB check constraints limit questionnaire status, question type and
      passing-score range.
    - max_points >= 1 and weight >= 1 for every question.
    - Topics and options are stored as JSON lists on their owner row; they are
      always rewritten whole, never patched element by element.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from compliance_kernel.domain.questionnaire import Question, Questionnaire


class QuestionnaireModel(Base):
    __tablename__ = "questionnaires"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'published', 'archived')",
            name="ck_questionnaires_valid_status",
        ),
        CheckConstraint(
            "passing_score BETWEEN 0 AND 100",
            name="ck_questionnaires_passing_score_range",
        ),
        Index("ix_questionnaires_company_status", "company_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    topics: Mapped[list] = mapped_column(nullable=False, default=list)
    question_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_possible_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    template_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("questionnaire_templates.id"), nullable=True,
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Questionnaire {self.id} {self.name!r} status={self.status}>"

    def to_dto(self) -> Questionnaire:
        from compliance_kernel.domain.questionnaire import (
            Questionnaire as QuestionnaireDTO,
            QuestionnaireStatus,
            Topic,
        )

        return QuestionnaireDTO(
            questionnaire_id=self.id,
            company_id=self.company_id,
            name=self.name,
            created_by=self.created_by_id,
            created_at=self.created_at,
            description=self.description,
            status=QuestionnaireStatus(self.status),
            passing_score=self.passing_score,
            topics=tuple(
                Topic(
                    topic_id=t["topic_id"],
                    name=t["name"],
                    description=t.get("description", ""),
                    order=t.get("order", 0),
                )
                for t in self.topics or ()
            ),
            question_count=self.question_count,
            max_possible_score=self.max_possible_score,
            published_at=self.published_at,
            updated_at=self.updated_at,
            template_id=self.template_id,
        )

    @classmethod
    def from_dto(cls, dto: Questionnaire) -> QuestionnaireModel:
        model = cls(id=dto.questionnaire_id)
        model.apply(dto)
        return model

    def apply(self, dto: Questionnaire) -> None:
        self.company_id = dto.company_id
        self.name = dto.name
        self.description = dto.description
        self.status = dto.status.value
        self.passing_score = dto.passing_score
        self.topics = [
            {
                "topic_id": t.topic_id,
                "name": t.name,
                "description": t.description,
                "order": t.order,
            }
            for t in dto.topics
        ]
        self.question_count = dto.question_count
        self.max_possible_score = dto.max_possible_score
        self.template_id = dto.template_id
        self.created_by_id = dto.created_by
        self.created_at = dto.created_at
        self.published_at = dto.published_at
        self.updated_at = dto.updated_at


class QuestionModel(Base):
    __tablename__ = "questions"

    __table_args__ = (
        CheckConstraint(
            "question_type IN ('single_choice', 'multiple_choice', 'text', 'yes_no')",
            name="ck_questions_valid_type",
        ),
        CheckConstraint("max_points >= 1", name="ck_questions_max_points_positive"),
        CheckConstraint("weight >= 1", name="ck_questions_weight_positive"),
        Index("ix_questions_questionnaire_order", "questionnaire_id", "sort_order"),
    )

    questionnaire_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("questionnaires.id"), nullable=False,
    )
    topic_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    text: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    help_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    question_type: Mapped[str] = mapped_column(String(20), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_points: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_must_pass: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    options: Mapped[list] = mapped_column(nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Question {self.id} type={self.question_type} max={self.max_points}>"

    def to_dto(self) -> Question:
        from compliance_kernel.domain.questionnaire import (
            Question as QuestionDTO,
            QuestionOption,
            QuestionType,
        )

        # Stored max_points is the value derived at write time; read it back
        # as-is rather than deriving again.
        return QuestionDTO(
            question_id=self.id,
            questionnaire_id=self.questionnaire_id,
            text=self.text,
            question_type=QuestionType(self.question_type),
            max_points=self.max_points,
            topic_id=self.topic_id,
            description=self.description,
            help_text=self.help_text,
            options=tuple(
                QuestionOption(
                    option_id=o["option_id"],
                    text=o["text"],
                    points=o.get("points", 0),
                    is_correct=o.get("is_correct", False),
                    order=o.get("order", 0),
                )
                for o in self.options or ()
            ),
            weight=self.weight,
            is_must_pass=self.is_must_pass,
            order=self.sort_order,
        )

    @classmethod
    def from_dto(cls, dto: Question) -> QuestionModel:
        model = cls(id=dto.question_id)
        model.apply(dto)
        return model

    def apply(self, dto: Question) -> None:
        self.questionnaire_id = dto.questionnaire_id
        self.topic_id = dto.topic_id
        self.text = dto.text
        self.description = dto.description
        self.help_text = dto.help_text
        self.question_type = dto.question_type.value
        self.sort_order = dto.order
        self.weight = dto.weight
        self.max_points = dto.max_points
        self.is_must_pass = dto.is_must_pass
        self.options = [
            {
                "option_id": o.option_id,
                "text": o.text,
                "points": o.points,
                "is_correct": o.is_correct,
                "order": o.order,
            }
            for o in dto.options
        ]
