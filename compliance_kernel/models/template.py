"""
Module: compliance_kernel.models.template
Responsibility: ORM persistence for questionnaire templates.

Invariants enforced:
    - DB check constraints limit category, visibility and passing-score range.
    - System templates carry no owner; company templates always do.
    - Topics and tags are JSON lists rewritten whole on every update.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from compliance_kernel.domain.template import QuestionnaireTemplate


class QuestionnaireTemplateModel(Base):
    __tablename__ = "questionnaire_templates"

    __table_args__ = (
        CheckConstraint(
            "category IN ('iso27001', 'gdpr', 'nis2', 'custom')",
            name="ck_templates_valid_category",
        ),
        CheckConstraint(
            "visibility IN ('draft', 'local', 'global')",
            name="ck_templates_valid_visibility",
        ),
        CheckConstraint(
            "default_passing_score BETWEEN 0 AND 100",
            name="ck_templates_passing_score_range",
        ),
        CheckConstraint(
            "is_system OR owner_company_id IS NOT NULL",
            name="ck_templates_company_owner",
        ),
        Index("ix_templates_owner", "owner_company_id"),
        Index("ix_templates_visibility", "is_system", "visibility"),
    )

    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    owner_company_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    visibility: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    default_passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    estimated_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    topics: Mapped[list] = mapped_column(nullable=False, default=list)
    tags: Mapped[list] = mapped_column(nullable=False, default=list)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<QuestionnaireTemplate {self.id} {self.name!r} visibility={self.visibility}>"

    def to_dto(self) -> QuestionnaireTemplate:
        from compliance_kernel.domain.questionnaire import Topic
        from compliance_kernel.domain.template import (
            QuestionnaireTemplate as TemplateDTO,
            TemplateCategory,
            TemplateVisibility,
        )

        return TemplateDTO(
            template_id=self.id,
            name=self.name,
            category=TemplateCategory(self.category),
            created_at=self.created_at,
            description=self.description,
            version=self.version,
            is_system=self.is_system,
            owner_company_id=self.owner_company_id,
            created_by=self.created_by_id,
            visibility=TemplateVisibility(self.visibility),
            default_passing_score=self.default_passing_score,
            estimated_minutes=self.estimated_minutes,
            topics=tuple(
                Topic(
                    topic_id=t["topic_id"],
                    name=t["name"],
                    description=t.get("description", ""),
                    order=t.get("order", 0),
                )
                for t in self.topics or ()
            ),
            tags=tuple(self.tags or ()),
            usage_count=self.usage_count,
            published_at=self.published_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: QuestionnaireTemplate) -> QuestionnaireTemplateModel:
        model = cls(id=dto.template_id)
        model.apply(dto)
        return model

    def apply(self, dto: QuestionnaireTemplate) -> None:
        self.name = dto.name
        self.description = dto.description
        self.category = dto.category.value
        self.version = dto.version
        self.is_system = dto.is_system
        self.owner_company_id = dto.owner_company_id
        self.created_by_id = dto.created_by
        self.visibility = dto.visibility.value
        self.default_passing_score = dto.default_passing_score
        self.estimated_minutes = dto.estimated_minutes
        self.topics = [
            {
                "topic_id": t.topic_id,
                "name": t.name,
                "description": t.description,
                "order": t.order,
            }
            for t in dto.topics
        ]
        self.tags = list(dto.tags)
        self.usage_count = dto.usage_count
        self.created_at = dto.created_at
        self.published_at = dto.published_at
        self.updated_at = dto.updated_at
