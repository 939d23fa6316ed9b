"""Persistence for questionnaire templates."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select

from compliance_kernel.domain.template import (
    QuestionnaireTemplate,
    TemplateCategory,
    TemplateVisibility,
)
from compliance_kernel.exceptions import TemplateNotFoundError
from compliance_kernel.models.template import QuestionnaireTemplateModel
from compliance_kernel.repositories.base import BaseRepository, Page, PaginationOptions


class TemplateRepository(BaseRepository[QuestionnaireTemplateModel]):
    model = QuestionnaireTemplateModel
    not_found = TemplateNotFoundError

    def create(self, template: QuestionnaireTemplate) -> QuestionnaireTemplate:
        model = QuestionnaireTemplateModel.from_dto(template)
        self._add(model)
        return model.to_dto()

    def get_by_id(self, template_id: UUID) -> QuestionnaireTemplate:
        return self._load(template_id).to_dto()

    def update(self, template: QuestionnaireTemplate) -> QuestionnaireTemplate:
        model = self._load(template.template_id)
        model.apply(template)
        self.session.flush()
        return model.to_dto()

    def delete(self, template_id: UUID) -> None:
        self.session.delete(self._load(template_id))
        self.session.flush()

    def list_available(
        self,
        company_id: UUID,
        options: PaginationOptions = PaginationOptions(),
        category: TemplateCategory | None = None,
    ) -> Page[QuestionnaireTemplate]:
        """System templates, GLOBAL templates and the company's own templates."""
        stmt = select(QuestionnaireTemplateModel).where(
            or_(
                QuestionnaireTemplateModel.is_system.is_(True),
                QuestionnaireTemplateModel.visibility == TemplateVisibility.GLOBAL.value,
                QuestionnaireTemplateModel.owner_company_id == company_id,
            )
        )
        if category is not None:
            stmt = stmt.where(QuestionnaireTemplateModel.category == category.value)
        stmt = stmt.order_by(
            QuestionnaireTemplateModel.is_system.desc(),
            QuestionnaireTemplateModel.name,
            QuestionnaireTemplateModel.id,
        )
        return self._paginate(stmt, options, QuestionnaireTemplateModel.to_dto)

    def list_by_company(
        self,
        company_id: UUID,
        options: PaginationOptions = PaginationOptions(),
    ) -> Page[QuestionnaireTemplate]:
        stmt = (
            select(QuestionnaireTemplateModel)
            .where(QuestionnaireTemplateModel.owner_company_id == company_id)
            .order_by(QuestionnaireTemplateModel.created_at.desc(), QuestionnaireTemplateModel.id)
        )
        return self._paginate(stmt, options, QuestionnaireTemplateModel.to_dto)

    def system_template_names(self) -> set[str]:
        rows = self.session.execute(
            select(QuestionnaireTemplateModel.name)
            .where(QuestionnaireTemplateModel.is_system.is_(True))
        ).scalars().all()
        return set(rows)

