"""Persistence for questionnaires and their questions."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select

from compliance_kernel.domain.questionnaire import (
    Question,
    Questionnaire,
    QuestionnaireStatus,
)
from compliance_kernel.exceptions import (
    QuestionNotFoundError,
    QuestionnaireNotFoundError,
)
from compliance_kernel.models.questionnaire import QuestionModel, QuestionnaireModel
from compliance_kernel.repositories.base import BaseRepository, Page, PaginationOptions


class QuestionnaireRepository(BaseRepository[QuestionnaireModel]):
    model = QuestionnaireModel
    not_found = QuestionnaireNotFoundError

    def create(self, questionnaire: Questionnaire) -> Questionnaire:
        model = QuestionnaireModel.from_dto(questionnaire)
        self._add(model)
        return model.to_dto()

    def get_by_id(self, questionnaire_id: UUID) -> Questionnaire:
        return self._load(questionnaire_id).to_dto()

    def get_for_company(self, questionnaire_id: UUID, company_id: UUID) -> Questionnaire:
        model = self._load(questionnaire_id)
        if model.company_id != company_id:
            raise QuestionnaireNotFoundError(questionnaire_id)
        return model.to_dto()

    def update(self, questionnaire: Questionnaire) -> Questionnaire:
        model = self._load(questionnaire.questionnaire_id)
        model.apply(questionnaire)
        self.session.flush()
        return model.to_dto()

    def list_by_company(
        self,
        company_id: UUID,
        options: PaginationOptions = PaginationOptions(),
        status: QuestionnaireStatus | None = None,
    ) -> Page[Questionnaire]:
        stmt = select(QuestionnaireModel).where(QuestionnaireModel.company_id == company_id)
        if status is not None:
            stmt = stmt.where(QuestionnaireModel.status == status.value)
        stmt = stmt.order_by(QuestionnaireModel.created_at.desc(), QuestionnaireModel.id)
        return self._paginate(stmt, options, QuestionnaireModel.to_dto)

    def delete(self, questionnaire_id: UUID) -> None:
        """Delete a questionnaire and its questions."""
        model = self._load(questionnaire_id)
        self.session.execute(
            delete(QuestionModel).where(QuestionModel.questionnaire_id == questionnaire_id)
        )
        self.session.delete(model)
        self.session.flush()

    def count_by_status(self, company_id: UUID) -> dict[QuestionnaireStatus, int]:
        rows = self.session.execute(
            select(QuestionnaireModel.status, func.count())
            .where(QuestionnaireModel.company_id == company_id)
            .group_by(QuestionnaireModel.status)
        ).all()
        return {QuestionnaireStatus(status): count for status, count in rows}

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def add_question(self, question: Question) -> Question:
        model = QuestionModel.from_dto(question)
        self._add(model)
        return model.to_dto()

    def get_question(self, question_id: UUID) -> Question:
        model = self.session.get(QuestionModel, question_id)
        if model is None:
            raise QuestionNotFoundError(question_id)
        return model.to_dto()

    def update_question(self, question: Question) -> Question:
        model = self.session.get(QuestionModel, question.question_id)
        if model is None:
            raise QuestionNotFoundError(question.question_id)
        model.apply(question)
        self.session.flush()
        return model.to_dto()

    def delete_question(self, question_id: UUID) -> None:
        model = self.session.get(QuestionModel, question_id)
        if model is None:
            raise QuestionNotFoundError(question_id)
        self.session.delete(model)
        self.session.flush()

    def list_questions(self, questionnaire_id: UUID) -> list[Question]:
        """Questions of a questionnaire in display order."""
        rows = self.session.execute(
            select(QuestionModel)
            .where(QuestionModel.questionnaire_id == questionnaire_id)
            .order_by(QuestionModel.sort_order, QuestionModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]
