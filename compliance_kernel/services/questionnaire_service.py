"""
QuestionnaireService -- authoring questionnaires and their questions.

Responsibility:
    Create questionnaires (blank or from a template), edit their header,
    topics and questions, reorder, publish, archive and delete drafts.
    Every question write refreshes the questionnaire's cached projections
    (``question_count``, ``max_possible_score``) in the same flush.

Invariants enforced:
    - Structure (topics, questions) changes only while DRAFT.
    - A questionnaire cannot be published without questions.
    - Only DRAFT questionnaires are deleted; their questions go with them.
    - Replacing topics may not orphan a question's topic.
    - Question max points are derived by ``Question.define``/``revise`` and
      stored with the row; nothing else writes them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.questionnaire import (
    DEFAULT_PASSING_SCORE,
    Question,
    Questionnaire,
    QuestionnaireStatus,
    QuestionOption,
    QuestionType,
    Topic,
    normalize_topics,
)
from compliance_kernel.domain.workflow import parse_enum
from compliance_kernel.exceptions import (
    InvalidQuestionError,
    InvalidTemplateError,
    QuestionNotFoundError,
    QuestionnaireNotDeletableError,
    QuestionnaireNotEditableError,
    TemplateNotFoundError,
    ValidationError,
)
from compliance_kernel.logging_config import get_logger
from compliance_kernel.repositories.base import Page, PaginationOptions
from compliance_kernel.repositories.questionnaire_repository import QuestionnaireRepository
from compliance_kernel.repositories.template_repository import TemplateRepository
from compliance_kernel.services.base import BaseService

logger = get_logger("services.questionnaire")


def _check_passing_score(passing_score: int) -> None:
    if not 0 <= passing_score <= 100:
        raise ValidationError(
            f"passing_score must be between 0 and 100, got {passing_score}"
        )


@dataclass(frozen=True)
class QuestionnaireStats:
    total: int
    draft: int
    published: int
    archived: int


class QuestionnaireService(BaseService):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self.questionnaires = QuestionnaireRepository(session)
        self.templates = TemplateRepository(session)

    def create_questionnaire(
        self,
        company_id: UUID,
        name: str,
        created_by: UUID,
        description: str = "",
        passing_score: int = DEFAULT_PASSING_SCORE,
        topics: Iterable[Topic] = (),
    ) -> Questionnaire:
        if not name.strip():
            raise ValidationError("questionnaire name must not be empty")
        _check_passing_score(passing_score)
        topics = normalize_topics(topics)

        now = self._clock.now()
        questionnaire = Questionnaire(
            questionnaire_id=uuid4(),
            company_id=company_id,
            name=name.strip(),
            created_by=created_by,
            created_at=now,
            description=description,
            passing_score=passing_score,
            topics=topics,
            updated_at=now,
        )
        created = self.questionnaires.create(questionnaire)
        logger.info(
            "questionnaire_created",
            extra={"questionnaire_id": str(created.questionnaire_id)},
        )
        return created

    def create_from_template(
        self,
        template_id: UUID,
        company_id: UUID,
        created_by: UUID,
        name: str | None = None,
    ) -> Questionnaire:
        """
        Start a DRAFT questionnaire from a published template.

        Topics, description and the default passing score are copied; the
        template's usage count goes up by one.

        Raises:
            TemplateNotFoundError: template missing or not visible to the company.
            InvalidTemplateError: template is still a draft.
        """
        template = self.templates.get_by_id(template_id)
        if not template.can_view(company_id):
            raise TemplateNotFoundError(template_id)
        if not template.is_published:
            raise InvalidTemplateError("only published templates can be used")

        created = self.create_questionnaire(
            company_id,
            name or template.name,
            created_by,
            description=template.description,
            passing_score=template.default_passing_score,
            topics=template.topics,
        )
        created = self.questionnaires.update(replace(created, template_id=template_id))
        self.templates.update(template.with_usage(self._clock.now()))
        logger.info(
            "questionnaire_created_from_template",
            extra={
                "questionnaire_id": str(created.questionnaire_id),
                "template_id": str(template_id),
            },
        )
        return created

    def update_questionnaire(
        self,
        questionnaire_id: UUID,
        company_id: UUID,
        name: str | None = None,
        description: str | None = None,
        passing_score: int | None = None,
        topics: Iterable[Topic] | None = None,
    ) -> Questionnaire:
        """Edit a DRAFT questionnaire's header.  None leaves a field unchanged.

        ``topics`` replaces the whole list; every topic a question refers to
        must survive.
        """
        questionnaire = self._editable(questionnaire_id, company_id)
        changes: dict = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("questionnaire name must not be empty")
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description
        if passing_score is not None:
            _check_passing_score(passing_score)
            changes["passing_score"] = passing_score
        if topics is not None:
            new_topics = normalize_topics(topics)
            kept = {t.topic_id for t in new_topics}
            for question in self.questionnaires.list_questions(questionnaire_id):
                if question.topic_id and question.topic_id not in kept:
                    raise InvalidQuestionError(
                        f"topic {question.topic_id!r} is still used by question "
                        f"{question.question_id}"
                    )
            changes["topics"] = new_topics
        if not changes:
            return questionnaire
        return self.questionnaires.update(
            replace(questionnaire, updated_at=self._clock.now(), **changes),
        )

    def delete_questionnaire(self, questionnaire_id: UUID, company_id: UUID) -> None:
        questionnaire = self.questionnaires.get_for_company(questionnaire_id, company_id)
        if questionnaire.status != QuestionnaireStatus.DRAFT:
            raise QuestionnaireNotDeletableError(questionnaire_id, questionnaire.status.value)
        self.questionnaires.delete(questionnaire_id)
        logger.info("questionnaire_deleted", extra={"questionnaire_id": str(questionnaire_id)})

    def _editable(self, questionnaire_id: UUID, company_id: UUID) -> Questionnaire:
        questionnaire = self.questionnaires.get_for_company(questionnaire_id, company_id)
        if not questionnaire.is_editable:
            raise QuestionnaireNotEditableError(
                questionnaire_id, questionnaire.status.value,
            )
        return questionnaire

    def _refresh(self, questionnaire: Questionnaire) -> Questionnaire:
        questions = self.questionnaires.list_questions(questionnaire.questionnaire_id)
        return self.questionnaires.update(
            questionnaire.with_questions(questions, self._clock.now()),
        )

    def add_topic(
        self,
        questionnaire_id: UUID,
        company_id: UUID,
        topic_id: str,
        name: str,
        description: str = "",
        order: int = 0,
    ) -> Questionnaire:
        questionnaire = self._editable(questionnaire_id, company_id)
        topic = Topic(topic_id=topic_id, name=name, description=description, order=order)
        return self.questionnaires.update(questionnaire.with_topic(topic, self._clock.now()))

    def add_question(
        self,
        questionnaire_id: UUID,
        company_id: UUID,
        text: str,
        question_type: QuestionType | str,
        options: Iterable[QuestionOption] = (),
        topic_id: str = "",
        weight: int = 1,
        is_must_pass: bool = False,
        order: int | None = None,
        description: str = "",
        help_text: str = "",
        max_points: int | None = None,
    ) -> Question:
        """
        Add a question to a DRAFT questionnaire.

        ``order`` defaults to the end of the list.

        Raises:
            QuestionnaireNotEditableError: questionnaire is not DRAFT.
            InvalidQuestionError: bad options, unknown topic, explicit max
                points on a choice question.
        """
        questionnaire = self._editable(questionnaire_id, company_id)
        if topic_id and questionnaire.topic(topic_id) is None:
            raise InvalidQuestionError(f"unknown topic {topic_id!r}")
        if order is None:
            order = questionnaire.question_count

        question = Question.define(
            questionnaire_id=questionnaire_id,
            text=text,
            question_type=parse_enum(QuestionType, question_type),
            options=options,
            topic_id=topic_id,
            weight=weight,
            is_must_pass=is_must_pass,
            order=order,
            description=description,
            help_text=help_text,
            max_points=max_points,
        )
        created = self.questionnaires.add_question(question)
        self._refresh(questionnaire)
        logger.info(
            "question_added",
            extra={
                "questionnaire_id": str(questionnaire_id),
                "question_id": str(created.question_id),
                "max_points": created.max_points,
            },
        )
        return created

    def update_question(self, question_id: UUID, company_id: UUID, **changes) -> Question:
        """Revise a question; max points are derived again from the result."""
        question = self.questionnaires.get_question(question_id)
        questionnaire = self._editable(question.questionnaire_id, company_id)
        if "question_type" in changes:
            changes["question_type"] = parse_enum(QuestionType, changes["question_type"])
        topic_id = changes.get("topic_id")
        if topic_id and questionnaire.topic(topic_id) is None:
            raise InvalidQuestionError(f"unknown topic {topic_id!r}")

        updated = self.questionnaires.update_question(question.revise(**changes))
        self._refresh(questionnaire)
        return updated

    def remove_question(self, question_id: UUID, company_id: UUID) -> Questionnaire:
        question = self.questionnaires.get_question(question_id)
        questionnaire = self._editable(question.questionnaire_id, company_id)
        self.questionnaires.delete_question(question_id)
        return self._refresh(questionnaire)

    def publish(self, questionnaire_id: UUID, company_id: UUID) -> Questionnaire:
        questionnaire = self.questionnaires.get_for_company(questionnaire_id, company_id)
        if questionnaire.question_count == 0:
            raise ValidationError("cannot publish a questionnaire without questions")
        published = self.questionnaires.update(
            questionnaire.transition_status(QuestionnaireStatus.PUBLISHED, self._clock.now()),
        )
        logger.info(
            "questionnaire_published",
            extra={
                "questionnaire_id": str(questionnaire_id),
                "question_count": published.question_count,
                "max_possible_score": published.max_possible_score,
            },
        )
        return published

    def archive(self, questionnaire_id: UUID, company_id: UUID) -> Questionnaire:
        questionnaire = self.questionnaires.get_for_company(questionnaire_id, company_id)
        return self.questionnaires.update(
            questionnaire.transition_status(QuestionnaireStatus.ARCHIVED, self._clock.now()),
        )

    def reorder_questions(
        self,
        questionnaire_id: UUID,
        company_id: UUID,
        order: Mapping[UUID, int],
    ) -> list[Question]:
        """Set the display order of the given questions; others keep theirs."""
        self._editable(questionnaire_id, company_id)
        questions = {q.question_id: q for q in self.questionnaires.list_questions(questionnaire_id)}
        unknown = [str(qid) for qid in order if qid not in questions]
        if unknown:
            raise InvalidQuestionError(
                f"questions {', '.join(unknown)} are not part of questionnaire {questionnaire_id}"
            )
        for question_id, position in order.items():
            question = questions[question_id]
            if question.order != position:
                self.questionnaires.update_question(replace(question, order=position))
        return self.questionnaires.list_questions(questionnaire_id)

    def questionnaire_stats(self, company_id: UUID) -> QuestionnaireStats:
        by_status = self.questionnaires.count_by_status(company_id)
        return QuestionnaireStats(
            total=sum(by_status.values()),
            draft=by_status.get(QuestionnaireStatus.DRAFT, 0),
            published=by_status.get(QuestionnaireStatus.PUBLISHED, 0),
            archived=by_status.get(QuestionnaireStatus.ARCHIVED, 0),
        )

    def get_questionnaire(self, questionnaire_id: UUID, company_id: UUID) -> Questionnaire:
        return self.questionnaires.get_for_company(questionnaire_id, company_id)

    def get_question(self, question_id: UUID, questionnaire_id: UUID) -> Question:
        question = self.questionnaires.get_question(question_id)
        if question.questionnaire_id != questionnaire_id:
            raise QuestionNotFoundError(question_id)
        return question

    def list_questions(self, questionnaire_id: UUID) -> list[Question]:
        self.questionnaires.get_by_id(questionnaire_id)
        return self.questionnaires.list_questions(questionnaire_id)

    def list_for_company(
        self,
        company_id: UUID,
        status: QuestionnaireStatus | str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Questionnaire]:
        return self.questionnaires.list_by_company(
            company_id,
            PaginationOptions(page=page, page_size=page_size),
            status=parse_enum(QuestionnaireStatus, status) if status is not None else None,
        )
