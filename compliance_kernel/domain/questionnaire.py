"""
Questionnaire domain types (``compliance_kernel.domain.questionnaire``).

Responsibility
--------------
Questionnaires, their topics and questions, and the derivation of a
question's max points from its option configuration.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``Question.max_points`` is a cached projection of the options: it is
  recomputed by ``Question.define`` and ``Question.revise`` and is never
  settable on its own for choice questions.  Only TEXT questions accept an
  explicit override.
* A derived max of 0 is raised to 1 so every question can be passed.
* ``Questionnaire.question_count`` and ``max_possible_score`` are recomputed
  by ``with_questions`` on every question write.
* Lifecycle DRAFT -> PUBLISHED -> ARCHIVED.
* ``normalize_topics`` gives every topic an id and a 1-based order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from compliance_kernel.domain.workflow import TransitionTable
from compliance_kernel.exceptions import InvalidQuestionError, ValidationError

DEFAULT_PASSING_SCORE = 70


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    YES_NO = "yes_no"

    @property
    def is_choice(self) -> bool:
        return self != QuestionType.TEXT

    @property
    def single_selection(self) -> bool:
        return self in (QuestionType.SINGLE_CHOICE, QuestionType.YES_NO)


class QuestionnaireStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


QUESTIONNAIRE_TRANSITIONS: dict[QuestionnaireStatus, frozenset[QuestionnaireStatus]] = {
    QuestionnaireStatus.DRAFT: frozenset({QuestionnaireStatus.PUBLISHED}),
    QuestionnaireStatus.PUBLISHED: frozenset({QuestionnaireStatus.ARCHIVED}),
    QuestionnaireStatus.ARCHIVED: frozenset(),
}

QUESTIONNAIRE_WORKFLOW: TransitionTable[QuestionnaireStatus] = TransitionTable(
    "questionnaire", QUESTIONNAIRE_TRANSITIONS,
)


@dataclass(frozen=True)
class QuestionOption:
    """One selectable answer, carrying its author-defined point value."""

    option_id: str
    text: str
    points: int = 0
    is_correct: bool = False
    order: int = 0


def derive_max_points(
    question_type: QuestionType,
    options: Iterable[QuestionOption],
    explicit: int | None = None,
) -> int:
    """Max points a question can award.

    SINGLE_CHOICE / YES_NO: the highest option value.
    MULTIPLE_CHOICE: the sum of the positive values of correct options.
    TEXT: ``explicit`` if given, else 1.
    """
    options = tuple(options)
    if question_type == QuestionType.TEXT:
        if explicit is not None:
            if explicit < 1:
                raise InvalidQuestionError("text question max_points must be at least 1")
            return explicit
        return 1

    if explicit is not None:
        raise InvalidQuestionError(
            f"max_points is derived from options for {question_type.value} questions"
        )
    if not options:
        return 1
    if question_type.single_selection:
        derived = max(o.points for o in options)
    else:
        derived = sum(o.points for o in options if o.is_correct and o.points > 0)
    return derived if derived > 0 else 1


def _validate_options(question_type: QuestionType, options: tuple[QuestionOption, ...]) -> None:
    if question_type == QuestionType.TEXT:
        if options:
            raise InvalidQuestionError("text questions do not take options")
        return
    if not options:
        raise InvalidQuestionError(f"{question_type.value} questions need options")
    ids = [o.option_id for o in options]
    if len(set(ids)) != len(ids):
        raise InvalidQuestionError("option ids must be unique within a question")
    if question_type == QuestionType.YES_NO and len(options) != 2:
        raise InvalidQuestionError("yes/no questions have exactly two options")


@dataclass(frozen=True)
class Question:
    """A question within a questionnaire.  Build with ``define``."""

    question_id: UUID
    questionnaire_id: UUID
    text: str
    question_type: QuestionType
    max_points: int
    topic_id: str = ""
    description: str = ""
    help_text: str = ""
    options: tuple[QuestionOption, ...] = ()
    weight: int = 1
    is_must_pass: bool = False
    order: int = 0

    @classmethod
    def define(
        cls,
        questionnaire_id: UUID,
        text: str,
        question_type: QuestionType,
        options: Iterable[QuestionOption] = (),
        topic_id: str = "",
        weight: int = 1,
        is_must_pass: bool = False,
        order: int = 0,
        description: str = "",
        help_text: str = "",
        max_points: int | None = None,
        question_id: UUID | None = None,
    ) -> Question:
        options = tuple(sorted(options, key=lambda o: o.order))
        if not text.strip():
            raise InvalidQuestionError("question text must not be empty")
        if weight < 1:
            raise InvalidQuestionError("weight must be at least 1")
        _validate_options(question_type, options)
        return cls(
            question_id=question_id or uuid4(),
            questionnaire_id=questionnaire_id,
            text=text.strip(),
            question_type=question_type,
            max_points=derive_max_points(question_type, options, max_points),
            topic_id=topic_id,
            description=description,
            help_text=help_text,
            options=options,
            weight=weight,
            is_must_pass=is_must_pass,
            order=order,
        )

    def revise(self, **changes) -> Question:
        """Return a redefined copy; max points are derived again from the result."""
        fields = {
            "text": self.text,
            "question_type": self.question_type,
            "options": self.options,
            "topic_id": self.topic_id,
            "weight": self.weight,
            "is_must_pass": self.is_must_pass,
            "order": self.order,
            "description": self.description,
            "help_text": self.help_text,
        }
        if self.question_type == QuestionType.TEXT:
            fields["max_points"] = self.max_points
        fields.update(changes)
        if fields["question_type"] != QuestionType.TEXT and "max_points" not in changes:
            fields.pop("max_points", None)
        return Question.define(
            questionnaire_id=self.questionnaire_id,
            question_id=self.question_id,
            **fields,
        )

    @property
    def weighted_max_points(self) -> int:
        return self.max_points * self.weight

    def option(self, option_id: str) -> QuestionOption | None:
        for opt in self.options:
            if opt.option_id == option_id:
                return opt
        return None

    @property
    def correct_option_ids(self) -> frozenset[str]:
        return frozenset(o.option_id for o in self.options if o.is_correct)


@dataclass(frozen=True)
class Topic:
    topic_id: str
    name: str
    description: str = ""
    order: int = 0


def normalize_topics(topics: Iterable[Topic]) -> tuple[Topic, ...]:
    """Fill in missing topic ids and orders, then sort by order.

    A blank id becomes a fresh uuid string; an order of 0 becomes the topic's
    1-based position in the input.
    """
    normalized = []
    for position, topic in enumerate(topics, start=1):
        if not topic.name.strip():
            raise ValidationError(f"topic {position} needs a name")
        normalized.append(replace(
            topic,
            topic_id=topic.topic_id or str(uuid4()),
            name=topic.name.strip(),
            order=topic.order or position,
        ))
    ids = [t.topic_id for t in normalized]
    if len(set(ids)) != len(ids):
        raise ValidationError("topic ids must be unique")
    return tuple(sorted(normalized, key=lambda t: t.order))


@dataclass(frozen=True)
class Questionnaire:
    """Questionnaire header with cached question projections."""

    questionnaire_id: UUID
    company_id: UUID
    name: str
    created_by: UUID
    created_at: datetime
    description: str = ""
    status: QuestionnaireStatus = QuestionnaireStatus.DRAFT
    passing_score: int = DEFAULT_PASSING_SCORE
    topics: tuple[Topic, ...] = ()
    question_count: int = 0
    max_possible_score: int = 0
    published_at: datetime | None = None
    updated_at: datetime | None = None
    template_id: UUID | None = None

    @property
    def is_editable(self) -> bool:
        return self.status == QuestionnaireStatus.DRAFT

    @property
    def is_published(self) -> bool:
        return self.status == QuestionnaireStatus.PUBLISHED

    def topic(self, topic_id: str) -> Topic | None:
        for topic in self.topics:
            if topic.topic_id == topic_id:
                return topic
        return None

    def with_topic(self, topic: Topic, at: datetime) -> Questionnaire:
        if self.topic(topic.topic_id) is not None:
            raise InvalidQuestionError(f"topic {topic.topic_id!r} already exists")
        topics = tuple(sorted(self.topics + (topic,), key=lambda t: t.order))
        return replace(self, topics=topics, updated_at=at)

    def with_questions(self, questions: Iterable[Question], at: datetime) -> Questionnaire:
        """Recompute the cached question projections."""
        questions = tuple(questions)
        return replace(
            self,
            question_count=len(questions),
            max_possible_score=sum(q.max_points for q in questions),
            updated_at=at,
        )

    def transition_status(self, new_status: QuestionnaireStatus, at: datetime) -> Questionnaire:
        QUESTIONNAIRE_WORKFLOW.require(self.status, new_status)
        published_at = at if new_status == QuestionnaireStatus.PUBLISHED else self.published_at
        return replace(self, status=new_status, published_at=published_at, updated_at=at)
