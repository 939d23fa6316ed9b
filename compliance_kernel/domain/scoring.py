"""
Questionnaire scoring engine (``compliance_kernel.domain.scoring``).

Responsibility
--------------
Pure functions that turn a question definition plus a candidate answer into
points earned, and aggregate a full answer set into topic rollups, an overall
percentage and a pass verdict.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Invariants enforced
-------------------
* SINGLE_CHOICE / YES_NO score the selected option's points.
* MULTIPLE_CHOICE scores the sum of selected options flagged correct;
  incorrect selections add nothing and subtract nothing.
* TEXT scores the question's max points for any non-blank text and 0 for
  blank text; an empty multiple-choice selection scores 0.  Neither is a
  validation error.
* Every question of the questionnaire counts toward the maximum; an
  unanswered question earns 0 and fails its must-pass check.
* ``must_pass_failed`` is true iff some must-pass answer earned less than its
  max points, and a failed must-pass fails the submission regardless of
  percentage.
* The pass verdict compares integers (``total * 100 >= passing * max``), so a
  percentage sitting exactly on the threshold passes.
* Weight does not participate in aggregation.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from uuid import UUID

from compliance_kernel.domain.questionnaire import Question, QuestionType, Topic
from compliance_kernel.exceptions import (
    DuplicateAnswerError,
    InvalidAnswerFormatError,
    InvalidOptionError,
    UnknownQuestionError,
)


@dataclass(frozen=True)
class AnswerInput:
    """A candidate answer: selected option ids and/or free text."""

    question_id: UUID
    selected_options: tuple[str, ...] = ()
    text_answer: str = ""


@dataclass(frozen=True)
class ScoredAnswer:
    """One answer line of a submission snapshot."""

    question_id: UUID
    topic_id: str
    points_earned: int
    max_points: int
    is_must_pass: bool = False
    must_pass_met: bool | None = None
    selected_options: tuple[str, ...] = ()
    text_answer: str = ""
    answered: bool = True


@dataclass(frozen=True)
class TopicScore:
    topic_id: str
    topic_name: str
    points_earned: int
    max_points: int
    percentage: float
    question_count: int = 0


@dataclass(frozen=True)
class ScoreSummary:
    total_score: int
    max_possible_score: int
    percentage_score: float
    passing_score: int
    passed: bool
    must_pass_failed: bool
    topic_scores: tuple[TopicScore, ...] = ()


def percentage(earned: int, maximum: int) -> float:
    if maximum <= 0:
        return 0.0
    return earned * 100 / maximum


def meets_passing_score(earned: int, maximum: int, passing_score: int) -> bool:
    """``percentage(earned, maximum) >= passing_score`` without float rounding."""
    if maximum <= 0:
        return passing_score <= 0
    return earned * 100 >= passing_score * maximum


# =========================================================================
# Per-question
# =========================================================================


def validate_answer(question: Question, answer: AnswerInput) -> None:
    """Raise a ValidationError if the answer shape does not fit the question.

    Blank text and an empty multiple-choice selection are well-formed and
    simply earn nothing.
    """
    qtype = question.question_type
    selected = answer.selected_options

    if qtype == QuestionType.TEXT:
        return

    if qtype.single_selection and len(selected) != 1:
        raise InvalidAnswerFormatError(
            question.question_id, qtype.value,
            f"exactly one option must be selected, got {len(selected)}",
        )
    if len(set(selected)) != len(selected):
        raise InvalidAnswerFormatError(
            question.question_id, qtype.value, "an option was selected more than once",
        )
    for option_id in selected:
        if question.option(option_id) is None:
            raise InvalidOptionError(question.question_id, option_id)


def score_answer(
    question: Question,
    selected_options: Iterable[str] = (),
    text_answer: str = "",
) -> int:
    """Points earned for an answer.  Does not validate; unknown ids earn 0."""
    qtype = question.question_type
    if qtype == QuestionType.TEXT:
        return question.max_points if text_answer.strip() else 0

    selected = tuple(selected_options)
    if qtype.single_selection:
        if len(selected) != 1:
            return 0
        option = question.option(selected[0])
        return option.points if option is not None else 0

    earned = 0
    for option_id in set(selected):
        option = question.option(option_id)
        if option is not None and option.is_correct:
            earned += option.points
    return earned


def score_question(question: Question, answer: AnswerInput | None) -> ScoredAnswer:
    """Validate and score one question; ``None`` means unanswered."""
    if answer is None:
        return ScoredAnswer(
            question_id=question.question_id,
            topic_id=question.topic_id,
            points_earned=0,
            max_points=question.max_points,
            is_must_pass=question.is_must_pass,
            must_pass_met=False if question.is_must_pass else None,
            answered=False,
        )

    validate_answer(question, answer)
    earned = score_answer(question, answer.selected_options, answer.text_answer)
    return ScoredAnswer(
        question_id=question.question_id,
        topic_id=question.topic_id,
        points_earned=earned,
        max_points=question.max_points,
        is_must_pass=question.is_must_pass,
        must_pass_met=(earned >= question.max_points) if question.is_must_pass else None,
        selected_options=tuple(answer.selected_options),
        text_answer=answer.text_answer,
    )


# =========================================================================
# Aggregation
# =========================================================================


def topic_rollups(
    answers: Sequence[ScoredAnswer],
    topics: Sequence[Topic] = (),
) -> tuple[TopicScore, ...]:
    """Sum earned/max per topic id.

    Known topics come first in questionnaire order; topic ids that appear
    only on questions follow in first-seen order.  Answers without a topic
    are left out.
    """
    earned: dict[str, int] = {}
    maximum: dict[str, int] = {}
    counts: dict[str, int] = {}
    for answer in answers:
        if not answer.topic_id:
            continue
        earned[answer.topic_id] = earned.get(answer.topic_id, 0) + answer.points_earned
        maximum[answer.topic_id] = maximum.get(answer.topic_id, 0) + answer.max_points
        counts[answer.topic_id] = counts.get(answer.topic_id, 0) + 1

    names = {t.topic_id: t.name for t in topics}
    ordered = [t.topic_id for t in topics if t.topic_id in maximum]
    ordered += [tid for tid in maximum if tid not in names]

    return tuple(
        TopicScore(
            topic_id=tid,
            topic_name=names.get(tid, tid),
            points_earned=earned[tid],
            max_points=maximum[tid],
            percentage=percentage(earned[tid], maximum[tid]),
            question_count=counts[tid],
        )
        for tid in ordered
        if maximum[tid] > 0
    )


def aggregate(
    answers: Sequence[ScoredAnswer],
    passing_score: int,
    topics: Sequence[Topic] = (),
) -> ScoreSummary:
    total = sum(a.points_earned for a in answers)
    maximum = sum(a.max_points for a in answers)
    must_pass_failed = any(
        a.is_must_pass and a.points_earned < a.max_points for a in answers
    )
    return ScoreSummary(
        total_score=total,
        max_possible_score=maximum,
        percentage_score=percentage(total, maximum),
        passing_score=passing_score,
        passed=not must_pass_failed and meets_passing_score(total, maximum, passing_score),
        must_pass_failed=must_pass_failed,
        topic_scores=topic_rollups(answers, topics),
    )


def weakest_topics(topic_scores: Iterable[TopicScore], limit: int) -> tuple[TopicScore, ...]:
    """Topics sorted ascending by percentage (stable), at most ``limit``."""
    if limit <= 0:
        return ()
    return tuple(sorted(topic_scores, key=lambda t: t.percentage)[:limit])


def score_questionnaire(
    questions: Sequence[Question],
    answers: Iterable[AnswerInput],
    passing_score: int,
    topics: Sequence[Topic] = (),
    questionnaire_id: UUID | None = None,
) -> tuple[tuple[ScoredAnswer, ...], ScoreSummary]:
    """Score a full answer set against every question of a questionnaire.

    Raises:
        UnknownQuestionError: an answer references a question not in ``questions``.
        DuplicateAnswerError: two answers for the same question.
        InvalidAnswerFormatError / InvalidOptionError: malformed answer.
    """
    by_question: dict[UUID, AnswerInput] = {}
    known = {q.question_id for q in questions}
    for answer in answers:
        if answer.question_id not in known:
            raise UnknownQuestionError(answer.question_id, questionnaire_id)
        if answer.question_id in by_question:
            raise DuplicateAnswerError(answer.question_id)
        by_question[answer.question_id] = answer

    ordered = sorted(questions, key=lambda q: q.order)
    scored = tuple(score_question(q, by_question.get(q.question_id)) for q in ordered)
    return scored, aggregate(scored, passing_score, topics)
