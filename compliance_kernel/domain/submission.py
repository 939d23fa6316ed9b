"""
Questionnaire submission snapshot (``compliance_kernel.domain.submission``).

A ``QuestionnaireSubmission`` is written once, when a supplier submits a
questionnaire response, and never changes afterwards.  It carries the full
scored answer list, topic rollups and the verdict, plus ``answers_hash`` so a
stored snapshot can be checked against a recomputation.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from compliance_kernel.domain.scoring import (
    ScoredAnswer,
    ScoreSummary,
    TopicScore,
    weakest_topics,
)
from compliance_kernel.utils.hashing import hash_payload


def compute_answers_hash(answers: Sequence[ScoredAnswer]) -> str:
    return hash_payload([
        {
            "question_id": a.question_id,
            "selected_options": sorted(a.selected_options),
            "text_answer": a.text_answer,
            "points_earned": a.points_earned,
            "max_points": a.max_points,
        }
        for a in sorted(answers, key=lambda a: str(a.question_id))
    ])


@dataclass(frozen=True)
class QuestionnaireSubmission:
    submission_id: UUID
    response_id: UUID
    questionnaire_id: UUID
    supplier_id: UUID
    answers: tuple[ScoredAnswer, ...]
    topic_scores: tuple[TopicScore, ...]
    total_score: int
    max_possible_score: int
    percentage_score: float
    passing_score: int
    passed: bool
    must_pass_failed: bool
    started_at: datetime
    submitted_at: datetime
    answers_hash: str

    @classmethod
    def create(
        cls,
        *,
        response_id: UUID,
        questionnaire_id: UUID,
        supplier_id: UUID,
        answers: Sequence[ScoredAnswer],
        summary: ScoreSummary,
        started_at: datetime,
        submitted_at: datetime,
        submission_id: UUID | None = None,
    ) -> QuestionnaireSubmission:
        answers = tuple(answers)
        return cls(
            submission_id=submission_id or uuid4(),
            response_id=response_id,
            questionnaire_id=questionnaire_id,
            supplier_id=supplier_id,
            answers=answers,
            topic_scores=summary.topic_scores,
            total_score=summary.total_score,
            max_possible_score=summary.max_possible_score,
            percentage_score=summary.percentage_score,
            passing_score=summary.passing_score,
            passed=summary.passed,
            must_pass_failed=summary.must_pass_failed,
            started_at=started_at,
            submitted_at=submitted_at,
            answers_hash=compute_answers_hash(answers),
        )

    @property
    def completion_time_minutes(self) -> int:
        return int((self.submitted_at - self.started_at).total_seconds() // 60)

    @property
    def failed_must_pass_count(self) -> int:
        return sum(1 for a in self.answers if a.must_pass_met is False)

    def weakest_topics(self, limit: int) -> tuple[TopicScore, ...]:
        return weakest_topics(self.topic_scores, limit)

    def answer_for(self, question_id: UUID) -> ScoredAnswer | None:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    def topic_score(self, topic_id: str) -> TopicScore | None:
        for score in self.topic_scores:
            if score.topic_id == topic_id:
                return score
        return None

    def verify_hash(self) -> bool:
        return compute_answers_hash(self.answers) == self.answers_hash
