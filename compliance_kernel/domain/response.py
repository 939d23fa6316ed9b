"""
Supplier response domain types (``compliance_kernel.domain.response``).

Responsibility
--------------
A supplier's work product against one requirement: draft answers while in
progress, then a link to the immutable Submission or Verification, with the
score and verdict denormalized for fast reads.

Invariants enforced
-------------------
* Drafts may be upserted only while unsubmitted.
* ``with_submission`` / ``with_verification`` are the only writers of the
  denormalized score fields; they recompute them from the snapshot and
  clear the drafts.
* A superseded response (replaced by retry or resubmission) is read-only
  history; only the live response of a requirement is ever written.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID, uuid4

from compliance_kernel.domain.scoring import AnswerInput
from compliance_kernel.domain.submission import QuestionnaireSubmission
from compliance_kernel.domain.verification import CheckFixVerification, Grade
from compliance_kernel.exceptions import ResponseAlreadySubmittedError


@dataclass(frozen=True)
class SupplierResponse:
    response_id: UUID
    requirement_id: UUID
    supplier_id: UUID
    started_at: datetime
    attempt: int = 1
    draft_answers: tuple[AnswerInput, ...] = ()
    submission_id: UUID | None = None
    verification_id: UUID | None = None
    score: int | None = None
    max_score: int | None = None
    percentage_score: float | None = None
    passed: bool | None = None
    grade: Grade | None = None
    submitted_at: datetime | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str = ""
    superseded_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @classmethod
    def start(
        cls,
        requirement_id: UUID,
        supplier_id: UUID,
        at: datetime,
        attempt: int = 1,
        response_id: UUID | None = None,
    ) -> SupplierResponse:
        return cls(
            response_id=response_id or uuid4(),
            requirement_id=requirement_id,
            supplier_id=supplier_id,
            started_at=at,
            attempt=attempt,
            updated_at=at,
        )

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None

    @property
    def is_live(self) -> bool:
        return self.superseded_at is None

    def draft_for(self, question_id: UUID) -> AnswerInput | None:
        for draft in self.draft_answers:
            if draft.question_id == question_id:
                return draft
        return None

    def with_draft(self, answer: AnswerInput, at: datetime) -> SupplierResponse:
        """Insert or replace the draft for ``answer.question_id``."""
        if self.is_submitted:
            raise ResponseAlreadySubmittedError(self.response_id)
        drafts = tuple(d for d in self.draft_answers if d.question_id != answer.question_id)
        return replace(self, draft_answers=drafts + (answer,), updated_at=at)

    def with_submission(self, submission: QuestionnaireSubmission) -> SupplierResponse:
        if self.is_submitted:
            raise ResponseAlreadySubmittedError(self.response_id)
        return replace(
            self,
            submission_id=submission.submission_id,
            score=submission.total_score,
            max_score=submission.max_possible_score,
            percentage_score=submission.percentage_score,
            passed=submission.passed,
            draft_answers=(),
            submitted_at=submission.submitted_at,
            updated_at=submission.submitted_at,
        )

    def with_verification(
        self, verification: CheckFixVerification, passed: bool,
    ) -> SupplierResponse:
        if self.is_submitted:
            raise ResponseAlreadySubmittedError(self.response_id)
        return replace(
            self,
            verification_id=verification.verification_id,
            score=verification.overall_score,
            max_score=100,
            percentage_score=float(verification.overall_score),
            passed=passed,
            grade=verification.overall_grade,
            draft_answers=(),
            submitted_at=verification.verified_at,
            updated_at=verification.verified_at,
        )

    def mark_reviewed(self, reviewer_id: UUID, notes: str, at: datetime) -> SupplierResponse:
        return replace(
            self, reviewed_by=reviewer_id, reviewed_at=at, review_notes=notes, updated_at=at,
        )

    def supersede(self, at: datetime) -> SupplierResponse:
        return replace(self, superseded_at=at, updated_at=at)

    @property
    def completion_time_minutes(self) -> int | None:
        if self.submitted_at is None:
            return None
        return int((self.submitted_at - self.started_at).total_seconds() // 60)
