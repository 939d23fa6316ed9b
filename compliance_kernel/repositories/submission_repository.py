"""
Persistence for the write-once snapshots: questionnaire submissions and
CheckFix verifications.  Neither repository has an update method.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from compliance_kernel.domain.submission import QuestionnaireSubmission
from compliance_kernel.domain.verification import CheckFixVerification
from compliance_kernel.exceptions import (
    SubmissionAlreadyExistsError,
    SubmissionNotFoundError,
    VerificationAlreadyExistsError,
    VerificationNotFoundError,
)
from compliance_kernel.models.submission import (
    CheckFixVerificationModel,
    QuestionnaireSubmissionModel,
)
from compliance_kernel.repositories.base import BaseRepository


class SubmissionRepository(BaseRepository[QuestionnaireSubmissionModel]):
    model = QuestionnaireSubmissionModel
    not_found = SubmissionNotFoundError

    def create(self, submission: QuestionnaireSubmission) -> QuestionnaireSubmission:
        model = QuestionnaireSubmissionModel.from_dto(submission)
        self._add(model, lambda: SubmissionAlreadyExistsError(submission.response_id))
        return model.to_dto()

    def get_by_id(self, submission_id: UUID) -> QuestionnaireSubmission:
        return self._load(submission_id).to_dto()

    def get_by_response(self, response_id: UUID) -> QuestionnaireSubmission | None:
        model = self.session.execute(
            select(QuestionnaireSubmissionModel).where(
                QuestionnaireSubmissionModel.response_id == response_id,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None


class VerificationRepository(BaseRepository[CheckFixVerificationModel]):
    model = CheckFixVerificationModel
    not_found = VerificationNotFoundError

    def create(self, verification: CheckFixVerification) -> CheckFixVerification:
        model = CheckFixVerificationModel.from_dto(verification)
        self._add(model, lambda: VerificationAlreadyExistsError(verification.response_id))
        return model.to_dto()

    def get_by_id(self, verification_id: UUID) -> CheckFixVerification:
        return self._load(verification_id).to_dto()

    def get_by_response(self, response_id: UUID) -> CheckFixVerification | None:
        model = self.session.execute(
            select(CheckFixVerificationModel).where(
                CheckFixVerificationModel.response_id == response_id,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def latest_for_supplier(self, supplier_id: UUID) -> CheckFixVerification | None:
        model = self.session.execute(
            select(CheckFixVerificationModel)
            .where(CheckFixVerificationModel.supplier_id == supplier_id)
            .order_by(CheckFixVerificationModel.verified_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None
