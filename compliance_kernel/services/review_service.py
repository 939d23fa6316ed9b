"""
ReviewService -- company reviewers deciding on submitted requirements.

Only a SUBMITTED requirement can be reviewed.  Approve and reject also mark
the live response as reviewed; a revision request is recorded on the
requirement history only, and the supplier answers it with a resubmission.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.requirement import Requirement
from compliance_kernel.domain.response import SupplierResponse
from compliance_kernel.domain.submission import QuestionnaireSubmission
from compliance_kernel.domain.verification import CheckFixVerification
from compliance_kernel.exceptions import CannotReviewError, ResponseNotFoundError
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.repositories.requirement_repository import RequirementRepository
from compliance_kernel.repositories.response_repository import ResponseRepository
from compliance_kernel.repositories.submission_repository import (
    SubmissionRepository,
    VerificationRepository,
)
from compliance_kernel.services.base import BaseService

logger = get_logger("services.review")


@dataclass(frozen=True)
class ReviewPackage:
    """Everything a reviewer looks at for one requirement."""

    requirement: Requirement
    response: SupplierResponse | None
    submission: QuestionnaireSubmission | None = None
    verification: CheckFixVerification | None = None


class ReviewService(BaseService):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self.requirements = RequirementRepository(session)
        self.responses = ResponseRepository(session)
        self.submissions = SubmissionRepository(session)
        self.verifications = VerificationRepository(session)

    def _reviewable(self, requirement_id: UUID, company_id: UUID) -> Requirement:
        requirement = self.requirements.get_for_company(requirement_id, company_id)
        if not requirement.can_be_reviewed():
            raise CannotReviewError(requirement_id, requirement.status.value)
        return requirement

    def _mark_reviewed(
        self, requirement: Requirement, reviewer_id: UUID, notes: str,
    ) -> SupplierResponse:
        response = self.responses.get_live_by_requirement(requirement.requirement_id)
        if response is None:
            raise ResponseNotFoundError(requirement.requirement_id)
        return self.responses.update(
            response.mark_reviewed(reviewer_id, notes, self._clock.now()),
        )

    def approve(
        self,
        requirement_id: UUID,
        company_id: UUID,
        reviewer_id: UUID,
        notes: str = "",
    ) -> Requirement:
        requirement = self._reviewable(requirement_id, company_id)
        approved = requirement.approve(reviewer_id, notes, self._clock.now())
        with LogContext.bind(requirement_id=str(requirement_id), actor_id=str(reviewer_id)):
            self._mark_reviewed(requirement, reviewer_id, notes)
            approved = self.requirements.update(approved)
            logger.info("requirement_approved")
        return approved

    def reject(
        self,
        requirement_id: UUID,
        company_id: UUID,
        reviewer_id: UUID,
        reason: str = "",
    ) -> Requirement:
        requirement = self._reviewable(requirement_id, company_id)
        rejected = requirement.reject(reviewer_id, reason, self._clock.now())
        with LogContext.bind(requirement_id=str(requirement_id), actor_id=str(reviewer_id)):
            self._mark_reviewed(requirement, reviewer_id, reason)
            rejected = self.requirements.update(rejected)
            logger.info("requirement_rejected", extra={"reason": reason})
        return rejected

    def request_revision(
        self,
        requirement_id: UUID,
        company_id: UUID,
        reviewer_id: UUID,
        notes: str = "",
    ) -> Requirement:
        requirement = self._reviewable(requirement_id, company_id)
        revised = self.requirements.update(
            requirement.request_revision(reviewer_id, notes, self._clock.now()),
        )
        logger.info(
            "revision_requested",
            extra={"requirement_id": str(requirement_id), "actor_id": str(reviewer_id)},
        )
        return revised

    def get_submission_for_review(
        self, requirement_id: UUID, company_id: UUID,
    ) -> ReviewPackage:
        requirement = self.requirements.get_for_company(requirement_id, company_id)
        response = self.responses.get_live_by_requirement(requirement_id)
        if response is None:
            return ReviewPackage(requirement=requirement, response=None)
        return ReviewPackage(
            requirement=requirement,
            response=response,
            submission=self.submissions.get_by_response(response.response_id),
            verification=self.verifications.get_by_response(response.response_id),
        )
