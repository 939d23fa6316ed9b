"""
SubmissionOrchestrator -- the supplier side of a requirement.

Responsibility:
    Coordinates Requirement, SupplierResponse and the immutable snapshots
    (QuestionnaireSubmission, CheckFixVerification) through start, draft,
    submit, retry and resubmit.  Scoring is delegated to the pure
    ``score_questionnaire``; grade verdicts to ``VerificationPolicy``.

Architecture position:
    Kernel > Services.  The only place a requirement moves
    PENDING -> IN_PROGRESS -> SUBMITTED, or REJECTED -> IN_PROGRESS.

Invariants enforced:
    - Every precondition is checked and every snapshot is built in memory
      before the first write, so a failing call leaves nothing behind.
    - One live response per requirement.  A concurrent duplicate start is
      rejected by the unique index and surfaces as ResponseAlreadyExistsError.
    - Snapshot, response and requirement writes of one submission share the
      caller's transaction (services flush, ``session_scope`` commits).
    - Retry and resubmit supersede the live response; superseded responses
      are kept as attempt history.

Failure modes:
    - NotFound: unknown ids, or ids owned by another supplier.
    - CannotStartResponseError / InvalidTransitionError: wrong requirement status.
    - ResponseAlreadyExistsError / ResponseAlreadySubmittedError: conflicts.
    - RequirementTypeMismatchError: questionnaire call on a grade requirement
      or the reverse.
    - CheckFixNotLinkedError, CheckFixAPIError, ReportNotFoundError: grade path.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.organization import Organization
from compliance_kernel.domain.requirement import (
    CheckFixConfig,
    QuestionnaireConfig,
    Requirement,
    RequirementConfig,
    RequirementStatus,
)
from compliance_kernel.domain.response import SupplierResponse
from compliance_kernel.domain.scoring import AnswerInput, score_questionnaire
from compliance_kernel.domain.submission import QuestionnaireSubmission
from compliance_kernel.domain.verification import (
    DEFAULT_VALIDITY_DAYS,
    CheckFixVerification,
    VerificationOutcome,
    VerificationPolicy,
)
from compliance_kernel.exceptions import (
    CannotStartResponseError,
    CheckFixNotLinkedError,
    InvalidTransitionError,
    RequirementTypeMismatchError,
    ResponseAlreadyExistsError,
    ResponseAlreadySubmittedError,
    ResponseNotFoundError,
)
from compliance_kernel.integrations.checkfix_client import (
    CheckFixClient,
    StaticCheckFixClient,
)
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.repositories.organization_repository import OrganizationRepository
from compliance_kernel.repositories.questionnaire_repository import QuestionnaireRepository
from compliance_kernel.repositories.requirement_repository import RequirementRepository
from compliance_kernel.repositories.response_repository import ResponseRepository
from compliance_kernel.repositories.submission_repository import (
    SubmissionRepository,
    VerificationRepository,
)
from compliance_kernel.services.base import BaseService

logger = get_logger("services.submission")


@dataclass(frozen=True)
class SubmissionResult:
    """What a submit call wrote: the requirement, the response and its snapshot."""

    requirement: Requirement
    response: SupplierResponse
    submission: QuestionnaireSubmission | None = None
    verification: CheckFixVerification | None = None
    outcome: VerificationOutcome | None = None

    @property
    def passed(self) -> bool:
        return bool(self.response.passed)

    @property
    def message(self) -> str:
        if self.outcome is not None:
            return self.outcome.message
        if self.submission is None:
            return ""
        if self.submission.must_pass_failed:
            return (
                f"{self.submission.failed_must_pass_count} must-pass question(s) failed"
            )
        verdict = "meets" if self.submission.passed else "does not meet"
        return (
            f"Score {self.submission.percentage_score:.1f}% {verdict} "
            f"passing score {self.submission.passing_score}%"
        )


class SubmissionOrchestrator(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        client: CheckFixClient | None = None,
        policy: VerificationPolicy | None = None,
        validity_days: int = DEFAULT_VALIDITY_DAYS,
    ):
        super().__init__(session, clock)
        self.client = client or StaticCheckFixClient(clock=self._clock)
        self.policy = policy or VerificationPolicy()
        self.validity_days = validity_days
        self.requirements = RequirementRepository(session)
        self.responses = ResponseRepository(session)
        self.submissions = SubmissionRepository(session)
        self.verifications = VerificationRepository(session)
        self.questionnaires = QuestionnaireRepository(session)
        self.organizations = OrganizationRepository(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_response(self, response_id: UUID, supplier_id: UUID) -> SupplierResponse:
        response = self.responses.get_by_id(response_id)
        if response.supplier_id != supplier_id:
            raise ResponseNotFoundError(response_id)
        return response

    def get_live_response(
        self, requirement_id: UUID, supplier_id: UUID,
    ) -> SupplierResponse | None:
        self.requirements.get_for_supplier(requirement_id, supplier_id)
        return self.responses.get_live_by_requirement(requirement_id)

    def list_attempts(self, requirement_id: UUID, supplier_id: UUID) -> list[SupplierResponse]:
        """Every response for the requirement, superseded ones included, by attempt."""
        self.requirements.get_for_supplier(requirement_id, supplier_id)
        return self.responses.list_by_requirement(requirement_id)

    def _requirement_of_kind(
        self,
        requirement_id: UUID,
        supplier_id: UUID,
        kind: type[RequirementConfig],
    ) -> Requirement:
        requirement = self.requirements.get_for_supplier(requirement_id, supplier_id)
        if not isinstance(requirement.config, kind):
            raise RequirementTypeMismatchError(
                requirement_id, kind.kind.value, requirement.requirement_type.value,
            )
        return requirement

    def _linked_organization(self, supplier_id: UUID) -> Organization:
        organization = self.organizations.get_by_id(supplier_id)
        if not organization.has_checkfix_link:
            raise CheckFixNotLinkedError(supplier_id)
        return organization

    def _current_response(self, requirement: Requirement) -> SupplierResponse:
        response = self.responses.get_live_by_requirement(requirement.requirement_id)
        if response is None:
            raise ResponseNotFoundError(requirement.requirement_id)
        return response

    # ------------------------------------------------------------------
    # Start and drafts
    # ------------------------------------------------------------------

    def start_response(
        self, requirement_id: UUID, supplier_id: UUID, user_id: UUID,
    ) -> SupplierResponse:
        """
        Open the response for a PENDING requirement and move it to IN_PROGRESS.

        Calling again while the response is unsubmitted returns that same
        response unchanged.

        Raises:
            RequirementNotFoundError: unknown id or not this supplier's.
            ResponseAlreadyExistsError: the live response is already submitted,
                or a concurrent start won the race.
            CannotStartResponseError: requirement is not PENDING.
        """
        requirement = self.requirements.get_for_supplier(requirement_id, supplier_id)
        existing = self.responses.get_live_by_requirement(requirement_id)
        if existing is not None:
            if existing.is_submitted:
                raise ResponseAlreadyExistsError(requirement_id)
            if requirement.status == RequirementStatus.IN_PROGRESS:
                return existing
        if not requirement.can_start_response():
            raise CannotStartResponseError(requirement_id, requirement.status.value)

        now = self._clock.now()
        started = requirement.start(user_id, now)
        with LogContext.bind(requirement_id=str(requirement_id), supplier_id=str(supplier_id)):
            response = self.responses.create(
                SupplierResponse.start(requirement_id, supplier_id, now),
            )
            self.requirements.update(started)
            logger.info(
                "response_started",
                extra={"response_id": str(response.response_id), "attempt": response.attempt},
            )
        return response

    def save_draft_answer(
        self, response_id: UUID, supplier_id: UUID, answer: AnswerInput,
    ) -> SupplierResponse:
        return self.save_draft_answers(response_id, supplier_id, [answer])

    def save_draft_answers(
        self,
        response_id: UUID,
        supplier_id: UUID,
        answers: Iterable[AnswerInput],
    ) -> SupplierResponse:
        """Upsert drafts by question id. Drafts are not validated until submit."""
        response = self.get_response(response_id, supplier_id)
        now = self._clock.now()
        for answer in answers:
            response = response.with_draft(answer, now)
        return self.responses.update(response)

    # ------------------------------------------------------------------
    # Questionnaire path
    # ------------------------------------------------------------------

    def _score(
        self,
        requirement: Requirement,
        response: SupplierResponse,
        answers: Iterable[AnswerInput],
        now: datetime,
    ) -> QuestionnaireSubmission:
        config = requirement.config
        # Publication is only required when the requirement is created.
        questionnaire = self.questionnaires.get_by_id(config.questionnaire_id)
        passing_score = (
            questionnaire.passing_score
            if config.passing_score is None else config.passing_score
        )
        scored, summary = score_questionnaire(
            self.questionnaires.list_questions(questionnaire.questionnaire_id),
            answers,
            passing_score,
            questionnaire.topics,
            questionnaire.questionnaire_id,
        )
        return QuestionnaireSubmission.create(
            response_id=response.response_id,
            questionnaire_id=questionnaire.questionnaire_id,
            supplier_id=response.supplier_id,
            answers=scored,
            summary=summary,
            started_at=response.started_at,
            submitted_at=now,
        )

    def submit_questionnaire(
        self,
        response_id: UUID,
        supplier_id: UUID,
        user_id: UUID,
        answers: Iterable[AnswerInput] | None = None,
    ) -> SubmissionResult:
        """
        Score and submit a questionnaire response.

        ``answers`` defaults to the saved drafts.  Questions left unanswered
        earn nothing and fail their must-pass check.
        """
        response = self.get_response(response_id, supplier_id)
        if response.is_submitted:
            raise ResponseAlreadySubmittedError(response_id)
        requirement = self._requirement_of_kind(
            response.requirement_id, supplier_id, QuestionnaireConfig,
        )
        now = self._clock.now()
        submitted = requirement.submit(user_id, now)
        submission = self._score(
            requirement,
            response,
            response.draft_answers if answers is None else answers,
            now,
        )

        with LogContext.bind(
            requirement_id=str(requirement.requirement_id), supplier_id=str(supplier_id),
        ):
            submission = self.submissions.create(submission)
            response = self.responses.update(response.with_submission(submission))
            requirement = self.requirements.update(submitted)
            logger.info(
                "questionnaire_submitted",
                extra={
                    "response_id": str(response_id),
                    "submission_id": str(submission.submission_id),
                    "total_score": submission.total_score,
                    "max_possible_score": submission.max_possible_score,
                    "passed": submission.passed,
                    "must_pass_failed": submission.must_pass_failed,
                },
            )
        return SubmissionResult(requirement, response, submission=submission)

    def resubmit_questionnaire(
        self,
        requirement_id: UUID,
        supplier_id: UUID,
        user_id: UUID,
        answers: Iterable[AnswerInput],
    ) -> SubmissionResult:
        """Answer a revision request with a fresh, separately scored attempt."""
        requirement = self._requirement_of_kind(
            requirement_id, supplier_id, QuestionnaireConfig,
        )
        now = self._clock.now()
        resubmitted = requirement.resubmit(user_id, now)
        current = self._current_response(requirement)
        attempt = SupplierResponse.start(
            requirement_id, supplier_id, now, attempt=current.attempt + 1,
        )
        submission = self._score(requirement, attempt, answers, now)

        with LogContext.bind(requirement_id=str(requirement_id), supplier_id=str(supplier_id)):
            self.responses.update(current.supersede(now))
            self.responses.create(attempt)
            submission = self.submissions.create(submission)
            response = self.responses.update(attempt.with_submission(submission))
            requirement = self.requirements.update(resubmitted)
            logger.info(
                "questionnaire_resubmitted",
                extra={
                    "response_id": str(response.response_id),
                    "attempt": response.attempt,
                    "passed": submission.passed,
                },
            )
        return SubmissionResult(requirement, response, submission=submission)

    # ------------------------------------------------------------------
    # Grade path
    # ------------------------------------------------------------------

    def _verify(
        self,
        requirement: Requirement,
        response: SupplierResponse,
        organization: Organization,
        report_hash: str,
        now: datetime,
    ) -> tuple[CheckFixVerification, VerificationOutcome]:
        report = self.client.verify_report(report_hash)
        verification = CheckFixVerification.from_report(
            report,
            response_id=response.response_id,
            supplier_id=response.supplier_id,
            registered_domain=organization.domain,
            verified_at=now,
            validity_days=self.validity_days,
        )
        config = requirement.config
        outcome = self.policy.evaluate(
            verification,
            now,
            minimum_grade=config.minimum_grade,
            max_report_age_days=config.max_report_age_days,
        )
        return verification, outcome

    def submit_checkfix(
        self,
        requirement_id: UUID,
        supplier_id: UUID,
        user_id: UUID,
        report_hash: str,
    ) -> SubmissionResult:
        """
        Verify a report with the provider and submit the result.

        A PENDING requirement is started first, after the provider call has
        succeeded.  A failing verdict is still submitted; the reviewer sees
        ``passed=False`` and the outcome's failure reasons.
        """
        requirement = self._requirement_of_kind(requirement_id, supplier_id, CheckFixConfig)
        organization = self._linked_organization(supplier_id)
        response = self.responses.get_live_by_requirement(requirement_id)
        if response is not None and response.is_submitted:
            raise ResponseAlreadySubmittedError(response.response_id)
        if not (
            requirement.can_start_response()
            or requirement.can_transition_to(RequirementStatus.SUBMITTED)
        ):
            raise InvalidTransitionError(
                "requirement", requirement.status.value, RequirementStatus.SUBMITTED.value,
            )

        now = self._clock.now()
        started = response is None
        if started:
            response = SupplierResponse.start(requirement_id, supplier_id, now)
            requirement = requirement.start(user_id, now)
        submitted = requirement.submit(user_id, now)
        verification, outcome = self._verify(
            requirement, response, organization, report_hash, now,
        )

        with LogContext.bind(requirement_id=str(requirement_id), supplier_id=str(supplier_id)):
            if started:
                response = self.responses.create(response)
            verification = self.verifications.create(verification)
            response = self.responses.update(
                response.with_verification(verification, outcome.passed),
            )
            requirement = self.requirements.update(submitted)
            logger.info(
                "checkfix_submitted",
                extra={
                    "response_id": str(response.response_id),
                    "verification_id": str(verification.verification_id),
                    "grade": verification.overall_grade.value,
                    "passed": outcome.passed,
                    "failures": list(outcome.failures),
                },
            )
        return SubmissionResult(
            requirement, response, verification=verification, outcome=outcome,
        )

    def resubmit_checkfix(
        self,
        requirement_id: UUID,
        supplier_id: UUID,
        user_id: UUID,
        report_hash: str,
    ) -> SubmissionResult:
        requirement = self._requirement_of_kind(requirement_id, supplier_id, CheckFixConfig)
        now = self._clock.now()
        resubmitted = requirement.resubmit(user_id, now)
        organization = self._linked_organization(supplier_id)
        current = self._current_response(requirement)
        attempt = SupplierResponse.start(
            requirement_id, supplier_id, now, attempt=current.attempt + 1,
        )
        verification, outcome = self._verify(
            requirement, attempt, organization, report_hash, now,
        )

        with LogContext.bind(requirement_id=str(requirement_id), supplier_id=str(supplier_id)):
            self.responses.update(current.supersede(now))
            self.responses.create(attempt)
            verification = self.verifications.create(verification)
            response = self.responses.update(
                attempt.with_verification(verification, outcome.passed),
            )
            requirement = self.requirements.update(resubmitted)
            logger.info(
                "checkfix_resubmitted",
                extra={
                    "response_id": str(response.response_id),
                    "attempt": response.attempt,
                    "grade": verification.overall_grade.value,
                    "passed": outcome.passed,
                },
            )
        return SubmissionResult(
            requirement, response, verification=verification, outcome=outcome,
        )

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def retry(
        self, requirement_id: UUID, supplier_id: UUID, user_id: UUID,
    ) -> SupplierResponse:
        """Reopen a REJECTED requirement with a new, empty response."""
        requirement = self.requirements.get_for_supplier(requirement_id, supplier_id)
        now = self._clock.now()
        retried = requirement.retry(user_id, now)
        current = self._current_response(requirement)

        with LogContext.bind(requirement_id=str(requirement_id), supplier_id=str(supplier_id)):
            self.responses.update(current.supersede(now))
            response = self.responses.create(
                SupplierResponse.start(
                    requirement_id, supplier_id, now, attempt=current.attempt + 1,
                ),
            )
            self.requirements.update(retried)
            logger.info(
                "requirement_retried",
                extra={"response_id": str(response.response_id), "attempt": response.attempt},
            )
        return response
