"""
Tests for SubmissionOrchestrator.

Covers start idempotency, drafts, both submit paths, retry after rejection,
resubmission after a revision request, and the guarantee that a failing
call writes nothing.
"""

from uuid import uuid4

import pytest

from compliance_kernel.domain.requirement import (
    CheckFixConfig,
    QuestionnaireConfig,
    RequirementStatus,
)
from compliance_kernel.domain.response import SupplierResponse
from compliance_kernel.domain.scoring import AnswerInput
from compliance_kernel.domain.verification import Grade
from compliance_kernel.exceptions import (
    CannotStartResponseError,
    CheckFixNotLinkedError,
    InvalidOptionError,
    InvalidTransitionError,
    RequirementNotFoundError,
    RequirementTypeMismatchError,
    ResponseAlreadyExistsError,
    ResponseAlreadySubmittedError,
)
from compliance_kernel.integrations.checkfix_client import StaticCheckFixClient
from compliance_kernel.repositories.response_repository import ResponseRepository
from compliance_kernel.services.submission_orchestrator import SubmissionOrchestrator
from tests.conftest import COMPANY_USER_ID, REVIEWER_ID, SUPPLIER_USER_ID


def _answers(text_q, choice_q, *selected):
    return [
        AnswerInput(text_q.question_id, text_answer="Documented and tested yearly."),
        AnswerInput(choice_q.question_id, tuple(selected)),
    ]


class TestStartResponse:
    def test_start_moves_requirement_in_progress(
        self, orchestrator, requirement_service, questionnaire_requirement, supplier,
    ):
        requirement, _, _ = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )

        assert response.attempt == 1
        assert not response.is_submitted
        reloaded = requirement_service.get_requirement_for_supplier(
            requirement.requirement_id, supplier.organization_id,
        )
        assert reloaded.status == RequirementStatus.IN_PROGRESS
        assert reloaded.status_history[-1].reason == "Response started"

    def test_start_twice_returns_same_response(
        self, orchestrator, questionnaire_requirement, supplier,
    ):
        requirement, _, _ = questionnaire_requirement
        first = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        second = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        assert second.response_id == first.response_id

    def test_start_after_submission_conflicts(
        self, orchestrator, questionnaire_requirement, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        orchestrator.submit_questionnaire(
            response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa"),
        )
        with pytest.raises(ResponseAlreadyExistsError):
            orchestrator.start_response(
                requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
            )

    def test_other_supplier_sees_not_found(self, orchestrator, questionnaire_requirement):
        requirement, _, _ = questionnaire_requirement
        with pytest.raises(RequirementNotFoundError):
            orchestrator.start_response(requirement.requirement_id, uuid4(), SUPPLIER_USER_ID)

    def test_expired_requirement_cannot_start(
        self, orchestrator, requirement_service, questionnaire_requirement, company, supplier,
    ):
        requirement, _, _ = questionnaire_requirement
        requirement_service.expire_requirement(
            requirement.requirement_id, company.organization_id, COMPANY_USER_ID,
        )
        with pytest.raises(CannotStartResponseError):
            orchestrator.start_response(
                requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
            )

    def test_second_live_response_is_a_conflict(self, session, clock, questionnaire_requirement, supplier):
        requirement, _, _ = questionnaire_requirement
        responses = ResponseRepository(session)
        responses.create(
            SupplierResponse.start(requirement.requirement_id, supplier.organization_id, clock.now()),
        )
        with pytest.raises(ResponseAlreadyExistsError):
            responses.create(
                SupplierResponse.start(
                    requirement.requirement_id, supplier.organization_id, clock.now(),
                ),
            )
        assert responses.get_live_by_requirement(requirement.requirement_id) is not None

    def test_start_is_logged_with_context(
        self, orchestrator, questionnaire_requirement, supplier, captured_logs,
    ):
        requirement, _, _ = questionnaire_requirement
        orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        started = [r for r in captured_logs() if r["message"] == "response_started"]
        assert len(started) == 1
        assert started[0]["requirement_id"] == str(requirement.requirement_id)
        assert started[0]["attempt"] == 1


class TestQuestionnairePath:
    def test_scenario_sixty_percent_fails_at_seventy(
        self, orchestrator, questionnaire_requirement, supplier, clock,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        clock.advance(minutes=25)
        result = orchestrator.submit_questionnaire(
            response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa"),
        )

        assert result.requirement.status == RequirementStatus.SUBMITTED
        assert (result.submission.total_score, result.submission.max_possible_score) == (3, 5)
        assert result.submission.percentage_score == pytest.approx(60.0)
        assert not result.passed
        assert result.response.score == 3
        assert result.submission.completion_time_minutes == 25
        assert result.message == "Score 60.0% does not meet passing score 70%"

    def test_requirement_override_passing_score(
        self, orchestrator, create_questionnaire, create_requirement, supplier,
    ):
        questionnaire, text_q, choice_q = create_questionnaire()
        requirement = create_requirement(
            QuestionnaireConfig(questionnaire.questionnaire_id, passing_score=50),
        )
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        result = orchestrator.submit_questionnaire(
            response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa"),
        )
        assert result.passed
        assert result.submission.passing_score == 50

    def test_submit_uses_saved_drafts(
        self, orchestrator, questionnaire_requirement, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        orchestrator.save_draft_answers(
            response.response_id, supplier.organization_id, _answers(text_q, choice_q, "mfa", "sso"),
        )
        result = orchestrator.submit_questionnaire(
            response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        assert result.passed
        assert result.response.draft_answers == ()
        assert orchestrator.submissions.get_by_response(response.response_id) is not None

    def test_blank_draft_scores_zero(
        self, orchestrator, questionnaire_requirement, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        orchestrator.save_draft_answers(response.response_id, supplier.organization_id, [
            AnswerInput(text_q.question_id, text_answer=""),
            AnswerInput(choice_q.question_id, ("mfa", "sso")),
        ])
        result = orchestrator.submit_questionnaire(
            response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        assert result.submission.total_score == 4
        assert result.submission.answer_for(text_q.question_id).points_earned == 0
        assert result.passed

    def test_archived_questionnaire_still_accepts_submission(
        self, orchestrator, questionnaire_service, questionnaire_requirement, company, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        questionnaire_service.archive(
            requirement.config.questionnaire_id, company.organization_id,
        )
        result = orchestrator.submit_questionnaire(
            response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa", "sso"),
        )
        assert result.requirement.status == RequirementStatus.SUBMITTED
        assert result.passed

    def test_submitted_response_rejects_drafts_and_resubmission(
        self, orchestrator, questionnaire_requirement, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        orchestrator.submit_questionnaire(
            response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa"),
        )
        with pytest.raises(ResponseAlreadySubmittedError):
            orchestrator.save_draft_answer(
                response.response_id, supplier.organization_id,
                AnswerInput(text_q.question_id, text_answer="late edit"),
            )
        with pytest.raises(ResponseAlreadySubmittedError):
            orchestrator.submit_questionnaire(
                response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
                _answers(text_q, choice_q, "mfa"),
            )

    def test_invalid_answer_writes_nothing(
        self, orchestrator, requirement_service, questionnaire_requirement, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        response = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        with pytest.raises(InvalidOptionError):
            orchestrator.submit_questionnaire(
                response.response_id, supplier.organization_id, SUPPLIER_USER_ID,
                _answers(text_q, choice_q, "vpn"),
            )
        assert orchestrator.submissions.get_by_response(response.response_id) is None
        assert not orchestrator.get_response(
            response.response_id, supplier.organization_id,
        ).is_submitted
        assert requirement_service.get_requirement_for_supplier(
            requirement.requirement_id, supplier.organization_id,
        ).status == RequirementStatus.IN_PROGRESS

    def test_grade_call_on_questionnaire_requirement(
        self, orchestrator, questionnaire_requirement, linked_supplier,
    ):
        requirement, _, _ = questionnaire_requirement
        with pytest.raises(RequirementTypeMismatchError):
            orchestrator.submit_checkfix(
                requirement.requirement_id, linked_supplier.organization_id,
                SUPPLIER_USER_ID, "hash-1",
            )


class TestCheckFixPath:
    def test_pending_requirement_is_started_and_submitted(
        self, orchestrator, checkfix_requirement, linked_supplier,
    ):
        result = orchestrator.submit_checkfix(
            checkfix_requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-1",
        )

        assert result.passed
        assert result.requirement.status == RequirementStatus.SUBMITTED
        assert [c.to_status for c in result.requirement.status_history][-2:] == [
            RequirementStatus.IN_PROGRESS, RequirementStatus.SUBMITTED,
        ]
        assert result.verification.overall_grade == Grade.B
        assert result.verification.domain_match
        assert result.response.grade == Grade.B
        assert result.message == "Verification meets requirement"

    def test_unlinked_supplier(self, orchestrator, checkfix_requirement, supplier):
        with pytest.raises(CheckFixNotLinkedError):
            orchestrator.submit_checkfix(
                checkfix_requirement.requirement_id, supplier.organization_id,
                SUPPLIER_USER_ID, "hash-1",
            )

    def test_domain_mismatch_is_submitted_as_failing(
        self, session, clock, checkfix_requirement, linked_supplier,
    ):
        orchestrator = SubmissionOrchestrator(
            session, clock=clock,
            client=StaticCheckFixClient(domain="elsewhere.example", grade=Grade.A, clock=clock),
        )
        result = orchestrator.submit_checkfix(
            checkfix_requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-1",
        )
        assert not result.passed
        assert "Domain does not match organization" in result.outcome.failures
        assert result.requirement.status == RequirementStatus.SUBMITTED

    def test_requirement_minimum_grade_applies(
        self, orchestrator, create_requirement, linked_supplier,
    ):
        requirement = create_requirement(CheckFixConfig(minimum_grade=Grade.A))
        result = orchestrator.submit_checkfix(
            requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-1",
        )
        assert not result.passed
        assert result.outcome.minimum_grade == Grade.A

    def test_submitted_requirement_rejects_second_report(
        self, orchestrator, checkfix_requirement, linked_supplier,
    ):
        orchestrator.submit_checkfix(
            checkfix_requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-1",
        )
        with pytest.raises(ResponseAlreadySubmittedError):
            orchestrator.submit_checkfix(
                checkfix_requirement.requirement_id, linked_supplier.organization_id,
                SUPPLIER_USER_ID, "hash-2",
            )


class TestRetryAndResubmit:
    def test_retry_after_rejection_opens_new_attempt(
        self, orchestrator, review_service, questionnaire_requirement, company, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        first = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        orchestrator.submit_questionnaire(
            first.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa"),
        )
        review_service.reject(
            requirement.requirement_id, company.organization_id, REVIEWER_ID, "Score too low",
        )

        second = orchestrator.retry(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        assert second.attempt == 2
        assert second.response_id != first.response_id

        attempts = orchestrator.list_attempts(requirement.requirement_id, supplier.organization_id)
        assert [a.attempt for a in attempts] == [1, 2]
        assert not attempts[0].is_live
        assert attempts[0].is_reviewed

        result = orchestrator.submit_questionnaire(
            second.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa", "sso"),
        )
        assert result.passed
        assert result.requirement.status == RequirementStatus.SUBMITTED

    def test_retry_requires_rejection(self, orchestrator, questionnaire_requirement, supplier):
        requirement, _, _ = questionnaire_requirement
        orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        with pytest.raises(InvalidTransitionError):
            orchestrator.retry(
                requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
            )

    def test_resubmit_questionnaire_after_revision_request(
        self, orchestrator, review_service, questionnaire_requirement, company, supplier,
    ):
        requirement, text_q, choice_q = questionnaire_requirement
        first = orchestrator.start_response(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
        )
        orchestrator.submit_questionnaire(
            first.response_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa"),
        )
        review_service.request_revision(
            requirement.requirement_id, company.organization_id, REVIEWER_ID, "Add SSO",
        )

        result = orchestrator.resubmit_questionnaire(
            requirement.requirement_id, supplier.organization_id, SUPPLIER_USER_ID,
            _answers(text_q, choice_q, "mfa", "sso"),
        )
        assert result.requirement.status == RequirementStatus.SUBMITTED
        assert result.requirement.status_history[-1].reason == "Resubmitted after revision"
        assert result.response.attempt == 2
        assert result.passed
        live = orchestrator.get_live_response(requirement.requirement_id, supplier.organization_id)
        assert live.response_id == result.response.response_id

    def test_resubmit_requires_revision_request(
        self, orchestrator, checkfix_requirement, linked_supplier,
    ):
        orchestrator.submit_checkfix(
            checkfix_requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-1",
        )
        with pytest.raises(InvalidTransitionError):
            orchestrator.resubmit_checkfix(
                checkfix_requirement.requirement_id, linked_supplier.organization_id,
                SUPPLIER_USER_ID, "hash-2",
            )

    def test_resubmit_checkfix(
        self, orchestrator, review_service, checkfix_requirement, linked_supplier, company,
    ):
        orchestrator.submit_checkfix(
            checkfix_requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-1",
        )
        review_service.request_revision(
            checkfix_requirement.requirement_id, company.organization_id, REVIEWER_ID,
            "Please upload the latest scan",
        )
        result = orchestrator.resubmit_checkfix(
            checkfix_requirement.requirement_id, linked_supplier.organization_id,
            SUPPLIER_USER_ID, "hash-2",
        )
        assert result.response.attempt == 2
        assert result.verification.report_hash == "hash-2"
        assert result.requirement.status == RequirementStatus.SUBMITTED
