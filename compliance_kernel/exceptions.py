"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP layer, a batch job, a test) decide how an error is surfaced.
They can only do that reliably if every failure is:
  1. A TYPED exception class (catch by type, not by message text)
  2. Identified by a CODE attribute (machine-readable, API-safe)
  3. Carrying structured DATA (ids, statuses, grades) as attributes

Example - WRONG way to handle errors:
    try:
        orchestrator.start_response(requirement_id, supplier_id)
    except Exception as e:
        if "already exists" in str(e):
            ...

Example - RIGHT way:
    try:
        orchestrator.start_response(requirement_id, supplier_id)
    except ResponseAlreadyExistsError as e:
        return {"error": e.code, "requirement_id": str(e.requirement_id)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ComplianceKernelError (base)
    |
    +-- NotFoundError
    |   +-- OrganizationNotFoundError
    |   +-- RelationshipNotFoundError
    |   +-- RequirementNotFoundError
    |   +-- ResponseNotFoundError
    |   +-- SubmissionNotFoundError
    |   +-- VerificationNotFoundError
    |   +-- QuestionnaireNotFoundError
    |   +-- QuestionNotFoundError
    |   +-- TemplateNotFoundError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- CannotStartResponseError
    |   +-- CannotReviewError
    |   +-- RelationshipNotActiveError
    |   +-- RelationshipTerminatedError
    |   +-- RequirementNotEditableError
    |   +-- RequirementTypeMismatchError
    |   +-- QuestionnaireNotEditableError
    |   +-- QuestionnaireNotDeletableError
    |   +-- QuestionnaireNotPublishedError
    |   +-- CheckFixNotLinkedError
    |   +-- TemplateNotEditableError
    |
    +-- ConflictError
    |   +-- RelationshipExistsError
    |   +-- ResponseAlreadyExistsError
    |   +-- ResponseAlreadySubmittedError
    |   +-- SubmissionAlreadyExistsError
    |   +-- VerificationAlreadyExistsError
    |   +-- CheckFixAccountInUseError
    |   +-- TemplateInUseError
    |   +-- OptimisticLockError
    |
    +-- ValidationError
    |   +-- InvalidAnswerFormatError
    |   +-- InvalidOptionError
    |   +-- UnknownQuestionError
    |   +-- DuplicateAnswerError
    |   +-- InvalidEnumValueError
    |   +-- InvalidRequirementConfigError
    |   +-- InvalidQuestionError
    |   +-- InvalidTemplateError
    |
    +-- ExternalServiceError
    |   +-- CheckFixAPIError
    |   +-- ReportNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
HANDLING PATTERNS
===============================================================================

1. MAP CATEGORIES, NOT MESSAGES:

    except NotFoundError:        -> 404
    except WorkflowError:        -> 409 / 422
    except ConflictError:        -> 409
    except ValidationError:      -> 400
    except ExternalServiceError: -> 502

2. OWNERSHIP MISMATCH IS NOT FOUND:
   A lookup filtered by owner (company or supplier) that resolves to another
   owner raises the same NotFoundError as a missing id, so callers cannot
   discover the existence of records they do not own.

3. NO PARTIAL STATE:
   Every error below is raised before the session is flushed, or inside a
   SAVEPOINT that is rolled back.  The caller's transaction scope decides
   whether to commit the surrounding work.
"""

from typing import Any


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(ComplianceKernelError):
    """An entity id did not resolve (or resolved to another owner)."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: Any):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class OrganizationNotFoundError(NotFoundError):
    code: str = "ORGANIZATION_NOT_FOUND"
    entity_type = "Organization"


class RelationshipNotFoundError(NotFoundError):
    code: str = "RELATIONSHIP_NOT_FOUND"
    entity_type = "Relationship"


class RequirementNotFoundError(NotFoundError):
    code: str = "REQUIREMENT_NOT_FOUND"
    entity_type = "Requirement"


class ResponseNotFoundError(NotFoundError):
    code: str = "RESPONSE_NOT_FOUND"
    entity_type = "SupplierResponse"


class SubmissionNotFoundError(NotFoundError):
    code: str = "SUBMISSION_NOT_FOUND"
    entity_type = "QuestionnaireSubmission"


class VerificationNotFoundError(NotFoundError):
    code: str = "VERIFICATION_NOT_FOUND"
    entity_type = "CheckFixVerification"


class QuestionnaireNotFoundError(NotFoundError):
    code: str = "QUESTIONNAIRE_NOT_FOUND"
    entity_type = "Questionnaire"


class QuestionNotFoundError(NotFoundError):
    code: str = "QUESTION_NOT_FOUND"
    entity_type = "Question"


class TemplateNotFoundError(NotFoundError):
    code: str = "TEMPLATE_NOT_FOUND"
    entity_type = "QuestionnaireTemplate"


# Workflow / state precondition exceptions


class WorkflowError(ComplianceKernelError):
    """Base exception for state-machine and state-precondition failures."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested state change is not in the workflow's transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, from_status: str, to_status: str):
        self.workflow = workflow
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid {workflow} transition: {from_status} -> {to_status}"
        )


class CannotStartResponseError(WorkflowError):
    """A response can only be started on a PENDING requirement."""

    code: str = "CANNOT_START_RESPONSE"

    def __init__(self, requirement_id: Any, status: str):
        self.requirement_id = str(requirement_id)
        self.status = status
        super().__init__(
            f"Cannot start response for requirement {requirement_id} "
            f"in status {status}"
        )


class CannotReviewError(WorkflowError):
    """Only SUBMITTED requirements can be reviewed."""

    code: str = "CANNOT_REVIEW"

    def __init__(self, requirement_id: Any, status: str):
        self.requirement_id = str(requirement_id)
        self.status = status
        super().__init__(
            f"Requirement {requirement_id} cannot be reviewed in status {status}"
        )


class RelationshipNotActiveError(WorkflowError):
    """Requirements can only be created against an ACTIVE, bound relationship."""

    code: str = "RELATIONSHIP_NOT_ACTIVE"

    def __init__(self, relationship_id: Any, status: str):
        self.relationship_id = str(relationship_id)
        self.status = status
        super().__init__(
            f"Relationship {relationship_id} cannot receive requirements "
            f"(status {status})"
        )


class RelationshipTerminatedError(WorkflowError):
    """Terminated relationships are read-only."""

    code: str = "RELATIONSHIP_TERMINATED"

    def __init__(self, relationship_id: Any):
        self.relationship_id = str(relationship_id)
        super().__init__(f"Relationship {relationship_id} is terminated")


class RequirementNotEditableError(WorkflowError):
    """Requirement details and config are only editable while PENDING."""

    code: str = "REQUIREMENT_NOT_EDITABLE"

    def __init__(self, requirement_id: Any, status: str):
        self.requirement_id = str(requirement_id)
        self.status = status
        super().__init__(
            f"Requirement {requirement_id} cannot be modified in status {status}"
        )


class RequirementTypeMismatchError(WorkflowError):
    """Operation is only valid for the other requirement kind."""

    code: str = "REQUIREMENT_TYPE_MISMATCH"

    def __init__(self, requirement_id: Any, expected: str, actual: str):
        self.requirement_id = str(requirement_id)
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Requirement {requirement_id} is of type {actual}, expected {expected}"
        )


class QuestionnaireNotEditableError(WorkflowError):
    """Questions can only be added or removed while the questionnaire is DRAFT."""

    code: str = "QUESTIONNAIRE_NOT_EDITABLE"

    def __init__(self, questionnaire_id: Any, status: str):
        self.questionnaire_id = str(questionnaire_id)
        self.status = status
        super().__init__(
            f"Questionnaire {questionnaire_id} cannot be modified in status {status}"
        )


class QuestionnaireNotDeletableError(WorkflowError):
    """Only DRAFT questionnaires can be deleted."""

    code: str = "QUESTIONNAIRE_NOT_DELETABLE"

    def __init__(self, questionnaire_id: Any, status: str):
        self.questionnaire_id = str(questionnaire_id)
        self.status = status
        super().__init__(
            f"Questionnaire {questionnaire_id} cannot be deleted in status {status}"
        )


class QuestionnaireNotPublishedError(WorkflowError):
    """Requirements can only reference a PUBLISHED questionnaire."""

    code: str = "QUESTIONNAIRE_NOT_PUBLISHED"

    def __init__(self, questionnaire_id: Any, status: str):
        self.questionnaire_id = str(questionnaire_id)
        self.status = status
        super().__init__(
            f"Questionnaire {questionnaire_id} is not published (status {status})"
        )


class CheckFixNotLinkedError(WorkflowError):
    """Grade-path submission requires a linked CheckFix account."""

    code: str = "CHECKFIX_NOT_LINKED"

    def __init__(self, organization_id: Any):
        self.organization_id = str(organization_id)
        super().__init__(
            f"Organization {organization_id} has no linked CheckFix account"
        )


class TemplateNotEditableError(WorkflowError):
    """System templates are read-only; company templates are edited while DRAFT."""

    code: str = "TEMPLATE_NOT_EDITABLE"

    def __init__(self, template_id: Any, reason: str):
        self.template_id = str(template_id)
        self.reason = reason
        super().__init__(f"Template {template_id} cannot be modified: {reason}")


# Conflict exceptions


class ConflictError(ComplianceKernelError):
    """A uniqueness invariant forbids the requested write."""

    code: str = "CONFLICT"


class RelationshipExistsError(ConflictError):
    """A live relationship already exists for this company and supplier/email."""

    code: str = "RELATIONSHIP_EXISTS"

    def __init__(self, company_id: Any, counterpart: str):
        self.company_id = str(company_id)
        self.counterpart = counterpart
        super().__init__(
            f"Relationship already exists between company {company_id} "
            f"and {counterpart}"
        )


class ResponseAlreadyExistsError(ConflictError):
    """A submitted (or concurrently created) response already exists."""

    code: str = "RESPONSE_ALREADY_EXISTS"

    def __init__(self, requirement_id: Any):
        self.requirement_id = str(requirement_id)
        super().__init__(
            f"Response already exists for requirement {requirement_id}"
        )


class ResponseAlreadySubmittedError(ConflictError):
    """The response is frozen; drafts and submissions are rejected."""

    code: str = "RESPONSE_ALREADY_SUBMITTED"

    def __init__(self, response_id: Any):
        self.response_id = str(response_id)
        super().__init__(f"Response {response_id} has already been submitted")


class SubmissionAlreadyExistsError(ConflictError):
    code: str = "SUBMISSION_ALREADY_EXISTS"

    def __init__(self, response_id: Any):
        self.response_id = str(response_id)
        super().__init__(f"Submission already exists for response {response_id}")


class VerificationAlreadyExistsError(ConflictError):
    code: str = "VERIFICATION_ALREADY_EXISTS"

    def __init__(self, response_id: Any):
        self.response_id = str(response_id)
        super().__init__(
            f"Verification already exists for response {response_id}"
        )


class CheckFixAccountInUseError(ConflictError):
    """A CheckFix account is already linked to another organization."""

    code: str = "CHECKFIX_ACCOUNT_IN_USE"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"CheckFix account {account_id} is already linked")


class TemplateInUseError(ConflictError):
    """Questionnaires were created from the template; it can no longer be withdrawn."""

    code: str = "TEMPLATE_IN_USE"

    def __init__(self, template_id: Any, usage_count: int):
        self.template_id = str(template_id)
        self.usage_count = usage_count
        super().__init__(
            f"Template {template_id} is in use by {usage_count} questionnaire(s)"
        )


class OptimisticLockError(ConflictError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Validation exceptions


class ValidationError(ComplianceKernelError):
    """Malformed input: answers, enum values, configuration."""

    code: str = "VALIDATION_ERROR"


class InvalidAnswerFormatError(ValidationError):
    """Answer shape does not fit the question type."""

    code: str = "INVALID_ANSWER_FORMAT"

    def __init__(self, question_id: Any, question_type: str, reason: str):
        self.question_id = str(question_id)
        self.question_type = question_type
        self.reason = reason
        super().__init__(
            f"Invalid answer for {question_type} question {question_id}: {reason}"
        )


class InvalidOptionError(ValidationError):
    """A selected option id does not exist on the question."""

    code: str = "INVALID_OPTION_ID"

    def __init__(self, question_id: Any, option_id: str):
        self.question_id = str(question_id)
        self.option_id = option_id
        super().__init__(
            f"Option {option_id!r} does not exist on question {question_id}"
        )


class UnknownQuestionError(ValidationError):
    """An answer references a question outside the questionnaire."""

    code: str = "UNKNOWN_QUESTION"

    def __init__(self, question_id: Any, questionnaire_id: Any):
        self.question_id = str(question_id)
        self.questionnaire_id = str(questionnaire_id)
        super().__init__(
            f"Question {question_id} is not part of questionnaire {questionnaire_id}"
        )


class DuplicateAnswerError(ValidationError):
    code: str = "DUPLICATE_ANSWER"

    def __init__(self, question_id: Any):
        self.question_id = str(question_id)
        super().__init__(f"Question {question_id} answered more than once")


class InvalidEnumValueError(ValidationError):
    """Value is not a member of the named enumeration (type, category, grade)."""

    code: str = "INVALID_ENUM_VALUE"

    def __init__(self, enum_name: str, value: Any):
        self.enum_name = enum_name
        self.value = value
        super().__init__(f"Invalid {enum_name}: {value!r}")


class InvalidRequirementConfigError(ValidationError):
    code: str = "INVALID_REQUIREMENT_CONFIG"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid requirement config: {reason}")


class InvalidQuestionError(ValidationError):
    code: str = "INVALID_QUESTION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid question definition: {reason}")


class InvalidTemplateError(ValidationError):
    code: str = "INVALID_TEMPLATE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid questionnaire template: {reason}")


# External service exceptions


class ExternalServiceError(ComplianceKernelError):
    """A collaborator outside the process failed.  Never retried by the kernel."""

    code: str = "EXTERNAL_SERVICE_ERROR"


class CheckFixAPIError(ExternalServiceError):
    """The verification-report API failed or returned a non-success status."""

    code: str = "CHECKFIX_API_ERROR"

    def __init__(self, operation: str, message: str, status_code: int | None = None):
        self.operation = operation
        self.status_code = status_code
        super().__init__(
            f"CheckFix {operation} failed"
            + (f" (HTTP {status_code})" if status_code is not None else "")
            + f": {message}"
        )


class ReportNotFoundError(ExternalServiceError):
    code: str = "CHECKFIX_REPORT_NOT_FOUND"

    def __init__(self, report_hash: str):
        self.report_hash = report_hash
        super().__init__(f"CheckFix report not found: {report_hash}")


# Immutability exceptions


class ImmutabilityError(ComplianceKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Status-history entries, questionnaire submissions and verifications are
    immutable after creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
