"""
Pure domain layer.

This module contains immutable domain objects and pure workflow/scoring
logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Network clients
- The wall clock (time is always passed in)
"""

from compliance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from compliance_kernel.domain.organization import Organization, OrganizationType
from compliance_kernel.domain.questionnaire import (
    Question,
    QuestionOption,
    Questionnaire,
    QuestionnaireStatus,
    QuestionType,
    Topic,
    derive_max_points,
    normalize_topics,
)
from compliance_kernel.domain.relationship import (
    RELATIONSHIP_TRANSITIONS,
    TERMINAL_RELATIONSHIP_STATUSES,
    Relationship,
    RelationshipStatus,
    SupplierClassification,
)
from compliance_kernel.domain.requirement import (
    REQUIREMENT_TRANSITIONS,
    TERMINAL_REQUIREMENT_STATUSES,
    CheckFixConfig,
    Priority,
    QuestionnaireConfig,
    Requirement,
    RequirementConfig,
    RequirementStatus,
    RequirementType,
)
from compliance_kernel.domain.response import SupplierResponse
from compliance_kernel.domain.scoring import (
    AnswerInput,
    ScoredAnswer,
    ScoreSummary,
    TopicScore,
    aggregate,
    score_answer,
    score_questionnaire,
    validate_answer,
    weakest_topics,
)
from compliance_kernel.domain.submission import QuestionnaireSubmission
from compliance_kernel.domain.template import (
    QuestionnaireTemplate,
    TemplateCategory,
    TemplateVisibility,
)
from compliance_kernel.domain.verification import (
    CategoryGrade,
    CheckFixReport,
    CheckFixVerification,
    Grade,
    VerificationOutcome,
    VerificationPolicy,
)
from compliance_kernel.domain.workflow import StatusChange, TransitionTable

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Workflow
    "StatusChange",
    "TransitionTable",
    # Organizations
    "Organization",
    "OrganizationType",
    # Relationship
    "RELATIONSHIP_TRANSITIONS",
    "TERMINAL_RELATIONSHIP_STATUSES",
    "Relationship",
    "RelationshipStatus",
    "SupplierClassification",
    # Requirement
    "REQUIREMENT_TRANSITIONS",
    "TERMINAL_REQUIREMENT_STATUSES",
    "CheckFixConfig",
    "Priority",
    "QuestionnaireConfig",
    "Requirement",
    "RequirementConfig",
    "RequirementStatus",
    "RequirementType",
    # Questionnaire / scoring
    "Question",
    "QuestionOption",
    "Questionnaire",
    "QuestionnaireStatus",
    "QuestionType",
    "Topic",
    "derive_max_points",
    "normalize_topics",
    "AnswerInput",
    "ScoredAnswer",
    "ScoreSummary",
    "TopicScore",
    "aggregate",
    "score_answer",
    "score_questionnaire",
    "validate_answer",
    "weakest_topics",
    "QuestionnaireSubmission",
    # Templates
    "QuestionnaireTemplate",
    "TemplateCategory",
    "TemplateVisibility",
    # Verification
    "CategoryGrade",
    "CheckFixReport",
    "CheckFixVerification",
    "Grade",
    "VerificationOutcome",
    "VerificationPolicy",
    # Response
    "SupplierResponse",
]
