"""Repositories: session-bound persistence returning frozen domain objects."""

from compliance_kernel.repositories.base import (
    BaseRepository,
    Page,
    PaginationOptions,
)
from compliance_kernel.repositories.organization_repository import OrganizationRepository
from compliance_kernel.repositories.questionnaire_repository import QuestionnaireRepository
from compliance_kernel.repositories.relationship_repository import RelationshipRepository
from compliance_kernel.repositories.requirement_repository import RequirementRepository
from compliance_kernel.repositories.response_repository import ResponseRepository
from compliance_kernel.repositories.submission_repository import (
    SubmissionRepository,
    VerificationRepository,
)
from compliance_kernel.repositories.template_repository import TemplateRepository

__all__ = [
    "BaseRepository",
    "OrganizationRepository",
    "Page",
    "PaginationOptions",
    "QuestionnaireRepository",
    "RelationshipRepository",
    "RequirementRepository",
    "ResponseRepository",
    "SubmissionRepository",
    "TemplateRepository",
    "VerificationRepository",
]
