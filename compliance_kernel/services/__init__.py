"""
compliance_kernel.services -- session-bound orchestration.

Responsibility:
    Compose the pure domain layer with repositories, the CheckFix client and
    the clock.  This is the only layer that reads the clock or calls the
    verification provider.

Invariants enforced:
    - Services flush, never commit; the caller owns the transaction.
    - Settings arrive as constructor arguments; nothing here reads
      ``compliance_config``.
"""

from compliance_kernel.services.base import BaseService
from compliance_kernel.services.checkfix_service import CheckFixLinkStatus, CheckFixService
from compliance_kernel.services.organization_service import OrganizationService
from compliance_kernel.services.questionnaire_service import (
    QuestionnaireService,
    QuestionnaireStats,
)
from compliance_kernel.services.relationship_service import RelationshipService, SupplierStats
from compliance_kernel.services.requirement_service import RequirementService, RequirementStats
from compliance_kernel.services.review_service import ReviewPackage, ReviewService
from compliance_kernel.services.submission_orchestrator import (
    SubmissionOrchestrator,
    SubmissionResult,
)
from compliance_kernel.services.template_service import TemplateService

__all__ = [
    "BaseService",
    "CheckFixLinkStatus",
    "CheckFixService",
    "OrganizationService",
    "QuestionnaireService",
    "QuestionnaireStats",
    "RelationshipService",
    "RequirementService",
    "RequirementStats",
    "ReviewPackage",
    "ReviewService",
    "SubmissionOrchestrator",
    "SubmissionResult",
    "SupplierStats",
    "TemplateService",
]
