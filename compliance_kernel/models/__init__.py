"""SQLAlchemy ORM models.  Importing this package registers every table on Base.metadata."""

from compliance_kernel.models.organization import OrganizationModel
from compliance_kernel.models.questionnaire import QuestionModel, QuestionnaireModel
from compliance_kernel.models.relationship import (
    RelationshipModel,
    RelationshipStatusChangeModel,
)
from compliance_kernel.models.requirement import (
    RequirementModel,
    RequirementStatusChangeModel,
)
from compliance_kernel.models.response import SupplierResponseModel
from compliance_kernel.models.submission import (
    CheckFixVerificationModel,
    QuestionnaireSubmissionModel,
)
from compliance_kernel.models.template import QuestionnaireTemplateModel

__all__ = [
    "CheckFixVerificationModel",
    "OrganizationModel",
    "QuestionModel",
    "QuestionnaireModel",
    "QuestionnaireSubmissionModel",
    "QuestionnaireTemplateModel",
    "RelationshipModel",
    "RelationshipStatusChangeModel",
    "RequirementModel",
    "RequirementStatusChangeModel",
    "SupplierResponseModel",
]
