"""Registration and lookup of companies and suppliers."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.organization import Organization, OrganizationType
from compliance_kernel.domain.workflow import parse_enum
from compliance_kernel.exceptions import ValidationError
from compliance_kernel.logging_config import get_logger
from compliance_kernel.repositories.organization_repository import OrganizationRepository
from compliance_kernel.services.base import BaseService

logger = get_logger("services.organization")


class OrganizationService(BaseService):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self.organizations = OrganizationRepository(session)

    def register(
        self,
        name: str,
        org_type: OrganizationType | str,
        domain: str = "",
        organization_id: UUID | None = None,
    ) -> Organization:
        if not name.strip():
            raise ValidationError("organization name must not be empty")
        organization = Organization.register(
            name=name.strip(),
            org_type=parse_enum(OrganizationType, org_type),
            at=self._clock.now(),
            domain=domain,
            organization_id=organization_id,
        )
        created = self.organizations.create(organization)
        logger.info(
            "organization_registered",
            extra={
                "organization_id": str(created.organization_id),
                "org_type": created.org_type.value,
            },
        )
        return created

    def get(self, organization_id: UUID) -> Organization:
        return self.organizations.get_by_id(organization_id)
