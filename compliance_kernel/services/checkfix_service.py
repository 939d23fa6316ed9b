"""
CheckFixService -- linking supplier organizations to their CheckFix account.

Responsibility:
    ``link_account`` validates access with the provider, fetches the
    account's domain and stores both on the organization; that domain is
    what later verifications are matched against.  ``link_status`` reports
    the link plus the supplier's latest verification.

Failure modes:
    - CheckFixAPIError from the client propagates unchanged (no retry).
    - Linking an account already linked elsewhere -> CheckFixAccountInUseError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.organization import Organization, OrganizationType
from compliance_kernel.domain.requirement import CheckFixConfig
from compliance_kernel.domain.verification import (
    CheckFixVerification,
    Grade,
    VerificationOutcome,
    VerificationPolicy,
)
from compliance_kernel.exceptions import RequirementTypeMismatchError, ValidationError
from compliance_kernel.integrations.checkfix_client import CheckFixClient
from compliance_kernel.logging_config import get_logger
from compliance_kernel.repositories.organization_repository import OrganizationRepository
from compliance_kernel.repositories.requirement_repository import RequirementRepository
from compliance_kernel.repositories.response_repository import ResponseRepository
from compliance_kernel.repositories.submission_repository import VerificationRepository
from compliance_kernel.services.base import BaseService

logger = get_logger("services.checkfix")

DEFAULT_REFRESH_DAYS_BEFORE_EXPIRY = 7


@dataclass(frozen=True)
class CheckFixLinkStatus:
    is_linked: bool
    account_id: str | None = None
    domain: str = ""
    linked_at: datetime | None = None
    latest_grade: Grade | None = None
    latest_verified_at: datetime | None = None
    verification: CheckFixVerification | None = None


class CheckFixService(BaseService):
    def __init__(
        self,
        session: Session,
        client: CheckFixClient,
        clock: Clock | None = None,
        policy: VerificationPolicy | None = None,
        refresh_days_before_expiry: int = DEFAULT_REFRESH_DAYS_BEFORE_EXPIRY,
    ):
        super().__init__(session, clock)
        self.client = client
        self.policy = policy or VerificationPolicy()
        self.refresh_days_before_expiry = refresh_days_before_expiry
        self.organizations = OrganizationRepository(session)
        self.verifications = VerificationRepository(session)
        self.requirements = RequirementRepository(session)
        self.responses = ResponseRepository(session)

    def link_account(self, supplier_id: UUID, account_id: str) -> Organization:
        """
        Link ``account_id`` to a supplier organization.

        Raises:
            OrganizationNotFoundError: unknown supplier.
            ValidationError: not a supplier, or the provider rejects the account.
            CheckFixAPIError: provider unreachable or failing.
            CheckFixAccountInUseError: account linked to another organization.
        """
        organization = self.organizations.get_by_id(supplier_id)
        if organization.org_type != OrganizationType.SUPPLIER:
            raise ValidationError("only suppliers can link CheckFix accounts")
        account_id = account_id.strip()
        if not account_id:
            raise ValidationError("CheckFix account id must not be empty")

        if not self.client.validate_account_access(account_id):
            raise ValidationError(f"invalid CheckFix account {account_id!r}")
        domain = self.client.get_account_domain(account_id)

        linked = self.organizations.update(
            organization.link_checkfix(account_id, domain, self._clock.now()),
        )
        logger.info(
            "checkfix_account_linked",
            extra={"supplier_id": str(supplier_id), "domain": linked.domain},
        )
        return linked

    def unlink_account(self, supplier_id: UUID) -> Organization:
        organization = self.organizations.get_by_id(supplier_id)
        unlinked = self.organizations.update(organization.unlink_checkfix(self._clock.now()))
        logger.info("checkfix_account_unlinked", extra={"supplier_id": str(supplier_id)})
        return unlinked

    def link_status(self, supplier_id: UUID) -> CheckFixLinkStatus:
        organization = self.organizations.get_by_id(supplier_id)
        if not organization.has_checkfix_link:
            return CheckFixLinkStatus(is_linked=False, domain=organization.domain)

        latest = self.verifications.latest_for_supplier(supplier_id)
        return CheckFixLinkStatus(
            is_linked=True,
            account_id=organization.checkfix_account_id,
            domain=organization.domain,
            linked_at=organization.checkfix_linked_at,
            latest_grade=latest.overall_grade if latest else None,
            latest_verified_at=latest.verified_at if latest else None,
            verification=latest,
        )

    def get_verification(self, response_id: UUID) -> CheckFixVerification | None:
        return self.verifications.get_by_response(response_id)

    def needs_refresh(self, supplier_id: UUID, days_before: int | None = None) -> bool:
        """True when the supplier has no verification or the latest is close to expiry."""
        latest = self.verifications.latest_for_supplier(supplier_id)
        if latest is None:
            return True
        window = self.refresh_days_before_expiry if days_before is None else days_before
        return latest.needs_refresh(window, self._clock.now())

    def check_requirement_met(
        self, requirement_id: UUID, company_id: UUID,
    ) -> VerificationOutcome | None:
        """
        Re-evaluate a grade requirement's submitted verification as of now.

        Returns None when nothing has been verified yet.  The stored
        response verdict is not changed; a verification that passed on
        submission can fail here once it has expired or the report aged out.
        """
        requirement = self.requirements.get_for_company(requirement_id, company_id)
        config = requirement.config
        if not isinstance(config, CheckFixConfig):
            raise RequirementTypeMismatchError(
                requirement_id,
                CheckFixConfig.kind.value,
                requirement.requirement_type.value,
            )
        response = self.responses.get_live_by_requirement(requirement_id)
        if response is None:
            return None
        verification = self.verifications.get_by_response(response.response_id)
        if verification is None:
            return None
        return self.policy.evaluate(
            verification,
            self._clock.now(),
            minimum_grade=config.minimum_grade,
            max_report_age_days=config.max_report_age_days,
        )
