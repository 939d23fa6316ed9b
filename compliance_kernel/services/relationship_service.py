"""
RelationshipService -- invitation and lifecycle of Company <-> Supplier links.

Responsibility:
    Persists ``Relationship`` transitions computed by the domain object:
    invite, accept, decline, suspend, reactivate, terminate, plus the
    non-status edits (classification, details) and the company/supplier
    listings.

Architecture position:
    Kernel > Services.  Calls ``domain.relationship`` for every rule and
    ``RelationshipRepository`` for storage.  Authorization is the caller's
    concern; ownership is enforced by returning NotFound for another
    company's relationship.

Invariants enforced:
    - One live (non-terminal) invitation per (company, invited email).
    - One relationship per bound (company, supplier) pair.
    - Failed transitions raise before any write; nothing is flushed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.relationship import (
    Relationship,
    RelationshipStatus,
    SupplierClassification,
    normalize_email,
)
from compliance_kernel.domain.workflow import parse_enum
from compliance_kernel.exceptions import RelationshipExistsError, ValidationError
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.repositories.base import Page, PaginationOptions
from compliance_kernel.repositories.relationship_repository import RelationshipRepository
from compliance_kernel.services.base import BaseService

logger = get_logger("services.relationship")


@dataclass(frozen=True)
class SupplierStats:
    """Relationship counts for one company."""

    total: int
    by_status: dict[RelationshipStatus, int] = field(default_factory=dict)
    by_classification: dict[SupplierClassification, int] = field(default_factory=dict)

    @property
    def active(self) -> int:
        return self.by_status.get(RelationshipStatus.ACTIVE, 0)

    @property
    def pending(self) -> int:
        return self.by_status.get(RelationshipStatus.PENDING, 0)


class RelationshipService(BaseService):
    """Company-facing and supplier-facing relationship operations."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self.relationships = RelationshipRepository(session)

    # ------------------------------------------------------------------
    # Invitation
    # ------------------------------------------------------------------

    def invite_supplier(
        self,
        company_id: UUID,
        email: str,
        invited_by: UUID,
        classification: SupplierClassification | str = SupplierClassification.STANDARD,
        notes: str = "",
    ) -> Relationship:
        """
        Create a PENDING relationship for ``email``.

        Raises:
            ValidationError: empty email.
            InvalidEnumValueError: unknown classification.
            RelationshipExistsError: a live invitation to this email exists.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("invited email must not be empty")
        classification = parse_enum(SupplierClassification, classification)

        if self.relationships.find_live_invitation(company_id, email) is not None:
            raise RelationshipExistsError(company_id, email)

        relationship = Relationship.invite(
            company_id=company_id,
            invited_email=email,
            invited_by=invited_by,
            at=self._clock.now(),
            classification=classification,
            notes=notes,
        )
        created = self.relationships.create(relationship)
        logger.info(
            "supplier_invited",
            extra={
                "relationship_id": str(created.relationship_id),
                "company_id": str(company_id),
                "classification": classification.value,
            },
        )
        return created

    def accept_invitation(
        self, relationship_id: UUID, supplier_id: UUID, user_id: UUID,
    ) -> Relationship:
        """
        PENDING -> ACTIVE, binding ``supplier_id``.

        Raises:
            RelationshipNotFoundError, InvalidTransitionError,
            RelationshipExistsError: the supplier is already bound to this company.
        """
        relationship = self.relationships.get_by_id(relationship_id)
        accepted = relationship.accept(supplier_id, user_id, self._clock.now())

        existing = self.relationships.get_by_company_supplier(
            relationship.company_id, supplier_id,
        )
        if existing is not None and existing.relationship_id != relationship_id:
            raise RelationshipExistsError(relationship.company_id, str(supplier_id))

        saved = self.relationships.update(accepted)
        with LogContext.bind(company_id=saved.company_id, supplier_id=supplier_id):
            logger.info(
                "invitation_accepted",
                extra={"relationship_id": str(relationship_id)},
            )
        return saved

    def decline_invitation(
        self, relationship_id: UUID, user_id: UUID, reason: str = "",
    ) -> Relationship:
        relationship = self.relationships.get_by_id(relationship_id)
        declined = relationship.decline(user_id, reason, self._clock.now())
        saved = self.relationships.update(declined)
        logger.info(
            "invitation_declined",
            extra={"relationship_id": str(relationship_id)},
        )
        return saved

    # ------------------------------------------------------------------
    # Company-side lifecycle
    # ------------------------------------------------------------------

    def suspend(
        self, relationship_id: UUID, company_id: UUID, user_id: UUID, reason: str,
    ) -> Relationship:
        relationship = self.relationships.get_for_company(relationship_id, company_id)
        return self._save_transition(
            relationship.suspend(user_id, reason, self._clock.now()),
        )

    def reactivate(
        self, relationship_id: UUID, company_id: UUID, user_id: UUID, reason: str,
    ) -> Relationship:
        relationship = self.relationships.get_for_company(relationship_id, company_id)
        return self._save_transition(
            relationship.reactivate(user_id, reason, self._clock.now()),
        )

    def terminate(
        self, relationship_id: UUID, company_id: UUID, user_id: UUID, reason: str,
    ) -> Relationship:
        relationship = self.relationships.get_for_company(relationship_id, company_id)
        return self._save_transition(
            relationship.terminate(user_id, reason, self._clock.now()),
        )

    def _save_transition(self, relationship: Relationship) -> Relationship:
        saved = self.relationships.update(relationship)
        change = saved.status_history[-1]
        logger.info(
            "relationship_status_changed",
            extra={
                "relationship_id": str(saved.relationship_id),
                "from_status": change.from_status.value if change.from_status else None,
                "to_status": change.to_status.value,
            },
        )
        return saved

    def update_classification(
        self,
        relationship_id: UUID,
        company_id: UUID,
        classification: SupplierClassification | str,
    ) -> Relationship:
        classification = parse_enum(SupplierClassification, classification)
        relationship = self.relationships.get_for_company(relationship_id, company_id)
        return self.relationships.update(
            relationship.with_classification(classification, self._clock.now()),
        )

    def update_details(
        self,
        relationship_id: UUID,
        company_id: UUID,
        notes: str | None = None,
        services_provided: list[str] | tuple[str, ...] | None = None,
        contract_ref: str | None = None,
    ) -> Relationship:
        relationship = self.relationships.get_for_company(relationship_id, company_id)
        return self.relationships.update(
            relationship.with_details(
                self._clock.now(),
                notes=notes,
                services_provided=(
                    tuple(services_provided) if services_provided is not None else None
                ),
                contract_ref=contract_ref,
            ),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_relationship(self, relationship_id: UUID, company_id: UUID) -> Relationship:
        return self.relationships.get_for_company(relationship_id, company_id)

    def list_for_company(
        self,
        company_id: UUID,
        status: RelationshipStatus | str | None = None,
        classification: SupplierClassification | str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Relationship]:
        return self.relationships.list_by_company(
            company_id,
            PaginationOptions(page=page, page_size=page_size),
            status=parse_enum(RelationshipStatus, status) if status is not None else None,
            classification=(
                parse_enum(SupplierClassification, classification)
                if classification is not None else None
            ),
        )

    def list_for_supplier(
        self,
        supplier_id: UUID,
        status: RelationshipStatus | str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Relationship]:
        return self.relationships.list_by_supplier(
            supplier_id,
            PaginationOptions(page=page, page_size=page_size),
            status=parse_enum(RelationshipStatus, status) if status is not None else None,
        )

    def list_pending_invitations(self, email: str) -> list[Relationship]:
        return self.relationships.list_pending_by_email(normalize_email(email))

    def supplier_stats(self, company_id: UUID) -> SupplierStats:
        by_status = self.relationships.count_by_status(company_id)
        return SupplierStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_classification=self.relationships.count_by_classification(company_id),
        )
