"""Persistence for relationships (and their status history rows)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from compliance_kernel.domain.relationship import (
    TERMINAL_RELATIONSHIP_STATUSES,
    Relationship,
    RelationshipStatus,
    SupplierClassification,
)
from compliance_kernel.exceptions import (
    RelationshipExistsError,
    RelationshipNotFoundError,
)
from compliance_kernel.models.relationship import RelationshipModel
from compliance_kernel.repositories.base import BaseRepository, Page, PaginationOptions


class RelationshipRepository(BaseRepository[RelationshipModel]):
    model = RelationshipModel
    not_found = RelationshipNotFoundError

    def create(self, relationship: Relationship) -> Relationship:
        model = RelationshipModel.from_dto(relationship)
        self._add(
            model,
            lambda: RelationshipExistsError(
                relationship.company_id, relationship.invited_email,
            ),
        )
        return model.to_dto()

    def get_by_id(self, relationship_id: UUID) -> Relationship:
        return self._load(relationship_id).to_dto()

    def get_for_company(self, relationship_id: UUID, company_id: UUID) -> Relationship:
        """Ownership-filtered lookup: another company's relationship is not found."""
        model = self._load(relationship_id)
        if model.company_id != company_id:
            raise RelationshipNotFoundError(relationship_id)
        return model.to_dto()

    def update(self, relationship: Relationship) -> Relationship:
        model = self._load(relationship.relationship_id)
        with self._unique_write(
            lambda: RelationshipExistsError(
                relationship.company_id, str(relationship.supplier_id),
            )
        ):
            self._check_version(model, relationship.version, relationship.relationship_id)
            model.apply(relationship)
        return model.to_dto()

    def find_live_invitation(self, company_id: UUID, email: str) -> Relationship | None:
        """A non-terminal relationship for (company, invited email), if any."""
        model = self.session.execute(
            select(RelationshipModel).where(
                RelationshipModel.company_id == company_id,
                RelationshipModel.invited_email == email,
                RelationshipModel.status.not_in(
                    [s.value for s in TERMINAL_RELATIONSHIP_STATUSES]
                ),
            )
        ).scalars().first()
        return model.to_dto() if model is not None else None

    def get_by_company_supplier(self, company_id: UUID, supplier_id: UUID) -> Relationship | None:
        model = self.session.execute(
            select(RelationshipModel).where(
                RelationshipModel.company_id == company_id,
                RelationshipModel.supplier_id == supplier_id,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_by_company(
        self,
        company_id: UUID,
        options: PaginationOptions = PaginationOptions(),
        status: RelationshipStatus | None = None,
        classification: SupplierClassification | None = None,
    ) -> Page[Relationship]:
        stmt = select(RelationshipModel).where(RelationshipModel.company_id == company_id)
        if status is not None:
            stmt = stmt.where(RelationshipModel.status == status.value)
        if classification is not None:
            stmt = stmt.where(RelationshipModel.classification == classification.value)
        stmt = stmt.order_by(RelationshipModel.invited_at.desc(), RelationshipModel.id)
        return self._paginate(stmt, options, RelationshipModel.to_dto)

    def list_by_supplier(
        self,
        supplier_id: UUID,
        options: PaginationOptions = PaginationOptions(),
        status: RelationshipStatus | None = None,
    ) -> Page[Relationship]:
        stmt = select(RelationshipModel).where(RelationshipModel.supplier_id == supplier_id)
        if status is not None:
            stmt = stmt.where(RelationshipModel.status == status.value)
        stmt = stmt.order_by(RelationshipModel.invited_at.desc(), RelationshipModel.id)
        return self._paginate(stmt, options, RelationshipModel.to_dto)

    def list_pending_by_email(self, email: str) -> list[Relationship]:
        rows = self.session.execute(
            select(RelationshipModel)
            .where(
                RelationshipModel.invited_email == email,
                RelationshipModel.status == RelationshipStatus.PENDING.value,
            )
            .order_by(RelationshipModel.invited_at)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def count_by_status(self, company_id: UUID) -> dict[RelationshipStatus, int]:
        rows = self.session.execute(
            select(RelationshipModel.status, func.count())
            .where(RelationshipModel.company_id == company_id)
            .group_by(RelationshipModel.status)
        ).all()
        counts = {s: 0 for s in RelationshipStatus}
        for status, count in rows:
            counts[RelationshipStatus(status)] = count
        return counts

    def count_by_classification(self, company_id: UUID) -> dict[SupplierClassification, int]:
        rows = self.session.execute(
            select(RelationshipModel.classification, func.count())
            .where(RelationshipModel.company_id == company_id)
            .group_by(RelationshipModel.classification)
        ).all()
        counts = {c: 0 for c in SupplierClassification}
        for classification, count in rows:
            counts[SupplierClassification(classification)] = count
        return counts
