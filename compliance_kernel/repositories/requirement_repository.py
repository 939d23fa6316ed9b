"""Persistence for requirements."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from compliance_kernel.domain.requirement import (
    TERMINAL_REQUIREMENT_STATUSES,
    Priority,
    Requirement,
    RequirementStatus,
    RequirementType,
)
from compliance_kernel.exceptions import RequirementNotFoundError
from compliance_kernel.models.requirement import RequirementModel
from compliance_kernel.repositories.base import BaseRepository, Page, PaginationOptions

_OPEN_STATUSES = [
    s.value for s in RequirementStatus if s not in TERMINAL_REQUIREMENT_STATUSES
]


class RequirementRepository(BaseRepository[RequirementModel]):
    model = RequirementModel
    not_found = RequirementNotFoundError

    def create(self, requirement: Requirement) -> Requirement:
        model = RequirementModel.from_dto(requirement)
        self._add(model)
        return model.to_dto()

    def get_by_id(self, requirement_id: UUID) -> Requirement:
        return self._load(requirement_id).to_dto()

    def get_for_company(self, requirement_id: UUID, company_id: UUID) -> Requirement:
        model = self._load(requirement_id)
        if model.company_id != company_id:
            raise RequirementNotFoundError(requirement_id)
        return model.to_dto()

    def get_for_supplier(self, requirement_id: UUID, supplier_id: UUID) -> Requirement:
        model = self._load(requirement_id)
        if model.supplier_id != supplier_id:
            raise RequirementNotFoundError(requirement_id)
        return model.to_dto()

    def update(self, requirement: Requirement) -> Requirement:
        model = self._load(requirement.requirement_id)
        self._check_version(model, requirement.version, requirement.requirement_id)
        model.apply(requirement)
        self.session.flush()
        return model.to_dto()

    def _filtered(
        self,
        stmt,
        status: RequirementStatus | None,
        requirement_type: RequirementType | None,
        priority: Priority | None,
    ):
        if status is not None:
            stmt = stmt.where(RequirementModel.status == status.value)
        if requirement_type is not None:
            stmt = stmt.where(RequirementModel.requirement_type == requirement_type.value)
        if priority is not None:
            stmt = stmt.where(RequirementModel.priority == priority.value)
        return stmt.order_by(RequirementModel.assigned_at.desc(), RequirementModel.id)

    def list_by_company(
        self,
        company_id: UUID,
        options: PaginationOptions = PaginationOptions(),
        status: RequirementStatus | None = None,
        requirement_type: RequirementType | None = None,
        priority: Priority | None = None,
    ) -> Page[Requirement]:
        stmt = select(RequirementModel).where(RequirementModel.company_id == company_id)
        stmt = self._filtered(stmt, status, requirement_type, priority)
        return self._paginate(stmt, options, RequirementModel.to_dto)

    def list_by_supplier(
        self,
        supplier_id: UUID,
        options: PaginationOptions = PaginationOptions(),
        status: RequirementStatus | None = None,
        requirement_type: RequirementType | None = None,
        priority: Priority | None = None,
    ) -> Page[Requirement]:
        stmt = select(RequirementModel).where(RequirementModel.supplier_id == supplier_id)
        stmt = self._filtered(stmt, status, requirement_type, priority)
        return self._paginate(stmt, options, RequirementModel.to_dto)

    def list_by_relationship(self, relationship_id: UUID) -> list[Requirement]:
        rows = self.session.execute(
            select(RequirementModel)
            .where(RequirementModel.relationship_id == relationship_id)
            .order_by(RequirementModel.assigned_at, RequirementModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def list_open_due_before(
        self,
        cutoff: datetime,
        company_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> list[Requirement]:
        """Non-terminal requirements whose due date is strictly before ``cutoff``."""
        stmt = select(RequirementModel).where(
            RequirementModel.status.in_(_OPEN_STATUSES),
            RequirementModel.due_date.is_not(None),
            RequirementModel.due_date < cutoff,
        )
        if company_id is not None:
            stmt = stmt.where(RequirementModel.company_id == company_id)
        if supplier_id is not None:
            stmt = stmt.where(RequirementModel.supplier_id == supplier_id)
        rows = self.session.execute(
            stmt.order_by(RequirementModel.due_date, RequirementModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def list_unreminded_with_due_date(self) -> list[Requirement]:
        rows = self.session.execute(
            select(RequirementModel)
            .where(
                RequirementModel.status.in_(_OPEN_STATUSES),
                RequirementModel.due_date.is_not(None),
                RequirementModel.reminder_sent_at.is_(None),
            )
            .order_by(RequirementModel.due_date, RequirementModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def count_by_status(
        self,
        company_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> dict[RequirementStatus, int]:
        stmt = select(RequirementModel.status, func.count()).group_by(RequirementModel.status)
        if company_id is not None:
            stmt = stmt.where(RequirementModel.company_id == company_id)
        if supplier_id is not None:
            stmt = stmt.where(RequirementModel.supplier_id == supplier_id)
        counts = {s: 0 for s in RequirementStatus}
        for status, count in self.session.execute(stmt).all():
            counts[RequirementStatus(status)] = count
        return counts
