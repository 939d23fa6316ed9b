"""Persistence for organizations."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from compliance_kernel.domain.organization import Organization
from compliance_kernel.exceptions import (
    CheckFixAccountInUseError,
    OrganizationNotFoundError,
)
from compliance_kernel.models.organization import OrganizationModel
from compliance_kernel.repositories.base import BaseRepository


class OrganizationRepository(BaseRepository[OrganizationModel]):
    model = OrganizationModel
    not_found = OrganizationNotFoundError

    def create(self, organization: Organization) -> Organization:
        model = OrganizationModel.from_dto(organization)
        self._add(model)
        return model.to_dto()

    def get_by_id(self, organization_id: UUID) -> Organization:
        return self._load(organization_id).to_dto()

    def update(self, organization: Organization) -> Organization:
        model = self._load(organization.organization_id)
        with self._unique_write(
            lambda: CheckFixAccountInUseError(organization.checkfix_account_id or "")
        ):
            model.apply(organization)
        return model.to_dto()

    def get_by_checkfix_account(self, account_id: str) -> Organization | None:
        model = self.session.execute(
            select(OrganizationModel).where(
                OrganizationModel.checkfix_account_id == account_id,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None
