"""Persistence for supplier responses."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from compliance_kernel.domain.response import SupplierResponse
from compliance_kernel.exceptions import (
    ResponseAlreadyExistsError,
    ResponseNotFoundError,
)
from compliance_kernel.models.response import SupplierResponseModel
from compliance_kernel.repositories.base import BaseRepository


class ResponseRepository(BaseRepository[SupplierResponseModel]):
    model = SupplierResponseModel
    not_found = ResponseNotFoundError

    def create(self, response: SupplierResponse) -> SupplierResponse:
        """Insert a response.

        Raises:
            ResponseAlreadyExistsError: the requirement already has a live
                response (or this attempt number is taken).
        """
        model = SupplierResponseModel.from_dto(response)
        self._add(model, lambda: ResponseAlreadyExistsError(response.requirement_id))
        return model.to_dto()

    def get_by_id(self, response_id: UUID) -> SupplierResponse:
        return self._load(response_id).to_dto()

    def update(self, response: SupplierResponse) -> SupplierResponse:
        model = self._load(response.response_id)
        self._check_version(model, response.version, response.response_id)
        model.apply(response)
        self.session.flush()
        return model.to_dto()

    def get_live_by_requirement(self, requirement_id: UUID) -> SupplierResponse | None:
        model = self.session.execute(
            select(SupplierResponseModel).where(
                SupplierResponseModel.requirement_id == requirement_id,
                SupplierResponseModel.superseded_at.is_(None),
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_by_requirement(self, requirement_id: UUID) -> list[SupplierResponse]:
        """Every attempt for a requirement, oldest first."""
        rows = self.session.execute(
            select(SupplierResponseModel)
            .where(SupplierResponseModel.requirement_id == requirement_id)
            .order_by(SupplierResponseModel.attempt)
        ).scalars().all()
        return [r.to_dto() for r in rows]
