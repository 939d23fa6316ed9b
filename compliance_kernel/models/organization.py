"""ORM persistence for organizations (companies and suppliers)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base

if TYPE_CHECKING:
    from compliance_kernel.domain.organization import Organization


class OrganizationModel(Base):
    __tablename__ = "organizations"

    __table_args__ = (
        CheckConstraint(
            "org_type IN ('company', 'supplier')",
            name="ck_organizations_valid_type",
        ),
    )

    name: Mapped[str] = mapped_column(String(300), nullable=False)
    org_type: Mapped[str] = mapped_column(String(20), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    checkfix_account_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, unique=True,
    )
    checkfix_linked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name!r} type={self.org_type}>"

    def to_dto(self) -> Organization:
        from compliance_kernel.domain.organization import (
            Organization as OrganizationDTO,
            OrganizationType,
        )

        return OrganizationDTO(
            organization_id=self.id,
            name=self.name,
            org_type=OrganizationType(self.org_type),
            domain=self.domain,
            checkfix_account_id=self.checkfix_account_id,
            checkfix_linked_at=self.checkfix_linked_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: Organization) -> OrganizationModel:
        model = cls(id=dto.organization_id)
        model.apply(dto)
        return model

    def apply(self, dto: Organization) -> None:
        self.name = dto.name
        self.org_type = dto.org_type.value
        self.domain = dto.domain
        self.checkfix_account_id = dto.checkfix_account_id
        self.checkfix_linked_at = dto.checkfix_linked_at
        self.created_at = dto.created_at
        self.updated_at = dto.updated_at
