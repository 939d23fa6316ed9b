"""Organization value objects and CheckFix account linkage."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4


class OrganizationType(str, Enum):
    COMPANY = "company"
    SUPPLIER = "supplier"


@dataclass(frozen=True)
class Organization:
    organization_id: UUID
    name: str
    org_type: OrganizationType
    domain: str = ""
    checkfix_account_id: str | None = None
    checkfix_linked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def register(
        cls,
        name: str,
        org_type: OrganizationType,
        at: datetime,
        domain: str = "",
        organization_id: UUID | None = None,
    ) -> Organization:
        return cls(
            organization_id=organization_id or uuid4(),
            name=name,
            org_type=org_type,
            domain=domain.strip().lower(),
            created_at=at,
            updated_at=at,
        )

    @property
    def has_checkfix_link(self) -> bool:
        return bool(self.checkfix_account_id)

    def link_checkfix(self, account_id: str, domain: str, at: datetime) -> Organization:
        """Bind a CheckFix account; the account's domain becomes the registered domain."""
        return replace(
            self,
            checkfix_account_id=account_id,
            checkfix_linked_at=at,
            domain=domain.strip().lower() or self.domain,
            updated_at=at,
        )

    def unlink_checkfix(self, at: datetime) -> Organization:
        return replace(
            self, checkfix_account_id=None, checkfix_linked_at=None, updated_at=at,
        )
