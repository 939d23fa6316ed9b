"""
Module: compliance_kernel.models.relationship
Responsibility: ORM persistence for Company <-> Supplier relationships and
    their append-only status history.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - DB check constraints limit status and classification values.
    - UNIQUE(company_id, supplier_id): one relationship per bound pair.
      supplier_id is NULL until acceptance, and NULLs do not collide.
    - Status-change rows are append-only: UPDATE/DELETE raise
      ImmutabilityViolationError at the ORM level.
    - UNIQUE(relationship_id, seq) orders history and rejects a second
      writer appending the same position.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compliance_kernel.db.base import Base, UUIDString
from compliance_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from compliance_kernel.domain.relationship import Relationship
    from compliance_kernel.domain.workflow import StatusChange


class RelationshipModel(Base):
    """Persistent relationship.  ``id`` is the domain relationship_id."""

    __tablename__ = "relationships"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'active', 'suspended', 'rejected', 'terminated')",
            name="ck_relationships_valid_status",
        ),
        CheckConstraint(
            "classification IN ('critical', 'important', 'standard')",
            name="ck_relationships_valid_classification",
        ),
        UniqueConstraint(
            "company_id", "supplier_id",
            name="uq_relationships_company_supplier",
        ),
        Index("ix_relationships_company_status", "company_id", "status"),
        Index("ix_relationships_invited_email", "invited_email", "status"),
        Index("ix_relationships_supplier", "supplier_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    supplier_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    invited_email: Mapped[str] = mapped_column(String(320), nullable=False)
    invited_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invited_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    classification: Mapped[str] = mapped_column(
        String(20), nullable=False, default="standard",
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    services_provided: Mapped[list] = mapped_column(nullable=False, default=list)
    contract_ref: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    history: Mapped[list["RelationshipStatusChangeModel"]] = relationship(
        "RelationshipStatusChangeModel",
        back_populates="relationship_row",
        order_by="RelationshipStatusChangeModel.seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Relationship {self.id} company={self.company_id} "
            f"status={self.status}>"
        )

    def to_dto(self) -> Relationship:
        """Convert ORM model to frozen domain object."""
        from compliance_kernel.domain.relationship import (
            Relationship as RelationshipDTO,
            RelationshipStatus,
            SupplierClassification,
        )

        return RelationshipDTO(
            relationship_id=self.id,
            company_id=self.company_id,
            invited_email=self.invited_email,
            invited_by=self.invited_by_id,
            invited_at=self.invited_at,
            status=RelationshipStatus(self.status),
            classification=SupplierClassification(self.classification),
            supplier_id=self.supplier_id,
            notes=self.notes,
            services_provided=tuple(self.services_provided or ()),
            contract_ref=self.contract_ref,
            accepted_at=self.accepted_at,
            rejected_at=self.rejected_at,
            updated_at=self.updated_at,
            status_history=tuple(
                h.to_dto(RelationshipStatus) for h in self.history
            ),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Relationship) -> RelationshipModel:
        """Create ORM model (with history rows) from a domain object."""
        model = cls(id=dto.relationship_id, version=0)
        model.apply(dto)
        return model

    def apply(self, dto: Relationship) -> None:
        """Copy mutable fields and append any new history entries."""
        self.company_id = dto.company_id
        self.supplier_id = dto.supplier_id
        self.invited_email = dto.invited_email
        self.invited_by_id = dto.invited_by
        self.invited_at = dto.invited_at
        self.status = dto.status.value
        self.classification = dto.classification.value
        self.notes = dto.notes
        self.services_provided = list(dto.services_provided)
        self.contract_ref = dto.contract_ref
        self.accepted_at = dto.accepted_at
        self.rejected_at = dto.rejected_at
        self.updated_at = dto.updated_at

        persisted = len(self.history)
        if len(dto.status_history) < persisted:
            raise ImmutabilityViolationError(
                entity_type="Relationship",
                entity_id=str(self.id),
                reason="status history cannot shrink",
            )
        for seq, change in enumerate(dto.status_history[persisted:], start=persisted):
            self.history.append(
                RelationshipStatusChangeModel.from_dto(self.id, seq, change)
            )


class RelationshipStatusChangeModel(Base):
    """One relationship status-history entry.  Append-only."""

    __tablename__ = "relationship_status_changes"

    __table_args__ = (
        UniqueConstraint(
            "relationship_id", "seq",
            name="uq_relationship_status_changes_seq",
        ),
    )

    relationship_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("relationships.id"), nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    changed_at: Mapped[datetime] = mapped_column(nullable=False)

    relationship_row: Mapped["RelationshipModel"] = relationship(
        "RelationshipModel", back_populates="history",
    )

    def to_dto(self, status_type):
        from compliance_kernel.domain.workflow import StatusChange as StatusChangeDTO

        return StatusChangeDTO(
            from_status=status_type(self.from_status) if self.from_status else None,
            to_status=status_type(self.to_status),
            changed_by=self.changed_by_id,
            reason=self.reason,
            changed_at=self.changed_at,
        )

    @classmethod
    def from_dto(
        cls, relationship_id: UUID, seq: int, change: StatusChange,
    ) -> RelationshipStatusChangeModel:
        return cls(
            relationship_id=relationship_id,
            seq=seq,
            from_status=change.from_status.value if change.from_status else None,
            to_status=change.to_status.value,
            changed_by_id=change.changed_by,
            reason=change.reason,
            changed_at=change.changed_at,
        )


# =============================================================================
# ORM-Level Immutability for Status History (Append-Only)
# =============================================================================


@event.listens_for(RelationshipStatusChangeModel, "before_update")
def prevent_relationship_history_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="RelationshipStatusChange",
        entity_id=str(target.id),
        reason="Status history is append-only -- cannot modify",
    )


@event.listens_for(RelationshipStatusChangeModel, "before_delete")
def prevent_relationship_history_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="RelationshipStatusChange",
        entity_id=str(target.id),
        reason="Status history is append-only -- cannot delete",
    )
