"""
Relationship domain types (``compliance_kernel.domain.relationship``).

Responsibility
--------------
The Company <-> Supplier business relationship and its lifecycle state
machine: invitation, acceptance/decline, suspension, reactivation and
termination.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Every mutator
returns a new ``Relationship``; the original is never changed, so a failed
transition leaves status and history exactly as they were.

Invariants enforced
-------------------
* ``RELATIONSHIP_TRANSITIONS`` is the only source of legal status changes.
* REJECTED and TERMINATED are terminal.
* Every status change appends exactly one ``StatusChange`` to
  ``status_history``; entries are never rewritten.
* ``supplier_id`` is None until ``accept`` binds it.
* Requirements may only be created when ``can_receive_requirements()``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from compliance_kernel.domain.workflow import (
    StatusChange,
    TransitionTable,
    append_history,
)
from compliance_kernel.exceptions import RelationshipTerminatedError


class RelationshipStatus(str, Enum):
    """Relationship lifecycle states."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"
    TERMINATED = "terminated"


class SupplierClassification(str, Enum):
    """Supplier risk tier."""

    CRITICAL = "critical"
    IMPORTANT = "important"
    STANDARD = "standard"

    @property
    def priority(self) -> int:
        """Sort weight, highest risk first."""
        return _CLASSIFICATION_PRIORITY[self]


_CLASSIFICATION_PRIORITY = {
    SupplierClassification.CRITICAL: 3,
    SupplierClassification.IMPORTANT: 2,
    SupplierClassification.STANDARD: 1,
}


RELATIONSHIP_TRANSITIONS: dict[RelationshipStatus, frozenset[RelationshipStatus]] = {
    RelationshipStatus.PENDING: frozenset({
        RelationshipStatus.ACTIVE,
        RelationshipStatus.REJECTED,
    }),
    RelationshipStatus.ACTIVE: frozenset({
        RelationshipStatus.SUSPENDED,
        RelationshipStatus.TERMINATED,
    }),
    RelationshipStatus.SUSPENDED: frozenset({
        RelationshipStatus.ACTIVE,
        RelationshipStatus.TERMINATED,
    }),
    RelationshipStatus.REJECTED: frozenset(),
    RelationshipStatus.TERMINATED: frozenset(),
}

TERMINAL_RELATIONSHIP_STATUSES: frozenset[RelationshipStatus] = frozenset({
    RelationshipStatus.REJECTED,
    RelationshipStatus.TERMINATED,
})

RELATIONSHIP_WORKFLOW: TransitionTable[RelationshipStatus] = TransitionTable(
    "relationship", RELATIONSHIP_TRANSITIONS,
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class Relationship:
    """Business link between a Company and a (possibly not yet bound) Supplier."""

    relationship_id: UUID
    company_id: UUID
    invited_email: str
    invited_by: UUID
    invited_at: datetime
    status: RelationshipStatus = RelationshipStatus.PENDING
    classification: SupplierClassification = SupplierClassification.STANDARD
    supplier_id: UUID | None = None
    notes: str = ""
    services_provided: tuple[str, ...] = ()
    contract_ref: str = ""
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    updated_at: datetime | None = None
    status_history: tuple[StatusChange[RelationshipStatus], ...] = ()
    version: int = 0

    @classmethod
    def invite(
        cls,
        company_id: UUID,
        invited_email: str,
        invited_by: UUID,
        at: datetime,
        classification: SupplierClassification = SupplierClassification.STANDARD,
        notes: str = "",
        relationship_id: UUID | None = None,
    ) -> Relationship:
        """Create a PENDING relationship with its creation history entry."""
        return cls(
            relationship_id=relationship_id or uuid4(),
            company_id=company_id,
            invited_email=normalize_email(invited_email),
            invited_by=invited_by,
            invited_at=at,
            classification=classification,
            notes=notes,
            updated_at=at,
            status_history=append_history(
                (), None, RelationshipStatus.PENDING, invited_by, "Invitation sent", at,
            ),
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def can_transition_to(self, new_status: RelationshipStatus) -> bool:
        return RELATIONSHIP_WORKFLOW.can_transition(self.status, new_status)

    def transition_status(
        self,
        new_status: RelationshipStatus,
        changed_by: UUID,
        reason: str,
        at: datetime,
    ) -> Relationship:
        """Move to ``new_status`` or raise InvalidTransitionError."""
        RELATIONSHIP_WORKFLOW.require(self.status, new_status)
        return replace(
            self,
            status=new_status,
            updated_at=at,
            status_history=append_history(
                self.status_history, self.status, new_status, changed_by, reason, at,
            ),
        )

    def accept(self, supplier_id: UUID, user_id: UUID, at: datetime) -> Relationship:
        """PENDING -> ACTIVE, binding the supplier."""
        moved = self.transition_status(
            RelationshipStatus.ACTIVE, user_id, "Invitation accepted", at,
        )
        return replace(moved, supplier_id=supplier_id, accepted_at=at)

    def decline(self, user_id: UUID, reason: str, at: datetime) -> Relationship:
        """PENDING -> REJECTED."""
        moved = self.transition_status(
            RelationshipStatus.REJECTED, user_id, reason or "Invitation declined", at,
        )
        return replace(moved, rejected_at=at)

    def suspend(self, user_id: UUID, reason: str, at: datetime) -> Relationship:
        return self.transition_status(RelationshipStatus.SUSPENDED, user_id, reason, at)

    def reactivate(self, user_id: UUID, reason: str, at: datetime) -> Relationship:
        return self.transition_status(RelationshipStatus.ACTIVE, user_id, reason, at)

    def terminate(self, user_id: UUID, reason: str, at: datetime) -> Relationship:
        return self.transition_status(RelationshipStatus.TERMINATED, user_id, reason, at)

    # ------------------------------------------------------------------
    # Non-status edits
    # ------------------------------------------------------------------

    def with_classification(
        self, classification: SupplierClassification, at: datetime,
    ) -> Relationship:
        self._require_not_terminated()
        return replace(self, classification=classification, updated_at=at)

    def with_details(
        self,
        at: datetime,
        notes: str | None = None,
        services_provided: tuple[str, ...] | None = None,
        contract_ref: str | None = None,
    ) -> Relationship:
        self._require_not_terminated()
        return replace(
            self,
            notes=self.notes if notes is None else notes,
            services_provided=(
                self.services_provided if services_provided is None
                else tuple(services_provided)
            ),
            contract_ref=self.contract_ref if contract_ref is None else contract_ref,
            updated_at=at,
        )

    def _require_not_terminated(self) -> None:
        if self.status == RelationshipStatus.TERMINATED:
            raise RelationshipTerminatedError(self.relationship_id)

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_pending(self) -> bool:
        return self.status == RelationshipStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.status == RelationshipStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RELATIONSHIP_STATUSES

    def can_receive_requirements(self) -> bool:
        return self.status == RelationshipStatus.ACTIVE and self.supplier_id is not None
