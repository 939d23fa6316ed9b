"""
Requirement domain types (``compliance_kernel.domain.requirement``).

Responsibility
--------------
A single compliance obligation a Company assigns to a Supplier under a
Relationship, its status machine (with retry and revision loops), and the
due-date predicates an external notifier uses to decide when to remind.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``REQUIREMENT_TRANSITIONS`` is the only source of legal status changes;
  APPROVED and EXPIRED are terminal.
* Every status change appends one ``StatusChange``; history only grows.
* The kind-specific configuration is a tagged variant
  (``QuestionnaireConfig`` | ``CheckFixConfig``); ``requirement_type`` is
  derived from it, never stored independently.
* Configuration and details change only while PENDING.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import ClassVar, Union
from uuid import UUID, uuid4

from compliance_kernel.domain.verification import Grade
from compliance_kernel.domain.workflow import (
    StatusChange,
    TransitionTable,
    append_history,
)
from compliance_kernel.exceptions import (
    InvalidRequirementConfigError,
    RequirementNotEditableError,
)


class RequirementStatus(str, Enum):
    """Requirement lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    REJECTED = "rejected"
    APPROVED = "approved"
    EXPIRED = "expired"


class RequirementType(str, Enum):
    QUESTIONNAIRE = "questionnaire"
    CHECKFIX = "checkfix"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


REQUIREMENT_TRANSITIONS: dict[RequirementStatus, frozenset[RequirementStatus]] = {
    RequirementStatus.PENDING: frozenset({
        RequirementStatus.IN_PROGRESS,
        RequirementStatus.EXPIRED,
    }),
    RequirementStatus.IN_PROGRESS: frozenset({
        RequirementStatus.SUBMITTED,
        RequirementStatus.EXPIRED,
    }),
    RequirementStatus.SUBMITTED: frozenset({
        RequirementStatus.APPROVED,
        RequirementStatus.REJECTED,
        RequirementStatus.UNDER_REVIEW,
    }),
    RequirementStatus.UNDER_REVIEW: frozenset({
        RequirementStatus.SUBMITTED,
    }),
    RequirementStatus.REJECTED: frozenset({
        RequirementStatus.IN_PROGRESS,
    }),
    RequirementStatus.APPROVED: frozenset(),
    RequirementStatus.EXPIRED: frozenset(),
}

TERMINAL_REQUIREMENT_STATUSES: frozenset[RequirementStatus] = frozenset({
    RequirementStatus.APPROVED,
    RequirementStatus.EXPIRED,
})

REQUIREMENT_WORKFLOW: TransitionTable[RequirementStatus] = TransitionTable(
    "requirement", REQUIREMENT_TRANSITIONS,
)

# Statuses during which the supplier still owes work before the due date.
_REMINDABLE = frozenset({
    RequirementStatus.PENDING,
    RequirementStatus.IN_PROGRESS,
    RequirementStatus.UNDER_REVIEW,
    RequirementStatus.REJECTED,
})


# =========================================================================
# Kind-specific configuration (tagged variant)
# =========================================================================


@dataclass(frozen=True)
class QuestionnaireConfig:
    """Questionnaire path: which questionnaire, and an optional passing-score override."""

    kind: ClassVar[RequirementType] = RequirementType.QUESTIONNAIRE

    questionnaire_id: UUID
    passing_score: int | None = None

    def __post_init__(self) -> None:
        if self.passing_score is not None and not 0 <= self.passing_score <= 100:
            raise InvalidRequirementConfigError(
                f"passing_score must be between 0 and 100, got {self.passing_score}"
            )


@dataclass(frozen=True)
class CheckFixConfig:
    """Grade path: minimum grade and maximum report age (None = policy default)."""

    kind: ClassVar[RequirementType] = RequirementType.CHECKFIX

    minimum_grade: Grade | None = None
    max_report_age_days: int | None = None


RequirementConfig = Union[QuestionnaireConfig, CheckFixConfig]


# =========================================================================
# Requirement
# =========================================================================


@dataclass(frozen=True)
class Requirement:
    """One compliance obligation assigned to a Supplier under a Relationship."""

    requirement_id: UUID
    relationship_id: UUID
    company_id: UUID
    supplier_id: UUID
    title: str
    config: RequirementConfig
    assigned_by: UUID
    assigned_at: datetime
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None
    status: RequirementStatus = RequirementStatus.PENDING
    reminder_sent_at: datetime | None = None
    updated_at: datetime | None = None
    status_history: tuple[StatusChange[RequirementStatus], ...] = ()
    version: int = 0

    @classmethod
    def assign(
        cls,
        relationship_id: UUID,
        company_id: UUID,
        supplier_id: UUID,
        title: str,
        config: RequirementConfig,
        assigned_by: UUID,
        at: datetime,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        due_date: datetime | None = None,
        requirement_id: UUID | None = None,
    ) -> Requirement:
        """Create a PENDING requirement with its creation history entry."""
        if not title.strip():
            raise InvalidRequirementConfigError("title must not be empty")
        return cls(
            requirement_id=requirement_id or uuid4(),
            relationship_id=relationship_id,
            company_id=company_id,
            supplier_id=supplier_id,
            title=title.strip(),
            config=config,
            assigned_by=assigned_by,
            assigned_at=at,
            description=description,
            priority=priority,
            due_date=due_date,
            updated_at=at,
            status_history=append_history(
                (), None, RequirementStatus.PENDING, assigned_by,
                "Requirement assigned", at,
            ),
        )

    @property
    def requirement_type(self) -> RequirementType:
        return self.config.kind

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def can_transition_to(self, new_status: RequirementStatus) -> bool:
        return REQUIREMENT_WORKFLOW.can_transition(self.status, new_status)

    def transition_status(
        self,
        new_status: RequirementStatus,
        changed_by: UUID,
        reason: str,
        at: datetime,
    ) -> Requirement:
        """Move to ``new_status`` or raise InvalidTransitionError."""
        REQUIREMENT_WORKFLOW.require(self.status, new_status)
        return replace(
            self,
            status=new_status,
            updated_at=at,
            status_history=append_history(
                self.status_history, self.status, new_status, changed_by, reason, at,
            ),
        )

    def start(self, user_id: UUID, at: datetime) -> Requirement:
        return self.transition_status(
            RequirementStatus.IN_PROGRESS, user_id, "Response started", at,
        )

    def submit(self, user_id: UUID, at: datetime) -> Requirement:
        return self.transition_status(
            RequirementStatus.SUBMITTED, user_id, "Response submitted", at,
        )

    def approve(self, reviewer_id: UUID, notes: str, at: datetime) -> Requirement:
        return self.transition_status(
            RequirementStatus.APPROVED, reviewer_id, notes or "Approved", at,
        )

    def reject(self, reviewer_id: UUID, reason: str, at: datetime) -> Requirement:
        return self.transition_status(
            RequirementStatus.REJECTED, reviewer_id, reason or "Rejected", at,
        )

    def request_revision(self, reviewer_id: UUID, notes: str, at: datetime) -> Requirement:
        return self.transition_status(
            RequirementStatus.UNDER_REVIEW, reviewer_id, notes or "Revision requested", at,
        )

    def retry(self, user_id: UUID, at: datetime) -> Requirement:
        return self.transition_status(
            RequirementStatus.IN_PROGRESS, user_id, "Retrying after rejection", at,
        )

    def resubmit(self, user_id: UUID, at: datetime) -> Requirement:
        return self.transition_status(
            RequirementStatus.SUBMITTED, user_id, "Resubmitted after revision", at,
        )

    def expire(self, changed_by: UUID, at: datetime, reason: str = "Due date passed") -> Requirement:
        return self.transition_status(RequirementStatus.EXPIRED, changed_by, reason, at)

    # ------------------------------------------------------------------
    # Edits (PENDING only)
    # ------------------------------------------------------------------

    def with_details(
        self,
        at: datetime,
        title: str | None = None,
        description: str | None = None,
        priority: Priority | None = None,
        due_date: datetime | None = None,
        config: RequirementConfig | None = None,
        clear_due_date: bool = False,
    ) -> Requirement:
        if self.status != RequirementStatus.PENDING:
            raise RequirementNotEditableError(self.requirement_id, self.status.value)
        if config is not None and config.kind != self.requirement_type:
            raise InvalidRequirementConfigError(
                f"cannot change requirement type from {self.requirement_type.value} "
                f"to {config.kind.value}"
            )
        if title is not None and not title.strip():
            raise InvalidRequirementConfigError("title must not be empty")
        if clear_due_date and due_date is not None:
            raise InvalidRequirementConfigError("cannot both set and clear the due date")
        if clear_due_date:
            new_due_date = None
        else:
            new_due_date = self.due_date if due_date is None else due_date
        return replace(
            self,
            title=self.title if title is None else title.strip(),
            description=self.description if description is None else description,
            priority=self.priority if priority is None else priority,
            due_date=new_due_date,
            config=self.config if config is None else config,
            updated_at=at,
        )

    def mark_reminder_sent(self, at: datetime) -> Requirement:
        return replace(self, reminder_sent_at=at, updated_at=at)

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REQUIREMENT_STATUSES

    def can_start_response(self) -> bool:
        return self.status == RequirementStatus.PENDING

    def can_be_reviewed(self) -> bool:
        return self.status == RequirementStatus.SUBMITTED

    def is_overdue(self, now: datetime) -> bool:
        """Due date passed and the requirement is not finished."""
        if self.due_date is None or self.is_terminal:
            return False
        return now > self.due_date

    def days_until_due(self, now: datetime) -> int | None:
        """Whole days until the due date, truncated toward zero; None without one."""
        if self.due_date is None:
            return None
        return int((self.due_date - now) / timedelta(days=1))

    def needs_reminder(self, days_before: int, now: datetime) -> bool:
        if self.due_date is None or self.reminder_sent_at is not None:
            return False
        if self.status not in _REMINDABLE:
            return False
        days = self.days_until_due(now)
        return days is not None and days <= days_before
