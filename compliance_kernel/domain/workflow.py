"""
Workflow primitives (``compliance_kernel.domain.workflow``).

Responsibility
--------------
Shared building blocks for the relationship and requirement state machines:
the append-only ``StatusChange`` history record and ``TransitionTable``, a
thin wrapper around a ``dict[Status, frozenset[Status]]`` adjacency map.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* A transition is legal only if the target is in the source's frozenset.
* Terminal statuses map to an empty frozenset.
* ``append_history`` never rewrites earlier entries; it returns a new tuple
  with one more record.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar
from uuid import UUID

from compliance_kernel.exceptions import InvalidEnumValueError, InvalidTransitionError

S = TypeVar("S", bound=Enum)


@dataclass(frozen=True)
class StatusChange(Generic[S]):
    """One entry of an entity's status history.

    ``from_status`` is None only for the creation entry.
    """

    from_status: S | None
    to_status: S
    changed_by: UUID
    reason: str
    changed_at: datetime


class TransitionTable(Generic[S]):
    """Adjacency map of allowed status changes for one workflow."""

    def __init__(self, workflow: str, transitions: Mapping[S, frozenset[S]]):
        self.workflow = workflow
        self._transitions: dict[S, frozenset[S]] = dict(transitions)

    def allowed_from(self, status: S) -> frozenset[S]:
        return self._transitions.get(status, frozenset())

    def can_transition(self, from_status: S, to_status: S) -> bool:
        return to_status in self.allowed_from(from_status)

    def is_terminal(self, status: S) -> bool:
        return not self.allowed_from(status)

    @property
    def terminal_statuses(self) -> frozenset[S]:
        return frozenset(s for s, targets in self._transitions.items() if not targets)

    def require(self, from_status: S, to_status: S) -> None:
        """Raise InvalidTransitionError unless from_status -> to_status is allowed."""
        if not self.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                self.workflow, from_status.value, to_status.value,
            )

    def pairs(self) -> Iterator[tuple[S, S]]:
        """Yield every allowed (from, to) pair."""
        for from_status, targets in self._transitions.items():
            for to_status in targets:
                yield from_status, to_status


def append_history(
    history: tuple[StatusChange[S], ...],
    from_status: S | None,
    to_status: S,
    changed_by: UUID,
    reason: str,
    changed_at: datetime,
) -> tuple[StatusChange[S], ...]:
    return history + (
        StatusChange(
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            reason=reason,
            changed_at=changed_at,
        ),
    )


E = TypeVar("E", bound=Enum)


def parse_enum(enum_type: type[E], value: E | str) -> E:
    """Coerce a raw value into ``enum_type`` or raise InvalidEnumValueError.

    Lookup is by value first, then by member name, both case-insensitive for
    strings (``"in_progress"`` and ``"IN_PROGRESS"`` both resolve).
    """
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        for member in enum_type:
            if isinstance(member.value, str) and member.value.lower() == value.lower():
                return member
            if member.name == value.upper():
                return member
    raise InvalidEnumValueError(enum_type.__name__, value)
