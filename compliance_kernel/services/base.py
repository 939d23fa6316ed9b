"""
BaseService -- common constructor for the kernel's stateful services.

Responsibility:
    Holds the caller's SQLAlchemy ``Session`` and the injected ``Clock``.
    Services read and write through repositories bound to that session and
    never commit: the caller's ``session_scope()`` owns the transaction, so
    a multi-row operation such as a submission (snapshot insert, response
    update, requirement transition) commits or rolls back as one unit.

Invariants enforced:
    - Services flush; they never call ``session.commit()`` or
      ``session.rollback()``.
    - Time comes only from ``self._clock``; no service reads the wall clock.
"""

from __future__ import annotations

from abc import ABC

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
