"""
Module: compliance_kernel.repositories.base
Responsibility: Shared plumbing for the per-entity repositories: id lookup
    with typed not-found errors, optimistic version checks, pagination, and
    mapping of uniqueness violations to ConflictError subclasses.
Architecture position: Kernel > Repositories.  May import from db/, models/,
    domain/ and exceptions.  MUST NOT import from services/.

Invariants enforced:
    - Session ownership: repositories flush but never commit.  The caller's
      session_scope() decides the transaction boundary.
    - DTO return convention: repositories return frozen domain objects, never
      ORM instances.
    - Uniqueness failures are raised inside a SAVEPOINT, so the surrounding
      transaction remains usable after a ConflictError.
"""

from __future__ import annotations

from abc import ABC
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from compliance_kernel.db.base import Base
from compliance_kernel.exceptions import (
    ConflictError,
    NotFoundError,
    OptimisticLockError,
    ValidationError,
)

ModelType = TypeVar("ModelType", bound=Base)
T = TypeVar("T")

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PaginationOptions:
    page: int = 1
    page_size: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError(f"page must be >= 1, got {self.page}")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {self.page_size}"
            )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class BaseRepository(ABC, Generic[ModelType]):
    """
    Base for all repositories.

    Subclasses set ``model`` (the ORM class) and ``not_found`` (the
    NotFoundError subclass raised when an id does not resolve).
    """

    model: type[ModelType]
    not_found: type[NotFoundError]

    def __init__(self, session: Session):
        self.session = session

    def _load(self, entity_id: UUID) -> ModelType:
        model = self.session.get(self.model, entity_id)
        if model is None:
            raise self.not_found(entity_id)
        return model

    def _add(self, model: ModelType, conflict: Callable[[], ConflictError] | None = None) -> ModelType:
        """Insert ``model``; a uniqueness violation raises ``conflict()``."""
        with self._unique_write(conflict):
            self.session.add(model)
        return model

    @contextmanager
    def _unique_write(self, conflict: Callable[[], ConflictError] | None) -> Iterator[None]:
        if conflict is None:
            yield
            self.session.flush()
            return
        try:
            with self.session.begin_nested():
                yield
        except IntegrityError as exc:
            raise conflict() from exc

    def _check_version(self, model: Any, expected: int, entity_id: UUID) -> None:
        if model.version != expected:
            raise OptimisticLockError(self.model.__name__.removesuffix("Model"), entity_id)
        model.version += 1

    def _paginate(
        self,
        stmt: Select,
        options: PaginationOptions,
        to_dto: Callable[[ModelType], T],
    ) -> Page[T]:
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.offset(options.offset).limit(options.page_size)
        ).scalars().all()
        return Page(
            items=tuple(to_dto(r) for r in rows),
            total=total,
            page=options.page,
            page_size=options.page_size,
        )
