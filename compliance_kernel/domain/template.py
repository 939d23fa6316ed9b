"""
Questionnaire templates (``compliance_kernel.domain.template``).

Responsibility
--------------
Reusable questionnaire blueprints: the category and visibility enums, the
``QuestionnaireTemplate`` value object with its lifecycle rules, and the
parser that turns an imported mapping into a template.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* System templates are read-only and never deleted.
* Lifecycle DRAFT -> LOCAL | GLOBAL -> DRAFT.  Unpublishing is only allowed
  while no questionnaire was created from the template.
* A template can only be published with at least one topic.
* System and GLOBAL templates are visible to every company; every other
  template only to its owner.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from compliance_kernel.domain.questionnaire import (
    DEFAULT_PASSING_SCORE,
    Topic,
    normalize_topics,
)
from compliance_kernel.domain.workflow import TransitionTable, parse_enum
from compliance_kernel.exceptions import InvalidTemplateError, TemplateInUseError

DEFAULT_TEMPLATE_VERSION = "1.0"
DEFAULT_ESTIMATED_MINUTES = 30


class TemplateCategory(str, Enum):
    ISO27001 = "iso27001"
    GDPR = "gdpr"
    NIS2 = "nis2"
    CUSTOM = "custom"


class TemplateVisibility(str, Enum):
    DRAFT = "draft"
    LOCAL = "local"
    GLOBAL = "global"


TEMPLATE_TRANSITIONS: dict[TemplateVisibility, frozenset[TemplateVisibility]] = {
    TemplateVisibility.DRAFT: frozenset({TemplateVisibility.LOCAL, TemplateVisibility.GLOBAL}),
    TemplateVisibility.LOCAL: frozenset({TemplateVisibility.DRAFT}),
    TemplateVisibility.GLOBAL: frozenset({TemplateVisibility.DRAFT}),
}

TEMPLATE_WORKFLOW: TransitionTable[TemplateVisibility] = TransitionTable(
    "template", TEMPLATE_TRANSITIONS,
)


@dataclass(frozen=True)
class QuestionnaireTemplate:
    """A blueprint questionnaires are created from.  Build with ``create``."""

    template_id: UUID
    name: str
    category: TemplateCategory
    created_at: datetime
    description: str = ""
    version: str = DEFAULT_TEMPLATE_VERSION
    is_system: bool = False
    owner_company_id: UUID | None = None
    created_by: UUID | None = None
    visibility: TemplateVisibility = TemplateVisibility.DRAFT
    default_passing_score: int = DEFAULT_PASSING_SCORE
    estimated_minutes: int = DEFAULT_ESTIMATED_MINUTES
    topics: tuple[Topic, ...] = ()
    tags: tuple[str, ...] = ()
    usage_count: int = 0
    published_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        name: str,
        category: TemplateCategory | str,
        created_at: datetime,
        description: str = "",
        version: str = DEFAULT_TEMPLATE_VERSION,
        is_system: bool = False,
        owner_company_id: UUID | None = None,
        created_by: UUID | None = None,
        default_passing_score: int = DEFAULT_PASSING_SCORE,
        estimated_minutes: int = DEFAULT_ESTIMATED_MINUTES,
        topics: tuple[Topic, ...] = (),
        tags: tuple[str, ...] = (),
        template_id: UUID | None = None,
    ) -> QuestionnaireTemplate:
        """Validate and build a template.

        System templates are created GLOBAL and published; company templates
        start as DRAFT and must name their owner.

        Raises:
            InvalidTemplateError: empty name, passing score outside 0-100,
                non-positive duration, company template without owner.
            InvalidEnumValueError: unknown category.
            ValidationError: unnamed or duplicate topics.
        """
        if not name.strip():
            raise InvalidTemplateError("name is required")
        if not 0 <= default_passing_score <= 100:
            raise InvalidTemplateError(
                f"passing score must be between 0 and 100, got {default_passing_score}"
            )
        if estimated_minutes < 1:
            raise InvalidTemplateError("estimated minutes must be positive")
        if not is_system and owner_company_id is None:
            raise InvalidTemplateError("company templates need an owner")
        return cls(
            template_id=template_id or uuid4(),
            name=name.strip(),
            category=parse_enum(TemplateCategory, category),
            created_at=created_at,
            description=description,
            version=version or DEFAULT_TEMPLATE_VERSION,
            is_system=is_system,
            owner_company_id=None if is_system else owner_company_id,
            created_by=created_by,
            visibility=TemplateVisibility.GLOBAL if is_system else TemplateVisibility.DRAFT,
            default_passing_score=default_passing_score,
            estimated_minutes=estimated_minutes,
            topics=normalize_topics(topics),
            tags=tuple(dict.fromkeys(t.strip().lower() for t in tags if t.strip())),
            published_at=created_at if is_system else None,
            updated_at=created_at,
        )

    @property
    def is_draft(self) -> bool:
        return self.visibility == TemplateVisibility.DRAFT

    @property
    def is_published(self) -> bool:
        return not self.is_draft

    def is_owned_by(self, company_id: UUID) -> bool:
        return self.owner_company_id is not None and self.owner_company_id == company_id

    def can_view(self, company_id: UUID) -> bool:
        if self.is_system or self.visibility == TemplateVisibility.GLOBAL:
            return True
        return self.is_owned_by(company_id)

    @property
    def can_be_edited(self) -> bool:
        return not self.is_system and self.is_draft

    @property
    def can_be_deleted(self) -> bool:
        return not self.is_system and self.usage_count == 0

    def publish(self, visibility: TemplateVisibility, at: datetime) -> QuestionnaireTemplate:
        if visibility == TemplateVisibility.DRAFT:
            raise InvalidTemplateError("publish visibility must be local or global")
        if not self.topics:
            raise InvalidTemplateError("a template needs at least one topic to be published")
        TEMPLATE_WORKFLOW.require(self.visibility, visibility)
        return replace(self, visibility=visibility, published_at=at, updated_at=at)

    def unpublish(self, at: datetime) -> QuestionnaireTemplate:
        TEMPLATE_WORKFLOW.require(self.visibility, TemplateVisibility.DRAFT)
        if self.usage_count > 0:
            raise TemplateInUseError(self.template_id, self.usage_count)
        return replace(self, visibility=TemplateVisibility.DRAFT, published_at=None, updated_at=at)

    def revise(self, at: datetime, **changes) -> QuestionnaireTemplate:
        """Return a copy with ``changes`` applied and validated again."""
        fields = {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "version": self.version,
            "default_passing_score": self.default_passing_score,
            "estimated_minutes": self.estimated_minutes,
            "topics": self.topics,
            "tags": self.tags,
        }
        unknown = sorted(set(changes) - set(fields))
        if unknown:
            raise InvalidTemplateError(f"cannot change {', '.join(unknown)}")
        fields.update(changes)
        revised = QuestionnaireTemplate.create(
            created_at=self.created_at,
            is_system=self.is_system,
            owner_company_id=self.owner_company_id,
            created_by=self.created_by,
            template_id=self.template_id,
            **fields,
        )
        return replace(
            revised,
            visibility=self.visibility,
            usage_count=self.usage_count,
            published_at=self.published_at,
            updated_at=at,
        )

    def with_usage(self, at: datetime) -> QuestionnaireTemplate:
        return replace(self, usage_count=self.usage_count + 1, updated_at=at)


def template_from_mapping(
    data: Mapping[str, Any],
    created_at: datetime,
    owner_company_id: UUID | None = None,
    created_by: UUID | None = None,
    is_system: bool = False,
) -> QuestionnaireTemplate:
    """Build a template from an imported document.

    ``name`` and ``category`` are required.  Topics are mappings with
    ``name`` and optional ``id``/``topic_id``, ``description`` and ``order``.
    """
    if not isinstance(data, Mapping):
        raise InvalidTemplateError("template document must be an object")
    for key in ("name", "category"):
        if not data.get(key):
            raise InvalidTemplateError(f"{key} is required")

    raw_topics = data.get("topics") or []
    if not isinstance(raw_topics, list):
        raise InvalidTemplateError("topics must be a list")
    topics = []
    for raw in raw_topics:
        if not isinstance(raw, Mapping):
            raise InvalidTemplateError("each topic must be an object")
        topics.append(Topic(
            topic_id=str(raw.get("topic_id") or raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            description=str(raw.get("description") or ""),
            order=int(raw.get("order") or 0),
        ))

    try:
        passing_score = int(data.get("default_passing_score", DEFAULT_PASSING_SCORE))
        minutes = int(data.get("estimated_minutes", DEFAULT_ESTIMATED_MINUTES))
    except (TypeError, ValueError) as exc:
        raise InvalidTemplateError(f"numeric field is not a number: {exc}") from exc

    return QuestionnaireTemplate.create(
        name=str(data["name"]),
        category=str(data["category"]),
        created_at=created_at,
        description=str(data.get("description") or ""),
        version=str(data.get("version") or DEFAULT_TEMPLATE_VERSION),
        is_system=is_system,
        owner_company_id=owner_company_id,
        created_by=created_by,
        default_passing_score=passing_score,
        estimated_minutes=minutes,
        topics=tuple(topics),
        tags=tuple(str(t) for t in data.get("tags") or ()),
    )
