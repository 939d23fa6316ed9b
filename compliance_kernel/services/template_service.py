"""
TemplateService -- questionnaire template library.

Responsibility:
    Company-authored templates (create, import, edit, publish, withdraw)
    and the read-only system templates every company can start from.
    Creating a questionnaire from a template lives on QuestionnaireService.

Invariants enforced:
    - Companies only see system templates, GLOBAL templates and their own.
    - Only the owner edits, publishes or deletes a company template; system
      templates are read-only.
    - A template with usage cannot be unpublished or deleted.
    - Seeding system templates is idempotent by name.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.questionnaire import DEFAULT_PASSING_SCORE, Topic
from compliance_kernel.domain.template import (
    DEFAULT_ESTIMATED_MINUTES,
    QuestionnaireTemplate,
    TemplateCategory,
    TemplateVisibility,
    template_from_mapping,
)
from compliance_kernel.domain.workflow import parse_enum
from compliance_kernel.exceptions import (
    InvalidTemplateError,
    TemplateInUseError,
    TemplateNotEditableError,
    TemplateNotFoundError,
)
from compliance_kernel.logging_config import get_logger
from compliance_kernel.repositories.base import Page, PaginationOptions
from compliance_kernel.repositories.template_repository import TemplateRepository
from compliance_kernel.services.base import BaseService

logger = get_logger("services.template")


class TemplateService(BaseService):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self.templates = TemplateRepository(session)

    def create_template(
        self,
        company_id: UUID,
        name: str,
        category: TemplateCategory | str,
        created_by: UUID,
        description: str = "",
        default_passing_score: int = DEFAULT_PASSING_SCORE,
        estimated_minutes: int = DEFAULT_ESTIMATED_MINUTES,
        topics: Iterable[Topic] = (),
        tags: Iterable[str] = (),
    ) -> QuestionnaireTemplate:
        template = QuestionnaireTemplate.create(
            name=name,
            category=category,
            created_at=self._clock.now(),
            description=description,
            owner_company_id=company_id,
            created_by=created_by,
            default_passing_score=default_passing_score,
            estimated_minutes=estimated_minutes,
            topics=tuple(topics),
            tags=tuple(tags),
        )
        created = self.templates.create(template)
        logger.info(
            "template_created",
            extra={
                "template_id": str(created.template_id),
                "company_id": str(company_id),
                "category": created.category.value,
            },
        )
        return created

    def import_template(
        self,
        company_id: UUID,
        document: str | bytes | Mapping[str, Any],
        created_by: UUID,
    ) -> QuestionnaireTemplate:
        """
        Create a DRAFT company template from a JSON document.

        Raises:
            InvalidTemplateError: malformed JSON, missing name or category,
                badly shaped topics.
        """
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except json.JSONDecodeError as exc:
                raise InvalidTemplateError(f"not valid JSON: {exc.msg}") from exc
        template = template_from_mapping(
            document,
            created_at=self._clock.now(),
            owner_company_id=company_id,
            created_by=created_by,
        )
        created = self.templates.create(template)
        logger.info(
            "template_imported",
            extra={"template_id": str(created.template_id), "company_id": str(company_id)},
        )
        return created

    def get_template(self, template_id: UUID, company_id: UUID) -> QuestionnaireTemplate:
        """A template the company may see; anything else reads as not found."""
        template = self.templates.get_by_id(template_id)
        if not template.can_view(company_id):
            raise TemplateNotFoundError(template_id)
        return template

    def _owned(self, template_id: UUID, company_id: UUID) -> QuestionnaireTemplate:
        template = self.get_template(template_id, company_id)
        if template.is_system:
            raise TemplateNotEditableError(template_id, "system templates are read-only")
        if not template.is_owned_by(company_id):
            raise TemplateNotFoundError(template_id)
        return template

    def update_template(
        self, template_id: UUID, company_id: UUID, **changes,
    ) -> QuestionnaireTemplate:
        """Revise a DRAFT company template.  ``topics`` and ``tags`` replace the lists."""
        template = self._owned(template_id, company_id)
        if not template.can_be_edited:
            raise TemplateNotEditableError(template_id, "unpublish the template first")
        if "topics" in changes:
            changes["topics"] = tuple(changes["topics"])
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"])
        return self.templates.update(template.revise(self._clock.now(), **changes))

    def delete_template(self, template_id: UUID, company_id: UUID) -> None:
        template = self._owned(template_id, company_id)
        if not template.can_be_deleted:
            raise TemplateInUseError(template_id, template.usage_count)
        self.templates.delete(template_id)
        logger.info("template_deleted", extra={"template_id": str(template_id)})

    def publish_template(
        self,
        template_id: UUID,
        company_id: UUID,
        visibility: TemplateVisibility | str = TemplateVisibility.LOCAL,
    ) -> QuestionnaireTemplate:
        template = self._owned(template_id, company_id)
        published = self.templates.update(
            template.publish(parse_enum(TemplateVisibility, visibility), self._clock.now()),
        )
        logger.info(
            "template_published",
            extra={"template_id": str(template_id), "visibility": published.visibility.value},
        )
        return published

    def unpublish_template(self, template_id: UUID, company_id: UUID) -> QuestionnaireTemplate:
        template = self._owned(template_id, company_id)
        return self.templates.update(template.unpublish(self._clock.now()))

    def list_available(
        self,
        company_id: UUID,
        category: TemplateCategory | str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[QuestionnaireTemplate]:
        """System templates first, then GLOBAL and own templates by name."""
        return self.templates.list_available(
            company_id,
            PaginationOptions(page=page, page_size=page_size),
            category=parse_enum(TemplateCategory, category) if category is not None else None,
        )

    def list_for_company(
        self, company_id: UUID, page: int = 1, page_size: int = 20,
    ) -> Page[QuestionnaireTemplate]:
        return self.templates.list_by_company(
            company_id, PaginationOptions(page=page, page_size=page_size),
        )

    def seed_system_templates(
        self, documents: Iterable[Mapping[str, Any]],
    ) -> list[QuestionnaireTemplate]:
        """Create the system templates that do not exist yet, matched by name."""
        existing = self.templates.system_template_names()
        created = []
        for document in documents:
            if document.get("name") in existing:
                continue
            template = template_from_mapping(document, self._clock.now(), is_system=True)
            created.append(self.templates.create(template))
            existing.add(template.name)
        if created:
            logger.info("system_templates_seeded", extra={"count": len(created)})
        return created
