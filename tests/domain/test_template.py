"""Tests for questionnaire template rules and document parsing."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from compliance_kernel.domain.questionnaire import Topic
from compliance_kernel.domain.template import (
    QuestionnaireTemplate,
    TemplateCategory,
    TemplateVisibility,
    template_from_mapping,
)
from compliance_kernel.exceptions import (
    InvalidEnumValueError,
    InvalidTemplateError,
    InvalidTransitionError,
    TemplateInUseError,
    ValidationError,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
OWNER = uuid4()


def _template(**kwargs) -> QuestionnaireTemplate:
    fields = {
        "name": "Vendor baseline",
        "category": "custom",
        "created_at": T0,
        "owner_company_id": OWNER,
        "topics": (Topic("access", "Access"),),
    }
    fields.update(kwargs)
    return QuestionnaireTemplate.create(**fields)


class TestCreate:
    def test_company_template_starts_as_draft(self):
        template = _template()
        assert template.visibility == TemplateVisibility.DRAFT
        assert template.category == TemplateCategory.CUSTOM
        assert template.version == "1.0"
        assert template.can_be_edited
        assert template.published_at is None

    def test_system_template_is_global(self):
        template = _template(is_system=True, owner_company_id=None)
        assert template.visibility == TemplateVisibility.GLOBAL
        assert template.published_at == T0
        assert not template.can_be_edited
        assert not template.can_be_deleted

    @pytest.mark.parametrize("kwargs", [
        {"name": "  "},
        {"default_passing_score": 101},
        {"estimated_minutes": 0},
        {"owner_company_id": None},
    ])
    def test_rejects(self, kwargs):
        with pytest.raises(InvalidTemplateError):
            _template(**kwargs)

    def test_unknown_category(self):
        with pytest.raises(InvalidEnumValueError):
            _template(category="sox")

    def test_topics_are_filled_in(self):
        template = _template(topics=(Topic("", "Access"), Topic("net", "Network", order=5)))
        assert template.topics[0].topic_id
        assert [(t.name, t.order) for t in template.topics] == [("Access", 1), ("Network", 5)]
        with pytest.raises(ValidationError):
            _template(topics=(Topic("a", "One"), Topic("a", "Two")))
        with pytest.raises(ValidationError):
            _template(topics=(Topic("a", " "),))

    def test_tags_normalized(self):
        assert _template(tags=("GDPR", "gdpr", " ", "Quick-Check")).tags == ("gdpr", "quick-check")


class TestVisibility:
    def test_local_is_owner_only(self):
        template = _template().publish(TemplateVisibility.LOCAL, T0)
        assert template.can_view(OWNER)
        assert not template.can_view(uuid4())

    def test_global_and_system_are_shared(self):
        assert _template().publish(TemplateVisibility.GLOBAL, T0).can_view(uuid4())
        assert _template(is_system=True, owner_company_id=None).can_view(uuid4())


class TestLifecycle:
    def test_publish_and_unpublish(self):
        later = T0 + timedelta(days=1)
        published = _template().publish(TemplateVisibility.GLOBAL, later)
        assert published.is_published
        assert published.published_at == later
        assert not published.can_be_edited

        unpublished = published.unpublish(later)
        assert unpublished.is_draft
        assert unpublished.published_at is None

    def test_publish_needs_topics_and_visibility(self):
        with pytest.raises(InvalidTemplateError):
            _template(topics=()).publish(TemplateVisibility.LOCAL, T0)
        with pytest.raises(InvalidTemplateError):
            _template().publish(TemplateVisibility.DRAFT, T0)

    def test_cannot_republish_or_unpublish_draft(self):
        published = _template().publish(TemplateVisibility.LOCAL, T0)
        with pytest.raises(InvalidTransitionError):
            published.publish(TemplateVisibility.GLOBAL, T0)
        with pytest.raises(InvalidTransitionError):
            _template().unpublish(T0)

    def test_usage_blocks_withdrawal(self):
        used = _template().publish(TemplateVisibility.LOCAL, T0).with_usage(T0)
        assert used.usage_count == 1
        assert not used.can_be_deleted
        with pytest.raises(TemplateInUseError):
            used.unpublish(T0)

    def test_revise_keeps_identity(self):
        template = replace(_template(), usage_count=2)
        revised = template.revise(T0 + timedelta(hours=1), name="Baseline v2", default_passing_score=65)
        assert revised.template_id == template.template_id
        assert (revised.name, revised.default_passing_score) == ("Baseline v2", 65)
        assert revised.usage_count == 2
        assert revised.updated_at == T0 + timedelta(hours=1)
        with pytest.raises(InvalidTemplateError):
            template.revise(T0, name="")
        with pytest.raises(InvalidTemplateError):
            template.revise(T0, usage_count=0)


class TestFromMapping:
    def test_parses_document(self):
        template = template_from_mapping(
            {
                "name": "GDPR light",
                "category": "GDPR",
                "version": "2.1",
                "default_passing_score": "75",
                "topics": [
                    {"id": "consent", "name": "Consent"},
                    {"topic_id": "rights", "name": "Individual Rights", "order": 4},
                ],
                "tags": ["gdpr"],
            },
            created_at=T0,
            owner_company_id=OWNER,
        )
        assert template.category == TemplateCategory.GDPR
        assert template.version == "2.1"
        assert template.default_passing_score == 75
        assert [t.topic_id for t in template.topics] == ["consent", "rights"]

    @pytest.mark.parametrize("document", [
        {"category": "gdpr"},
        {"name": "No category"},
        {"name": "X", "category": "gdpr", "topics": "consent"},
        {"name": "X", "category": "gdpr", "topics": ["consent"]},
        {"name": "X", "category": "gdpr", "estimated_minutes": "soon"},
        ["not", "an", "object"],
    ])
    def test_rejects_malformed(self, document):
        with pytest.raises(InvalidTemplateError):
            template_from_mapping(document, created_at=T0, owner_company_id=OWNER)
