"""Tests for TemplateService: authoring, import, publication and the shared library."""

import json
from uuid import uuid4

import pytest

from compliance_kernel.domain.organization import OrganizationType
from compliance_kernel.domain.questionnaire import Topic
from compliance_kernel.domain.template import TemplateCategory, TemplateVisibility
from compliance_kernel.exceptions import (
    InvalidTemplateError,
    TemplateNotEditableError,
    TemplateNotFoundError,
)
from tests.conftest import COMPANY_USER_ID

SYSTEM_DOCUMENTS = [
    {
        "name": "ISO 27001 Basic Assessment",
        "category": "iso27001",
        "estimated_minutes": 45,
        "topics": [{"id": "access-control", "name": "Access Control"}],
    },
    {
        "name": "GDPR Quick Assessment",
        "category": "gdpr",
        "default_passing_score": 75,
        "topics": [{"id": "consent", "name": "Consent"}],
    },
]


@pytest.fixture
def other_company(organization_service):
    return organization_service.register("Other Co", OrganizationType.COMPANY, domain="other.test")


@pytest.fixture
def draft_template(template_service, company):
    return template_service.create_template(
        company.organization_id, "Vendor baseline", TemplateCategory.CUSTOM, COMPANY_USER_ID,
        topics=[Topic("access", "Access")], tags=["Baseline"],
    )


class TestAuthoring:
    def test_create(self, draft_template, company):
        assert draft_template.owner_company_id == company.organization_id
        assert draft_template.created_by == COMPANY_USER_ID
        assert draft_template.visibility == TemplateVisibility.DRAFT
        assert draft_template.tags == ("baseline",)

    def test_create_logs(self, template_service, company, captured_logs):
        created = template_service.create_template(
            company.organization_id, "Logged", "nis2", COMPANY_USER_ID,
        )
        [record] = [r for r in captured_logs() if r["message"] == "template_created"]
        assert record["template_id"] == str(created.template_id)
        assert record["category"] == "nis2"

    def test_update_draft(self, template_service, draft_template, company):
        updated = template_service.update_template(
            draft_template.template_id, company.organization_id,
            name="Vendor baseline v2", topics=[Topic("access", "Access"), Topic("net", "Network")],
        )
        assert updated.name == "Vendor baseline v2"
        assert [t.topic_id for t in updated.topics] == ["access", "net"]

    def test_published_template_is_read_only(self, template_service, draft_template, company):
        template_service.publish_template(draft_template.template_id, company.organization_id)
        with pytest.raises(TemplateNotEditableError):
            template_service.update_template(
                draft_template.template_id, company.organization_id, name="Changed",
            )

        template_service.unpublish_template(draft_template.template_id, company.organization_id)
        edited = template_service.update_template(
            draft_template.template_id, company.organization_id, name="Changed",
        )
        assert edited.name == "Changed"

    def test_delete_unused(self, template_service, draft_template, company):
        template_service.delete_template(draft_template.template_id, company.organization_id)
        with pytest.raises(TemplateNotFoundError):
            template_service.get_template(draft_template.template_id, company.organization_id)

    def test_other_company_cannot_touch(
        self, template_service, draft_template, other_company,
    ):
        with pytest.raises(TemplateNotFoundError):
            template_service.get_template(draft_template.template_id, other_company.organization_id)
        with pytest.raises(TemplateNotFoundError):
            template_service.delete_template(
                draft_template.template_id, other_company.organization_id,
            )


class TestImport:
    def test_import_json(self, template_service, company):
        document = json.dumps({
            "name": "Imported NIS2",
            "category": "nis2",
            "estimated_minutes": 20,
            "topics": [{"name": "Scope"}, {"name": "Reporting"}],
        })
        imported = template_service.import_template(
            company.organization_id, document, COMPANY_USER_ID,
        )
        assert imported.category == TemplateCategory.NIS2
        assert imported.is_draft
        assert imported.estimated_minutes == 20
        assert [t.order for t in imported.topics] == [1, 2]

    def test_import_rejects_bad_json(self, template_service, company):
        with pytest.raises(InvalidTemplateError):
            template_service.import_template(company.organization_id, "{not json", COMPANY_USER_ID)
        with pytest.raises(InvalidTemplateError):
            template_service.import_template(
                company.organization_id, {"name": "No category"}, COMPANY_USER_ID,
            )


class TestLibrary:
    def test_seed_is_idempotent(self, template_service):
        assert len(template_service.seed_system_templates(SYSTEM_DOCUMENTS)) == 2
        assert template_service.seed_system_templates(SYSTEM_DOCUMENTS) == []

    def test_system_templates_are_read_only(self, template_service, company):
        [system, _] = template_service.seed_system_templates(SYSTEM_DOCUMENTS)
        with pytest.raises(TemplateNotEditableError):
            template_service.update_template(system.template_id, company.organization_id, name="Mine")
        with pytest.raises(TemplateNotEditableError):
            template_service.delete_template(system.template_id, company.organization_id)

    def test_available(
        self, template_service, draft_template, company, other_company,
    ):
        template_service.seed_system_templates(SYSTEM_DOCUMENTS)
        shared = template_service.create_template(
            other_company.organization_id, "Shared GDPR", "gdpr", COMPANY_USER_ID,
            topics=[Topic("consent", "Consent")],
        )
        template_service.publish_template(
            shared.template_id, other_company.organization_id, visibility="global",
        )
        private = template_service.create_template(
            other_company.organization_id, "Private", "custom", COMPANY_USER_ID,
            topics=[Topic("x", "X")],
        )
        template_service.publish_template(private.template_id, other_company.organization_id)

        available = template_service.list_available(company.organization_id)
        assert [t.name for t in available.items] == [
            "GDPR Quick Assessment",
            "ISO 27001 Basic Assessment",
            "Shared GDPR",
            "Vendor baseline",
        ]
        gdpr = template_service.list_available(company.organization_id, category="gdpr")
        assert [t.name for t in gdpr.items] == ["GDPR Quick Assessment", "Shared GDPR"]

        own = template_service.list_for_company(company.organization_id)
        assert [t.template_id for t in own.items] == [draft_template.template_id]
        assert template_service.list_for_company(uuid4()).total == 0
