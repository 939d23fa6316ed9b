"""
Tests for compliance_config: layered loading, validation and the
config -> kernel bridges.
"""

import pytest
import yaml

from compliance_config import get_settings, load_settings, reset_settings
from compliance_config.bridges import (
    build_checkfix_client,
    build_checkfix_service,
    build_requirement_service,
    build_submission_orchestrator,
    build_verification_policy,
    seed_system_templates,
)
from compliance_config.loader import deep_merge, load_system_templates
from compliance_config.schema import CheckFixSettings, ComplianceSettings
from compliance_kernel.domain.template import TemplateCategory
from compliance_kernel.domain.verification import Grade
from compliance_kernel.integrations.checkfix_client import (
    HttpCheckFixClient,
    StaticCheckFixClient,
)


def _write(tmp_path, data) -> str:
    path = tmp_path / "override.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestLoading:
    def test_packaged_defaults(self):
        settings = load_settings(environ={})
        assert settings == ComplianceSettings()
        assert settings.policy.default_minimum_grade == "C"
        assert settings.policy.default_max_report_age_days == 90
        assert settings.checkfix.use_stub

    def test_override_file_merges_sections(self, tmp_path):
        path = _write(tmp_path, {"policy": {"default_minimum_grade": "b"}, "environment": "staging"})
        settings = load_settings(path, environ={})
        assert settings.environment == "staging"
        assert settings.policy.default_minimum_grade == "B"
        assert settings.policy.verification_validity_days == 30

    def test_environment_wins(self, tmp_path):
        path = _write(tmp_path, {"checkfix": {"timeout_seconds": 10}})
        settings = load_settings(path, environ={
            "COMPLIANCE_CHECKFIX_TIMEOUT_SECONDS": "2.5",
            "COMPLIANCE_CHECKFIX_USE_STUB": "false",
            "COMPLIANCE_LOG_LEVEL": "debug",
        })
        assert settings.checkfix.timeout_seconds == 2.5
        assert not settings.checkfix.use_stub
        assert settings.logging.level == "DEBUG"

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", environ={})

    @pytest.mark.parametrize("env", [
        {"COMPLIANCE_DEFAULT_MINIMUM_GRADE": "E"},
        {"COMPLIANCE_CHECKFIX_TIMEOUT_SECONDS": "0"},
        {"COMPLIANCE_CHECKFIX_TIMEOUT_SECONDS": "soon"},
        {"COMPLIANCE_CHECKFIX_USE_STUB": "maybe"},
        {"COMPLIANCE_DEFAULT_MAX_REPORT_AGE_DAYS": "-1"},
        {"COMPLIANCE_LOG_LEVEL": "chatty"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ValueError):
            load_settings(environ=env)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_settings(path, environ={})

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.delenv("COMPLIANCE_CONFIG_FILE", raising=False)
        reset_settings()
        try:
            assert get_settings() is get_settings()
        finally:
            reset_settings()

    def test_deep_merge_does_not_mutate(self):
        base = {"a": {"b": 1, "c": 2}}
        merged = deep_merge(base, {"a": {"b": 5}})
        assert merged == {"a": {"b": 5, "c": 2}}
        assert base == {"a": {"b": 1, "c": 2}}


class TestBridges:
    def test_policy(self):
        settings = load_settings(environ={"COMPLIANCE_DEFAULT_MINIMUM_GRADE": "A"})
        policy = build_verification_policy(settings)
        assert policy.default_minimum_grade == Grade.A
        assert policy.default_max_report_age_days == 90

    def test_client_selection(self):
        assert isinstance(build_checkfix_client(ComplianceSettings()), StaticCheckFixClient)

        live = ComplianceSettings(checkfix=CheckFixSettings(
            api_url="https://api.checkfix.test", api_key="k", timeout_seconds=4, use_stub=False,
        ))
        client = build_checkfix_client(live)
        assert isinstance(client, HttpCheckFixClient)
        assert client.timeout == 4

        unconfigured = ComplianceSettings(checkfix=CheckFixSettings(use_stub=False))
        assert isinstance(build_checkfix_client(unconfigured), StaticCheckFixClient)

    def test_services(self, session, clock, tmp_path):
        path = _write(tmp_path, {"policy": {
            "verification_validity_days": 14,
            "reminder_days_before": 5,
            "refresh_days_before_expiry": 2,
        }})
        settings = load_settings(path, environ={})

        orchestrator = build_submission_orchestrator(settings, session, clock)
        assert orchestrator.validity_days == 14
        assert isinstance(orchestrator.client, StaticCheckFixClient)

        assert build_requirement_service(settings, session, clock).reminder_days_before == 5
        assert build_checkfix_service(settings, session, clock).refresh_days_before_expiry == 2

    def test_seed_system_templates(self, session, clock, tmp_path):
        seeded = seed_system_templates(session, clock)
        assert {t.category for t in seeded} == {
            TemplateCategory.ISO27001, TemplateCategory.GDPR, TemplateCategory.NIS2,
        }
        assert all(t.is_system and t.is_published for t in seeded)
        gdpr = next(t for t in seeded if t.category == TemplateCategory.GDPR)
        assert gdpr.default_passing_score == 75
        assert gdpr.topics[0].topic_id == "data-processing"

        assert seed_system_templates(session, clock) == []

        extra = tmp_path / "templates.yaml"
        extra.write_text(yaml.safe_dump({"templates": [
            {"name": "DORA Outline", "category": "custom", "topics": [{"name": "ICT risk"}]},
        ]}))
        [dora] = seed_system_templates(session, clock, extra)
        assert dora.topics[0].order == 1
        assert dora.topics[0].topic_id


class TestSystemTemplateFile:
    def test_packaged_templates_are_complete(self):
        documents = load_system_templates()
        assert [d["name"] for d in documents] == [
            "ISO 27001 Basic Assessment",
            "GDPR Quick Assessment",
            "NIS2 Quick Readiness Check",
        ]
        assert all(d["topics"] and d["tags"] for d in documents)

    def test_rejects_malformed_list(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"templates": ["just a name"]}))
        with pytest.raises(ValueError):
            load_system_templates(path)
