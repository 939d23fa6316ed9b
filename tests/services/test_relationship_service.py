"""
Tests for RelationshipService.

Invitations, acceptance binding the supplier, company-side lifecycle
transitions, duplicate protection, listing and stats.
"""

from uuid import uuid4

import pytest

from compliance_kernel.domain.relationship import (
    RelationshipStatus,
    SupplierClassification,
)
from compliance_kernel.exceptions import (
    InvalidEnumValueError,
    InvalidTransitionError,
    RelationshipExistsError,
    RelationshipNotFoundError,
    RelationshipTerminatedError,
    ValidationError,
)
from tests.conftest import COMPANY_USER_ID, SUPPLIER_USER_ID


class TestInvitation:
    def test_invite_normalizes_email(self, relationship_service, company):
        relationship = relationship_service.invite_supplier(
            company.organization_id, "  Security@Vendor.Example ", COMPANY_USER_ID,
            classification="critical",
        )
        assert relationship.status == RelationshipStatus.PENDING
        assert relationship.invited_email == "security@vendor.example"
        assert relationship.classification == SupplierClassification.CRITICAL
        assert relationship.supplier_id is None
        assert len(relationship.status_history) == 1
        assert relationship.status_history[0].from_status is None

    def test_empty_email(self, relationship_service, company):
        with pytest.raises(ValidationError):
            relationship_service.invite_supplier(company.organization_id, "   ", COMPANY_USER_ID)

    def test_unknown_classification(self, relationship_service, company):
        with pytest.raises(InvalidEnumValueError):
            relationship_service.invite_supplier(
                company.organization_id, "a@b.example", COMPANY_USER_ID,
                classification="vital",
            )

    def test_duplicate_live_invitation(self, relationship_service, company):
        relationship_service.invite_supplier(company.organization_id, "a@b.example", COMPANY_USER_ID)
        with pytest.raises(RelationshipExistsError):
            relationship_service.invite_supplier(
                company.organization_id, "A@B.example", COMPANY_USER_ID,
            )

    def test_reinvite_after_decline(self, relationship_service, company):
        first = relationship_service.invite_supplier(
            company.organization_id, "a@b.example", COMPANY_USER_ID,
        )
        relationship_service.decline_invitation(first.relationship_id, SUPPLIER_USER_ID)
        second = relationship_service.invite_supplier(
            company.organization_id, "a@b.example", COMPANY_USER_ID,
        )
        assert second.relationship_id != first.relationship_id

    def test_pending_invitations_by_email(self, relationship_service, company):
        relationship_service.invite_supplier(company.organization_id, "a@b.example", COMPANY_USER_ID)
        pending = relationship_service.list_pending_invitations("A@B.EXAMPLE")
        assert [r.invited_email for r in pending] == ["a@b.example"]


class TestAcceptance:
    def test_accept_binds_supplier(self, active_relationship, supplier, clock):
        assert active_relationship.status == RelationshipStatus.ACTIVE
        assert active_relationship.supplier_id == supplier.organization_id
        assert active_relationship.accepted_at == clock.now()
        assert active_relationship.can_receive_requirements()
        assert [c.to_status for c in active_relationship.status_history] == [
            RelationshipStatus.PENDING, RelationshipStatus.ACTIVE,
        ]

    def test_cannot_accept_twice(self, relationship_service, active_relationship, supplier):
        with pytest.raises(InvalidTransitionError):
            relationship_service.accept_invitation(
                active_relationship.relationship_id, supplier.organization_id, SUPPLIER_USER_ID,
            )

    def test_decline_after_accept(self, relationship_service, active_relationship):
        with pytest.raises(InvalidTransitionError):
            relationship_service.decline_invitation(
                active_relationship.relationship_id, SUPPLIER_USER_ID,
            )

    def test_supplier_bound_once_per_company(
        self, relationship_service, active_relationship, company, supplier,
    ):
        second = relationship_service.invite_supplier(
            company.organization_id, "compliance@example.com", COMPANY_USER_ID,
        )
        with pytest.raises(RelationshipExistsError):
            relationship_service.accept_invitation(
                second.relationship_id, supplier.organization_id, SUPPLIER_USER_ID,
            )

    def test_unknown_relationship(self, relationship_service, supplier):
        with pytest.raises(RelationshipNotFoundError):
            relationship_service.accept_invitation(
                uuid4(), supplier.organization_id, SUPPLIER_USER_ID,
            )


class TestLifecycle:
    def test_suspend_and_reactivate(self, relationship_service, active_relationship, company):
        suspended = relationship_service.suspend(
            active_relationship.relationship_id, company.organization_id,
            COMPANY_USER_ID, "Overdue audit",
        )
        assert suspended.status == RelationshipStatus.SUSPENDED
        assert not suspended.can_receive_requirements()
        assert suspended.status_history[-1].reason == "Overdue audit"

        reactivated = relationship_service.reactivate(
            active_relationship.relationship_id, company.organization_id,
            COMPANY_USER_ID, "Audit received",
        )
        assert reactivated.status == RelationshipStatus.ACTIVE
        assert len(reactivated.status_history) == 4

    def test_terminated_is_final(self, relationship_service, active_relationship, company):
        relationship_service.terminate(
            active_relationship.relationship_id, company.organization_id,
            COMPANY_USER_ID, "Contract ended",
        )
        with pytest.raises(InvalidTransitionError):
            relationship_service.reactivate(
                active_relationship.relationship_id, company.organization_id,
                COMPANY_USER_ID, "Changed our minds",
            )
        with pytest.raises(RelationshipTerminatedError):
            relationship_service.update_classification(
                active_relationship.relationship_id, company.organization_id, "critical",
            )

    def test_other_company_sees_not_found(self, relationship_service, active_relationship):
        with pytest.raises(RelationshipNotFoundError):
            relationship_service.suspend(
                active_relationship.relationship_id, uuid4(), COMPANY_USER_ID, "x",
            )

    def test_failed_transition_writes_nothing(
        self, relationship_service, active_relationship, company,
    ):
        with pytest.raises(InvalidTransitionError):
            relationship_service.reactivate(
                active_relationship.relationship_id, company.organization_id,
                COMPANY_USER_ID, "Already active",
            )
        reloaded = relationship_service.get_relationship(
            active_relationship.relationship_id, company.organization_id,
        )
        assert reloaded.version == active_relationship.version
        assert reloaded.status_history == active_relationship.status_history

    def test_update_details(self, relationship_service, active_relationship, company):
        updated = relationship_service.update_details(
            active_relationship.relationship_id, company.organization_id,
            services_provided=["hosting", "backups"], contract_ref="MSA-7",
        )
        assert updated.services_provided == ("hosting", "backups")
        assert updated.contract_ref == "MSA-7"
        assert updated.status == RelationshipStatus.ACTIVE


class TestQueries:
    def test_list_and_stats(self, relationship_service, active_relationship, company, supplier):
        relationship_service.invite_supplier(
            company.organization_id, "ops@vendor.example", COMPANY_USER_ID,
            classification=SupplierClassification.IMPORTANT,
        )

        page = relationship_service.list_for_company(company.organization_id, status="active")
        assert page.total == 1
        assert page.items[0].relationship_id == active_relationship.relationship_id

        for_supplier = relationship_service.list_for_supplier(supplier.organization_id)
        assert [r.relationship_id for r in for_supplier.items] == [
            active_relationship.relationship_id,
        ]

        stats = relationship_service.supplier_stats(company.organization_id)
        assert stats.total == 2
        assert (stats.active, stats.pending) == (1, 1)
        assert stats.by_classification[SupplierClassification.IMPORTANT] == 1
