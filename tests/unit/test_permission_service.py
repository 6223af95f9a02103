"""
Unit tests for PermissionService.

Covers role checks, grants (expiry, conditions, revocation), catalog
conditions, the expiry sweep, exports and the audit event sink.
"""

import uuid
from datetime import timedelta

import pytest

from src.config import Settings
from src.kernel.identity.principal import User, UserRole
from src.kernel.models.event_log import EventType
from src.kernel.permissions.conditions import PermissionContext
from src.kernel.permissions.grants import InMemoryGrantLedger, SqlAlchemyGrantLedger
from src.kernel.permissions.permission_service import PermissionService, create_permission_service
from src.kernel.permissions.role_matrix import ROLE_PERMISSIONS


class BrokenLedger(InMemoryGrantLedger):
    """Ledger whose writes always fail."""
    
    def add(self, grant):
        raise RuntimeError("storage unavailable")
    
    def remove(self, user_id, permission_id):
        raise RuntimeError("storage unavailable")
    
    def remove_expired(self, now):
        raise RuntimeError("storage unavailable")


class TestRoleChecks:
    """Permissions held through the role matrix."""
    
    @pytest.mark.parametrize("role", [r for r in UserRole])
    def test_role_coverage(self, service, role):
        """Every unconditioned matrix entry is granted to the role."""
        user = User(id=f"{role.value}-1", role=role)
        for permission_id in ROLE_PERMISSIONS[role]:
            permission = service.get_permission(permission_id)
            if permission is not None and permission.conditions:
                continue
            assert service.has_permission(user, permission_id), permission_id
    
    def test_employee_lacks_team_management(self, service, employee):
        assert service.has_permission(employee, "teams.manage") is False
    
    def test_no_user_is_denied(self, service):
        assert service.has_permission(None, "analytics.view") is False
    
    def test_unknown_role_is_denied(self, service):
        assert service.has_permission(User(id="x", role="intern"), "analytics.view") is False
    
    def test_unknown_permission_is_denied(self, service, super_admin):
        assert service.has_permission(super_admin, "does.not.exist") is False
    
    def test_parent_does_not_imply_child(self, service, team_lead):
        assert service.has_permission(team_lead, "users.edit") is True
        assert service.has_permission(team_lead, "users.edit.role") is False
    
    def test_child_does_not_imply_parent(self, service, team_lead):
        assert service.has_permission(team_lead, "teams.assign") is True
        assert service.has_permission(team_lead, "teams.manage") is False


class TestGrants:
    """Permissions held through explicit grants."""
    
    def test_grant_adds_permission_outside_role(self, service, employee):
        assert service.grant_permission("E1", "reports.custom", granted_by="A1") is True
        assert service.has_permission(employee, "reports.custom") is True
        # Other users are unaffected
        other = User(id="E2", role=UserRole.EMPLOYEE)
        assert service.has_permission(other, "reports.custom") is False
    
    def test_temporary_grant_scenario(self, service, clock, employee):
        """Employee granted teams.manage for an hour."""
        service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() + timedelta(hours=1))
        assert service.has_permission(employee, "teams.manage") is True
        
        clock.advance(hours=2)
        assert service.has_permission(employee, "teams.manage") is False
        assert service.cleanup_expired_grants() == 1
    
    def test_expired_grant_denied_before_sweep(self, service, clock, employee):
        service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() + timedelta(minutes=5))
        clock.advance(minutes=5)
        assert service.has_permission(employee, "teams.manage") is False
        # Still in the ledger until swept
        assert len(service.ledger.list_for_user("E1")) == 1
    
    def test_grant_with_past_expiry_is_stored_but_useless(self, service, clock, employee):
        assert service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() - timedelta(days=1))
        assert service.has_permission(employee, "teams.manage") is False
    
    def test_expiry_uses_clock_not_request_timestamp(self, service, clock, employee):
        service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() + timedelta(hours=1))
        ctx = {"requestTimestamp": clock() - timedelta(days=1)}
        clock.advance(hours=2)
        assert service.has_permission(employee, "teams.manage", ctx) is False
    
    def test_duplicate_grants_coexist(self, service, employee):
        service.grant_permission("E1", "reports.custom", "A1")
        service.grant_permission("E1", "reports.custom", "A2")
        assert len(service.ledger.list_for_user("E1")) == 2
        assert service.get_user_permissions(employee).count("reports.custom") == 1
    
    def test_non_string_user_id(self, service):
        user_id = uuid.uuid4()
        user = User(id=user_id, role=UserRole.EMPLOYEE)
        assert service.grant_permission(user_id, "teams.manage", "A1") is True
        assert service.has_permission(user, "teams.manage") is True
    
    def test_grant_outside_catalog_warns_but_succeeds(self, service, employee, caplog):
        with caplog.at_level("WARNING"):
            assert service.grant_permission("E1", "beta.feature", "A1") is True
        assert "not in the catalog" in caplog.text
        assert service.has_permission(employee, "beta.feature") is True
    
    def test_grant_does_not_affect_role_holders(self, service, org_admin):
        """Revoking a role-held permission leaves the role untouched."""
        assert service.revoke_permission("A1", "teams.manage") is True
        assert service.has_permission(org_admin, "teams.manage") is True


class TestGrantConditions:
    """Conditions attached to individual grants."""
    
    def test_approval_condition_on_grant(self, service, employee):
        service.grant_permission(
            "E1",
            "reports.custom",
            "A1",
            conditions=[{"type": "context", "rule": "require_approval", "value": True}],
        )
        assert service.has_permission(employee, "reports.custom") is False
        assert service.has_permission(employee, "reports.custom", {"approved": True}) is True
    
    def test_one_valid_grant_is_enough(self, service, employee):
        service.grant_permission(
            "E1",
            "reports.custom",
            "A1",
            conditions=[{"type": "context", "rule": "require_approval", "value": True}],
        )
        service.grant_permission("E1", "reports.custom", "A2")
        assert service.has_permission(employee, "reports.custom") is True
    
    def test_time_condition_uses_request_timestamp(self, service, clock, employee):
        service.grant_permission(
            "E1",
            "reports.custom",
            "A1",
            conditions=[{"type": "time", "rule": "business_hours"}],
        )
        assert service.has_permission(employee, "reports.custom") is True
        
        night = clock().replace(hour=22)
        assert service.has_permission(employee, "reports.custom", {"requestTimestamp": night}) is False
    
    def test_grant_conditions_ignore_user(self, service, employee):
        """resource_owner on a grant compares context fields only."""
        service.grant_permission(
            "E1",
            "reports.custom",
            "A1",
            conditions=[{"type": "context", "rule": "resource_owner"}],
        )
        assert service.has_permission(employee, "reports.custom") is False
        assert service.has_permission(employee, "reports.custom", {"ownerId": "E1", "userId": "E1"}) is True
    
    def test_invalid_condition_fails_soft(self, service, employee, caplog):
        with caplog.at_level("ERROR"):
            ok = service.grant_permission("E1", "reports.custom", "A1", conditions=[{"type": "weather"}])
        assert ok is False
        assert "Failed to grant permission" in caplog.text
        assert service.ledger.list_for_user("E1") == []
    
    def test_conditioned_grants_not_in_effective_set(self, service, employee):
        service.grant_permission(
            "E1",
            "reports.custom",
            "A1",
            conditions=[{"type": "context", "rule": "require_approval", "value": True}],
        )
        assert "reports.custom" not in service.get_user_permissions(employee)


class TestCatalogConditions:
    """Conditions declared on the catalog entry gate every holder."""
    
    def test_user_deletion_scenario(self, service, org_admin):
        assert service.has_permission(org_admin, "users.delete") is False
        assert service.has_permission(org_admin, "users.delete", {"approved": True}) is True
    
    def test_callers_cannot_strip_catalog_conditions(self, service, org_admin):
        permission = service.get_permission("users.delete")
        with pytest.raises(AttributeError):
            permission.conditions.clear()
        assert service.has_permission(org_admin, "users.delete") is False
    
        other = PermissionService()
        assert other.has_permission(org_admin, "users.delete") is False
    
    def test_typed_context(self, service, org_admin):
        assert service.has_permission(org_admin, "users.delete", PermissionContext(approved=True)) is True
    
    def test_catalog_condition_applies_to_grants(self, service, employee):
        service.grant_permission("E1", "users.delete", "A1")
        assert service.has_permission(employee, "users.delete") is False
        assert service.has_permission(employee, "users.delete", {"approved": True}) is True
    
    def test_invalid_context_is_treated_as_missing(self, service, org_admin, caplog):
        with caplog.at_level("WARNING"):
            assert service.has_permission(org_admin, "users.delete", {"approved": "yes"}) is False
        assert "Ignoring invalid permission context" in caplog.text
        # A permission without conditions is unaffected
        assert service.has_permission(org_admin, "teams.manage", {"approved": "yes"}) is True


class TestRevoke:
    """Tests for revoke_permission."""
    
    def test_revoke_removes_every_grant(self, service, employee):
        for granter in ("A1", "A2", "A3"):
            service.grant_permission("E1", "teams.manage", granter)
        service.grant_permission("E1", "reports.custom", "A1")
        
        assert service.revoke_permission("E1", "teams.manage") is True
        assert service.has_permission(employee, "teams.manage") is False
        assert service.has_permission(employee, "reports.custom") is True
    
    def test_revoke_unknown_grant_still_true(self, service):
        assert service.revoke_permission("nobody", "teams.manage") is True
    
    def test_revoke_failure_returns_false(self, clock, caplog):
        service = PermissionService(ledger=BrokenLedger(), clock=clock)
        with caplog.at_level("ERROR"):
            assert service.revoke_permission("E1", "teams.manage") is False
        assert "Failed to revoke permission" in caplog.text


class UnreadableLedger(InMemoryGrantLedger):
    """Ledger whose reads always fail."""
    
    def list_for_user(self, user_id):
        raise RuntimeError("storage unavailable")


class TestFailClosedCheck:
    """Errors during a check deny instead of escaping."""
    
    def test_ledger_read_failure_denies(self, clock, employee, caplog):
        service = PermissionService(ledger=UnreadableLedger(), clock=clock)
        with caplog.at_level("ERROR"):
            assert service.has_permission(employee, "teams.manage") is False
        assert "Permission check failed" in caplog.text
    
    def test_role_permissions_skip_the_ledger(self, clock, org_admin):
        service = PermissionService(ledger=UnreadableLedger(), clock=clock)
        assert service.has_permission(org_admin, "teams.manage") is True
    
    def test_condition_handler_failure_denies(self, service, org_admin, caplog):
        def explode(condition, user, context, now):
            raise KeyError("approval service offline")
    
        service.evaluator.register("context", "require_approval", explode)
        with caplog.at_level("ERROR"):
            assert service.has_permission(org_admin, "users.delete", {"approved": True}) is False
        assert "Permission check failed" in caplog.text


class TestFailSoftGrant:
    """Storage failures on grant are reported, not raised."""
    
    def test_grant_failure_returns_false(self, clock, event_sink):
        service = PermissionService(ledger=BrokenLedger(), clock=clock, event_sink=event_sink)
        assert service.grant_permission("E1", "teams.manage", "A1") is False
        assert event_sink.events == []


class TestUserPermissions:
    """Tests for get_user_permissions."""
    
    def test_union_of_role_and_grants(self, service, employee):
        service.grant_permission("E1", "teams.manage", "A1")
        service.grant_permission("E1", "analytics.view", "A1")
        
        permissions = service.get_user_permissions(employee)
        role_ids = sorted(ROLE_PERMISSIONS[UserRole.EMPLOYEE])
        assert permissions == role_ids + ["teams.manage"]
    
    def test_expired_grants_excluded(self, service, clock, employee):
        service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() + timedelta(hours=1))
        clock.advance(hours=1)
        assert "teams.manage" not in service.get_user_permissions(employee)
    
    def test_none_user(self, service):
        assert service.get_user_permissions(None) == []
    
    def test_unknown_role_only_grants(self, service):
        service.grant_permission("x", "reports.custom", "A1")
        assert service.get_user_permissions(User(id="x", role="intern")) == ["reports.custom"]


class TestCleanup:
    """Tests for cleanup_expired_grants."""
    
    def test_cleanup_is_idempotent(self, service, clock):
        service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() + timedelta(hours=1))
        service.grant_permission("E2", "reports.custom", "A1", expires_at=clock() + timedelta(hours=3))
        service.grant_permission("E3", "reports.custom", "A1")
        clock.advance(hours=2)
        
        assert service.cleanup_expired_grants() == 1
        assert service.cleanup_expired_grants() == 0
        assert len(service.ledger.list_for_user("E2")) == 1
        assert len(service.ledger.list_for_user("E3")) == 1
    
    def test_cleanup_propagates_storage_errors(self, clock):
        service = PermissionService(ledger=BrokenLedger(), clock=clock)
        with pytest.raises(RuntimeError):
            service.cleanup_expired_grants()


class TestExport:
    """Tests for export_user_permissions."""
    
    def test_export_snapshot(self, service, clock, employee):
        service.grant_permission("E1", "teams.manage", "A1")
        service.grant_permission("E1", "reports.custom", "A1", expires_at=clock() - timedelta(hours=1))
        
        export = service.export_user_permissions(employee)
        assert export.user_id == "E1"
        assert export.role == "employee"
        assert export.role_permissions == sorted(ROLE_PERMISSIONS[UserRole.EMPLOYEE])
        # Raw grants include the expired one
        assert [g.permission for g in export.granted_permissions] == ["teams.manage", "reports.custom"]
        assert "reports.custom" not in export.all_permissions
        assert "teams.manage" in export.all_permissions
    
    def test_export_is_json_serializable(self, service, employee):
        service.grant_permission("E1", "teams.manage", "A1", scope="team:7")
        data = service.export_user_permissions(employee).model_dump(mode="json")
        assert data["granted_permissions"][0]["scope"] == "team:7"
        assert isinstance(data["granted_permissions"][0]["granted_at"], str)
    
    def test_export_has_no_side_effects(self, service, clock, employee):
        service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() - timedelta(hours=1))
        service.export_user_permissions(employee)
        assert len(service.ledger.list_for_user("E1")) == 1


class TestCatalogDelegation:
    """Catalog lookups exposed on the service."""
    
    def test_get_permission(self, service):
        assert service.get_permission("teams.manage").name == "Manage Teams"
        assert service.get_permission("nope") is None
    
    def test_get_permissions_by_category(self, service):
        ids = [p.id for p in service.get_permissions_by_category("collaboration")]
        assert "collaboration.mentor" in ids
        assert service.get_permissions_by_category("nope") == []


class TestEvents:
    """Audit events emitted through the sink."""
    
    def test_grant_revoke_and_sweep_events(self, service, clock, event_sink):
        service.grant_permission("E1", "teams.manage", "A1", expires_at=clock() + timedelta(hours=1))
        service.grant_permission("E1", "reports.custom", "A1")
        service.revoke_permission("E1", "reports.custom")
        clock.advance(hours=2)
        service.cleanup_expired_grants()
        service.cleanup_expired_grants()
        
        assert event_sink.types == [
            EventType.PERMISSION_GRANTED,
            EventType.PERMISSION_GRANTED,
            EventType.PERMISSION_REVOKED,
            EventType.GRANTS_EXPIRED,
        ]
        granted = event_sink.events[0][1]
        assert granted.user_id == "E1"
        assert granted.granted_by == "A1"
        assert event_sink.events[2][1].removed_count == 1
        assert event_sink.events[3][1].removed_count == 1
    
    def test_sink_failure_does_not_change_result(self, clock, employee, caplog):
        def failing_sink(event_type, payload):
            raise RuntimeError("audit store down")
        
        service = PermissionService(clock=clock, event_sink=failing_sink)
        with caplog.at_level("WARNING"):
            assert service.grant_permission("E1", "teams.manage", "A1") is True
        assert "Permission event sink failed" in caplog.text
        assert service.has_permission(employee, "teams.manage") is True


class TestCreatePermissionService:
    """Tests for settings-driven wiring."""
    
    def test_memory_store(self):
        service = create_permission_service(Settings(rbac_grant_store="memory"))
        assert isinstance(service.ledger, InMemoryGrantLedger)
    
    def test_database_store(self, session_factory, employee):
        service = create_permission_service(
            Settings(rbac_grant_store="database"),
            session_factory=session_factory,
        )
        assert isinstance(service.ledger, SqlAlchemyGrantLedger)
        
        assert service.grant_permission("E1", "teams.manage", "A1") is True
        assert service.has_permission(employee, "teams.manage") is True
    
    def test_evaluator_follows_settings(self):
        service = create_permission_service(
            Settings(rbac_fail_open_unknown_conditions=False, rbac_business_hours_end=12)
        )
        assert service.evaluator.fail_open_unknown is False
        assert service.evaluator.business_hours_end == 12
