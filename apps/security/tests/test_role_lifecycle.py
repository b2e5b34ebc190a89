"""
Tests for root roles, shadow copies and role assignments.
"""
import pytest

from apps.core.exceptions import InvalidOperation, NotFound
from apps.organizations.models import SYSTEM_USER, TEAM, Team
from apps.organizations.services import BusinessUnitService
from apps.security.configuration import SecurityConfiguration
from apps.security.constants import BASIC, GLOBAL, LOCAL
from apps.security.models import AuditLog, PrincipalRole, Role, RolePrivilege
from apps.security.services import RoleLifecycleManager


def privilege_set(role):
    return set(
        RolePrivilege.objects.for_role(role.id).values_list('privilege__name', 'depth_mask')
    )


@pytest.mark.django_db
class TestShadowPropagation:
    """Test copying root roles into every business unit."""

    def test_new_role_gets_one_shadow_per_other_unit(self, lifecycle, root_business_unit, west, east,
                                                     account_definition):
        role = lifecycle.create_role(
            'Sales Rep', west,
            privileges={'prvReadAccount': LOCAL, 'prvWriteAccount': BASIC},
        )

        shadows = list(Role.objects.shadows_of(role.id))

        assert role.root_role_id == role.id
        assert {shadow.business_unit_id for shadow in shadows} == {root_business_unit.id, east.id}
        for shadow in shadows:
            assert shadow.parent_role_id == role.id
            assert shadow.name == role.name
            assert not shadow.is_customizable
            assert privilege_set(shadow) == privilege_set(role)

    def test_saving_a_role_directly_propagates(self, root_business_unit, west):
        role = Role.objects.create(name='Auditor', business_unit=root_business_unit)

        role.refresh_from_db()
        assert role.root_role_id == role.id
        assert Role.objects.shadows_of(role.id).get().business_unit_id == west.id

    def test_new_business_unit_receives_every_root_role(self, lifecycle, root_business_unit):
        first = lifecycle.create_role('Sales Rep', root_business_unit)
        second = lifecycle.create_role('Support', root_business_unit)

        north = BusinessUnitService.create_business_unit('North', root_business_unit)

        assert set(
            Role.objects.owned_by(north.id).values_list('root_role_id', flat=True)
        ) == {first.id, second.id}

    def test_shadow_creation_is_idempotent(self, lifecycle, root_business_unit, west):
        role = lifecycle.create_role('Sales Rep', root_business_unit)

        assert lifecycle.create_shadow_role(role, west.id) is None
        assert Role.objects.shadows_of(role.id).count() == 1

    def test_roles_do_not_cross_organizations(self, lifecycle, root_business_unit):
        from apps.organizations.models import Organization

        other = Organization.objects.create(name='Fabrikam')
        BusinessUnitService.ensure_root_business_unit(other)

        role = lifecycle.create_role('Sales Rep', root_business_unit)

        assert not Role.objects.shadows_of(role.id).exists()

    def test_shadow_privileges_cannot_be_edited(self, lifecycle, root_business_unit, west,
                                                account_definition):
        role = lifecycle.create_role('Sales Rep', root_business_unit)
        shadow = Role.objects.shadows_of(role.id).get()

        with pytest.raises(InvalidOperation):
            lifecycle.grant_privilege(shadow, 'prvReadAccount', GLOBAL)

    def test_grant_rejects_unknown_privilege_and_disallowed_depth(self, lifecycle, root_business_unit,
                                                                  account_definition):
        from apps.security.services import PrivilegeCatalog

        role = lifecycle.create_role('Sales Rep', root_business_unit)
        PrivilegeCatalog().ensure_on_behalf_privilege()

        with pytest.raises(NotFound):
            lifecycle.grant_privilege(role, 'prvReadNothing', BASIC)
        with pytest.raises(InvalidOperation):
            lifecycle.grant_privilege(role, 'prvActOnBehalfOfAnotherUser', BASIC)

    def test_regrant_updates_depth_and_revoke_removes(self, lifecycle, root_business_unit,
                                                      account_definition):
        role = lifecycle.create_role('Sales Rep', root_business_unit, privileges={'prvReadAccount': BASIC})

        lifecycle.grant_privilege(role, 'prvReadAccount', GLOBAL)
        assert privilege_set(role) == {('prvReadAccount', GLOBAL)}

        assert lifecycle.revoke_privilege(role, 'prvReadAccount')
        assert not lifecycle.revoke_privilege(role, 'prvReadAccount')
        assert privilege_set(role) == set()


@pytest.mark.django_db
class TestRoleDeletion:
    """Test deletion rules for root roles and shadows."""

    def test_deleting_shadow_raises(self, lifecycle, root_business_unit, west):
        role = lifecycle.create_role('Sales Rep', root_business_unit)
        shadow = Role.objects.shadows_of(role.id).get()

        with pytest.raises(InvalidOperation) as exc_info:
            shadow.delete()

        assert 'Delete the root role instead' in exc_info.value.message
        assert Role.objects.filter(id=shadow.id).exists()

    def test_deleting_root_removes_shadows_and_assignments(self, lifecycle, root_business_unit, west,
                                                           east, make_user):
        role = lifecycle.create_role('Sales Rep', root_business_unit)
        west_shadow = Role.objects.shadows_of(role.id).get(business_unit=west)
        root_user = make_user(root_business_unit)
        west_user = make_user(west)
        lifecycle.assign_role(role, SYSTEM_USER, root_user.id)
        lifecycle.assign_role(west_shadow, SYSTEM_USER, west_user.id)

        role.delete()

        assert role.is_deleted
        assert not Role.objects.filter(root_role_id=role.id).exists()
        assert not PrincipalRole.objects.for_roles(
            Role.objects_with_deleted.filter(root_role_id=role.id).ids()
        ).exists()
        assert AuditLog.objects.by_action('role_deleted').filter(target_id=role.id).exists()

    def test_deleting_missing_role_is_noop(self, lifecycle, db):
        lifecycle.on_role_deleted('00000000-0000-0000-0000-000000000001')


@pytest.mark.django_db
class TestBusinessUnitDeletion:
    """Test removal of shadow roles when a business unit goes away."""

    def test_west_with_three_shadows_and_five_assignments(self, lifecycle, root_business_unit, west,
                                                          make_user):
        roots = [lifecycle.create_role(name, root_business_unit) for name in ('A', 'B', 'C')]
        west_shadows = list(Role.objects.owned_by(west.id))
        assert len(west_shadows) == 3

        users = [make_user(west) for _ in range(3)]
        assignments = [
            (west_shadows[0], users[0]), (west_shadows[0], users[1]),
            (west_shadows[1], users[1]), (west_shadows[2], users[2]),
            (west_shadows[2], users[0]),
        ]
        for shadow, user in assignments:
            lifecycle.assign_role(shadow, SYSTEM_USER, user.id)
        shadow_ids = [shadow.id for shadow in west_shadows]
        assert PrincipalRole.objects.for_roles(shadow_ids).count() == 5

        west.delete()

        assert PrincipalRole.objects.for_roles(shadow_ids).count() == 0
        assert not Role.objects.filter(id__in=shadow_ids).exists()
        assert all(Role.objects.filter(id=root.id).exists() for root in roots)

    def test_unit_without_shadows_deletes_cleanly(self, west):
        west.delete()

        assert not AuditLog.objects.by_action('shadow_roles_removed').exists()


@pytest.mark.django_db
class TestAssignments:
    """Test role assignment validation."""

    def test_same_business_unit_assignment(self, lifecycle, west, make_user):
        role = lifecycle.create_role('Sales Rep', west)
        user = make_user(west)

        assignment = lifecycle.assign_role(role, SYSTEM_USER, user.id)
        again = lifecycle.assign_role(role, SYSTEM_USER, user.id)

        assert assignment.id == again.id

    def test_cross_business_unit_assignment_rejected(self, lifecycle, west, east, make_user):
        role = lifecycle.create_role('Sales Rep', west)
        user = make_user(east)

        with pytest.raises(InvalidOperation) as exc_info:
            lifecycle.assign_role(role, SYSTEM_USER, user.id)

        assert 'same business unit' in exc_info.value.message
        assert not PrincipalRole.objects.for_principal(SYSTEM_USER, user.id).exists()

    def test_cross_business_unit_assignment_allowed_when_enabled(self, west, east, make_user):
        lifecycle = RoleLifecycleManager(SecurityConfiguration(use_cross_business_unit_assignment=True))
        role = lifecycle.create_role('Sales Rep', west)
        user = make_user(east)

        lifecycle.assign_role(role, SYSTEM_USER, user.id)

        assert PrincipalRole.objects.for_principal(SYSTEM_USER, user.id).count() == 1

    def test_missing_role_or_principal(self, lifecycle, west, make_user):
        role = lifecycle.create_role('Sales Rep', west)
        user = make_user(west)

        with pytest.raises(NotFound):
            lifecycle.validate_role_assignment(west.id, SYSTEM_USER, user.id)
        with pytest.raises(NotFound):
            lifecycle.validate_role_assignment(role.id, SYSTEM_USER, west.id)

    def test_reassign_after_removal(self, lifecycle, west, make_user):
        role = lifecycle.create_role('Sales Rep', west)
        user = make_user(west)
        lifecycle.assign_role(role, SYSTEM_USER, user.id)

        assert lifecycle.remove_role(role, SYSTEM_USER, user.id)
        assert not lifecycle.remove_role(role, SYSTEM_USER, user.id)
        lifecycle.assign_role(role, SYSTEM_USER, user.id)

        assert PrincipalRole.objects.for_principal(SYSTEM_USER, user.id).count() == 1

    def test_team_assignment(self, lifecycle, west):
        role = lifecycle.create_role('Sales Rep', west)
        team = Team.objects.create(name='West Sales', business_unit=west)

        lifecycle.assign_role(role, TEAM, team.id)

        assert PrincipalRole.objects.for_principal(TEAM, team.id).count() == 1


@pytest.mark.django_db
class TestPrincipalMoves:
    """Test assignment removal when principals change business units."""

    def test_user_moving_loses_roles(self, lifecycle, west, east, make_user):
        role = lifecycle.create_role('Sales Rep', west)
        user = make_user(west)
        lifecycle.assign_role(role, SYSTEM_USER, user.id)

        user.business_unit = east
        user.save()

        assert not PrincipalRole.objects.for_principal(SYSTEM_USER, user.id).exists()

    def test_other_changes_keep_roles(self, lifecycle, west, make_user):
        role = lifecycle.create_role('Sales Rep', west)
        user = make_user(west)
        lifecycle.assign_role(role, SYSTEM_USER, user.id)

        user.full_name = 'Renamed'
        user.save()

        assert PrincipalRole.objects.for_principal(SYSTEM_USER, user.id).count() == 1

    def test_team_moving_loses_roles(self, lifecycle, west, east):
        role = lifecycle.create_role('Sales Rep', west)
        team = Team.objects.create(name='West Sales', business_unit=west)
        lifecycle.assign_role(role, TEAM, team.id)

        team.business_unit = east
        team.save()

        assert not PrincipalRole.objects.for_principal(TEAM, team.id).exists()

    def test_unknown_principal_type(self, lifecycle, db):
        with pytest.raises(ValueError):
            lifecycle.on_principal_business_unit_changed('contact', '00000000-0000-0000-0000-000000000001')


@pytest.mark.django_db
class TestAuditLog:
    """Test audit entries written by lifecycle changes."""

    def test_log_action_records_fields(self, db):
        entry = AuditLog.log_action(
            'role_created', target_type='Role', target_id='00000000-0000-0000-0000-000000000001',
            diff={'name': 'Sales Rep'}, metadata={'business_unit': 'West'},
        )

        assert entry.diff == {'name': 'Sales Rep'}
        assert entry.metadata == {'business_unit': 'West'}
        assert entry.actor_id is None

    def test_database_error_does_not_propagate(self, db):
        from unittest.mock import patch
        from django.db import DatabaseError

        with patch.object(AuditLog.objects, 'create', side_effect=DatabaseError('down')):
            assert AuditLog.log_action('role_created', target_type='Role') is None
