"""
Tests for privilege evaluation.
"""
import pytest
from hypothesis import given, strategies as st

from apps.organizations.models import Team, TeamMembership, SYSTEM_USER, TEAM
from apps.organizations.services import BusinessUnitService
from apps.records.store import RecordStore
from apps.security.configuration import SecurityConfiguration
from apps.security.constants import BASIC, DEEP, GLOBAL, LOCAL
from apps.security.context import PrincipalRef
from apps.security.models import Role
from apps.security.services import PrivilegeEvaluator, PrivilegeCatalog
from apps.security.services.evaluator import covers, depth_or_wider

depth_masks = st.integers(min_value=0, max_value=15)
depths = st.sampled_from([BASIC, LOCAL, DEEP, GLOBAL])


class TestDepthArithmetic:
    """Test depth mask helpers."""

    def test_examples(self):
        assert depth_or_wider(GLOBAL, BASIC)
        assert depth_or_wider(LOCAL, LOCAL)
        assert not depth_or_wider(BASIC, LOCAL)
        assert covers(BASIC | LOCAL, LOCAL)
        assert not covers(LOCAL, BASIC | LOCAL)

    @given(depth_masks, depths)
    def test_wider_depth_never_loses_coverage(self, mask, depth):
        if depth_or_wider(mask, depth):
            for narrower in (BASIC, LOCAL, DEEP, GLOBAL):
                if narrower <= depth:
                    assert depth_or_wider(mask, narrower)

    @given(depth_masks, depths)
    def test_exact_coverage_implies_or_wider(self, mask, depth):
        if covers(mask, depth):
            assert depth_or_wider(mask, depth)


@pytest.mark.django_db
class TestPrivilegeChecks:
    """Test exact and at-least depth checks."""

    def test_exact_and_at_least(self, lifecycle, west, make_user, account_definition):
        role = lifecycle.create_role('Sales Rep', west, privileges={'prvReadAccount': GLOBAL})
        user = make_user(west)
        lifecycle.assign_role(role, SYSTEM_USER, user.id)
        principal = PrincipalRef.of(user)
        evaluator = PrivilegeEvaluator()

        assert evaluator.has_privilege(principal, 'prvReadAccount', GLOBAL)
        assert not evaluator.has_privilege(principal, 'prvReadAccount', BASIC)
        assert evaluator.holds_privilege(principal, 'prvReadAccount', BASIC)
        assert not evaluator.holds_privilege(principal, 'prvWriteAccount', BASIC)
        assert evaluator.granted_depth_mask(principal, 'prvReadAccount') == GLOBAL

    def test_masks_combine_across_roles(self, lifecycle, west, make_user, account_definition):
        first = lifecycle.create_role('Reader', west, privileges={'prvReadAccount': BASIC})
        second = lifecycle.create_role('Manager', west, privileges={'prvReadAccount': DEEP})
        user = make_user(west)
        lifecycle.assign_role(first, SYSTEM_USER, user.id)
        lifecycle.assign_role(second, SYSTEM_USER, user.id)

        mask = PrivilegeEvaluator().granted_depth_mask(PrincipalRef.of(user), 'prvReadAccount')

        assert mask == BASIC | DEEP

    def test_deleted_role_grants_nothing(self, lifecycle, west, make_user, account_definition):
        role = lifecycle.create_role('Sales Rep', west, privileges={'prvReadAccount': GLOBAL})
        user = make_user(west)
        lifecycle.assign_role(role, SYSTEM_USER, user.id)

        role.delete()

        assert not PrivilegeEvaluator().holds_privilege(PrincipalRef.of(user), 'prvReadAccount')


@pytest.mark.django_db
class TestTeamRoles:
    """Test team-role inheritance behind its switch."""

    def _setup(self, lifecycle, west, make_user):
        role = lifecycle.create_role('Team Reader', west, privileges={'prvReadAccount': GLOBAL})
        team = Team.objects.create(name='West Sales', business_unit=west)
        lifecycle.assign_role(role, TEAM, team.id)
        user = make_user(west)
        TeamMembership.objects.create(team=team, user=user)
        return PrincipalRef.of(user)

    def test_team_roles_ignored_by_default(self, lifecycle, west, make_user, account_definition):
        principal = self._setup(lifecycle, west, make_user)

        assert not PrivilegeEvaluator().holds_privilege(principal, 'prvReadAccount')

    def test_team_roles_inherited_when_enabled(self, lifecycle, west, make_user, account_definition):
        principal = self._setup(lifecycle, west, make_user)
        evaluator = PrivilegeEvaluator(SecurityConfiguration(inherit_team_roles=True))

        assert evaluator.holds_privilege(principal, 'prvReadAccount')


@pytest.mark.django_db
class TestRecordScopedPrivileges:
    """Test owner, business unit, descendant and organization scopes."""

    @pytest.fixture
    def west_child(self, west):
        return BusinessUnitService.create_business_unit('West Child', west)

    def _principal_with(self, lifecycle, business_unit, make_user, depth):
        role = lifecycle.create_role(f'Reader {depth}', business_unit, privileges={'prvReadAccount': depth})
        user = make_user(business_unit)
        lifecycle.assign_role(role, SYSTEM_USER, user.id)
        return PrincipalRef.of(user)

    def test_basic_covers_owned_records_only(self, lifecycle, west, make_user, account_definition):
        principal = self._principal_with(lifecycle, west, make_user, BASIC)
        colleague = PrincipalRef.of(make_user(west))
        evaluator = PrivilegeEvaluator()

        owned = RecordStore.create('account', owner=principal)
        other = RecordStore.create('account', owner=colleague)

        assert evaluator.has_privilege_for_record(principal, 'prvReadAccount', owned)
        assert not evaluator.has_privilege_for_record(principal, 'prvReadAccount', other)

    def test_local_covers_own_business_unit(self, lifecycle, west, east, make_user, account_definition):
        principal = self._principal_with(lifecycle, west, make_user, LOCAL)
        evaluator = PrivilegeEvaluator()

        same_unit = RecordStore.create('account', owner=PrincipalRef.of(make_user(west)))
        other_unit = RecordStore.create('account', owner=PrincipalRef.of(make_user(east)))

        assert evaluator.has_privilege_for_record(principal, 'prvReadAccount', same_unit)
        assert not evaluator.has_privilege_for_record(principal, 'prvReadAccount', other_unit)

    def test_deep_covers_descendants(self, lifecycle, west, east, west_child, make_user,
                                     account_definition):
        principal = self._principal_with(lifecycle, west, make_user, DEEP)
        evaluator = PrivilegeEvaluator()

        child_record = RecordStore.create('account', owner=PrincipalRef.of(make_user(west_child)))
        east_record = RecordStore.create('account', owner=PrincipalRef.of(make_user(east)))

        assert evaluator.has_privilege_for_record(principal, 'prvReadAccount', child_record)
        assert not evaluator.has_privilege_for_record(principal, 'prvReadAccount', east_record)

    def test_global_covers_everything(self, lifecycle, west, east, make_user, account_definition):
        principal = self._principal_with(lifecycle, west, make_user, GLOBAL)

        east_record = RecordStore.create('account', owner=PrincipalRef.of(make_user(east)))

        assert PrivilegeEvaluator().has_privilege_for_record(principal, 'prvReadAccount', east_record)

    def test_missing_principal(self, west, account_definition):
        record = RecordStore.create('account', owning_business_unit_id=west.id)
        ghost = PrincipalRef.user('00000000-0000-0000-0000-000000000001')

        assert not PrivilegeEvaluator().has_privilege_for_record(ghost, 'prvReadAccount', record)


@pytest.mark.django_db
class TestAdministrators:
    """Test administrator detection."""

    def test_root_and_shadow_holders_are_administrators(self, root_business_unit, west, make_user,
                                                        lifecycle):
        role = PrivilegeCatalog().initialize_administrator_role()
        shadow = Role.objects.shadows_of(role.id).get(business_unit=west)
        root_admin = make_user(root_business_unit)
        west_admin = make_user(west)
        lifecycle.assign_role(role, SYSTEM_USER, root_admin.id)
        lifecycle.assign_role(shadow, SYSTEM_USER, west_admin.id)
        evaluator = PrivilegeEvaluator()

        assert evaluator.is_administrator(PrincipalRef.of(root_admin))
        assert evaluator.is_administrator(PrincipalRef.of(west_admin))
        assert not evaluator.is_administrator(PrincipalRef.of(make_user(west)))
        assert not evaluator.is_administrator(None)
