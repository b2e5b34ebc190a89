"""
Tests for the record store facade.
"""
import uuid

import pytest

from apps.core.exceptions import NotFound
from apps.records.models import STATE_INACTIVE
from apps.records.store import RecordStore
from apps.security.context import PrincipalRef


@pytest.mark.django_db
class TestRecordStore:
    """Test reads and writes through the facade."""

    def test_create_defaults_business_unit_to_owner(self, west, make_user):
        owner = PrincipalRef.of(make_user(west))

        record = RecordStore.create('account', owner=owner, attributes={'name': 'Contoso'})

        assert record.owner == owner
        assert record.owning_business_unit_id == west.id
        assert RecordStore.get_by_id('account', record.id) == record

    def test_missing_record(self, db):
        assert RecordStore.get_by_id('account', uuid.uuid4()) is None
        with pytest.raises(NotFound):
            RecordStore.update('account', uuid.uuid4(), {'name': 'x'})

    def test_records_are_scoped_by_type(self, west):
        record = RecordStore.create('account', owning_business_unit_id=west.id)

        assert RecordStore.get_by_id('contact', record.id) is None
        assert [found.id for found in RecordStore.query('account')] == [record.id]
        assert RecordStore.query('contact') == []

    def test_query_with_predicate(self, west):
        RecordStore.create('account', owning_business_unit_id=west.id, attributes={'name': 'Contoso'})
        RecordStore.create('account', owning_business_unit_id=west.id, attributes={'name': 'Fabrikam'})

        found = RecordStore.query('account', lambda record: record.attributes['name'] == 'Fabrikam')

        assert [record.attributes['name'] for record in found] == ['Fabrikam']

    def test_update_merges_attributes(self, west):
        record = RecordStore.create('account', owning_business_unit_id=west.id,
                                    attributes={'name': 'Contoso', 'city': 'Nairobi'})

        updated = RecordStore.update('account', record.id, {'city': 'Mombasa'})

        assert updated.attributes == {'name': 'Contoso', 'city': 'Mombasa'}

    def test_assign_moves_business_unit_with_owner(self, west, east, make_user):
        record = RecordStore.create('account', owner=PrincipalRef.of(make_user(west)))
        new_owner = PrincipalRef.of(make_user(east))

        assigned = RecordStore.assign('account', record.id, new_owner)

        assert assigned.owner == new_owner
        assert assigned.owning_business_unit_id == east.id

    def test_set_state_and_delete(self, west):
        record = RecordStore.create('account', owning_business_unit_id=west.id)

        assert RecordStore.set_state('account', record.id, STATE_INACTIVE).state_code == STATE_INACTIVE

        RecordStore.delete('account', record.id)
        assert RecordStore.get_by_id('account', record.id) is None

    def test_platform_tables(self, west, make_user):
        user = make_user(west)

        found = RecordStore.get_by_id('systemuser', user.id)

        assert found.owning_business_unit_id == west.id
        assert RecordStore.get_by_id('businessunit', west.id).attributes['name'] == 'West'
        assert user.id in {record.id for record in RecordStore.query('systemuser')}

    def test_privilege_and_definition_tables(self, lifecycle, west, account_definition):
        from apps.security.constants import LOCAL
        from apps.security.models import Privilege, RolePrivilege

        role = lifecycle.create_role('Sales Rep', west, privileges={'prvReadAccount': LOCAL})
        privilege = Privilege.objects.by_name('prvReadAccount')
        grant = RolePrivilege.objects.for_role(role.id).get()

        definition = RecordStore.get_by_id('entitydefinition', account_definition.id)
        assert definition.attributes['logicalname'] == 'account'
        assert RecordStore.get_by_id('privilege', privilege.id).attributes['name'] == 'prvReadAccount'
        assert RecordStore.get_by_id('roleprivileges', grant.id).owning_business_unit_id == west.id
