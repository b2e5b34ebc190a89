"""
Record store facade.

Gives the security core a uniform view of records: generic business
records live in the Record table, platform tables (business units, users,
teams, roles, organizations, privileges and record-type definitions) are
served from their own models.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from apps.core.exceptions import NotFound
from apps.organizations.models import Organization, BusinessUnit, SystemUser, Team
from apps.organizations.services import BusinessUnitService
from apps.records.models import EntityDefinition, Record, STATE_ACTIVE
from apps.security.context import PrincipalRef
from apps.security.models import Privilege, Role, RolePrivilege

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecuredRecord:
    """The security-relevant view of a record."""

    entity_name: str
    id: uuid.UUID
    owner: Optional[PrincipalRef] = None
    owning_business_unit_id: Optional[uuid.UUID] = None
    state_code: int = STATE_ACTIVE
    attributes: Dict[str, Any] = field(default_factory=dict)


def _from_record(record: Record) -> SecuredRecord:
    owner = None
    if record.owner_type and record.owner_id:
        owner = PrincipalRef(record.owner_type, record.owner_id)
    return SecuredRecord(
        entity_name=record.entity_name,
        id=record.id,
        owner=owner,
        owning_business_unit_id=record.owning_business_unit_id,
        state_code=record.state_code,
        attributes=dict(record.attributes or {}),
    )


def _from_business_unit(unit: BusinessUnit) -> SecuredRecord:
    return SecuredRecord('businessunit', unit.id, owning_business_unit_id=unit.id,
                         attributes={'name': unit.name})


def _from_system_user(user: SystemUser) -> SecuredRecord:
    return SecuredRecord('systemuser', user.id, owning_business_unit_id=user.business_unit_id,
                         attributes={'fullname': user.full_name})


def _from_team(team: Team) -> SecuredRecord:
    return SecuredRecord('team', team.id, owning_business_unit_id=team.business_unit_id,
                         attributes={'name': team.name})


def _from_role(role: Role) -> SecuredRecord:
    return SecuredRecord('role', role.id, owning_business_unit_id=role.business_unit_id,
                         attributes={'name': role.name})


def _from_organization(organization: Organization) -> SecuredRecord:
    return SecuredRecord('organization', organization.id, attributes={'name': organization.name})


def _from_privilege(privilege: Privilege) -> SecuredRecord:
    return SecuredRecord('privilege', privilege.id, attributes={'name': privilege.name})


def _from_role_privilege(role_privilege: RolePrivilege) -> SecuredRecord:
    return SecuredRecord(
        'roleprivileges', role_privilege.id,
        owning_business_unit_id=role_privilege.role.business_unit_id,
        attributes={'privilegedepthmask': role_privilege.depth_mask},
    )


def _from_entity_definition(definition: EntityDefinition) -> SecuredRecord:
    return SecuredRecord('entitydefinition', definition.id,
                         attributes={'logicalname': definition.logical_name})


# Platform tables served from their own models
SYSTEM_TABLES = {
    'businessunit': (BusinessUnit, _from_business_unit),
    'systemuser': (SystemUser, _from_system_user),
    'team': (Team, _from_team),
    'role': (Role, _from_role),
    'organization': (Organization, _from_organization),
    'privilege': (Privilege, _from_privilege),
    'roleprivileges': (RolePrivilege, _from_role_privilege),
    'entitydefinition': (EntityDefinition, _from_entity_definition),
}


class RecordStore:
    """
    Read and write records by type and id.
    """

    @classmethod
    def get_by_id(cls, entity_name: str, record_id) -> Optional[SecuredRecord]:
        """Return the record, or None if it does not exist."""
        if entity_name in SYSTEM_TABLES:
            model, convert = SYSTEM_TABLES[entity_name]
            instance = model.objects.filter(id=record_id).first()
            return convert(instance) if instance is not None else None

        record = Record.objects.of_type(entity_name).filter(id=record_id).first()
        return _from_record(record) if record is not None else None

    @classmethod
    def query(cls, entity_name: str,
              predicate: Optional[Callable[[SecuredRecord], bool]] = None) -> List[SecuredRecord]:
        """Return every record of a type, optionally filtered by a predicate."""
        if entity_name in SYSTEM_TABLES:
            model, convert = SYSTEM_TABLES[entity_name]
            records = [convert(instance) for instance in model.objects.all()]
        else:
            records = [_from_record(record) for record in Record.objects.of_type(entity_name)]

        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    @classmethod
    def create(cls, entity_name: str, owner: Optional[PrincipalRef] = None,
               owning_business_unit_id=None, attributes: Optional[Dict[str, Any]] = None) -> SecuredRecord:
        """
        Create a generic record.

        The owning business unit defaults to the owner's business unit.
        """
        if owning_business_unit_id is None and owner is not None:
            owning_business_unit_id = BusinessUnitService.business_unit_of(owner.principal_type, owner.id)

        record = Record.objects.create(
            entity_name=entity_name,
            owner_type=owner.principal_type if owner else None,
            owner_id=owner.id if owner else None,
            owning_business_unit_id=owning_business_unit_id,
            attributes=attributes or {},
        )
        return _from_record(record)

    @classmethod
    def update(cls, entity_name: str, record_id, attributes: Dict[str, Any]) -> SecuredRecord:
        """Merge attribute values into a record."""
        record = cls._get_record(entity_name, record_id)
        record.attributes = {**(record.attributes or {}), **attributes}
        record.save(update_fields=['attributes', 'updated_at'])
        return _from_record(record)

    @classmethod
    def assign(cls, entity_name: str, record_id, owner: PrincipalRef) -> SecuredRecord:
        """Hand a record to a new owner; the owning business unit follows the owner."""
        record = cls._get_record(entity_name, record_id)
        record.owner_type = owner.principal_type
        record.owner_id = owner.id
        record.owning_business_unit_id = BusinessUnitService.business_unit_of(
            owner.principal_type, owner.id
        )
        record.save(update_fields=['owner_type', 'owner_id', 'owning_business_unit', 'updated_at'])
        return _from_record(record)

    @classmethod
    def set_state(cls, entity_name: str, record_id, state_code: int) -> SecuredRecord:
        record = cls._get_record(entity_name, record_id)
        record.state_code = state_code
        record.save(update_fields=['state_code', 'updated_at'])
        return _from_record(record)

    @classmethod
    def delete(cls, entity_name: str, record_id):
        cls._get_record(entity_name, record_id).delete()

    @staticmethod
    def _get_record(entity_name: str, record_id) -> Record:
        record = Record.objects.of_type(entity_name).filter(id=record_id).first()
        if record is None:
            raise NotFound(
                f"{entity_name} with id {record_id} does not exist.",
                details={'entity_name': entity_name, 'record_id': str(record_id)}
            )
        return record
