"""
Privilege catalog: defines the standard privileges per record type and
seeds the administrator role.
"""
import logging
from typing import List, Optional

from django.db import transaction

from apps.organizations.services import BusinessUnitService
from apps.security.configuration import SecurityConfiguration, get_security_configuration
from apps.security.constants import (
    ACCESS_RIGHT_NAMES, ACT_ON_BEHALF_PRIVILEGE, ADMINISTRATOR_ROLE_NAME,
    GLOBAL, SYSTEM_ENTITIES,
)
from apps.security.models import Privilege, Role, RolePrivilege, AuditLog

logger = logging.getLogger(__name__)


def to_pascal_case(logical_name: str) -> str:
    """
    PascalCase a logical name by capitalizing each underscore segment.

    >>> to_pascal_case('new_customentity')
    'NewCustomentity'
    """
    if not logical_name:
        return logical_name
    return ''.join(part[:1].upper() + part[1:] for part in logical_name.split('_'))


def privilege_name(entity_name: str, access_right: int) -> str:
    """Deterministic privilege name, e.g. ``prvReadAccount``."""
    return f"prv{ACCESS_RIGHT_NAMES[access_right]}{to_pascal_case(entity_name)}"


class PrivilegeCatalog:
    """
    Service for creating privileges and granting them to the administrator role.
    """

    def __init__(self, configuration: Optional[SecurityConfiguration] = None):
        self._configuration = configuration

    @property
    def configuration(self) -> SecurityConfiguration:
        return self._configuration or get_security_configuration()

    @staticmethod
    def is_organization_owned(entity_name: str, ownership_type: Optional[str] = None) -> bool:
        """Platform tables and organization-owned types allow Global depth only."""
        if entity_name.lower() in SYSTEM_ENTITIES:
            return True
        return ownership_type == 'organization'

    def ensure_standard_privileges(self, entity_name: str) -> List[Privilege]:
        """
        Create the eight standard privileges for a record type.

        Idempotent: privileges are looked up by name and only missing ones
        are created. Nothing is created when the type has no entity
        definition.

        Args:
            entity_name: Logical name of the record type

        Returns:
            The record type's standard privileges (empty if the type is unknown)
        """
        if not entity_name or not entity_name.strip():
            raise ValueError('entity_name is required')

        from apps.records.models import EntityDefinition

        definition = EntityDefinition.objects.filter(logical_name=entity_name).first()
        if definition is None:
            logger.debug(
                "No entity definition, skipping privilege creation",
                extra={'entity_name': entity_name}
            )
            return []

        organization_owned = self.is_organization_owned(
            definition.logical_name, definition.ownership_type
        )

        privileges = []
        created = []
        for access_right in ACCESS_RIGHT_NAMES:
            name = privilege_name(definition.logical_name, access_right)
            privilege, was_created = Privilege.objects_with_deleted.get_or_create(
                name=name,
                defaults={
                    'entity_name': definition.logical_name,
                    'access_right': access_right,
                    'can_be_basic': not organization_owned,
                    'can_be_local': not organization_owned,
                    'can_be_deep': not organization_owned,
                    'can_be_global': True,
                }
            )
            if privilege.is_deleted:
                privilege.restore()
            privileges.append(privilege)
            if was_created:
                created.append(name)

        if created:
            logger.info(
                "Created standard privileges",
                extra={
                    'entity_name': definition.logical_name,
                    'privileges': created,
                    'organization_owned': organization_owned,
                }
            )

        return privileges

    def ensure_on_behalf_privilege(self) -> Privilege:
        """Create the act-on-behalf-of privilege (Global only) if absent."""
        privilege, _ = Privilege.objects_with_deleted.get_or_create(
            name=ACT_ON_BEHALF_PRIVILEGE,
            defaults={
                'entity_name': '',
                'access_right': None,
                'can_be_basic': False,
                'can_be_local': False,
                'can_be_deep': False,
                'can_be_global': True,
            }
        )
        if privilege.is_deleted:
            privilege.restore()
        return privilege

    @transaction.atomic
    def initialize_administrator_role(self) -> Role:
        """
        Ensure the administrator role exists in the root business unit.

        The role is created with the configured administrator role id, so
        repeated calls return the same role. Creation propagates shadow
        copies to every other business unit.
        """
        administrator_role_id = self.configuration.administrator_role_id

        role = Role.objects_with_deleted.filter(id=administrator_role_id).first()
        if role is not None:
            if role.is_deleted:
                role.restore()
            return role

        root_business_unit = BusinessUnitService.ensure_root_business_unit()
        role = Role.objects.create(
            id=administrator_role_id,
            name=ADMINISTRATOR_ROLE_NAME,
            business_unit=root_business_unit,
            is_customizable=False,
            is_managed=True,
        )

        AuditLog.log_action(
            action='administrator_role_initialized',
            target_type='Role',
            target_id=role.id,
            metadata={'business_unit_id': str(root_business_unit.id)}
        )
        logger.info(
            "Initialized administrator role",
            extra={'role_id': str(role.id), 'business_unit_id': str(root_business_unit.id)}
        )
        return role

    def grant_all_to_administrator_role(self) -> int:
        """
        Grant every privilege to the administrator role at Global depth.

        Existing (role, privilege) pairs are left untouched.

        Returns:
            Number of privileges newly granted
        """
        administrator_role_id = self.configuration.administrator_role_id
        if not Role.objects.filter(id=administrator_role_id).exists():
            logger.warning(
                "Administrator role missing, nothing granted",
                extra={'role_id': str(administrator_role_id)}
            )
            return 0

        granted_ids = set(
            RolePrivilege.objects.for_role(administrator_role_id).values_list('privilege_id', flat=True)
        )
        missing = Privilege.objects.exclude(id__in=granted_ids)

        new_rows = [
            RolePrivilege(role_id=administrator_role_id, privilege=privilege, depth_mask=GLOBAL)
            for privilege in missing
        ]
        RolePrivilege.objects.bulk_create(new_rows)

        if new_rows:
            AuditLog.log_action(
                action='administrator_privileges_granted',
                target_type='Role',
                target_id=administrator_role_id,
                metadata={'granted_count': len(new_rows)}
            )
        return len(new_rows)
