"""
Role lifecycle: root roles, their per-business-unit shadow copies, and
role assignments.

Cascades run in a fixed order (assignments, then roles, then business
units) and are safe to re-run: every step looks up current state before
acting, so a partially applied cascade is completed by calling it again.
"""
import logging
from typing import Dict, List, Optional, Union

from django.db import transaction

from apps.core.exceptions import InvalidOperation, NotFound
from apps.core.logging import SecurityLogger
from apps.organizations.models import BusinessUnit, SYSTEM_USER, TEAM
from apps.organizations.services import BusinessUnitService
from apps.security.configuration import SecurityConfiguration, get_security_configuration
from apps.security.models import Privilege, Role, RolePrivilege, PrincipalRole, AuditLog

logger = logging.getLogger(__name__)

SHADOW_DELETE_MESSAGE = (
    'Shadow role copies cannot be deleted directly. Delete the root role instead.'
)


class RoleLifecycleManager:
    """
    Service keeping shadow roles in step with root roles and business units.
    """

    def __init__(self, configuration: Optional[SecurityConfiguration] = None):
        self._configuration = configuration

    @property
    def configuration(self) -> SecurityConfiguration:
        return self._configuration or get_security_configuration()

    # Role and business unit events

    def on_role_created(self, role: Role):
        """
        Propagate a newly created root role to every other business unit.

        Shadow copies are ignored. A root role without ``root_role`` is
        pointed at itself first.
        """
        if role.is_shadow:
            return

        if role.root_role_id is None:
            role.root_role_id = role.id
            role.save(update_fields=['root_role', 'updated_at'])

        other_units = BusinessUnit.objects.filter(
            organization_id=role.business_unit.organization_id
        ).exclude(id=role.business_unit_id)

        created = [
            shadow for shadow in (
                self.create_shadow_role(role, unit.id) for unit in other_units
            ) if shadow is not None
        ]

        if created:
            AuditLog.log_action(
                action='shadow_roles_created',
                target_type='Role',
                target_id=role.id,
                metadata={
                    'shadow_role_ids': [str(shadow.id) for shadow in created],
                    'trigger': 'role_created',
                }
            )

    def create_shadow_role(self, root_role: Role, business_unit_id) -> Optional[Role]:
        """
        Create the shadow copy of a root role in one business unit.

        Idempotent by (root role, business unit). The shadow gets a snapshot
        of the root's privileges; later changes to the root are not copied.

        Returns:
            The new shadow role, or None if one already existed
        """
        if Role.objects.filter(root_role_id=root_role.id, business_unit_id=business_unit_id).exists():
            return None

        shadow = Role.objects.create(
            name=root_role.name,
            business_unit_id=business_unit_id,
            parent_role_id=root_role.id,
            root_role_id=root_role.id,
            is_customizable=False,
            is_managed=root_role.is_managed,
        )

        RolePrivilege.objects.bulk_create([
            RolePrivilege(role=shadow, privilege_id=grant.privilege_id, depth_mask=grant.depth_mask)
            for grant in RolePrivilege.objects.for_role(root_role.id)
        ])

        logger.debug(
            "Created shadow role",
            extra={
                'root_role_id': str(root_role.id),
                'shadow_role_id': str(shadow.id),
                'business_unit_id': str(business_unit_id),
            }
        )
        return shadow

    def on_business_unit_created(self, business_unit: BusinessUnit):
        """Shadow-copy every root role of the organization into a new business unit."""
        root_roles = Role.objects.roots().filter(
            business_unit__organization_id=business_unit.organization_id
        ).exclude(business_unit_id=business_unit.id)

        created = []
        for root_role in root_roles:
            shadow = self.create_shadow_role(root_role, business_unit.id)
            if shadow is not None:
                created.append(shadow)

        if created:
            AuditLog.log_action(
                action='shadow_roles_created',
                target_type='BusinessUnit',
                target_id=business_unit.id,
                metadata={
                    'shadow_role_ids': [str(shadow.id) for shadow in created],
                    'trigger': 'business_unit_created',
                }
            )

    def on_business_unit_deleted(self, business_unit_id):
        """
        Remove the shadow roles a business unit owns.

        Assignments referencing those roles are removed before the roles.
        """
        shadow_ids = Role.objects.owned_by(business_unit_id).filter(
            parent_role__isnull=False
        ).ids()
        if not shadow_ids:
            return

        removed_assignments = self._remove_assignments(shadow_ids)
        Role.objects.filter(id__in=shadow_ids).delete()

        AuditLog.log_action(
            action='shadow_roles_removed',
            target_type='BusinessUnit',
            target_id=business_unit_id,
            metadata={
                'shadow_role_ids': [str(role_id) for role_id in shadow_ids],
                'removed_assignments': removed_assignments,
                'trigger': 'business_unit_deleted',
            }
        )
        logger.info(
            "Removed shadow roles of deleted business unit",
            extra={
                'business_unit_id': str(business_unit_id),
                'shadow_count': len(shadow_ids),
                'removed_assignments': removed_assignments,
            }
        )

    def on_role_deleted(self, role_id):
        """
        Delete a root role together with its shadow copies.

        Order: shadow assignments, shadows, root assignments, root.

        Raises:
            InvalidOperation: If the role is a shadow copy
        """
        role = Role.objects.filter(id=role_id).first()
        if role is None:
            return

        if role.is_shadow:
            SecurityLogger.log_invalid_operation(
                'delete_role', SHADOW_DELETE_MESSAGE, role_id=str(role_id)
            )
            raise InvalidOperation(
                SHADOW_DELETE_MESSAGE,
                details={'role_id': str(role_id), 'root_role_id': str(role.root_role_id)}
            )

        shadow_ids = Role.objects.shadows_of(role.id).ids()
        removed_assignments = self._remove_assignments(shadow_ids)
        Role.objects.filter(id__in=shadow_ids).delete()

        removed_assignments += self._remove_assignments([role.id])
        Role.objects.filter(id=role.id).delete()

        AuditLog.log_action(
            action='role_deleted',
            target_type='Role',
            target_id=role.id,
            metadata={
                'shadow_role_ids': [str(shadow_id) for shadow_id in shadow_ids],
                'removed_assignments': removed_assignments,
            }
        )

    def on_principal_business_unit_changed(self, principal_type: str, principal_id):
        """Remove every role assignment of a principal that moved business units."""
        if principal_type not in (SYSTEM_USER, TEAM):
            raise ValueError(f"Unknown principal type: {principal_type}")

        removed, _ = PrincipalRole.objects.for_principal(principal_type, principal_id).delete()
        if removed:
            AuditLog.log_action(
                action='principal_roles_removed',
                target_type=principal_type,
                target_id=principal_id,
                metadata={'removed_assignments': removed, 'trigger': 'business_unit_changed'}
            )

    # Assignments

    def validate_role_assignment(self, role_id, principal_type: str, principal_id):
        """
        Check that a role may be assigned to a principal.

        Unless cross-business-unit assignment is enabled, the role and the
        principal must belong to the same business unit.

        Raises:
            NotFound: If the role or the principal does not exist
            InvalidOperation: If the business units differ
        """
        role_business_unit_id = Role.objects.filter(id=role_id).values_list(
            'business_unit_id', flat=True
        ).first()
        if role_business_unit_id is None:
            raise NotFound(f"Role {role_id} not found.", details={'role_id': str(role_id)})

        principal_business_unit_id = BusinessUnitService.business_unit_of(principal_type, principal_id)
        if principal_business_unit_id is None:
            raise NotFound(
                f"{principal_type} {principal_id} not found.",
                details={'principal_type': principal_type, 'principal_id': str(principal_id)}
            )

        if self.configuration.use_cross_business_unit_assignment:
            return

        if role_business_unit_id != principal_business_unit_id:
            message = (
                f"Cannot assign role from business unit {role_business_unit_id} to "
                f"{principal_type} in business unit {principal_business_unit_id}. "
                "Roles can only be assigned to users/teams in the same business unit "
                "unless cross-business-unit assignment is enabled."
            )
            SecurityLogger.log_invalid_operation(
                'assign_role', message,
                role_id=str(role_id), principal_id=str(principal_id)
            )
            raise InvalidOperation(message, details={
                'role_id': str(role_id),
                'role_business_unit_id': str(role_business_unit_id),
                'principal_business_unit_id': str(principal_business_unit_id),
            })

    def assign_role(self, role: Union[Role, str], principal_type: str, principal_id,
                    actor_id=None) -> PrincipalRole:
        """
        Assign a role to a user or team (idempotent).

        Raises:
            NotFound / InvalidOperation: See validate_role_assignment
        """
        role_id = role.id if isinstance(role, Role) else role
        self.validate_role_assignment(role_id, principal_type, principal_id)

        assignment, created = PrincipalRole.objects.get_or_create(
            principal_type=principal_type,
            principal_id=principal_id,
            role_id=role_id,
        )
        if created:
            AuditLog.log_action(
                action='role_assigned',
                actor_id=actor_id,
                target_type=principal_type,
                target_id=principal_id,
                metadata={'role_id': str(role_id)}
            )
        return assignment

    def remove_role(self, role: Union[Role, str], principal_type: str, principal_id,
                    actor_id=None) -> bool:
        """Remove a role from a user or team. Returns whether anything was removed."""
        role_id = role.id if isinstance(role, Role) else role
        removed, _ = PrincipalRole.objects.filter(
            principal_type=principal_type,
            principal_id=principal_id,
            role_id=role_id,
        ).delete()
        if removed:
            AuditLog.log_action(
                action='role_removed',
                actor_id=actor_id,
                target_type=principal_type,
                target_id=principal_id,
                metadata={'role_id': str(role_id)}
            )
        return bool(removed)

    # Root roles and their privileges

    @transaction.atomic
    def create_role(self, name: str, business_unit: BusinessUnit,
                    privileges: Optional[Dict[str, int]] = None, is_managed: bool = False) -> Role:
        """
        Create a root role with its privileges, then propagate it.

        Privileges are granted before propagation so that every shadow copy
        starts with the same privilege set as the root.

        Args:
            name: Role name
            business_unit: Owning business unit
            privileges: Mapping of privilege name -> depth mask
            is_managed: Whether the role ships with the platform

        Returns:
            The root Role
        """
        role = Role(name=name, business_unit=business_unit, is_managed=is_managed)
        role.root_role_id = role.id
        role._defer_lifecycle = True
        role.save()

        for privilege_name, depth_mask in (privileges or {}).items():
            self._grant(role, privilege_name, depth_mask)

        self.on_role_created(role)

        AuditLog.log_action(
            action='role_created',
            target_type='Role',
            target_id=role.id,
            metadata={
                'name': name,
                'business_unit_id': str(business_unit.id),
                'privileges': dict(privileges or {}),
            }
        )
        return role

    def grant_privilege(self, role: Role, privilege_name: str, depth_mask: int) -> RolePrivilege:
        """
        Grant (or re-grant at a new depth) a privilege on a root role.

        Raises:
            InvalidOperation: If the role is a shadow copy or the depth is not allowed
            NotFound: If the privilege does not exist
        """
        grant = self._grant(role, privilege_name, depth_mask)
        AuditLog.log_action(
            action='privilege_granted',
            target_type='Role',
            target_id=role.id,
            metadata={'privilege': privilege_name, 'depth_mask': depth_mask}
        )
        return grant

    def revoke_privilege(self, role: Role, privilege_name: str) -> bool:
        """Revoke a privilege from a root role. Returns whether anything was removed."""
        self._ensure_root_role(role)
        removed, _ = RolePrivilege.objects.filter(
            role=role, privilege__name=privilege_name
        ).delete()
        if removed:
            AuditLog.log_action(
                action='privilege_revoked',
                target_type='Role',
                target_id=role.id,
                metadata={'privilege': privilege_name}
            )
        return bool(removed)

    def _grant(self, role: Role, privilege_name: str, depth_mask: int) -> RolePrivilege:
        self._ensure_root_role(role)

        privilege = Privilege.objects.by_name(privilege_name)
        if privilege is None:
            raise NotFound(
                f"Privilege {privilege_name} not found.",
                details={'privilege': privilege_name}
            )
        if not privilege.allows_depth(depth_mask):
            raise InvalidOperation(
                f"Privilege {privilege_name} cannot be granted at depth {depth_mask}.",
                details={
                    'privilege': privilege_name,
                    'depth_mask': depth_mask,
                    'allowed_depth_mask': privilege.allowed_depth_mask,
                }
            )

        grant, _ = RolePrivilege.objects.update_or_create(
            role=role,
            privilege=privilege,
            defaults={'depth_mask': depth_mask},
        )
        return grant

    @staticmethod
    def _ensure_root_role(role: Role):
        if role.is_shadow:
            raise InvalidOperation(
                'Shadow role copies cannot be edited. Edit the root role instead.',
                details={'role_id': str(role.id), 'root_role_id': str(role.root_role_id)}
            )

    @staticmethod
    def _remove_assignments(role_ids: List) -> int:
        if not role_ids:
            return 0
        removed, _ = PrincipalRole.objects.for_roles(role_ids).delete()
        return removed
