"""
Security models for privilege-based, business-unit-scoped access control.

Implements:
- Privilege (one access-right on one record type)
- Role (root roles and their per-business-unit shadow copies)
- RolePrivilege (privilege granted by a role at a depth mask)
- PrincipalRole (role assigned to a user or team)
- AccessGrant (explicit per-record shared access)
- AuditLog (trail of role, privilege and cascade changes)
"""
import logging
from django.db import models, DatabaseError
from apps.core.models import AssociationModel, BaseModel, BaseModelManager
from apps.organizations.models import PRINCIPAL_TYPE_CHOICES
from apps.security.constants import (
    ACCESS_RIGHT_CHOICES, BASIC, LOCAL, DEEP, GLOBAL
)

logger = logging.getLogger(__name__)


class PrivilegeManager(BaseModelManager):
    """Manager for Privilege queries."""

    def by_name(self, name):
        """Find privilege by name."""
        return self.filter(name=name).first()

    def for_entity(self, entity_name):
        """Privileges defined for a record type."""
        return self.filter(entity_name=entity_name)


class Privilege(BaseModel):
    """
    A named permission for one access-right on one record type.

    Names are deterministic: ``prv`` + right word + PascalCase(type), e.g.
    ``prvReadAccount``. The depth flags say which depths a role may grant.
    """

    name = models.CharField(
        max_length=150,
        unique=True,
        db_index=True,
        help_text="Privilege name (e.g., 'prvReadAccount')"
    )
    entity_name = models.CharField(
        max_length=100,
        blank=True,
        db_index=True,
        help_text="Logical name of the record type (blank for special privileges)"
    )
    access_right = models.IntegerField(
        choices=ACCESS_RIGHT_CHOICES,
        null=True,
        blank=True,
        help_text="Access right bit this privilege controls"
    )

    can_be_basic = models.BooleanField(default=True)
    can_be_local = models.BooleanField(default=True)
    can_be_deep = models.BooleanField(default=True)
    can_be_global = models.BooleanField(default=True)

    objects = PrivilegeManager()

    class Meta:
        db_table = 'privileges'
        ordering = ['entity_name', 'name']
        indexes = [
            models.Index(fields=['entity_name', 'access_right']),
        ]

    def __str__(self):
        return self.name

    @property
    def allowed_depth_mask(self):
        """OR of the depths this privilege may be granted at."""
        mask = 0
        if self.can_be_basic:
            mask |= BASIC
        if self.can_be_local:
            mask |= LOCAL
        if self.can_be_deep:
            mask |= DEEP
        if self.can_be_global:
            mask |= GLOBAL
        return mask

    def allows_depth(self, depth_mask):
        """Check that every depth bit in the mask is allowed."""
        return depth_mask != 0 and (depth_mask & ~self.allowed_depth_mask) == 0


class RoleManager(BaseModelManager):
    """Manager for Role queries."""

    def roots(self):
        """Roles that are not shadow copies."""
        return self.filter(parent_role__isnull=True)

    def shadows_of(self, root_role_id):
        """Shadow copies of a root role."""
        return self.filter(root_role_id=root_role_id, parent_role__isnull=False)

    def owned_by(self, business_unit_id):
        """Roles owned by a business unit."""
        return self.filter(business_unit_id=business_unit_id)


class Role(BaseModel):
    """
    A named bundle of privileges scoped to one business unit.

    Root roles reference themselves as ``root_role``. Shadow copies live in
    every other business unit, reference the root as both ``parent_role`` and
    ``root_role``, and are not customizable.
    """

    name = models.CharField(
        max_length=160,
        help_text="Role name"
    )
    business_unit = models.ForeignKey(
        'organizations.BusinessUnit',
        on_delete=models.PROTECT,
        related_name='roles',
        db_index=True,
        help_text="Business unit that owns this role"
    )
    parent_role = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='shadow_copies',
        help_text="Root role this shadow was copied from (null for roots)"
    )
    root_role = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        help_text="Root role of the family (self for roots)"
    )
    is_customizable = models.BooleanField(
        default=True,
        help_text="Whether the role's privileges may be edited"
    )
    is_managed = models.BooleanField(
        default=False,
        help_text="Whether the role ships with the platform"
    )

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        ordering = ['name', 'created_at']
        indexes = [
            models.Index(fields=['business_unit', 'root_role']),
            models.Index(fields=['root_role', 'parent_role']),
        ]

    def __str__(self):
        return f"{self.name} ({self.business_unit_id})"

    @property
    def is_shadow(self):
        return self.parent_role_id is not None

    def delete(self, using=None, keep_parents=False):
        """
        Delete the role through the role lifecycle.

        Raises InvalidOperation for shadow copies; deleting a root also
        removes its shadows and every assignment that referenced them.
        """
        from apps.security.services.role_lifecycle import RoleLifecycleManager

        RoleLifecycleManager().on_role_deleted(self.id)
        self.deleted_at = Role.objects_with_deleted.filter(
            id=self.id
        ).values_list('deleted_at', flat=True).first()


class RolePrivilegeManager(models.Manager):
    """Manager for RolePrivilege queries."""

    def for_role(self, role_id):
        return self.filter(role_id=role_id)

    def for_roles(self, role_ids):
        return self.filter(role_id__in=role_ids)


class RolePrivilege(AssociationModel):
    """
    A privilege granted by a role at a depth mask.

    The mask is an OR of Basic=1, Local=2, Deep=4, Global=8.
    """

    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_privileges',
        db_index=True,
        help_text="Role granting the privilege"
    )
    privilege = models.ForeignKey(
        Privilege,
        on_delete=models.CASCADE,
        related_name='role_privileges',
        db_index=True,
        help_text="Privilege being granted"
    )
    depth_mask = models.IntegerField(
        default=BASIC,
        help_text="OR of depth flags granted"
    )

    objects = RolePrivilegeManager()

    class Meta:
        db_table = 'role_privileges'
        unique_together = [('role', 'privilege')]

    def __str__(self):
        return f"{self.role_id} -> {self.privilege_id} [{self.depth_mask}]"


class PrincipalRoleManager(models.Manager):
    """Manager for PrincipalRole queries."""

    def for_principal(self, principal_type, principal_id):
        return self.filter(principal_type=principal_type, principal_id=principal_id)

    def for_roles(self, role_ids):
        return self.filter(role_id__in=role_ids)


class PrincipalRole(AssociationModel):
    """A role assigned to a user or team."""

    principal_type = models.CharField(
        max_length=20,
        choices=PRINCIPAL_TYPE_CHOICES,
        db_index=True,
        help_text="Type of principal holding the role"
    )
    principal_id = models.UUIDField(
        db_index=True,
        help_text="ID of the principal holding the role"
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='assignments',
        db_index=True,
        help_text="Assigned role"
    )

    objects = PrincipalRoleManager()

    class Meta:
        db_table = 'principal_roles'
        unique_together = [('principal_type', 'principal_id', 'role')]
        indexes = [
            models.Index(fields=['principal_type', 'principal_id']),
        ]

    def __str__(self):
        return f"{self.principal_type}:{self.principal_id} -> {self.role_id}"


class AccessGrantManager(models.Manager):
    """Manager for AccessGrant queries."""

    def for_record(self, entity_name, record_id):
        return self.filter(entity_name=entity_name, record_id=record_id)

    def for_principal(self, principal_type, principal_id):
        return self.filter(principal_type=principal_type, principal_id=principal_id)


class AccessGrant(AssociationModel):
    """
    Explicit shared access to one record for one principal.

    Independent of roles: the access mask is an OR of access-right bits.
    """

    principal_type = models.CharField(
        max_length=20,
        choices=PRINCIPAL_TYPE_CHOICES,
        help_text="Type of principal the record is shared with"
    )
    principal_id = models.UUIDField(
        db_index=True,
        help_text="ID of the principal the record is shared with"
    )
    entity_name = models.CharField(
        max_length=100,
        help_text="Logical name of the shared record's type"
    )
    record_id = models.UUIDField(
        db_index=True,
        help_text="ID of the shared record"
    )
    access_mask = models.IntegerField(
        default=0,
        help_text="OR of granted access-right bits"
    )

    objects = AccessGrantManager()

    class Meta:
        db_table = 'access_grants'
        unique_together = [('entity_name', 'record_id', 'principal_type', 'principal_id')]
        indexes = [
            models.Index(fields=['entity_name', 'record_id']),
        ]

    def __str__(self):
        return f"{self.principal_type}:{self.principal_id} on {self.entity_name}:{self.record_id}"


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries."""

    def by_action(self, action):
        """Get audit logs for a specific action."""
        return self.filter(action=action)


class AuditLog(BaseModel):
    """
    Audit trail for role, privilege, assignment and cascade changes.
    """

    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g., 'role_created', 'shadow_roles_removed')"
    )
    actor_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Principal who performed the action (null for system actions)"
    )
    target_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of target entity (e.g., 'Role', 'BusinessUnit')"
    )
    target_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of target entity"
    )
    diff = models.JSONField(
        default=dict,
        blank=True,
        help_text="Before/after changes in JSON format"
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context metadata"
    )

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['target_type', 'target_id']),
        ]

    def __str__(self):
        actor = self.actor_id or 'System'
        return f"{actor} - {self.action}"

    @classmethod
    def log_action(cls, action, actor_id=None, target_type=None, target_id=None,
                   diff=None, metadata=None):
        """
        Convenience method to create audit log entry.

        Args:
            action: Action being performed
            actor_id: Principal performing the action (None for system)
            target_type: Type of target entity
            target_id: ID of target entity
            diff: Before/after changes
            metadata: Additional context

        Returns:
            AuditLog instance, or None if the entry could not be written
        """
        log_data = {
            'action': action,
            'actor_id': actor_id,
            'target_type': target_type or '',
            'target_id': target_id,
            'diff': diff or {},
            'metadata': metadata or {},
        }

        try:
            return cls.objects.create(**log_data)
        except DatabaseError as e:
            # Audit logging must not break the operation being audited
            logger.error(
                f"Failed to create audit log: {str(e)}",
                extra={'action': action, 'target_id': str(target_id) if target_id else None},
                exc_info=True
            )
            return None
