"""
Security signals keeping roles and privileges in step with the hierarchy.

- New root roles are copied into every other business unit
- New business units receive a copy of every root role
- Deleted business units lose their shadow roles and the assignments on them
- Users and teams moving business units lose their role assignments
- New entity definitions get their standard privileges
"""
import logging
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from apps.organizations.models import BusinessUnit, SystemUser, Team
from apps.organizations.signals import business_unit_deleting

logger = logging.getLogger(__name__)


@receiver(post_save, sender='security.Role')
def propagate_role_on_creation(sender, instance, created, **kwargs):
    """
    Create shadow copies of a new root role.

    Roles saved with ``_defer_lifecycle`` set are propagated by the caller
    once their privileges are in place.
    """
    if not created or getattr(instance, '_defer_lifecycle', False):
        return

    from apps.security.services.role_lifecycle import RoleLifecycleManager
    RoleLifecycleManager().on_role_created(instance)


@receiver(post_save, sender=BusinessUnit)
def copy_roles_on_business_unit_creation(sender, instance, created, **kwargs):
    """Shadow-copy every root role into a new business unit."""
    if not created:
        return

    from apps.security.services.role_lifecycle import RoleLifecycleManager
    RoleLifecycleManager().on_business_unit_created(instance)


@receiver(business_unit_deleting)
def remove_roles_on_business_unit_deletion(sender, business_unit_id, **kwargs):
    """Remove the shadow roles (and their assignments) of a business unit being deleted."""
    from apps.security.services.role_lifecycle import RoleLifecycleManager
    RoleLifecycleManager().on_business_unit_deleted(business_unit_id)


@receiver(pre_save, sender=SystemUser)
@receiver(pre_save, sender=Team)
def remove_roles_on_business_unit_change(sender, instance, **kwargs):
    """Drop every role assignment of a user or team that moves to another business unit."""
    if instance._state.adding:
        return

    previous_business_unit_id = sender.objects_with_deleted.filter(
        id=instance.id
    ).values_list('business_unit_id', flat=True).first()

    if previous_business_unit_id is None or previous_business_unit_id == instance.business_unit_id:
        return

    logger.info(
        "Principal moved business units, removing role assignments",
        extra={
            'principal_type': instance.principal_type,
            'principal_id': str(instance.id),
            'from_business_unit_id': str(previous_business_unit_id),
            'to_business_unit_id': str(instance.business_unit_id),
        }
    )

    from apps.security.services.role_lifecycle import RoleLifecycleManager
    RoleLifecycleManager().on_principal_business_unit_changed(instance.principal_type, instance.id)


@receiver(post_save, sender='records.EntityDefinition')
def create_privileges_on_entity_definition(sender, instance, created, **kwargs):
    """Create the standard privileges of a newly defined record type."""
    if not created:
        return

    from apps.security.services.privilege_catalog import PrivilegeCatalog
    PrivilegeCatalog().ensure_standard_privileges(instance.logical_name)
