"""
Shared access store: explicit per-record grants independent of roles.
"""
import logging
from typing import List, Tuple

from apps.security.context import PrincipalRef
from apps.security.models import AccessGrant, AuditLog

logger = logging.getLogger(__name__)


class AccessGrantService:
    """
    Service for sharing records with principals.

    Records are addressed by ``(entity_name, record_id)``; masks are ORs of
    access-right bits.
    """

    @classmethod
    def grant_access(cls, entity_name: str, record_id, principal: PrincipalRef, access_mask: int,
                     actor_id=None) -> AccessGrant:
        """
        Share a record, adding ``access_mask`` to any existing grant.

        Returns:
            The AccessGrant holding the combined mask
        """
        grant, created = AccessGrant.objects.get_or_create(
            entity_name=entity_name,
            record_id=record_id,
            principal_type=principal.principal_type,
            principal_id=principal.id,
            defaults={'access_mask': access_mask},
        )
        if not created and (grant.access_mask | access_mask) != grant.access_mask:
            grant.access_mask |= access_mask
            grant.save(update_fields=['access_mask', 'updated_at'])

        AuditLog.log_action(
            action='access_granted',
            actor_id=actor_id,
            target_type=entity_name,
            target_id=record_id,
            metadata={'principal': str(principal), 'access_mask': grant.access_mask}
        )
        return grant

    @classmethod
    def modify_access(cls, entity_name: str, record_id, principal: PrincipalRef, access_mask: int,
                      actor_id=None) -> AccessGrant:
        """Replace the mask of a principal's grant on a record (creating it if absent)."""
        grant, _ = AccessGrant.objects.update_or_create(
            entity_name=entity_name,
            record_id=record_id,
            principal_type=principal.principal_type,
            principal_id=principal.id,
            defaults={'access_mask': access_mask},
        )
        AuditLog.log_action(
            action='access_modified',
            actor_id=actor_id,
            target_type=entity_name,
            target_id=record_id,
            metadata={'principal': str(principal), 'access_mask': access_mask}
        )
        return grant

    @classmethod
    def revoke_access(cls, entity_name: str, record_id, principal: PrincipalRef, actor_id=None) -> bool:
        """Remove a principal's grant on a record. Returns whether one existed."""
        removed, _ = AccessGrant.objects.for_record(entity_name, record_id).filter(
            principal_type=principal.principal_type,
            principal_id=principal.id,
        ).delete()
        if removed:
            AuditLog.log_action(
                action='access_revoked',
                actor_id=actor_id,
                target_type=entity_name,
                target_id=record_id,
                metadata={'principal': str(principal)}
            )
        return bool(removed)

    @classmethod
    def retrieve_principal_access(cls, entity_name: str, record_id, principal: PrincipalRef) -> int:
        """Access mask a principal was granted on a record (0 if none)."""
        mask = AccessGrant.objects.for_record(entity_name, record_id).filter(
            principal_type=principal.principal_type,
            principal_id=principal.id,
        ).values_list('access_mask', flat=True).first()
        return mask or 0

    @classmethod
    def retrieve_shared_principals(cls, entity_name: str, record_id) -> List[Tuple[PrincipalRef, int]]:
        """Every principal a record is shared with, with its access mask."""
        return [
            (PrincipalRef(principal_type, principal_id), access_mask)
            for principal_type, principal_id, access_mask in AccessGrant.objects.for_record(
                entity_name, record_id
            ).order_by('created_at').values_list('principal_type', 'principal_id', 'access_mask')
        ]
