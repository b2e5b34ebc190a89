"""
Privilege assignment evaluator.

Answers "does this principal hold this privilege, and at what depth" from
the roles assigned to the principal. Reads current ORM state on every call.
"""
import logging
import uuid
from typing import Optional, Set

from django.db.models import Q

from apps.organizations.models import TeamMembership, SYSTEM_USER, TEAM
from apps.organizations.services import BusinessUnitService
from apps.security.configuration import SecurityConfiguration, get_security_configuration
from apps.security.constants import BASIC, LOCAL, DEEP, GLOBAL
from apps.security.context import PrincipalRef
from apps.security.models import PrincipalRole, Role, RolePrivilege

logger = logging.getLogger(__name__)


def depth_or_wider(depth_mask: int, minimum_depth: int) -> bool:
    """True if the mask holds ``minimum_depth`` or any wider depth."""
    return (depth_mask & ~(minimum_depth - 1)) != 0


def covers(depth_mask: int, required_mask: int) -> bool:
    """True if every bit of ``required_mask`` is set in ``depth_mask``."""
    return (depth_mask & required_mask) == required_mask


class PrivilegeEvaluator:
    """
    Service resolving a principal's roles and the privilege depths they grant.
    """

    def __init__(self, configuration: Optional[SecurityConfiguration] = None):
        self._configuration = configuration

    @property
    def configuration(self) -> SecurityConfiguration:
        return self._configuration or get_security_configuration()

    def role_ids_for(self, principal: PrincipalRef) -> Set[uuid.UUID]:
        """
        Resolve the live role ids held by a principal.

        Direct assignments always count. Roles of the teams a user belongs
        to count only when ``inherit_team_roles`` is enabled.
        """
        assignments = Q(principal_type=principal.principal_type, principal_id=principal.id)

        if principal.principal_type == SYSTEM_USER and self.configuration.inherit_team_roles:
            team_ids = TeamMembership.objects.filter(user_id=principal.id).values_list('team_id', flat=True)
            assignments |= Q(principal_type=TEAM, principal_id__in=list(team_ids))

        return set(
            PrincipalRole.objects.filter(assignments).filter(
                role__deleted_at__isnull=True
            ).values_list('role_id', flat=True)
        )

    def _depth_masks(self, principal: PrincipalRef, privilege_name: str):
        role_ids = self.role_ids_for(principal)
        if not role_ids:
            return []
        return list(
            RolePrivilege.objects.for_roles(role_ids).filter(
                privilege__name=privilege_name
            ).values_list('depth_mask', flat=True)
        )

    def has_privilege(self, principal: PrincipalRef, privilege_name: str, required_mask: int = BASIC) -> bool:
        """
        Check that some role grants every depth bit in ``required_mask``.

        Args:
            principal: Principal to check
            privilege_name: Privilege name (e.g., 'prvReadAccount')
            required_mask: Depth bits that must all be granted by one role
        """
        return any(covers(mask, required_mask) for mask in self._depth_masks(principal, privilege_name))

    def holds_privilege(self, principal: PrincipalRef, privilege_name: str, minimum_depth: int = BASIC) -> bool:
        """Check that some role grants the privilege at ``minimum_depth`` or wider."""
        return any(
            depth_or_wider(mask, minimum_depth)
            for mask in self._depth_masks(principal, privilege_name)
        )

    def granted_depth_mask(self, principal: PrincipalRef, privilege_name: str) -> int:
        """OR of the depth masks all of the principal's roles grant for a privilege."""
        combined = 0
        for mask in self._depth_masks(principal, privilege_name):
            combined |= mask
        return combined

    def has_privilege_for_record(self, principal: PrincipalRef, privilege_name: str, record,
                                 base_depth: int = BASIC) -> bool:
        """
        Check a privilege against a specific record, cheapest scope first.

        1. Owner of the record, holding Basic or wider
        2. Record in the principal's business unit, holding Local or wider
        3. Record in a descendant business unit, holding Deep or wider
        4. Holding Global

        ``base_depth`` raises the floor: scopes narrower than it are skipped.

        Returns:
            False when the principal does not exist or holds nothing that applies
        """
        principal_business_unit_id = BusinessUnitService.business_unit_of(
            principal.principal_type, principal.id
        )
        if principal_business_unit_id is None:
            return False

        mask = self.granted_depth_mask(principal, privilege_name)
        if mask == 0:
            return False

        def holds(depth):
            return depth >= base_depth and depth_or_wider(mask, depth)

        if holds(BASIC) and record.owner is not None and record.owner == principal:
            return True

        record_business_unit_id = record.owning_business_unit_id
        if record_business_unit_id is not None:
            if holds(LOCAL) and record_business_unit_id == principal_business_unit_id:
                return True
            if holds(DEEP) and BusinessUnitService.is_descendant_of(
                record_business_unit_id, principal_business_unit_id
            ):
                return True

        return covers(mask, GLOBAL)

    def is_administrator(self, principal: Optional[PrincipalRef]) -> bool:
        """Check whether a principal holds the administrator role or one of its shadows."""
        if principal is None:
            return False
        role_ids = self.role_ids_for(principal)
        if not role_ids:
            return False
        administrator_role_id = self.configuration.administrator_role_id
        return Role.objects.filter(id__in=role_ids).filter(
            Q(id=administrator_role_id) | Q(root_role_id=administrator_role_id)
        ).exists()
