"""
Business unit hierarchy services.

Implements:
- Ancestry checks over the parent chain
- Lazy bootstrap of the default organization and root business unit
- Business unit creation with hierarchy validation
- Principal -> business unit resolution
"""
import logging
import uuid
from typing import Optional, Union

from apps.core.exceptions import InvalidOperation, NotFound
from apps.organizations.models import (
    Organization, BusinessUnit, SystemUser, Team, SYSTEM_USER, TEAM
)

logger = logging.getLogger(__name__)

DEFAULT_ORGANIZATION_NAME = 'Default Organization'
DEFAULT_BUSINESS_UNIT_NAME = 'Default Business Unit'


def _as_uuid(value) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    if isinstance(value, BusinessUnit):
        return value.id
    return uuid.UUID(str(value))


class BusinessUnitService:
    """
    Service for walking and growing the business unit tree.
    """

    @classmethod
    def is_descendant_of(cls, candidate_id, ancestor_id) -> bool:
        """
        Check whether a business unit equals or descends from another.

        Walks parent links upward from the candidate. Stops at the root, and
        stops (returning False) if malformed data makes the chain loop.

        Args:
            candidate_id: Business unit (or id) to start from
            ancestor_id: Business unit (or id) to look for

        Returns:
            True if candidate == ancestor or ancestor is on candidate's parent chain
        """
        candidate_id = _as_uuid(candidate_id)
        ancestor_id = _as_uuid(ancestor_id)
        if candidate_id is None or ancestor_id is None:
            return False

        visited = set()
        current_id = candidate_id
        while current_id is not None:
            if current_id == ancestor_id:
                return True
            if current_id in visited:
                logger.warning(
                    "Cycle detected in business unit hierarchy",
                    extra={
                        'business_unit_id': str(current_id),
                        'start_id': str(candidate_id),
                    }
                )
                return False
            visited.add(current_id)
            current_id = BusinessUnit.objects_with_deleted.filter(
                id=current_id
            ).values_list('parent_id', flat=True).first()

        return False

    @classmethod
    def ensure_root_organization(cls) -> Organization:
        """Return the first organization, creating the default one if none exists."""
        organization = Organization.objects.order_by('created_at').first()
        if organization is not None:
            return organization

        organization = Organization.objects.create(name=DEFAULT_ORGANIZATION_NAME)
        logger.info(
            "Bootstrapped default organization",
            extra={'organization_id': str(organization.id)}
        )
        return organization

    @classmethod
    def ensure_root_business_unit(cls, organization: Optional[Organization] = None) -> BusinessUnit:
        """
        Return the organization's root business unit, creating it if absent.

        Args:
            organization: Organization to look in (defaults to the root organization)
        """
        organization = organization or cls.ensure_root_organization()

        root = BusinessUnit.objects.roots().filter(organization=organization).first()
        if root is not None:
            return root

        root = BusinessUnit.objects.create(
            name=DEFAULT_BUSINESS_UNIT_NAME,
            organization=organization,
        )
        logger.info(
            "Bootstrapped root business unit",
            extra={
                'business_unit_id': str(root.id),
                'organization_id': str(organization.id),
            }
        )
        return root

    @classmethod
    def create_business_unit(cls, name: str, parent: Union[BusinessUnit, uuid.UUID, str],
                             organization: Optional[Organization] = None) -> BusinessUnit:
        """
        Create a child business unit.

        Args:
            name: Business unit name
            parent: Parent business unit (or its id)
            organization: Owning organization (defaults to the parent's)

        Returns:
            The created BusinessUnit

        Raises:
            NotFound: If the parent does not exist
            InvalidOperation: If the parent belongs to a different organization
        """
        if not isinstance(parent, BusinessUnit):
            parent_id = parent
            parent = BusinessUnit.objects.filter(id=parent_id).first()
            if parent is None:
                raise NotFound(
                    'Parent business unit not found.',
                    details={'business_unit_id': str(parent_id)}
                )

        organization = organization or parent.organization
        if parent.organization_id != organization.id:
            raise InvalidOperation(
                'Parent business unit belongs to a different organization.',
                details={
                    'parent_id': str(parent.id),
                    'organization_id': str(organization.id),
                }
            )

        business_unit = BusinessUnit(name=name, organization=organization, parent=parent)
        business_unit.full_clean()
        business_unit.save()
        return business_unit

    @classmethod
    def business_unit_of(cls, principal_type: str, principal_id) -> Optional[uuid.UUID]:
        """
        Resolve the business unit a principal belongs to.

        Returns:
            The business unit id, or None when the principal does not exist
        """
        if principal_type == SYSTEM_USER:
            model = SystemUser
        elif principal_type == TEAM:
            model = Team
        else:
            return None

        return model.objects.filter(id=principal_id).values_list(
            'business_unit_id', flat=True
        ).first()
