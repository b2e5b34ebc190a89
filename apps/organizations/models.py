"""
Organization models: the business unit tree and the principals placed in it.

Implements:
- Organization (top-level tenant of the hierarchy)
- BusinessUnit (tree node with a lookup link to its parent)
- SystemUser and Team (principals that can hold roles)
- TeamMembership (user <-> team association)
"""
import logging
from django.core.exceptions import ValidationError
from django.db import models
from apps.core.exceptions import InvalidOperation
from apps.core.models import AssociationModel, BaseModel, BaseModelManager
from apps.organizations.signals import business_unit_deleting

logger = logging.getLogger(__name__)

SYSTEM_USER = 'systemuser'
TEAM = 'team'

PRINCIPAL_TYPE_CHOICES = [
    (SYSTEM_USER, 'System User'),
    (TEAM, 'Team'),
]


class Organization(BaseModel):
    """Top-level container for business units."""

    name = models.CharField(
        max_length=160,
        help_text="Organization name"
    )
    is_disabled = models.BooleanField(
        default=False,
        help_text="Whether the organization is disabled"
    )

    class Meta:
        db_table = 'organizations'
        ordering = ['created_at']

    def __str__(self):
        return self.name


class BusinessUnitManager(BaseModelManager):
    """Manager for business unit queries."""

    def roots(self):
        """Business units without a parent (one per organization)."""
        return self.filter(parent__isnull=True)

    def for_organization(self, organization):
        """Business units belonging to an organization."""
        return self.filter(organization=organization)

    def children_of(self, business_unit):
        """Direct children of a business unit."""
        return self.filter(parent=business_unit)


class BusinessUnit(BaseModel):
    """
    A node in the organizational hierarchy.

    Business units own records, roles and principals. The parent link is a
    lookup relation; exactly one business unit per organization has no parent.
    """

    name = models.CharField(
        max_length=160,
        help_text="Business unit name"
    )
    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='business_units',
        db_index=True,
        help_text="Organization this business unit belongs to"
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='children',
        help_text="Parent business unit (null for the root)"
    )
    is_disabled = models.BooleanField(
        default=False,
        help_text="Whether the business unit is disabled"
    )

    objects = BusinessUnitManager()

    class Meta:
        db_table = 'business_units'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['organization', 'parent']),
        ]

    def __str__(self):
        return self.name

    @property
    def is_root(self):
        return self.parent_id is None

    def _check_single_root(self):
        other_roots = BusinessUnit.objects.filter(
            organization_id=self.organization_id,
            parent__isnull=True
        ).exclude(id=self.id)
        if other_roots.exists():
            raise ValidationError({
                'parent': 'Organization already has a root business unit.'
            })

    def clean(self):
        """Reject a second root per organization and parent chains that loop back."""
        if self.parent_id is None:
            self._check_single_root()
            return

        visited = set()
        current_id = self.parent_id
        while current_id is not None:
            if current_id == self.id:
                raise ValidationError({
                    'parent': 'Business unit cannot be its own ancestor.'
                })
            if current_id in visited:
                break
            visited.add(current_id)
            current_id = BusinessUnit.objects_with_deleted.filter(
                id=current_id
            ).values_list('parent_id', flat=True).first()

    def save(self, *args, **kwargs):
        # Exactly one root per organization
        if self.parent_id is None:
            self._check_single_root()
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        """
        Soft delete the business unit after notifying receivers.

        The root business unit cannot be deleted.
        """
        if self.is_root:
            raise InvalidOperation(
                'The root business unit cannot be deleted.',
                details={'business_unit_id': str(self.id)}
            )

        business_unit_deleting.send(sender=self.__class__, business_unit_id=self.id)
        super().delete(using=using, keep_parents=keep_parents)

        logger.info(
            "Business unit deleted",
            extra={'business_unit_id': str(self.id), 'business_unit_name': self.name}
        )


class SystemUser(BaseModel):
    """A user principal placed in one business unit."""

    full_name = models.CharField(
        max_length=200,
        help_text="Display name"
    )
    email = models.EmailField(
        blank=True,
        help_text="Primary e-mail address"
    )
    business_unit = models.ForeignKey(
        BusinessUnit,
        on_delete=models.PROTECT,
        related_name='users',
        db_index=True,
        help_text="Business unit the user belongs to"
    )
    is_disabled = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the user is disabled"
    )

    class Meta:
        db_table = 'system_users'
        ordering = ['created_at']

    def __str__(self):
        return self.full_name

    @property
    def principal_type(self):
        return SYSTEM_USER


class Team(BaseModel):
    """A team principal; members are system users."""

    name = models.CharField(
        max_length=160,
        help_text="Team name"
    )
    business_unit = models.ForeignKey(
        BusinessUnit,
        on_delete=models.PROTECT,
        related_name='teams',
        db_index=True,
        help_text="Business unit the team belongs to"
    )
    members = models.ManyToManyField(
        SystemUser,
        through='TeamMembership',
        related_name='teams',
        blank=True
    )

    class Meta:
        db_table = 'teams'
        ordering = ['created_at']

    def __str__(self):
        return self.name

    @property
    def principal_type(self):
        return TEAM


class TeamMembership(AssociationModel):
    """Association between a team and a system user."""

    team = models.ForeignKey(
        Team,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    user = models.ForeignKey(
        SystemUser,
        on_delete=models.CASCADE,
        related_name='team_memberships'
    )

    class Meta:
        db_table = 'team_memberships'
        unique_together = [('team', 'user')]

    def __str__(self):
        return f"{self.user_id} in {self.team_id}"
