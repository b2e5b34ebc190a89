"""
Record store models.

Implements:
- EntityDefinition (metadata registry of record types)
- Record (generic owned record with JSON attributes)
"""
from django.db import models
from apps.core.models import BaseModel, BaseModelManager
from apps.organizations.models import PRINCIPAL_TYPE_CHOICES

OWNERSHIP_USER = 'user'
OWNERSHIP_ORGANIZATION = 'organization'

OWNERSHIP_CHOICES = [
    (OWNERSHIP_USER, 'User or Team'),
    (OWNERSHIP_ORGANIZATION, 'Organization'),
]

STATE_ACTIVE = 0
STATE_INACTIVE = 1

STATE_CHOICES = [
    (STATE_ACTIVE, 'Active'),
    (STATE_INACTIVE, 'Inactive'),
]


class EntityDefinition(BaseModel):
    """
    A record type known to the platform.

    Saving a new definition creates its standard privileges.
    """

    logical_name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Logical name (e.g., 'account', 'new_customentity')"
    )
    display_name = models.CharField(
        max_length=200,
        blank=True,
        help_text="Human-readable name"
    )
    ownership_type = models.CharField(
        max_length=20,
        choices=OWNERSHIP_CHOICES,
        default=OWNERSHIP_USER,
        help_text="Whether records are owned by principals or by the organization"
    )

    class Meta:
        db_table = 'entity_definitions'
        ordering = ['logical_name']

    def __str__(self):
        return self.logical_name


class RecordManager(BaseModelManager):
    """Manager for Record queries."""

    def of_type(self, entity_name):
        return self.filter(entity_name=entity_name)

    def owned_by(self, principal_type, principal_id):
        return self.filter(owner_type=principal_type, owner_id=principal_id)


class Record(BaseModel):
    """A business record owned by a principal and a business unit."""

    entity_name = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Logical name of the record type"
    )
    owner_type = models.CharField(
        max_length=20,
        choices=PRINCIPAL_TYPE_CHOICES,
        null=True,
        blank=True,
        help_text="Type of owning principal (null for organization-owned records)"
    )
    owner_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of owning principal"
    )
    owning_business_unit = models.ForeignKey(
        'organizations.BusinessUnit',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='records',
        help_text="Business unit that owns the record"
    )
    state_code = models.IntegerField(
        choices=STATE_CHOICES,
        default=STATE_ACTIVE,
        help_text="Record state"
    )
    attributes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Record attribute values"
    )

    objects = RecordManager()

    class Meta:
        db_table = 'records'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['entity_name', 'owning_business_unit']),
            models.Index(fields=['owner_type', 'owner_id']),
        ]

    def __str__(self):
        return f"{self.entity_name}:{self.id}"
