"""
Security configuration.

A SecurityConfiguration is built from ``settings.SECURITY`` once per process
and stays mutable afterwards, so tests and callers can flip switches at
runtime. Services take a configuration explicitly and fall back to the
process-wide one.
"""
import uuid
from dataclasses import dataclass, field, fields, replace
from typing import Optional

from django.conf import settings

from apps.security.constants import ADMINISTRATOR_ROLE_ID


@dataclass
class SecurityConfiguration:
    """Switches controlling how the access decision engine enforces security."""

    security_enabled: bool = False
    enforce_record_level_security: bool = False
    enforce_field_level_security: bool = False
    enforce_privilege_depth: bool = False
    use_cross_business_unit_assignment: bool = False
    administrator_role_id: uuid.UUID = field(default=ADMINISTRATOR_ROLE_ID)
    auto_grant_administrator_privileges: bool = True
    inherit_team_roles: bool = False
    strict_field_security: bool = False

    def __post_init__(self):
        if not isinstance(self.administrator_role_id, uuid.UUID):
            self.administrator_role_id = uuid.UUID(str(self.administrator_role_id))

    @classmethod
    def from_settings(cls) -> 'SecurityConfiguration':
        """
        Build a configuration from ``settings.SECURITY``.

        Unknown keys are ignored; missing keys keep their defaults.
        """
        configured = getattr(settings, 'SECURITY', None) or {}
        known = {f.name for f in fields(cls)}
        values = {
            key.lower(): value
            for key, value in configured.items()
            if key.lower() in known and value is not None
        }
        return cls(**values)

    @classmethod
    def fully_secured(cls, **overrides) -> 'SecurityConfiguration':
        """Every enforcement switch on."""
        return replace(cls(
            security_enabled=True,
            enforce_record_level_security=True,
            enforce_field_level_security=True,
            enforce_privilege_depth=True,
        ), **overrides)

    @classmethod
    def basic_security(cls, **overrides) -> 'SecurityConfiguration':
        """Security on, but only privilege checks without record scoping."""
        return replace(cls(security_enabled=True), **overrides)


_configuration: Optional[SecurityConfiguration] = None


def get_security_configuration() -> SecurityConfiguration:
    """Return the process-wide configuration, building it on first use."""
    global _configuration
    if _configuration is None:
        _configuration = SecurityConfiguration.from_settings()
    return _configuration


def set_security_configuration(configuration: Optional[SecurityConfiguration]):
    """Replace the process-wide configuration (None rebuilds it from settings)."""
    global _configuration
    _configuration = configuration
