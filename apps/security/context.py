"""
Caller identity for authorization decisions.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from apps.organizations.models import SYSTEM_USER, TEAM


@dataclass(frozen=True)
class PrincipalRef:
    """A reference to a principal by type and id."""

    principal_type: str
    id: uuid.UUID

    def __post_init__(self):
        if self.principal_type not in (SYSTEM_USER, TEAM):
            raise ValueError(f"Unknown principal type: {self.principal_type}")
        if not isinstance(self.id, uuid.UUID):
            object.__setattr__(self, 'id', uuid.UUID(str(self.id)))

    @classmethod
    def user(cls, user_id) -> 'PrincipalRef':
        return cls(SYSTEM_USER, user_id)

    @classmethod
    def team(cls, team_id) -> 'PrincipalRef':
        return cls(TEAM, team_id)

    @classmethod
    def of(cls, principal) -> 'PrincipalRef':
        """Build a reference from a SystemUser or Team instance."""
        return cls(principal.principal_type, principal.id)

    def __str__(self):
        return f"{self.principal_type}:{self.id}"


@dataclass(frozen=True)
class CallerContext:
    """
    The real caller plus an optional impersonated identity.

    The effective identity (the one whose privileges are evaluated) is the
    impersonated one when present, otherwise the caller.
    """

    caller: Optional[PrincipalRef]
    impersonated: Optional[PrincipalRef] = None

    @property
    def effective(self) -> Optional[PrincipalRef]:
        return self.impersonated if self.impersonated is not None else self.caller

    @property
    def is_impersonating(self) -> bool:
        return (
            self.caller is not None
            and self.impersonated is not None
            and self.impersonated != self.caller
        )

    @classmethod
    def for_user(cls, user_id, impersonate_user_id=None) -> 'CallerContext':
        return cls(
            caller=PrincipalRef.user(user_id),
            impersonated=PrincipalRef.user(impersonate_user_id) if impersonate_user_id else None,
        )
