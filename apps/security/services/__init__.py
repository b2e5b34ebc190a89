"""
Services for privilege-based access control.
"""
from .privilege_catalog import PrivilegeCatalog, privilege_name, to_pascal_case
from .role_lifecycle import RoleLifecycleManager
from .evaluator import PrivilegeEvaluator
from .access_grants import AccessGrantService
from .field_security import FieldSecurityPolicy
from .engine import AccessDecisionEngine, Decision

__all__ = [
    'PrivilegeCatalog',
    'privilege_name',
    'to_pascal_case',
    'RoleLifecycleManager',
    'PrivilegeEvaluator',
    'AccessGrantService',
    'FieldSecurityPolicy',
    'AccessDecisionEngine',
    'Decision',
]
