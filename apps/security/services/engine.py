"""
Access decision engine.

Decides, per operation, whether the calling principal may act on the target
record. Evaluation order:

1. Role-assignment validation (always applies)
2. Security disabled -> allow
3. No caller -> deny
4. Impersonation guard on the real caller
5. Administrator bypass for the effective identity
6. Per-operation handler (unknown operations are denied)
7. Depth-scoped privilege check, then shared-access fallback
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from apps.core.exceptions import AuthorizationDenied, NotFound
from apps.core.logging import SecurityLogger
from apps.records.store import RecordStore, SecuredRecord
from apps.security.configuration import SecurityConfiguration, get_security_configuration
from apps.security.constants import (
    ACCESS_RIGHT_NAMES, ACT_ON_BEHALF_PRIVILEGE, APPEND, APPEND_TO, BASIC, CREATE,
    GLOBAL, READ, ROLE_ASSIGNMENT_RELATIONSHIPS, SYSTEM_ENTITIES,
)
from apps.security.context import CallerContext, PrincipalRef
from apps.security.operations import (
    AssociateOperation, Operation, OperationKind, RetrieveMultipleOperation,
)
from apps.security.services.access_grants import AccessGrantService
from apps.security.services.evaluator import PrivilegeEvaluator
from apps.security.services.field_security import FieldSecurityPolicy
from apps.security.services.privilege_catalog import privilege_name
from apps.security.services.role_lifecycle import RoleLifecycleManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check, with diagnostics."""

    allowed: bool
    reason: str
    principal_id: Optional[uuid.UUID] = None
    access_right: Optional[str] = None
    entity_name: Optional[str] = None
    record_id: Optional[uuid.UUID] = None

    @classmethod
    def allow(cls, reason: str, **diagnostics) -> 'Decision':
        return cls(True, reason, **diagnostics)

    @classmethod
    def deny(cls, reason: str, **diagnostics) -> 'Decision':
        return cls(False, reason, **diagnostics)


class AccessDecisionEngine:
    """
    Entry point for authorization decisions.

    Usage:
        engine = AccessDecisionEngine()
        decision = engine.authorize(CallerContext.for_user(user.id),
                                    UpdateOperation('account', record_id=record.id))
    """

    # One handler per operation kind
    HANDLERS = {
        OperationKind.CREATE: '_authorize_create',
        OperationKind.RETRIEVE: '_authorize_retrieve',
        OperationKind.RETRIEVE_MULTIPLE: '_authorize_retrieve_multiple',
        OperationKind.UPDATE: '_authorize_update',
        OperationKind.DELETE: '_authorize_record_operation',
        OperationKind.ASSIGN: '_authorize_record_operation',
        OperationKind.SET_STATE: '_authorize_record_operation',
        OperationKind.SHARE: '_authorize_record_operation',
        OperationKind.ASSOCIATE: '_authorize_associate',
    }

    def __init__(self, configuration: Optional[SecurityConfiguration] = None,
                 evaluator: Optional[PrivilegeEvaluator] = None,
                 field_security: Optional[FieldSecurityPolicy] = None,
                 role_lifecycle: Optional[RoleLifecycleManager] = None):
        self._configuration = configuration
        self.evaluator = evaluator or PrivilegeEvaluator(configuration)
        self.field_security = field_security or FieldSecurityPolicy(configuration)
        self.role_lifecycle = role_lifecycle or RoleLifecycleManager(configuration)

    @property
    def configuration(self) -> SecurityConfiguration:
        return self._configuration or get_security_configuration()

    # Public API

    def authorize(self, context: CallerContext, operation: Operation) -> Decision:
        """
        Decide whether the caller may perform an operation.

        Args:
            context: Caller and optional impersonated identity
            operation: The operation to authorize

        Returns:
            Decision (allowed flag, reason and diagnostics)

        Raises:
            NotFound: If the target record does not exist
            InvalidOperation: If a role assignment is not allowed
        """
        if isinstance(operation, AssociateOperation):
            self._validate_role_assignments(operation)

        decision = self._gate(context, operation)
        if decision is not None:
            return decision

        handler_name = self.HANDLERS.get(getattr(operation, 'kind', None))
        if not isinstance(operation, Operation) or handler_name is None:
            return self._deny(
                f"Unsupported operation: {operation.__class__.__name__}", context.effective, operation
            )

        decision = getattr(self, handler_name)(context, operation)
        if not decision.allowed:
            SecurityLogger.log_access_denied(
                decision.principal_id, decision.access_right, decision.entity_name,
                record_id=decision.record_id, reason=decision.reason,
            )
        return decision

    def enforce(self, context: CallerContext, operation: Operation) -> Decision:
        """
        Authorize an operation, raising on denial.

        Raises:
            AuthorizationDenied: If the decision is a denial
        """
        decision = self.authorize(context, operation)
        if not decision.allowed:
            raise AuthorizationDenied(
                decision.reason,
                principal_id=decision.principal_id,
                access_right=decision.access_right,
                entity_name=decision.entity_name,
                record_id=decision.record_id,
            )
        return decision

    def filter_readable(self, context: CallerContext, records: Iterable[SecuredRecord]) -> List[SecuredRecord]:
        """
        Keep only the records the caller may read.

        Post-filter for retrieve-many results: each record goes through the
        same checks as a single retrieve. A denied caller gets nothing back.
        """
        records = list(records)
        if not records:
            return records

        decision = self._gate(context, RetrieveMultipleOperation(records[0].entity_name))
        if decision is not None:
            return records if decision.allowed else []
        if not self.configuration.enforce_record_level_security:
            return records

        principal = context.effective
        return [
            record for record in records
            if record.entity_name in SYSTEM_ENTITIES
            or self._check_record(principal, record, READ).allowed
        ]

    def _gate(self, context: CallerContext, operation) -> Optional[Decision]:
        """Checks that do not depend on the operation. None means keep going."""
        configuration = self.configuration
        if not configuration.security_enabled:
            return Decision.allow('Security is disabled')

        if context.caller is None:
            return self._deny('No caller specified', None, operation)

        entity_name = getattr(operation, 'entity_name', None)

        if context.is_impersonating and not self._may_impersonate(context.caller):
            SecurityLogger.log_impersonation_denied(context.caller.id, context.impersonated.id)
            return Decision.deny(
                'Caller may not act on behalf of another user',
                principal_id=context.caller.id,
                entity_name=entity_name,
            )

        principal = context.effective
        if configuration.auto_grant_administrator_privileges and self.evaluator.is_administrator(principal):
            return Decision.allow('Administrator', principal_id=principal.id, entity_name=entity_name)

        return None

    # Handlers

    def _authorize_create(self, context: CallerContext, operation) -> Decision:
        principal = context.effective
        if operation.entity_name in SYSTEM_ENTITIES or self.configuration.enforce_record_level_security:
            return self._check_privilege(principal, operation.entity_name, CREATE)
        return Decision.allow('Record-level security not enforced', principal_id=principal.id)

    def _authorize_retrieve(self, context: CallerContext, operation) -> Decision:
        if operation.entity_name in SYSTEM_ENTITIES:
            return Decision.allow('Platform tables are readable', principal_id=context.effective.id)
        return self._authorize_record_operation(context, operation)

    def _authorize_retrieve_multiple(self, context: CallerContext, operation) -> Decision:
        return Decision.allow('Query authorized', principal_id=context.effective.id,
                              entity_name=operation.entity_name)

    def _authorize_update(self, context: CallerContext, operation) -> Decision:
        decision = self._authorize_record_operation(context, operation)
        if decision.allowed:
            self.field_security.check(context, operation)
        return decision

    def _authorize_record_operation(self, context: CallerContext, operation) -> Decision:
        principal = context.effective
        if not self.configuration.enforce_record_level_security:
            return Decision.allow('Record-level security not enforced', principal_id=principal.id)
        return self._check_record_by_id(
            principal, operation.entity_name, operation.record_id, operation.access_right
        )

    def _authorize_associate(self, context: CallerContext, operation) -> Decision:
        principal = context.effective
        if operation.relationship in ROLE_ASSIGNMENT_RELATIONSHIPS:
            return Decision.allow('Role assignment validated', principal_id=principal.id,
                                  entity_name=operation.entity_name)

        if not self.configuration.enforce_record_level_security:
            return Decision.allow('Record-level security not enforced', principal_id=principal.id)

        decision = self._check_record_by_id(principal, operation.entity_name, operation.record_id, APPEND)
        if not decision.allowed:
            return decision

        for related in operation.related:
            decision = self._check_record_by_id(principal, related.entity_name, related.id, APPEND_TO)
            if not decision.allowed:
                return decision
        return decision

    # Checks

    def _validate_role_assignments(self, operation) -> None:
        """Hold role assignments to the business-unit rule whatever the caller or configuration."""
        principal_type = ROLE_ASSIGNMENT_RELATIONSHIPS.get(operation.relationship)
        if principal_type is None:
            return
        for related in operation.related:
            if related.entity_name == 'role':
                self.role_lifecycle.validate_role_assignment(
                    related.id, principal_type, operation.record_id
                )

    def _may_impersonate(self, caller: PrincipalRef) -> bool:
        return (
            self.evaluator.is_administrator(caller)
            or self.evaluator.has_privilege(caller, ACT_ON_BEHALF_PRIVILEGE, GLOBAL)
        )

    def _check_privilege(self, principal: PrincipalRef, entity_name: str, access_right: int) -> Decision:
        name = privilege_name(entity_name, access_right)
        diagnostics = {
            'principal_id': principal.id,
            'access_right': ACCESS_RIGHT_NAMES[access_right],
            'entity_name': entity_name,
        }
        if self.evaluator.holds_privilege(principal, name, BASIC):
            return Decision.allow(f"Holds {name}", **diagnostics)
        return Decision.deny(f"Missing privilege {name}", **diagnostics)

    def _check_record_by_id(self, principal: PrincipalRef, entity_name: str, record_id,
                            access_right: int) -> Decision:
        record = RecordStore.get_by_id(entity_name, record_id)
        if record is None:
            raise NotFound(
                f"Record {entity_name} with ID {record_id} not found.",
                details={'entity_name': entity_name, 'record_id': str(record_id)}
            )
        return self._check_record(principal, record, access_right)

    def _check_record(self, principal: PrincipalRef, record: SecuredRecord, access_right: int) -> Decision:
        name = privilege_name(record.entity_name, access_right)
        diagnostics = {
            'principal_id': principal.id,
            'access_right': ACCESS_RIGHT_NAMES[access_right],
            'entity_name': record.entity_name,
            'record_id': record.id,
        }

        if self.configuration.enforce_privilege_depth:
            granted = self.evaluator.has_privilege_for_record(principal, name, record, BASIC)
        else:
            granted = self.evaluator.holds_privilege(principal, name, BASIC)
        if granted:
            return Decision.allow(f"Holds {name}", **diagnostics)

        shared_mask = AccessGrantService.retrieve_principal_access(record.entity_name, record.id, principal)
        if shared_mask & access_right == access_right:
            return Decision.allow('Shared access', **diagnostics)

        return Decision.deny(
            f"{principal} does not have {ACCESS_RIGHT_NAMES[access_right]} access "
            f"to {record.entity_name} record {record.id}",
            **diagnostics
        )

    def _deny(self, reason: str, principal: Optional[PrincipalRef], operation) -> Decision:
        entity_name = getattr(operation, 'entity_name', None)
        right = getattr(operation, 'access_right', None)
        decision = Decision.deny(
            reason,
            principal_id=principal.id if principal else None,
            access_right=ACCESS_RIGHT_NAMES.get(right) if right else None,
            entity_name=entity_name,
            record_id=getattr(operation, 'record_id', None),
        )
        SecurityLogger.log_access_denied(
            decision.principal_id, decision.access_right, entity_name,
            record_id=decision.record_id, reason=reason,
        )
        return decision
