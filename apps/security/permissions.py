"""
DRF permission class that routes API requests through the access decision engine.

Caller identity comes from headers:
- X-CALLER-ID: id of the calling system user
- X-IMPERSONATE-ID: optional id of the system user to act as
"""
import logging
import uuid
from rest_framework.permissions import BasePermission

from apps.security.context import CallerContext
from apps.security.operations import (
    CreateOperation, DeleteOperation, RetrieveMultipleOperation, RetrieveOperation,
    UpdateOperation,
)
from apps.security.services.engine import AccessDecisionEngine

logger = logging.getLogger(__name__)

CALLER_HEADER = 'HTTP_X_CALLER_ID'
IMPERSONATE_HEADER = 'HTTP_X_IMPERSONATE_ID'


def _parse_uuid(value):
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        logger.warning("Ignoring malformed principal id header", extra={'value': value})
        return None


def caller_context_from_request(request) -> CallerContext:
    """Build a CallerContext from the caller and impersonation headers."""
    caller_id = _parse_uuid(request.META.get(CALLER_HEADER))
    impersonate_id = _parse_uuid(request.META.get(IMPERSONATE_HEADER))
    if caller_id is None:
        return CallerContext(caller=None)
    return CallerContext.for_user(caller_id, impersonate_id)


class RecordAccessPermission(BasePermission):
    """
    Authorize record operations with the access decision engine.

    The view declares which record type it serves and, for detail routes,
    which URL kwarg holds the record id:

        class AccountView(APIView):
            permission_classes = [RecordAccessPermission]
            entity_name = 'account'
            record_id_kwarg = 'pk'

    HTTP verbs map to operations: POST -> create, GET -> retrieve (or
    retrieve-many without a record id), PUT/PATCH -> update, DELETE -> delete.
    Denials raise AuthorizationDenied, rendered by the exception handler.
    """

    engine_class = AccessDecisionEngine

    def has_permission(self, request, view):
        entity_name = getattr(view, 'entity_name', None)
        if not entity_name:
            return True

        context = caller_context_from_request(request)
        request.caller_context = context

        operation = self._operation_for(request, view, entity_name)
        if operation is None:
            return True

        self.engine_class().enforce(context, operation)
        return True

    def _operation_for(self, request, view, entity_name):
        record_id_kwarg = getattr(view, 'record_id_kwarg', 'pk')
        record_id = getattr(view, 'kwargs', {}).get(record_id_kwarg)
        method = request.method.upper()

        if method == 'POST':
            return CreateOperation(entity_name, attributes=dict(request.data or {}))
        if method == 'GET':
            if record_id is None:
                return RetrieveMultipleOperation(entity_name)
            return RetrieveOperation(entity_name, record_id=record_id)
        if method in ('PUT', 'PATCH') and record_id is not None:
            return UpdateOperation(entity_name, record_id=record_id, attributes=dict(request.data or {}))
        if method == 'DELETE' and record_id is not None:
            return DeleteOperation(entity_name, record_id=record_id)
        return None
