"""
Security exception taxonomy and the DRF exception handler that renders it.
"""
import logging
from rest_framework import status

logger = logging.getLogger(__name__)


class SecurityError(Exception):
    """Base exception for security-core errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'SECURITY_ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthorizationDenied(SecurityError):
    """
    Raised when a principal lacks the privilege or grant for an operation.

    Never retried: the engine is deterministic, so the same request against
    the same state is denied again.
    """

    status_code = status.HTTP_403_FORBIDDEN
    code = 'AUTHORIZATION_DENIED'

    def __init__(self, message, principal_id=None, access_right=None, entity_name=None,
                 record_id=None, details=None):
        details = dict(details or {})
        details.update({
            'principal_id': str(principal_id) if principal_id else None,
            'access_right': access_right,
            'entity_name': entity_name,
            'record_id': str(record_id) if record_id else None,
        })
        self.principal_id = principal_id
        self.access_right = access_right
        self.entity_name = entity_name
        self.record_id = record_id
        super().__init__(message, details)


class InvalidOperation(SecurityError):
    """Raised on structural misuse, e.g. deleting a shadow role directly."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = 'INVALID_OPERATION'


class NotFound(SecurityError):
    """Raised when a record, role, principal or business unit is missing."""

    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'


class ConfigurationGap(SecurityError):
    """Raised when a requested enforcement feature is not implemented."""

    status_code = status.HTTP_501_NOT_IMPLEMENTED
    code = 'CONFIGURATION_GAP'


def custom_exception_handler(exc, context):
    """
    Render SecurityError subclasses as JSON and defer everything else to DRF.
    """
    # Model modules import this module, so DRF views load lazily
    from rest_framework.response import Response
    from rest_framework.views import exception_handler

    request = context.get('request')

    if isinstance(exc, SecurityError):
        logger.warning(
            f"Security error: {exc.__class__.__name__}",
            extra={
                'error_code': exc.code,
                'details': exc.details,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )
        return Response(
            {
                'error': exc.message,
                'code': exc.code,
                'details': exc.details,
            },
            status=exc.status_code
        )

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': 'Internal server error',
                'code': 'INTERNAL_ERROR',
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
