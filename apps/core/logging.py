"""
Structured JSON logging and security event logging.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Masks e-mail addresses in log output.

    Principal records carry e-mail addresses; everything else the security
    core logs is ids and privilege names.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SENSITIVE_FIELDS = {'email', 'email_address', 'internal_email'}

    @classmethod
    def mask_text(cls, text):
        """Mask e-mail addresses in text, keeping the first character and domain."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            masked_username = username[0] + '*' * (len(username) - 1) if len(username) > 1 else username
            return f"{masked_username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive values in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS and isinstance(value, str):
                masked[key] = cls.mask_text(value)
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value
        return masked


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Extra fields passed through ``extra={...}`` are copied onto the payload.
    """

    RESERVED = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
        'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
        'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
        'exc_text', 'stack_info', 'taskName',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized security event logging.

    Events go to the ``security`` logger with structured data. Critical
    events are also sent to Sentry (a no-op when no DSN is configured).
    """

    CRITICAL_EVENTS = {
        'impersonation_denied',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event.

        Example:
            >>> SecurityLogger.log_event('access_denied', principal_id='...', access_right='Write')
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_access_denied(principal_id, access_right: str, entity_name: str,
                          record_id=None, reason: str = None):
        """Log a denied authorization decision."""
        SecurityLogger.log_event(
            'access_denied',
            level='warning',
            principal_id=str(principal_id) if principal_id else None,
            access_right=access_right,
            entity_name=entity_name,
            record_id=str(record_id) if record_id else None,
            reason=reason,
        )

    @staticmethod
    def log_impersonation_denied(caller_id, impersonated_id):
        """Log a caller attempting to impersonate without the on-behalf-of privilege."""
        SecurityLogger.log_event(
            'impersonation_denied',
            level='error',
            caller_id=str(caller_id),
            impersonated_id=str(impersonated_id),
        )

    @staticmethod
    def log_invalid_operation(operation: str, reason: str, **context):
        """Log structural misuse such as deleting a shadow role directly."""
        SecurityLogger.log_event(
            'invalid_operation',
            level='warning',
            operation=operation,
            reason=reason,
            **context
        )


class PIIMaskingFilter(logging.Filter):
    """Mask e-mail addresses in plain-text log messages."""

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = PIIMasker.mask_text(record.msg)
        if isinstance(record.args, dict):
            record.args = PIIMasker.mask_dict(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(PIIMasker.mask_text(arg) for arg in record.args)
        return True
