"""
Tests for structured logging, PII masking and security events.
"""
import json
import logging
from unittest.mock import patch
from django.test import TestCase
from apps.core.logging import JSONFormatter, PIIMasker, PIIMaskingFilter, SecurityLogger


class PIIMaskerTestCase(TestCase):
    """Test PII masking functionality."""

    def test_mask_email_addresses(self):
        """Test email address masking."""
        text = "Contact user@example.com or admin@test.org"
        masked = PIIMasker.mask_text(text)

        self.assertIn("u***@example.com", masked)
        self.assertNotIn("user@example.com", masked)
        self.assertIn("a****@test.org", masked)

    def test_mask_nested_dict(self):
        """Test masking nested dictionaries."""
        data = {
            'user': {
                'full_name': 'Jane Doe',
                'email': 'jane@example.com',
            },
            'depth_mask': 8,
        }

        masked = PIIMasker.mask_dict(data)

        self.assertEqual(masked['user']['full_name'], 'Jane Doe')
        self.assertEqual(masked['user']['email'], 'j***@example.com')
        self.assertEqual(masked['depth_mask'], 8)

    def test_non_strings_pass_through(self):
        self.assertIsNone(PIIMasker.mask_text(None))
        self.assertEqual(PIIMasker.mask_dict(['a@b.co']), ['a@b.co'])


class JSONFormatterTestCase(TestCase):
    """Test JSON log formatting."""

    def setUp(self):
        """Set up test fixtures."""
        self.formatter = JSONFormatter()

    def _record(self, msg):
        return logging.LogRecord(
            name='test_logger',
            level=logging.INFO,
            pathname='test.py',
            lineno=10,
            msg=msg,
            args=(),
            exc_info=None
        )

    def test_basic_log_format(self):
        """Test basic log record formatting."""
        log_data = json.loads(self.formatter.format(self._record('Test message')))

        self.assertEqual(log_data['level'], 'INFO')
        self.assertEqual(log_data['logger'], 'test_logger')
        self.assertEqual(log_data['message'], 'Test message')
        self.assertEqual(log_data['line'], 10)
        self.assertIn('timestamp', log_data)

    def test_extra_fields_are_copied(self):
        """Test fields passed through extra={...}."""
        record = self._record('Created shadow role')
        record.role_id = 'role-uuid-123'
        record.shadow_role_ids = ['a', 'b']

        log_data = json.loads(self.formatter.format(record))

        self.assertEqual(log_data['role_id'], 'role-uuid-123')
        self.assertEqual(log_data['shadow_role_ids'], ['a', 'b'])

    def test_unserializable_extra_is_stringified(self):
        record = self._record('Decision')
        record.principal = object()

        log_data = json.loads(self.formatter.format(record))

        self.assertIn('object', log_data['principal'])

    def test_log_masks_pii_in_message(self):
        """Test that PII is masked in log messages."""
        log_data = json.loads(self.formatter.format(self._record('Invited user@example.com')))

        self.assertNotIn('user@example.com', log_data['message'])
        self.assertIn('u***@example.com', log_data['message'])


class PIIMaskingFilterTestCase(TestCase):
    """Test masking of plain-text log output."""

    def test_masks_message_and_args(self):
        record = logging.LogRecord('x', logging.INFO, 'x.py', 1, 'Mail to %s', ('bob@example.com',), None)

        self.assertTrue(PIIMaskingFilter().filter(record))
        self.assertEqual(record.getMessage(), 'Mail to b**@example.com')


class SecurityLoggerTestCase(TestCase):
    """Test security event logging."""

    def test_access_denied_is_logged_to_security_logger(self):
        with self.assertLogs('security', level='WARNING') as captured:
            SecurityLogger.log_access_denied('user-1', 'Write', 'account', record_id='rec-1',
                                             reason='Missing privilege')

        self.assertEqual(len(captured.records), 1)
        record = captured.records[0]
        self.assertEqual(record.event_type, 'access_denied')
        self.assertEqual(record.access_right, 'Write')
        self.assertEqual(record.record_id, 'rec-1')

    @patch('apps.core.logging.sentry_sdk.capture_message')
    def test_impersonation_denied_goes_to_sentry(self, capture_message):
        with self.assertLogs('security', level='ERROR'):
            SecurityLogger.log_impersonation_denied('caller-1', 'user-2')

        capture_message.assert_called_once()

    @patch('apps.core.logging.sentry_sdk.capture_message')
    def test_invalid_operation_stays_local(self, capture_message):
        with self.assertLogs('security', level='WARNING') as captured:
            SecurityLogger.log_invalid_operation('delete_role', 'Shadow copy', role_id='r-1')

        self.assertEqual(captured.records[0].operation, 'delete_role')
        capture_message.assert_not_called()
