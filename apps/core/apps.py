from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import uuid

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        A malformed SECURITY setting fails fast instead of surfacing on the
        first authorization decision.
        """
        self._validate_security_configuration()

    def _validate_security_configuration(self):
        """Validate the SECURITY settings dict."""
        security = getattr(settings, 'SECURITY', None) or {}

        if not isinstance(security, dict):
            raise ImproperlyConfigured("SECURITY must be a dict of security switches.")

        administrator_role_id = security.get('ADMINISTRATOR_ROLE_ID')
        if administrator_role_id:
            try:
                uuid.UUID(str(administrator_role_id))
            except ValueError:
                raise ImproperlyConfigured(
                    f"SECURITY['ADMINISTRATOR_ROLE_ID'] must be a UUID, got {administrator_role_id!r}."
                )

        if security.get('SECURITY_ENABLED') and not security.get('ENFORCE_RECORD_LEVEL_SECURITY'):
            logger.warning(
                "⚠ Security is enabled without record-level enforcement. "
                "Only create on platform tables is privilege-checked."
            )

        logger.debug("✓ Security configuration validated")
