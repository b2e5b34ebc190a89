"""
Field security policy.

An extension point kept outside the access decision engine's core path.
Column-level enforcement is not implemented: with enforcement on, checks
pass silently unless ``strict_field_security`` asks for a hard failure.
"""
import logging
from typing import Optional

from apps.core.exceptions import ConfigurationGap
from apps.security.configuration import SecurityConfiguration, get_security_configuration

logger = logging.getLogger(__name__)


class FieldSecurityPolicy:
    """Checks attribute-level access for update operations."""

    def __init__(self, configuration: Optional[SecurityConfiguration] = None):
        self._configuration = configuration

    @property
    def configuration(self) -> SecurityConfiguration:
        return self._configuration or get_security_configuration()

    def check(self, context, operation):
        """
        Check the attributes an operation touches.

        Raises:
            ConfigurationGap: When strict field security is requested
        """
        configuration = self.configuration
        if not configuration.enforce_field_level_security:
            return

        attributes = sorted((getattr(operation, 'attributes', None) or {}).keys())

        if configuration.strict_field_security:
            raise ConfigurationGap(
                'Field-level security enforcement is not implemented.',
                details={'entity_name': operation.entity_name, 'attributes': attributes}
            )

        logger.debug(
            "Field-level security check skipped",
            extra={
                'entity_name': operation.entity_name,
                'attributes': attributes,
                'principal': str(context.effective) if context.effective else None,
            }
        )
