"""
Security app configuration.
"""
from django.apps import AppConfig


class SecurityConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.security'
    verbose_name = 'Security (Privileges, Roles and Access Decisions)'

    def ready(self):
        """Import signals when app is ready."""
        import apps.security.signals  # noqa
