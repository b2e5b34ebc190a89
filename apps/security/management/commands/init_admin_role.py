"""
Management command to initialize the System Administrator role.

Creates the administrator role in the root business unit (and its shadow
copies), optionally granting it every privilege at Global depth.
"""
from django.core.management.base import BaseCommand

from apps.security.services import PrivilegeCatalog


class Command(BaseCommand):
    help = 'Initialize the System Administrator role (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--grant-all',
            action='store_true',
            help='Grant every known privilege to the administrator role at Global depth'
        )

    def handle(self, *args, **options):
        catalog = PrivilegeCatalog()

        role = catalog.initialize_administrator_role()
        self.stdout.write(
            self.style.SUCCESS(f'✓ Administrator role ready: {role.name} ({role.id})')
        )
        self.stdout.write(f'  Business unit: {role.business_unit.name}')
        self.stdout.write(f'  Shadow copies: {role.shadow_copies.count()}')

        if options['grant_all']:
            granted = catalog.grant_all_to_administrator_role()
            self.stdout.write(
                self.style.SUCCESS(f'✓ Granted {granted} privileges at Global depth')
            )
