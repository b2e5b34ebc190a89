"""
Management command to seed the standard privileges of every record type.

Creates the eight standard privileges for each entity definition plus the
act-on-behalf-of privilege. This command is idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand, CommandError

from apps.records.models import EntityDefinition
from apps.security.models import Privilege
from apps.security.services import PrivilegeCatalog


class Command(BaseCommand):
    help = 'Seed standard privileges for entity definitions (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--entity',
            type=str,
            help='Only seed privileges for this logical name'
        )

    def handle(self, *args, **options):
        catalog = PrivilegeCatalog()
        entity_name = options.get('entity')

        if entity_name:
            if not EntityDefinition.objects.filter(logical_name=entity_name).exists():
                raise CommandError(f'No entity definition named "{entity_name}"')
            logical_names = [entity_name]
        else:
            logical_names = list(EntityDefinition.objects.values_list('logical_name', flat=True))

        before = Privilege.objects.count()
        self.stdout.write('Seeding standard privileges...\n')

        for logical_name in logical_names:
            privileges = catalog.ensure_standard_privileges(logical_name)
            self.stdout.write(
                self.style.SUCCESS(f'✓ {logical_name}: {len(privileges)} privileges')
            )

        on_behalf = catalog.ensure_on_behalf_privilege()
        self.stdout.write(self.style.HTTP_INFO(f'  Exists: {on_behalf.name}'))

        created_count = Privilege.objects.count() - before
        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {len(logical_names)} record types, {created_count} privileges created'
            )
        )
