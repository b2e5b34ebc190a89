"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database with migrations."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture(autouse=True)
def reset_security_configuration():
    """Rebuild the process-wide security configuration from settings after each test."""
    from apps.security.configuration import set_security_configuration
    set_security_configuration(None)
    yield
    set_security_configuration(None)


@pytest.fixture
def secured():
    """Turn every enforcement switch on for the duration of a test."""
    from apps.security.configuration import SecurityConfiguration, set_security_configuration
    configuration = SecurityConfiguration.fully_secured()
    set_security_configuration(configuration)
    return configuration


@pytest.fixture
def api_factory():
    """Return DRF request factory."""
    from rest_framework.test import APIRequestFactory
    return APIRequestFactory()


@pytest.fixture
def organization(db):
    """Return the default organization."""
    from apps.organizations.services import BusinessUnitService
    return BusinessUnitService.ensure_root_organization()


@pytest.fixture
def root_business_unit(db, organization):
    """Return the root business unit of the default organization."""
    from apps.organizations.services import BusinessUnitService
    return BusinessUnitService.ensure_root_business_unit(organization)


@pytest.fixture
def west(db, root_business_unit):
    """Create the West business unit under the root."""
    from apps.organizations.services import BusinessUnitService
    return BusinessUnitService.create_business_unit('West', root_business_unit)


@pytest.fixture
def east(db, root_business_unit):
    """Create the East business unit under the root."""
    from apps.organizations.services import BusinessUnitService
    return BusinessUnitService.create_business_unit('East', root_business_unit)


@pytest.fixture
def make_user(db):
    """Factory creating system users in a business unit."""
    from apps.organizations.models import SystemUser

    counter = {'value': 0}

    def _make_user(business_unit, full_name=None):
        counter['value'] += 1
        name = full_name or f'User {counter["value"]}'
        return SystemUser.objects.create(
            full_name=name,
            email=f'user{counter["value"]}@example.com',
            business_unit=business_unit,
        )

    return _make_user


@pytest.fixture
def account_definition(db):
    """Define the 'account' record type (creates its standard privileges)."""
    from apps.records.models import EntityDefinition
    return EntityDefinition.objects.create(logical_name='account', display_name='Account')


@pytest.fixture
def lifecycle():
    """Return a role lifecycle manager."""
    from apps.security.services import RoleLifecycleManager
    return RoleLifecycleManager()


@pytest.fixture
def engine():
    """Return an access decision engine using the process-wide configuration."""
    from apps.security.services import AccessDecisionEngine
    return AccessDecisionEngine()
