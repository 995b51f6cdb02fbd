import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from coordination.models import County, DispatchCenter, Hospital, Patient, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def counties(db):
    nairobi = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
    mombasa = County.objects.create(id='county-002', name='Mombasa', code='KE-01')
    return nairobi, mombasa


@pytest.fixture
def hospitals(counties):
    nairobi, mombasa = counties
    knh = Hospital.objects.create(id='hosp-001', name='Kenyatta National Hospital', code='KNH-001',
                                  county=nairobi, level='LEVEL_6', sha_contracted=True,
                                  total_beds=100, available_beds=20)
    mbs = Hospital.objects.create(id='hosp-002', name='Mombasa County Hospital', code='MCH-001',
                                  county=mombasa, level='LEVEL_5', total_beds=50, available_beds=10)
    return knh, mbs


@pytest.fixture
def dispatch_center(counties):
    return DispatchCenter.objects.create(id='dc-001', name='Nairobi Dispatch', county=counties[0])


@pytest.fixture
def make_user(db):
    def _make(email, role, *, county=None, hospital=None, password='P@ssw0rd1', **extra):
        return User.objects.create_user(
            username=email, email=email, password=password, role=role,
            county=county, hospital=hospital, first_name=extra.pop('first_name', role.title()),
            last_name=extra.pop('last_name', 'User'), **extra,
        )
    return _make


@pytest.fixture
def super_admin(make_user):
    return make_user('root@health.go.ke', 'SUPER_ADMIN')


@pytest.fixture
def patient(hospitals):
    return Patient.objects.create(
        patient_number=f"PAT-{timezone.now().year}-000001", first_name='John', last_name='Mwangi',
        gender='MALE', sha_number='SHA-1000001', national_id='23456781',
        county_id='county-001', current_hospital=hospitals[0],
    )


@pytest.fixture
def api_as():
    """APIClient authenticated as the given user."""
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
