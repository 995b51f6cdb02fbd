from io import StringIO

import pytest
from django.core.management import call_command
from django.urls import reverse
from rest_framework.test import APIClient

from coordination.management.commands.ensure_demo_users import DEMO_PASSWORD, DEMO_USERS
from coordination.models import (
    Ambulance,
    County,
    Department,
    Emergency,
    Hospital,
    Patient,
    SHAClaim,
    Staff,
    TriageEntry,
    User,
)

pytestmark = pytest.mark.django_db


def test_ensure_demo_users_is_idempotent():
    call_command('ensure_demo_users', stdout=StringIO())
    call_command('ensure_demo_users', stdout=StringIO())
    assert User.objects.filter(email__endswith='@health.go.ke').count() == len(DEMO_USERS)
    # no facility rows yet, so no links
    assert not User.objects.exclude(hospital=None).exists()


def test_seed_builds_a_consistent_data_set():
    out = StringIO()
    call_command('seed_demo_data', stdout=out)
    assert 'Seeded 3 counties, 3 hospitals' in out.getvalue()

    assert County.objects.count() == 3
    assert Hospital.objects.get(pk='hosp-001').county_id == 'county-001'
    assert Department.objects.filter(hospital_id='hosp-002').count() == 8
    assert Patient.objects.get(pk='pat-003').current_status == 'IN_TRANSFER'
    assert Ambulance.objects.filter(status='AVAILABLE').count() == 3
    assert Emergency.objects.filter(status='RESOLVED').exclude(resolved_at=None).count() == 1
    assert TriageEntry.objects.filter(status__in=['WAITING', 'IN_ASSESSMENT']).count() == 4
    assert SHAClaim.objects.get(status='APPROVED').amount_approved is not None

    doctor = User.objects.get(email='doctor@health.go.ke')
    assert doctor.hospital_id == 'hosp-001'
    assert Staff.objects.filter(user=doctor).exists()


def test_seed_twice_replaces_rows():
    call_command('seed_demo_data', stdout=StringIO())
    call_command('seed_demo_data', stdout=StringIO())
    assert County.objects.count() == 3
    assert User.objects.filter(email__endswith='@health.go.ke').count() == len(DEMO_USERS)


def test_seed_keeps_other_accounts(make_user):
    make_user('someone@example.org', 'NURSE')
    call_command('seed_demo_data', stdout=StringIO())
    assert User.objects.filter(email='someone@example.org').exists()


def test_demo_login_after_seed():
    call_command('seed_demo_data', stdout=StringIO())
    r = APIClient().post(reverse('login_view'),
                         {'email': 'countyadmin@health.go.ke', 'password': DEMO_PASSWORD}, format='json')
    assert r.status_code == 200
    assert r.data['user']['role'] == 'COUNTY_ADMIN'
    assert r.data['user']['countyId'] == 'county-001'


def test_table_counts_reports_empty_tables():
    out = StringIO()
    call_command('table_counts', stdout=out)
    text = out.getvalue()
    assert 'empty Counties: 0 records' in text
    assert 'tables are empty' in text

    call_command('seed_demo_data', stdout=StringIO())
    out = StringIO()
    call_command('table_counts', stdout=out)
    assert 'ok    Counties: 3 records' in out.getvalue()
