import datetime as dt

import pytest
from django.urls import reverse
from django.utils import timezone

from coordination.models import Staff, StaffShift, User
from coordination.services.staff import list_staff

pytestmark = pytest.mark.django_db


@pytest.fixture
def hospital_admin(make_user, hospitals):
    return make_user('ha@health.go.ke', 'HOSPITAL_ADMIN', hospital=hospitals[0])


def _member(user, hospital, number):
    return Staff.objects.create(user=user, staff_number=number, hospital=hospital)


def test_create_staff_creates_login(hospital_admin, api_as):
    r = api_as(hospital_admin).post(reverse('staff'), {
        'firstName': 'Amina', 'lastName': 'Odhiambo', 'email': 'Amina@Health.go.ke',
        'role': 'medical_officer', 'cadre': 'Medical Officer', 'password': 'S3cure-pass',
    }, format='json')
    assert r.status_code == 201
    assert r.data['staffNumber'] == 'STF-00001'
    assert r.data['role'] == 'DOCTOR'
    assert r.data['hospitalId'] == 'hosp-001'
    assert r.data['onDuty'] is False
    user = User.objects.get(email='amina@health.go.ke')
    assert user.check_password('S3cure-pass')
    assert user.county_id == 'county-001'


def test_create_staff_without_password_gets_unusable_random_one(hospital_admin, api_as):
    api_as(hospital_admin).post(reverse('staff'), {
        'firstName': 'Faith', 'lastName': 'Mutua', 'email': 'faith@health.go.ke', 'role': 'NURSE',
    }, format='json')
    user = User.objects.get(email='faith@health.go.ke')
    assert user.password
    assert not user.check_password('')


def test_unknown_role_and_duplicate_email(hospital_admin, api_as):
    client = api_as(hospital_admin)
    r = client.post(reverse('staff'), {'firstName': 'A', 'lastName': 'B', 'email': 'ha@health.go.ke',
                                       'role': 'WIZARD'}, format='json')
    assert r.status_code == 400
    assert {d['field'] for d in r.data['details']} == {'email', 'role'}


def test_hospital_admin_cannot_place_staff_elsewhere(hospital_admin, api_as, hospitals):
    r = api_as(hospital_admin).post(reverse('staff'), {
        'firstName': 'A', 'lastName': 'B', 'email': 'ab@health.go.ke', 'role': 'NURSE',
        'hospitalId': hospitals[1].id,
    }, format='json')
    assert r.status_code == 403


def test_list_only_own_hospital_with_duty_flag(hospital_admin, api_as, make_user, hospitals):
    knh, mombasa = hospitals
    on = _member(make_user('on@health.go.ke', 'NURSE', hospital=knh), knh, 'STF-00001')
    _member(make_user('off@health.go.ke', 'NURSE', hospital=knh), knh, 'STF-00002')
    _member(make_user('far@health.go.ke', 'NURSE', hospital=mombasa), mombasa, 'STF-00003')
    now = timezone.now()
    StaffShift.objects.create(staff=on, hospital=knh, start_at=now - dt.timedelta(hours=1),
                              end_at=now + dt.timedelta(hours=7))

    r = api_as(hospital_admin).get(reverse('staff'))
    assert r.data['total'] == 2
    assert {s['staffNumber']: s['onDuty'] for s in r.data['staff']} == {'STF-00001': True, 'STF-00002': False}

    r = api_as(hospital_admin).get(reverse('staff'), {'onDutyOnly': 'true'})
    assert [s['staffNumber'] for s in r.data['staff']] == ['STF-00001']


def test_list_staff_pages_and_search(make_user, hospitals):
    knh = hospitals[0]
    for i in range(5):
        _member(make_user(f"s{i}@health.go.ke", 'NURSE', hospital=knh, first_name=f"Nurse{i}"),
                knh, f"STF-{i:05d}")
    rows, total = list_staff(page=2, page_size=2)
    assert total == 5
    assert [r['staffNumber'] for r in rows] == ['STF-00002', 'STF-00003']
    rows, total = list_staff(q='nurse4')
    assert total == 1


def test_schedule_shift(hospital_admin, api_as, make_user, hospitals):
    member = _member(make_user('n@health.go.ke', 'NURSE', hospital=hospitals[0]), hospitals[0], 'STF-00009')
    client = api_as(hospital_admin)
    url = reverse('staff_schedule', args=[member.id])

    bad = client.post(url, {'startAt': '2030-01-01T19:00:00Z', 'endAt': '2030-01-01T07:00:00Z'}, format='json')
    assert bad.status_code == 400
    assert bad.data['details'][0]['field'] == 'endAt'

    ok = client.post(url, {'startAt': '2030-01-01T07:00:00Z', 'endAt': '2030-01-01T19:00:00Z'}, format='json')
    assert ok.status_code == 201
    assert ok.data['hospitalId'] == 'hosp-001'

    listed = client.get(url, {'from': '2030-01-01', 'to': '2030-01-31'})
    assert len(listed.data['shifts']) == 1

    detail = client.get(reverse('staff_detail', args=[member.id]))
    assert detail.data['onDuty'] is False
    assert len(detail.data['upcomingShifts']) == 1


def test_deactivate_staff_disables_login(hospital_admin, api_as, make_user, hospitals):
    user = make_user('n@health.go.ke', 'NURSE', hospital=hospitals[0])
    member = _member(user, hospitals[0], 'STF-00010')
    r = api_as(hospital_admin).patch(reverse('staff_detail', args=[member.id]), {'isActive': False}, format='json')
    assert r.status_code == 200
    assert r.data['isActive'] is False
    user.refresh_from_db()
    assert user.is_active is False
