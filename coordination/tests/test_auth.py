import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from coordination.models import AuditLog, User

pytestmark = pytest.mark.django_db


def login(client, email, password):
    return client.post(reverse('login_view'), {'email': email, 'password': password}, format='json')


def test_login_returns_tokens_and_principal(make_user, hospitals):
    make_user('doctor@health.go.ke', 'medical_officer', hospital=hospitals[0], county=hospitals[0].county)
    client = APIClient()
    r = login(client, 'Doctor@Health.go.ke', 'P@ssw0rd1')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['token'] == r.data['accessToken']
    assert r.data['refreshToken']
    user = r.data['user']
    assert user['role'] == 'DOCTOR'
    assert user['hospitalId'] == 'hosp-001'
    assert user['facilityName'] == 'Kenyatta National Hospital'
    assert 'patients.write' in user['permissions']
    assert AuditLog.objects.filter(action='LOGIN', success=True).count() == 1


def test_bearer_token_reaches_me(make_user):
    make_user('nurse@health.go.ke', 'NURSE')
    client = APIClient()
    token = login(client, 'nurse@health.go.ke', 'P@ssw0rd1').data['accessToken']
    client.logout()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    r = client.get(reverse('me_view'))
    assert r.status_code == 200
    assert r.data['user']['email'] == 'nurse@health.go.ke'
    assert r.data['user']['role'] == 'NURSE'


def test_wrong_password_is_401_and_audited(make_user):
    u = make_user('nurse@health.go.ke', 'NURSE')
    r = login(APIClient(), 'nurse@health.go.ke', 'wrong')
    assert r.status_code == 401
    assert r.data == {'error': 'Invalid email or password'}
    row = AuditLog.objects.get(action='LOGIN')
    assert row.success is False
    assert row.entity_id == u.pk
    assert row.error_message == 'Invalid password'


def test_unknown_email_gets_same_message():
    r = login(APIClient(), 'ghost@health.go.ke', 'whatever')
    assert r.status_code == 401
    assert r.data == {'error': 'Invalid email or password'}
    assert AuditLog.objects.filter(action='LOGIN', success=False, entity_id='ghost@health.go.ke').exists()


def test_inactive_account_is_refused(make_user):
    make_user('gone@health.go.ke', 'NURSE', is_active=False)
    r = login(APIClient(), 'gone@health.go.ke', 'P@ssw0rd1')
    assert r.status_code == 401
    assert 'deactivated' in r.data['error']


def test_missing_fields_are_validation_errors():
    r = APIClient().post(reverse('login_view'), {'email': 'not-an-email'}, format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Invalid data'
    assert {d['field'] for d in r.data['details']} == {'email', 'password'}


def test_extra_role_field_cannot_escalate(make_user):
    make_user('nurse@health.go.ke', 'NURSE')
    r = APIClient().post(reverse('login_view'),
                         {'email': 'nurse@health.go.ke', 'password': 'P@ssw0rd1', 'role': 'SUPER_ADMIN'},
                         format='json')
    assert r.status_code == 200
    assert r.data['user']['role'] == 'NURSE'
    assert User.objects.get(email='nurse@health.go.ke').role == 'NURSE'


def test_refresh_and_logout_blacklists(make_user):
    make_user('dispatcher@health.go.ke', 'DISPATCHER')
    client = APIClient()
    tokens = login(client, 'dispatcher@health.go.ke', 'P@ssw0rd1').data

    r = client.post(reverse('refresh_view'), {'refreshToken': tokens['refreshToken']}, format='json')
    assert r.status_code == 200
    assert r.data['accessToken']

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['accessToken']}")
    out = client.post(reverse('logout_view'), {}, format='json')
    assert out.status_code == 200
    assert out.data['ok'] is True
    assert out.data['blacklisted'] >= 1

    r = APIClient().post(reverse('refresh_view'), {'refresh': tokens['refreshToken']}, format='json')
    assert r.status_code == 401


def test_refresh_requires_token():
    r = APIClient().post(reverse('refresh_view'), {}, format='json')
    assert r.status_code == 400
