import pytest
from django.urls import reverse

from coordination.permissions import (
    ROLE_PERMISSIONS,
    Principal,
    can_access_module,
    ensure_basic_permissions,
    get_permissions_for_role,
    has_permission,
    normalize_role,
)


def _principal(role, permissions=None, **kw):
    return Principal(id='u1', email='u@x.ke', name='U', role=role, permissions=permissions or [], **kw)


@pytest.mark.parametrize('raw,expected', [
    ('doctor', 'DOCTOR'),
    ('medical_officer', 'DOCTOR'),
    ('Triage_Nurse', 'TRIAGE_OFFICER'),
    ('superadmin', 'SUPER_ADMIN'),
    ('COUNTY_ADMIN', 'COUNTY_ADMIN'),
    ('something_new', 'SOMETHING_NEW'),
    ('', 'UNKNOWN'),
    (None, 'UNKNOWN'),
])
def test_normalize_role(raw, expected):
    assert normalize_role(raw) == expected


def test_role_permissions_are_copies():
    perms = get_permissions_for_role('nurse')
    perms.append('system.write')
    assert 'system.write' not in get_permissions_for_role('NURSE')


def test_unknown_role_has_no_permissions():
    assert get_permissions_for_role('janitor') == []


def test_super_admin_passes_everything():
    p = ensure_basic_permissions(_principal('super_admin'))
    assert p.role == 'SUPER_ADMIN'
    assert has_permission(p, 'audit.read')
    assert has_permission(p, 'made.up')


def test_wildcard_grants_everything():
    assert has_permission(_principal('NURSE', ['*']), 'claims.write')


def test_nurse_cannot_write_claims():
    p = ensure_basic_permissions(_principal('nurse'))
    assert has_permission(p, 'triage.write')
    assert not has_permission(p, 'claims.write')
    assert not can_access_module(p, 'sha-claims')


def test_unknown_role_falls_back_to_dashboard():
    p = ensure_basic_permissions(_principal('janitor'))
    assert p.permissions == ['dashboard.read']
    assert can_access_module(p, 'dashboard')
    assert not can_access_module(p, 'patients')


def test_explicit_grants_merge_with_role():
    p = ensure_basic_permissions(_principal('finance_officer', ['audit.read', 'claims.read']))
    assert p.permissions[:2] == ['audit.read', 'claims.read']
    assert p.permissions.count('claims.read') == 1
    assert has_permission(p, 'claims.write')


def test_no_principal_has_nothing():
    assert not has_permission(None, 'dashboard.read')


def test_module_without_mapping_is_closed():
    p = ensure_basic_permissions(_principal('DOCTOR'))
    assert not can_access_module(p, 'nonexistent')


@pytest.mark.parametrize('role', sorted(ROLE_PERMISSIONS) + [
    'doctor', 'Medical_Officer', 'triage_nurse', 'superadmin', 'countyAdmin', 'Ambulance_Crew', 'pharmacist',
])
def test_every_role_reaches_the_dashboard(role):
    assert can_access_module(ensure_basic_permissions(_principal(role)), 'dashboard')


@pytest.mark.django_db
def test_unauthenticated_request_is_rejected(client):
    resp = client.get(reverse('emergencies'))
    assert resp.status_code == 401
    assert 'error' in resp.json()


def test_finance_officer_cannot_open_triage(make_user, api_as, hospitals):
    user = make_user('fin@health.go.ke', 'FINANCE_OFFICER', hospital=hospitals[0])
    resp = api_as(user).get(reverse('triage'))
    assert resp.status_code == 403
    assert resp.data == {'error': 'Insufficient permissions'}


def test_audit_logs_need_audit_permission(make_user, api_as, hospitals, super_admin):
    doctor = make_user('doc@health.go.ke', 'DOCTOR', hospital=hospitals[0])
    assert api_as(doctor).get(reverse('audit_logs')).status_code == 403
    resp = api_as(super_admin).get(reverse('audit_logs'))
    assert resp.status_code == 200
    assert 'logs' in resp.data and 'pagination' in resp.data


def test_is_super_admin_class(make_user, super_admin):
    from types import SimpleNamespace

    from coordination.permissions import IsSuperAdmin

    perm = IsSuperAdmin()
    admin = make_user('a@health.go.ke', 'ADMIN')
    assert perm.has_permission(SimpleNamespace(user=super_admin), None)
    assert not perm.has_permission(SimpleNamespace(user=admin), None)


def test_failed_audit_write_keeps_the_transaction_usable(super_admin, counties, monkeypatch):
    from django.db import IntegrityError, connection, transaction

    from coordination.models import AuditLog, County
    from coordination.permissions import principal_for
    from coordination.services.audit import log_action

    depths = []

    def broken_create(**kwargs):
        depths.append(len(connection.savepoint_ids))
        raise IntegrityError('duplicate key value violates unique constraint')

    monkeypatch.setattr(AuditLog.objects, 'create', broken_create)
    with transaction.atomic():
        outer = len(connection.savepoint_ids)
        row = log_action(principal=principal_for(super_admin), action='UPDATE', entity_type='COUNTY',
                         entity_id='county-001', description='Renamed county')
        assert row is None
        # the insert ran one savepoint deeper than the caller
        assert depths == [outer + 1]
        assert County.objects.count() == 2
