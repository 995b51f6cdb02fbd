import datetime as dt

import pytest
from django.urls import reverse
from django.utils import timezone

from coordination.models import AuditLog, Department, Patient, TriageEntry
from coordination.serializers.common import CleanCharField
from coordination.services.triage import triage_analytics, triage_queue, waiting_minutes

pytestmark = pytest.mark.django_db


@pytest.fixture
def nurse(make_user, hospitals):
    return make_user('nurse@health.go.ke', 'NURSE', hospital=hospitals[0], county=hospitals[0].county)


@pytest.fixture
def emergency_dept(hospitals):
    return Department.objects.create(id='d-ed', hospital=hospitals[0], name='A&E', department_type='EMERGENCY',
                                     total_beds=10, available_beds=4)


def _entry(patient, hospital, level, minutes_ago, status='WAITING', number=None):
    n = number or f"TRI-{TriageEntry.objects.count() + 1:06d}"
    return TriageEntry.objects.create(
        triage_number=n, patient=patient, hospital=hospital, chief_complaint='x', triage_level=level,
        status=status, arrival_time=timezone.now() - dt.timedelta(minutes=minutes_ago),
    )


def test_register_patient_defaults_to_callers_hospital(nurse, api_as):
    r = api_as(nurse).post(reverse('patients'), {
        'firstName': 'Mary', 'lastName': 'Akinyi', 'gender': 'FEMALE',
        'nationalId': '28765432', 'phone': '+254712000002',
    }, format='json')
    assert r.status_code == 201
    assert r.data['patientNumber'] == f"PAT-{timezone.now().year}-000001"
    assert r.data['currentHospitalId'] == 'hosp-001'
    assert r.data['countyId'] == 'county-001'
    assert AuditLog.objects.filter(action='CREATE', entity_type='PATIENT').exists()


def test_duplicate_national_id_is_rejected(nurse, api_as, patient):
    r = api_as(nurse).post(reverse('patients'), {
        'firstName': 'Copy', 'lastName': 'Cat', 'gender': 'MALE', 'nationalId': patient.national_id,
    }, format='json')
    assert r.status_code == 400
    assert r.data['details'][0]['field'] == 'nationalId'


def test_patient_search_and_sanitized_names(nurse, api_as, patient):
    client = api_as(nurse)
    r = client.post(reverse('patients'), {
        'firstName': '<b>Zawadi</b>', 'lastName': 'Njeri', 'gender': 'FEMALE',
    }, format='json')
    assert r.data['firstName'] == 'Zawadi'
    r = client.get(reverse('patients'), {'search': 'mwangi'})
    assert [p['id'] for p in r.data['patients']] == [patient.id]


def test_discharge_is_audited_as_discharge(nurse, api_as, patient):
    r = api_as(nurse).patch(reverse('patient_detail', args=[patient.id]),
                            {'currentStatus': 'DISCHARGED'}, format='json')
    assert r.status_code == 200
    assert r.data['currentStatus'] == 'DISCHARGED'
    log = AuditLog.objects.get(action='DISCHARGE')
    assert log.changes['currentStatus'] == {'from': 'ACTIVE', 'to': 'DISCHARGED'}


def test_hospital_admin_cannot_see_other_hospital_patient(make_user, api_as, hospitals):
    other = Patient.objects.create(patient_number='PAT-X', first_name='A', last_name='B', gender='MALE',
                                   current_hospital=hospitals[1])
    admin = make_user('ha@health.go.ke', 'HOSPITAL_ADMIN', hospital=hospitals[0])
    r = api_as(admin).get(reverse('patient_detail', args=[other.id]))
    assert r.status_code == 404


def test_verify_sha_without_registry(nurse, api_as, patient, settings):
    settings.SHA_API_URL = ''
    r = api_as(nurse).post(reverse('verify_sha'), {'nationalId': patient.national_id}, format='json')
    assert r.status_code == 200
    assert r.data['patient']['id'] == patient.id
    assert r.data['eligibility']['status'] == 'REGISTERED'
    assert r.data['claims'] == []


def test_verify_sha_uses_registry(nurse, api_as, patient, settings, monkeypatch):
    from coordination.services import sha

    settings.SHA_API_URL = 'https://sha.example'

    class FakeResponse:
        status_code = 200

        def json(self):
            return {'shaNumber': patient.sha_number, 'status': 'active', 'coverageTier': 'UHC'}

    monkeypatch.setattr(sha.requests, 'get', lambda *a, **kw: FakeResponse())
    r = api_as(nurse).post(reverse('verify_sha'), {'shaNumber': patient.sha_number}, format='json')
    assert r.data['eligibility']['status'] == 'ELIGIBLE'
    assert r.data['eligibility']['registry']['coverageTier'] == 'UHC'


def test_verify_sha_needs_an_identifier(nurse, api_as):
    r = api_as(nurse).post(reverse('verify_sha'), {'phone': '  '}, format='json')
    assert r.status_code == 400


def test_triage_intake(nurse, api_as, patient, emergency_dept):
    r = api_as(nurse).post(reverse('triage'), {
        'patientId': patient.id, 'departmentId': emergency_dept.id,
        'chiefComplaint': 'Chest pain', 'triageLevel': 'IMMEDIATE',
        'vitalSigns': {'bloodPressure': '150/95', 'heartRate': 110},
    }, format='json')
    assert r.status_code == 201
    assert r.data['triageNumber'] == 'TRI-000001'
    assert r.data['hospitalId'] == 'hosp-001'
    assert r.data['assessedBy'] == nurse.pk
    assert r.data['vitalSigns']['heartRate'] == 110


def test_clean_text_keeps_clinical_symbols():
    field = CleanCharField()
    assert field.run_validation('SpO2 < 90 & falling') == 'SpO2 < 90 & falling'
    assert field.run_validation('<script>alert(1)</script>BP 80/50') == 'alert(1)BP 80/50'
    # escaped markup is not let back in once unescaped
    assert field.run_validation('&lt;b&gt;x') == 'x'


def test_triage_complaint_is_stored_as_typed(nurse, api_as, patient):
    r = api_as(nurse).post(reverse('triage'), {
        'patientId': patient.id, 'chiefComplaint': 'SpO2 < 90 & RR > 30', 'triageLevel': 'URGENT',
    }, format='json')
    assert r.status_code == 201
    assert r.data['chiefComplaint'] == 'SpO2 < 90 & RR > 30'
    assert TriageEntry.objects.get().chief_complaint == 'SpO2 < 90 & RR > 30'


def test_triage_rejects_department_of_other_hospital(nurse, api_as, patient, hospitals):
    foreign = Department.objects.create(hospital=hospitals[1], name='ED', department_type='EMERGENCY')
    r = api_as(nurse).post(reverse('triage'), {
        'patientId': patient.id, 'departmentId': foreign.id, 'chiefComplaint': 'x', 'triageLevel': 'URGENT',
    }, format='json')
    assert r.status_code == 404
    assert r.data == {'error': 'Department not found'}


def test_triage_invalid_vitals(nurse, api_as, patient):
    r = api_as(nurse).post(reverse('triage'), {
        'patientId': patient.id, 'chiefComplaint': 'x', 'triageLevel': 'URGENT',
        'vitalSigns': {'heartRate': 900},
    }, format='json')
    assert r.status_code == 400
    assert r.data['details'][0]['field'] == 'vitalSigns.heartRate'


def test_queue_orders_by_level_then_arrival(nurse, api_as, patient, hospitals):
    knh = hospitals[0]
    _entry(patient, knh, 'NON_URGENT', 90)
    late_urgent = _entry(patient, knh, 'URGENT', 5)
    early_urgent = _entry(patient, knh, 'URGENT', 30)
    immediate = _entry(patient, knh, 'IMMEDIATE', 1)
    _entry(patient, knh, 'IMMEDIATE', 100, status='ADMITTED')

    r = api_as(nurse).get(reverse('triage_queue'))
    assert r.status_code == 200
    ids = [e['id'] for e in r.data['queue']]
    assert ids[:3] == [immediate.id, early_urgent.id, late_urgent.id]
    assert r.data['total'] == 4
    assert r.data['byLevel'] == {'IMMEDIATE': 1, 'URGENT': 2, 'NON_URGENT': 1}


def test_status_change_follows_through_to_patient(nurse, api_as, patient, hospitals):
    t = _entry(patient, hospitals[0], 'URGENT', 10)
    r = api_as(nurse).patch(reverse('triage_detail', args=[t.id]), {'status': 'ADMITTED'}, format='json')
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.current_status == 'ADMITTED'


def test_triage_stats_today(nurse, api_as, patient, hospitals):
    _entry(patient, hospitals[0], 'IMMEDIATE', 1)
    _entry(patient, hospitals[0], 'LESS_URGENT', 2, status='DISCHARGED')
    r = api_as(nurse).get(reverse('triage_stats'))
    assert r.status_code == 200
    assert r.data['total'] == 2
    assert r.data['critical'] == 1
    assert r.data['byStatus']['DISCHARGED'] == 1


def test_triage_stats_custom_needs_dates(nurse, api_as):
    r = api_as(nurse).get(reverse('triage_stats'), {'period': 'custom'})
    assert r.status_code == 400


def test_waiting_minutes_never_negative(patient, hospitals):
    t = _entry(patient, hospitals[0], 'URGENT', -5)
    assert waiting_minutes(t) == 0


def test_analytics_zero_fills_days(patient, hospitals):
    _entry(patient, hospitals[0], 'URGENT', 0)
    today = timezone.localdate()
    data = triage_analytics(TriageEntry.objects.all(), start=today - dt.timedelta(days=2), end=today)
    assert [row['date'] for row in data['series']] == [
        (today - dt.timedelta(days=d)).isoformat() for d in (2, 1, 0)]
    assert data['series'][-1]['URGENT'] == 1
    assert data['total'] == 1


def test_queue_helper_excludes_finished(patient, hospitals):
    _entry(patient, hospitals[0], 'URGENT', 3, status='DISCHARGED')
    assert list(triage_queue(TriageEntry.objects.all())) == []
