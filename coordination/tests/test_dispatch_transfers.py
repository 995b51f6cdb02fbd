"""
Dispatch desk and inter-facility transfer workflows.
"""

import datetime as dt

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from coordination.models import (
    Ambulance,
    AuditLog,
    County,
    Department,
    DispatchLog,
    Emergency,
    Hospital,
    Patient,
    Transfer,
    User,
)


class DispatchAPITests(APITestCase):
    def setUp(self) -> None:
        self.nairobi = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
        self.mombasa = County.objects.create(id='county-002', name='Mombasa', code='KE-01')
        self.dispatcher = User.objects.create_user(
            username='d', email='d@health.go.ke', password='x', role='dispatcher', county=self.nairobi)
        self.crew = User.objects.create_user(
            username='c', email='c@health.go.ke', password='x', role='AMBULANCE_CREW', county=self.nairobi)
        self.amb = Ambulance.objects.create(registration_number='KCA 123A', county=self.nairobi)
        self.busy = Ambulance.objects.create(registration_number='KCB 456B', county=self.nairobi,
                                             status='MAINTENANCE')
        self.emergency = Emergency.objects.create(
            emergency_number='EMG-1', emergency_type='MEDICAL', severity='SEVERE', county=self.nairobi,
            location='Kibera', description='Collapse', reported_at=timezone.now())
        self.call = {
            'callerPhone': '+254700111222',
            'callerLocation': 'Kibera, Olympic',
            'emergencyType': 'MEDICAL',
            'severity': 'SEVERE',
            'description': 'Man collapsed',
        }

    def test_call_with_ambulance_dispatches_everything(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.post(reverse('dispatch'),
                                {**self.call, 'ambulanceId': self.amb.id, 'emergencyId': self.emergency.id},
                                format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['status'], 'DISPATCHED')
        self.assertTrue(resp.data['dispatchNumber'].startswith(f"DISP-{timezone.now().year}-"))
        self.amb.refresh_from_db()
        self.emergency.refresh_from_db()
        self.assertEqual(self.amb.status, 'DISPATCHED')
        self.assertEqual(self.emergency.status, 'DISPATCHED')

    def test_call_without_ambulance_is_received(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.post(reverse('dispatch'), self.call, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['status'], 'RECEIVED')
        self.assertIsNone(resp.data['dispatchedAt'])

    def test_unavailable_ambulance_is_refused(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.post(reverse('dispatch'), {**self.call, 'ambulanceId': self.busy.id}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['details'][0]['field'], 'ambulanceId')
        self.assertFalse(DispatchLog.objects.exists())

    def test_lifecycle_releases_ambulance(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        d = self.client.post(reverse('dispatch'), {**self.call, 'ambulanceId': self.amb.id}, format='json').data
        url = reverse('dispatch_detail', args=[d['id']])

        self.assertEqual(self.client.patch(url, {'status': 'EN_ROUTE'}, format='json').status_code, 200)
        self.amb.refresh_from_db()
        self.assertEqual(self.amb.status, 'EN_ROUTE')

        self.client.patch(url, {'status': 'ON_SCENE'}, format='json')
        self.amb.refresh_from_db()
        self.assertEqual(self.amb.status, 'AT_SCENE')

        resp = self.client.patch(url, {'status': 'COMPLETED'}, format='json')
        self.assertEqual(resp.data['status'], 'COMPLETED')
        self.assertIsNotNone(resp.data['completedAt'])
        self.amb.refresh_from_db()
        self.assertEqual(self.amb.status, 'AVAILABLE')

    def test_illegal_transition(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        d = self.client.post(reverse('dispatch'), self.call, format='json').data
        resp = self.client.patch(reverse('dispatch_detail', args=[d['id']]), {'status': 'COMPLETED'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_is_audited(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        d = self.client.post(reverse('dispatch'), {**self.call, 'ambulanceId': self.amb.id}, format='json').data
        self.client.patch(reverse('dispatch_detail', args=[d['id']]), {'status': 'CANCELLED'}, format='json')
        self.assertTrue(AuditLog.objects.filter(action='CANCEL', entity_id=d['id']).exists())
        self.amb.refresh_from_db()
        self.assertEqual(self.amb.status, 'AVAILABLE')

    def test_crew_reads_but_cannot_dispatch(self) -> None:
        self.client.force_authenticate(self.crew)
        self.assertEqual(self.client.get(reverse('dispatch')).status_code, status.HTTP_200_OK)
        resp = self.client.post(reverse('dispatch'), self.call, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_fleet_list_and_location(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.get(reverse('ambulances'))
        self.assertEqual(resp.data['total'], 2)
        self.assertEqual(resp.data['available'], 1)

        resp = self.client.post(reverse('ambulance_location', args=[self.amb.id]),
                                {'lat': -1.31, 'lng': 36.79}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.amb.refresh_from_db()
        self.assertEqual(self.amb.current_location, {'lat': -1.31, 'lng': 36.79})
        log = AuditLog.objects.get(entity_type='AMBULANCE', entity_id=self.amb.id)
        self.assertEqual(log.action, 'UPDATE')
        self.assertEqual(log.changes['currentLocation']['to'], {'lat': -1.31, 'lng': 36.79})

        resp = self.client.post(reverse('ambulance_location', args=[self.amb.id]),
                                {'lat': 120, 'lng': 36.79}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_ambulance(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.post(reverse('ambulances'), {'registrationNumber': 'KCZ 999Z',
                                                        'type': 'ADVANCED_LIFE_SUPPORT'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['countyId'], 'county-001')

        resp = self.client.post(reverse('ambulances'), {'registrationNumber': 'KCZ 999Z'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)


class AmbulancePlacementTests(APITestCase):
    def setUp(self) -> None:
        self.nairobi = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
        self.mombasa = County.objects.create(id='county-002', name='Mombasa', code='KE-01')
        self.knh = Hospital.objects.create(id='hosp-001', name='KNH', code='KNH', county=self.nairobi,
                                           level='LEVEL_6')
        self.coast = Hospital.objects.create(id='hosp-002', name='Coast General', code='CGH', county=self.mombasa,
                                             level='LEVEL_5')
        self.county_admin = User.objects.create_user(
            username='ca', email='ca@health.go.ke', password='x', role='COUNTY_ADMIN', county=self.nairobi)
        self.dispatcher = User.objects.create_user(
            username='d', email='d@health.go.ke', password='x', role='DISPATCHER', county=self.nairobi)
        self.amb = Ambulance.objects.create(registration_number='KCA 123A', county=self.nairobi)

    def test_unknown_county_is_not_found(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.patch(reverse('ambulance_detail', args=[self.amb.id]), {'countyId': 'county-999'},
                                 format='json')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data, {'error': 'County not found'})
        self.amb.refresh_from_db()
        self.assertEqual(self.amb.county_id, 'county-001')

    def test_county_admin_cannot_station_at_foreign_hospital(self) -> None:
        self.client.force_authenticate(self.county_admin)
        resp = self.client.patch(reverse('ambulance_detail', args=[self.amb.id]), {'hospitalId': self.coast.id},
                                 format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.amb.refresh_from_db()
        self.assertIsNone(self.amb.hospital_id)

        resp = self.client.post(reverse('ambulances'), {
            'registrationNumber': 'KCZ 100Z', 'countyId': self.nairobi.id, 'hospitalId': self.coast.id,
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Ambulance.objects.filter(registration_number='KCZ 100Z').exists())

    def test_own_hospital_sets_the_county(self) -> None:
        self.client.force_authenticate(self.county_admin)
        resp = self.client.post(reverse('ambulances'), {'registrationNumber': 'KCZ 101Z', 'hospitalId': self.knh.id},
                                format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['countyId'], 'county-001')
        self.assertEqual(resp.data['hospitalName'], 'KNH')

    def test_hospital_outside_chosen_county(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.patch(reverse('ambulance_detail', args=[self.amb.id]),
                                 {'countyId': self.nairobi.id, 'hospitalId': self.coast.id}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['details'][0]['field'], 'hospitalId')


class NearestAmbulanceTests(APITestCase):
    def setUp(self) -> None:
        nairobi = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
        self.dispatcher = User.objects.create_user(
            username='d', email='d@health.go.ke', password='x', role='DISPATCHER', county=nairobi)
        self.near = Ambulance.objects.create(registration_number='KCA 001A', county=nairobi,
                                             current_location={'lat': -1.30, 'lng': 36.80})
        self.far = Ambulance.objects.create(registration_number='KCA 002A', county=nairobi,
                                            ambulance_type='ADVANCED_LIFE_SUPPORT',
                                            current_location={'lat': -1.10, 'lng': 37.00})
        Ambulance.objects.create(registration_number='KCA 003A', county=nairobi,
                                 ambulance_type='ADVANCED_LIFE_SUPPORT')
        Ambulance.objects.create(registration_number='KCA 004A', county=nairobi, status='DISPATCHED',
                                 current_location={'lat': -1.31, 'lng': 36.79})
        self.knh = Hospital.objects.create(id='hosp-001', name='KNH', code='KNH', county=nairobi, level='LEVEL_6',
                                           services=['EMERGENCY', 'ICU'],
                                           coordinates={'lat': -1.3007, 'lng': 36.8065})
        Hospital.objects.create(id='hosp-002', name='Clinic', code='CLN', county=nairobi, level='LEVEL_3',
                                services=['OUTPATIENT'], coordinates={'lat': -1.31, 'lng': 36.79})
        Hospital.objects.create(id='hosp-003', name='Full', code='FUL', county=nairobi, level='LEVEL_4',
                                services=['EMERGENCY'], accepting_patients=False,
                                coordinates={'lat': -1.311, 'lng': 36.791})

    def test_ranks_free_ambulances_by_distance(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.get(reverse('dispatch_nearest'), {'latitude': -1.3133, 'longitude': 36.7876})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a['id'] for a in resp.data['nearestAmbulances']], [self.near.id, self.far.id])
        self.assertEqual(resp.data['recommendedAmbulance']['id'], self.near.id)
        self.assertLess(resp.data['nearestAmbulances'][0]['distanceKm'], 5)
        self.assertEqual([h['id'] for h in resp.data['nearestHospitals']], [self.knh.id])
        self.assertFalse(resp.data['advancedRequired'])

    def test_major_incident_needs_advanced_ambulance(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.post(reverse('dispatch_nearest'), {
            'latitude': -1.3133, 'longitude': 36.7876, 'severity': 'MAJOR',
        }, format='json')
        self.assertTrue(resp.data['advancedRequired'])
        self.assertEqual([a['id'] for a in resp.data['nearestAmbulances']], [self.far.id])

        resp = self.client.post(reverse('dispatch_nearest'), {
            'latitude': -1.3133, 'longitude': 36.7876, 'emergencyType': 'CARDIAC', 'requiredEquipment': True,
        }, format='json')
        self.assertEqual(resp.data['recommendedAmbulance']['id'], self.far.id)

    def test_bad_coordinates(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.get(reverse('dispatch_nearest'), {'latitude': 95, 'longitude': 36.7})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        resp = self.client.get(reverse('dispatch_nearest'), {'latitude': -1.3})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)


class AmbulanceMaintenanceTests(APITestCase):
    def setUp(self) -> None:
        nairobi = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
        self.dispatcher = User.objects.create_user(
            username='d', email='d@health.go.ke', password='x', role='DISPATCHER', county=nairobi)
        self.crew = User.objects.create_user(
            username='c', email='c@health.go.ke', password='x', role='AMBULANCE_CREW', county=nairobi)
        self.amb = Ambulance.objects.create(registration_number='KCA 123A', county=nairobi)
        self.url = reverse('ambulance_maintenance', args=[self.amb.id])

    def test_service_cycle(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.post(self.url, {'action': 'START', 'type': 'Regular service',
                                           'performedBy': 'Kenya Vehicle Services'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['status'], 'MAINTENANCE')

        resp = self.client.post(self.url, {'action': 'START'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['details'][0]['field'], 'action')

        resp = self.client.post(self.url, {'action': 'COMPLETE', 'cost': '15000.00'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        today = timezone.localdate()
        self.assertEqual(resp.data['status'], 'AVAILABLE')
        self.assertEqual(resp.data['lastMaintenance'], today.isoformat())
        self.assertEqual(resp.data['nextServiceDate'], (today + dt.timedelta(days=90)).isoformat())

        history = self.client.get(self.url).data
        self.assertEqual(history['status'], 'AVAILABLE')
        self.assertEqual(len(history['records']), 2)
        self.assertEqual(history['records'][0]['details']['cost'], '15000.00')

    def test_complete_needs_maintenance(self) -> None:
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.post(self.url, {'action': 'COMPLETE'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_crew_reads_history_only(self) -> None:
        self.client.force_authenticate(self.crew)
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_200_OK)
        resp = self.client.post(self.url, {'action': 'START'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)


class TransferAPITests(APITestCase):
    def setUp(self) -> None:
        county = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
        self.origin = Hospital.objects.create(id='hosp-002', name='Mbagathi', code='MBG', county=county,
                                              level='LEVEL_4')
        self.dest = Hospital.objects.create(id='hosp-001', name='KNH', code='KNH', county=county, level='LEVEL_6')
        self.origin_doctor = User.objects.create_user(
            username='od', email='od@health.go.ke', password='x', role='DOCTOR', hospital=self.origin)
        self.dest_doctor = User.objects.create_user(
            username='dd', email='dd@health.go.ke', password='x', role='DOCTOR', hospital=self.dest)
        self.patient = Patient.objects.create(patient_number='PAT-1', first_name='Ali', last_name='Hassan',
                                              gender='MALE', current_hospital=self.origin)

    def _request(self) -> dict:
        self.client.force_authenticate(self.origin_doctor)
        resp = self.client.post(reverse('transfers'), {
            'patientId': self.patient.id,
            'originHospitalId': self.origin.id,
            'destinationHospitalId': self.dest.id,
            'reason': 'Needs neurosurgery',
            'urgency': 'URGENT',
            'diagnosis': 'Head injury',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        return resp.data

    def test_request_marks_patient_in_transfer(self) -> None:
        t = self._request()
        self.assertEqual(t['status'], 'REQUESTED')
        self.patient.refresh_from_db()
        self.assertEqual(self.patient.current_status, 'IN_TRANSFER')
        self.assertTrue(AuditLog.objects.filter(action='TRANSFER', entity_id=t['id']).exists())

    def test_same_origin_and_destination(self) -> None:
        self.client.force_authenticate(self.origin_doctor)
        resp = self.client.post(reverse('transfers'), {
            'patientId': self.patient.id, 'originHospitalId': self.origin.id,
            'destinationHospitalId': self.origin.id, 'reason': 'x', 'urgency': 'URGENT', 'diagnosis': 'x',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_destination_can_approve(self) -> None:
        t = self._request()
        resp = self.client.post(reverse('transfer_approve', args=[t['id']]), {'bedNumber': 'W3-12'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.dest_doctor)
        resp = self.client.post(reverse('transfer_approve', args=[t['id']]), {'bedNumber': 'W3-12'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['status'], 'APPROVED')
        self.assertTrue(resp.data['bedReserved'])
        self.assertEqual(resp.data['acceptedBy'], self.dest_doctor.get_full_name() or self.dest_doctor.username)

        resp = self.client.post(reverse('transfer_reject', args=[t['id']]), {'reason': 'late'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject_returns_patient_to_active(self) -> None:
        t = self._request()
        self.client.force_authenticate(self.dest_doctor)
        resp = self.client.post(reverse('transfer_reject', args=[t['id']]), {'reason': 'No ICU bed'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['rejectionReason'], 'No ICU bed')
        self.patient.refresh_from_db()
        self.assertEqual(self.patient.current_status, 'ACTIVE')
        self.assertEqual(Transfer.objects.get().status, 'REJECTED')

    def test_direction_filter(self) -> None:
        self._request()
        self.client.force_authenticate(self.dest_doctor)
        incoming = self.client.get(reverse('transfers'), {'direction': 'incoming'}).data
        outgoing = self.client.get(reverse('transfers'), {'direction': 'outgoing'}).data
        self.assertEqual(incoming['pagination']['total'], 1)
        self.assertEqual(outgoing['pagination']['total'], 0)

    def _approve(self, t: dict, **extra) -> dict:
        self.client.force_authenticate(self.dest_doctor)
        resp = self.client.post(reverse('transfer_approve', args=[t['id']]), {'bedNumber': 'W3-12', **extra},
                                format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        return resp.data

    def test_transit_and_arrival_move_the_patient(self) -> None:
        amb = Ambulance.objects.create(registration_number='KCA 777A', hospital=self.origin)
        t = self._approve(self._request(), ambulanceId=amb.id)
        url = reverse('transfer_detail', args=[t['id']])

        self.client.force_authenticate(self.origin_doctor)
        resp = self.client.patch(url, {'status': 'IN_TRANSIT'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['status'], 'IN_TRANSIT')
        self.assertIsNotNone(resp.data['departureTime'])
        amb.refresh_from_db()
        self.assertEqual(amb.status, 'TRANSPORTING')

        resp = self.client.patch(url, {'diagnosis': 'Changed en route'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(self.dest_doctor)
        resp = self.client.patch(url, {'status': 'COMPLETED'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(resp.data['arrivalTime'])
        self.patient.refresh_from_db()
        self.assertEqual(self.patient.current_hospital_id, self.dest.id)
        self.assertEqual(self.patient.current_status, 'ACTIVE')
        amb.refresh_from_db()
        self.assertEqual(amb.status, 'AVAILABLE')
        self.assertEqual(AuditLog.objects.filter(entity_type='TRANSFER', action='UPDATE').count(), 2)

    def test_requested_transfer_cannot_complete(self) -> None:
        t = self._request()
        resp = self.client.patch(reverse('transfer_detail', args=[t['id']]), {'status': 'COMPLETED'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['details'][0]['field'], 'status')

    def test_details_editable_before_departure(self) -> None:
        t = self._request()
        resp = self.client.patch(reverse('transfer_detail', args=[t['id']]),
                                 {'urgency': 'IMMEDIATE', 'notes': 'GCS dropping'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['urgency'], 'IMMEDIATE')
        log = AuditLog.objects.get(entity_type='TRANSFER', action='UPDATE')
        self.assertEqual(log.changes['urgency'], {'from': 'URGENT', 'to': 'IMMEDIATE'})

    def test_delete_cancels_requested_transfer(self) -> None:
        t = self._request()
        url = reverse('transfer_detail', args=[t['id']])
        resp = self.client.delete(url)
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['transfer']['status'], 'CANCELLED')
        self.assertEqual(resp.data['transfer']['cancellationReason'], 'Cancelled by user')
        self.patient.refresh_from_db()
        self.assertEqual(self.patient.current_status, 'ACTIVE')
        self.assertTrue(AuditLog.objects.filter(action='CANCEL', entity_id=t['id']).exists())

        self.assertEqual(self.client.delete(url).status_code, status.HTTP_400_BAD_REQUEST)

    def test_outside_hospital_cannot_open_transfer(self) -> None:
        t = self._request()
        other = Hospital.objects.create(id='hosp-003', name='Mama Lucy', code='MLK', county=self.origin.county,
                                        level='LEVEL_4')
        outsider = User.objects.create_user(
            username='od2', email='od2@health.go.ke', password='x', role='DOCTOR', hospital=other)
        self.client.force_authenticate(outsider)
        url = reverse('transfer_detail', args=[t['id']])
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(Transfer.objects.get().status, 'REQUESTED')

        self.client.force_authenticate(self.dest_doctor)
        resp = self.client.get(url)
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['transferNumber'], t['transferNumber'])


class AvailableBedsTests(APITestCase):
    def setUp(self) -> None:
        county = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
        self.knh = Hospital.objects.create(id='hosp-001', name='KNH', code='KNH', county=county, level='LEVEL_6',
                                           total_beds=200, available_beds=50, icu_beds=20, available_icu_beds=5)
        Department.objects.create(hospital=self.knh, name='ICU', department_type='ICU',
                                  total_beds=20, available_beds=5)
        Department.objects.create(hospital=self.knh, name='Surgical ward', department_type='SURGERY',
                                  total_beds=40, available_beds=0)
        self.doctor = User.objects.create_user(
            username='doc', email='doc@health.go.ke', password='x', role='DOCTOR', hospital=self.knh)

    def test_bed_breakdown(self) -> None:
        self.client.force_authenticate(self.doctor)
        resp = self.client.get(reverse('transfer_available_beds'), {'hospitalId': self.knh.id})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        beds = resp.data['hospital']['bedAvailability']
        self.assertEqual(beds['general'], {'available': 50, 'total': 200, 'occupancy': 75.0})
        self.assertEqual(beds['icu']['occupancy'], 75.0)
        self.assertEqual(beds['emergency'], {'available': 0, 'total': 0, 'occupancy': 0})
        self.assertEqual([d['name'] for d in resp.data['departments']], ['ICU'])

        resp = self.client.get(reverse('transfer_available_beds'),
                               {'hospitalId': self.knh.id, 'departmentType': 'SURGERY'})
        self.assertEqual(resp.data['departments'], [])

    def test_hospital_is_required_and_must_exist(self) -> None:
        self.client.force_authenticate(self.doctor)
        self.assertEqual(self.client.get(reverse('transfer_available_beds')).status_code,
                         status.HTTP_400_BAD_REQUEST)
        resp = self.client.get(reverse('transfer_available_beds'), {'hospitalId': 'hosp-999'})
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
